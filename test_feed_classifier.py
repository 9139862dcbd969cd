"""
Feed Classifier Tests

Decision order: manual override, missing classification, males, laying
groups, then growth boxes by age in whole weeks of elapsed time.
"""

from datetime import date, datetime, timedelta, timezone

import pytest

from core.models import BatchPhase, GroupClassification
from feed_classifier import FeedType, classify, classify_phase, match_classification


TODAY = date(2025, 3, 15)


def days_ago(days: int) -> date:
    return TODAY - timedelta(days=days)


class TestClassify:
    """Feed type rules."""

    def test_males_always_fattening(self):
        assert classify("Machos", days_ago(3), False, "X", today=TODAY) == "Engorda"
        assert classify("Machos", None, False, "X", today=TODAY) == "Engorda"

    def test_breeders_and_producers_always_laying(self):
        assert classify("Reprodutoras", days_ago(3), False, "X", today=TODAY) == "Postura"
        assert classify("Produtoras", days_ago(200), False, "X", today=TODAY) == "Postura"

    @pytest.mark.parametrize("age_days,expected", [
        (0, "Inicial"),
        (10, "Inicial"),
        (13, "Inicial"),
        (14, "Crescimento"),
        (21, "Crescimento"),
        (34, "Crescimento"),
        (35, "Postura"),
        (40, "Postura"),
    ])
    def test_growth_boxes_by_age(self, age_days, expected):
        assert classify("Crescimento", days_ago(age_days), False, "X", today=TODAY) == expected

    def test_manual_override_wins(self):
        assert classify("Machos", days_ago(3), True, "Manual", today=TODAY) == "Manual"
        assert classify("Crescimento", days_ago(40), True, "Manual", today=TODAY) == "Manual"
        assert classify(None, None, True, "Manual", today=TODAY) == "Manual"

    def test_missing_classification_keeps_manual_value(self):
        assert classify(None, days_ago(3), False, "Inicial", today=TODAY) == "Inicial"
        assert classify("", days_ago(3), False, "Inicial", today=TODAY) == "Inicial"

    def test_growth_without_birth_date_keeps_manual_value(self):
        assert classify("Crescimento", None, False, "Crescimento", today=TODAY) == "Crescimento"

    def test_unparseable_birth_date_keeps_manual_value(self):
        assert classify("Crescimento", "not-a-date", False, "X", today=TODAY) == "X"

    def test_substring_matching_is_case_insensitive(self):
        assert classify("GALPÃO DE MACHOS 2", None, False, "X", today=TODAY) == "Engorda"
        assert classify("aves reprodutoras", None, False, "X", today=TODAY) == "Postura"
        assert classify("Produtora-A", None, False, "X", today=TODAY) == "Postura"

    def test_enum_classification_accepted(self):
        assert classify(GroupClassification.MALES, None, False, "X", today=TODAY) == "Engorda"
        assert classify(GroupClassification.GROWTH, days_ago(20), False, "X", today=TODAY) == "Crescimento"

    def test_string_and_datetime_birth_dates(self):
        assert classify("Crescimento", "2025-03-10T00:00:00.000Z", False, "X", today=TODAY) == "Inicial"
        assert classify("Crescimento", datetime(2025, 1, 1, 8, 30), False, "X", today=TODAY) == "Postura"

    def test_age_with_time_of_day_is_elapsed_time(self):
        born = datetime(2025, 3, 1, 23, 30)
        checked = born + timedelta(days=13, hours=1)

        # 14 calendar days apart, but only 13 days and 1 hour elapsed
        assert classify("Crescimento", born, False, "X", today=checked) == "Inicial"
        assert classify("Crescimento", born.date(), False, "X", today=checked) == "Crescimento"
        assert classify("Crescimento", born, False, "X", today=born + timedelta(days=14)) == "Crescimento"

    def test_timestamp_string_with_aware_reference(self):
        checked = datetime(2025, 3, 15, 0, 30, tzinfo=timezone.utc)
        assert classify("Crescimento", "2025-03-01T23:30:00Z", False, "X", today=checked) == "Inicial"
        assert classify("Crescimento", "2025-03-01T23:30:00.000Z", False, "X", today=checked) == "Inicial"

    def test_naive_reference_with_aware_birth_does_not_raise(self):
        checked = datetime(2025, 4, 30, 12, 0)
        assert classify("Crescimento", "2025-03-01T00:00:00Z", False, "X", today=checked) == "Postura"

    def test_returns_plain_strings(self):
        result = classify("Machos", None, False, "X", today=TODAY)
        assert result == FeedType.FATTENING.value
        assert type(result) is str


class TestClassifyPhase:
    """Batch phase from age in days."""

    @pytest.mark.parametrize("age_days,expected", [
        (0, BatchPhase.CARICOTO),
        (20, BatchPhase.CARICOTO),
        (21, BatchPhase.CRESCIMENTO),
        (41, BatchPhase.CRESCIMENTO),
        (42, BatchPhase.POSTURA),
    ])
    def test_phase_by_age(self, age_days, expected):
        assert classify_phase(days_ago(age_days), today=TODAY) is expected

    def test_missing_birth_date_is_growing(self):
        assert classify_phase(None) is BatchPhase.CRESCIMENTO
        assert classify_phase("") is BatchPhase.CRESCIMENTO


class TestMatchClassification:
    """Free text to group classification."""

    @pytest.mark.parametrize("text,expected", [
        ("Machos", GroupClassification.MALES),
        ("Reprodutoras", GroupClassification.BREEDERS),
        ("Galpão Produtoras 1", GroupClassification.PRODUCERS),
        ("Caixa de Crescimento", GroupClassification.GROWTH),
        ("Outro", None),
        (None, None),
    ])
    def test_matching(self, text, expected):
        assert match_classification(text) is expected
