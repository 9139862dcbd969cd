"""Feed Type and Batch Phase Rules.

Pure decision functions used by the feed screens and the batch mapper.
Nothing here touches the cache or the network, and nothing raises: every
branch resolves to a defined value, falling back to what the caller already
had selected when the inputs are not enough to decide.

Feed type, first match wins:
1. Manual override active      -> current manual value
2. No group classification     -> current manual value
3. "macho" in classification   -> Engorda
4. "produtora"/"reprodutora"   -> Postura
5. Growth box, by age in weeks -> Inicial (<2), Crescimento (<5), Postura

Ages are elapsed time. A birth date carrying a time of day is measured to
the current instant; a plain date counts whole calendar days.
"""

from datetime import date, datetime, time
from enum import Enum
from typing import Optional, Union

from core.models import BatchPhase, GroupClassification
from feed_classifier.models import (
    CARICOTO_MAX_DAYS,
    CRESCIMENTO_MAX_DAYS,
    GROWER_MAX_WEEKS,
    GROWTH_TOKENS,
    LAYING_TOKENS,
    MALES_TOKENS,
    STARTER_MAX_WEEKS,
    FeedType,
)

DateInput = Union[date, datetime, str, None]
ReferenceTime = Union[date, datetime, None]


def _as_date(value: DateInput) -> Optional[date]:
    """Coerce a date, datetime or ISO string to a date; None when unusable."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str) and value.strip():
        try:
            return date.fromisoformat(value.strip()[:10])
        except ValueError:
            return None
    return None


def _parse_birth(value: DateInput) -> Union[date, datetime, None]:
    """Keep the time part when there is one; None when unusable."""
    if isinstance(value, str):
        text = value.strip()
        if len(text) > 10:
            try:
                return datetime.fromisoformat(text.replace("Z", "+00:00"))
            except ValueError:
                pass
    return value if isinstance(value, datetime) else _as_date(value)


def _age_days(birth_date: DateInput, today: ReferenceTime = None) -> Optional[float]:
    """Elapsed days since birth, or None when the birth date is unusable."""
    born = _parse_birth(birth_date)
    if born is None:
        return None

    if not isinstance(born, datetime):
        reference = today.date() if isinstance(today, datetime) else (today or date.today())
        return float((reference - born).days)

    if isinstance(today, datetime):
        now = today
    elif today is not None:
        now = datetime.combine(today, time.min)
    else:
        now = datetime.now(born.tzinfo)

    # Mixed naive/aware values are read in the birth date's zone
    if now.tzinfo is None and born.tzinfo is not None:
        now = now.replace(tzinfo=born.tzinfo)
    elif now.tzinfo is not None and born.tzinfo is None:
        born = born.replace(tzinfo=now.tzinfo)
    return (now - born).total_seconds() / 86400


def _text(value) -> str:
    """Enum members compare by value; anything else by its string form."""
    return value.value if isinstance(value, Enum) else str(value)


def _contains_any(text: str, tokens) -> bool:
    return any(token in text for token in tokens)


def match_classification(text: Optional[str]) -> Optional[GroupClassification]:
    """Map free classification text to a GroupClassification.

    Uses the same case-insensitive substring tolerance as ``classify``.

    Examples:
        >>> match_classification("Galpão Machos 2")
        <GroupClassification.MALES: 'Machos'>
        >>> match_classification("desconhecido") is None
        True
    """
    if not text:
        return None

    lower = _text(text).lower()
    if _contains_any(lower, MALES_TOKENS):
        return GroupClassification.MALES
    # "reprodutora" contains "produtora"; test it first
    if "reprodutora" in lower:
        return GroupClassification.BREEDERS
    if "produtora" in lower:
        return GroupClassification.PRODUCERS
    if _contains_any(lower, GROWTH_TOKENS):
        return GroupClassification.GROWTH
    return None


def classify(
    group_classification: Optional[str],
    birth_date: DateInput,
    override_active: bool,
    current_manual_value: str,
    today: ReferenceTime = None,
) -> str:
    """Compute the feed type for a group or batch.

    Args:
        group_classification: Group category or free text (e.g. "Machos",
            GroupClassification.GROWTH, "Caixa de crescimento 3")
        birth_date: Birth date of the batch (date, datetime or ISO string)
        override_active: Keep the manually selected feed type
        current_manual_value: Feed type currently selected by the user
        today: Reference date or instant for the age computation (default: now)

    Returns:
        Feed type label

    Examples:
        >>> classify("Machos", None, False, "X")
        'Engorda'
        >>> classify("Crescimento", date.today(), False, "X")
        'Inicial'
        >>> classify("Produtoras", None, True, "Manual")
        'Manual'
    """
    if override_active:
        return current_manual_value
    if not group_classification:
        return current_manual_value

    lower = _text(group_classification).lower()

    if _contains_any(lower, MALES_TOKENS):
        return FeedType.FATTENING.value
    if _contains_any(lower, LAYING_TOKENS):
        return FeedType.LAYING.value

    age_days = _age_days(birth_date, today)
    if age_days is None:
        return current_manual_value

    age_weeks = int(age_days // 7)

    if age_weeks < STARTER_MAX_WEEKS:
        return FeedType.STARTER.value
    if age_weeks < GROWER_MAX_WEEKS:
        return FeedType.GROWER.value
    return FeedType.LAYING.value


def classify_phase(birth_date: DateInput, today: ReferenceTime = None) -> BatchPhase:
    """Life phase of a batch from its birth date.

    Batches without a usable birth date are treated as growing.
    """
    age_days = _age_days(birth_date, today)
    if age_days is None:
        return BatchPhase.CRESCIMENTO

    if age_days < CARICOTO_MAX_DAYS:
        return BatchPhase.CARICOTO
    if age_days < CRESCIMENTO_MAX_DAYS:
        return BatchPhase.CRESCIMENTO
    return BatchPhase.POSTURA
