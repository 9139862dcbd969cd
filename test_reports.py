"""
Report Service Client Tests

The report service is consumed as-is; these tests only pin the request
shapes and the "no report yet" handling.
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from connectors.farm_backend import FarmApiClient, FarmNotFoundError
from reports import HistoryEntityType, Report, ReportsClient


def make_reports():
    api = MagicMock(spec=FarmApiClient)
    api.get = AsyncMock()
    api.post = AsyncMock()
    return ReportsClient(api), api


REPORT_BODY = {
    "id": "r-1",
    "data": "2025-03-01",
    "graficos": [{"id": "c-1", "chartType": "bar", "title": "Postura", "data": [1, 2]}],
    "insights": ["Produção estável"],
    "alertas": [],
}


class TestReportsClient:
    def test_get_latest_parses_report(self):
        reports, api = make_reports()
        api.get.return_value = REPORT_BODY

        report = asyncio.run(reports.get_latest(aviary_id="g-1"))

        assert isinstance(report, Report)
        assert report.date == "2025-03-01"
        assert report.charts[0].chart_type == "bar"
        api.get.assert_awaited_once_with("latest", params={"aviaryId": "g-1"})

    def test_get_latest_not_found_is_none(self):
        reports, api = make_reports()
        api.get.side_effect = FarmNotFoundError("no report")

        assert asyncio.run(reports.get_latest()) is None
        api.get.assert_awaited_once_with("latest", params=None)

    def test_analyze_posts_aviary(self):
        reports, api = make_reports()
        api.post.return_value = REPORT_BODY

        report = asyncio.run(reports.analyze(aviary_id="g-2"))

        assert report.id == "r-1"
        api.post.assert_awaited_once_with("analyze", params={"aviaryId": "g-2"})

    def test_chat(self):
        reports, api = make_reports()
        api.post.return_value = {"answer": "ok"}

        answer = asyncio.run(reports.chat("Como está a postura?", ["r-1"]))

        assert answer == {"answer": "ok"}
        api.post.assert_awaited_once_with(
            "chat", data={"message": "Como está a postura?", "context": ["r-1"]}
        )

    def test_historical_data(self):
        reports, api = make_reports()
        api.get.return_value = [{"dia": 1}]

        asyncio.run(reports.get_historical_data(HistoryEntityType.CAGE, "c-1"))
        asyncio.run(reports.get_historical_data("lote", "b-1"))

        assert api.get.await_args_list[0].kwargs["params"] == {"type": "gaiola", "id": "c-1"}
        assert api.get.await_args_list[1].kwargs["params"] == {"type": "lote", "id": "b-1"}

    def test_historical_data_rejects_unknown_type(self):
        reports, api = make_reports()

        with pytest.raises(ValueError):
            asyncio.run(reports.get_historical_data("galpao", "g-1"))
        api.get.assert_not_called()
