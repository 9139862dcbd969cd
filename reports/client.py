"""Report Service Client.

Thin client for the report/analytics service. Not cached: reports are
generated on demand and the service owns their lifecycle.
"""

from typing import Any, Dict, List, Optional, Union

from connectors.farm_backend.client import FarmApiClient, FarmApiConfig, FarmNotFoundError
from core.config import FarmSettings
from core.observability import get_logger
from reports.models import HistoryEntityType, Report

logger = get_logger(__name__)


class ReportsClient:
    """Client for the report service.

    Usage:
        async with ReportsClient.from_settings(settings) as reports:
            latest = await reports.get_latest(aviary_id="g-1")
    """

    def __init__(self, api: FarmApiClient):
        self.api = api

    @classmethod
    def from_settings(cls, settings: FarmSettings) -> "ReportsClient":
        return cls(FarmApiClient(FarmApiConfig(
            base_url=settings.reports_url,
            api_key=settings.api_key,
            timeout_seconds=settings.timeout_seconds,
        )))

    async def connect(self) -> None:
        await self.api.connect()

    async def close(self) -> None:
        await self.api.disconnect()

    async def __aenter__(self) -> "ReportsClient":
        await self.connect()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    @staticmethod
    def _aviary_params(aviary_id: Optional[str]) -> Optional[Dict[str, str]]:
        return {"aviaryId": aviary_id} if aviary_id else None

    async def get_latest(self, aviary_id: Optional[str] = None) -> Optional[Report]:
        """Most recent report, or None if none has been generated."""
        try:
            body = await self.api.get("latest", params=self._aviary_params(aviary_id))
        except FarmNotFoundError:
            return None
        if not body:
            return None
        return Report.model_validate(body)

    async def analyze(self, aviary_id: Optional[str] = None) -> Report:
        """Generate a new report."""
        body = await self.api.post("analyze", params=self._aviary_params(aviary_id))
        logger.info("Report generated", extra_fields={"aviary_id": aviary_id})
        return Report.model_validate(body)

    async def chat(self, message: str, context: List[Any]) -> Dict[str, Any]:
        """Ask a question about report data."""
        return await self.api.post("chat", data={"message": message, "context": context})

    async def get_historical_data(
        self,
        entity_type: Union[HistoryEntityType, str],
        entity_id: str,
    ) -> Any:
        """Historical series for a batch ("lote") or cage ("gaiola").

        Raises:
            ValueError: If entity_type is not lote or gaiola
        """
        entity_type = HistoryEntityType(entity_type)
        return await self.api.get("history", params={"type": entity_type.value, "id": entity_id})
