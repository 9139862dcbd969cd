"""Farm client factory.

Wires settings, gateways, the query cache, the mutation coordinator and one
EntityStore per entity kind into a single FarmClient.
"""

import logging
from typing import Dict, Mapping, Optional

from connectors import EntityGateway, create_gateways
from connectors.farm_backend import FarmApiClient, FarmApiConfig
from core.config import FarmSettings
from core.models import EntityKind
from core.observability import MetricsCollector, configure_logging
from reports import ReportsClient
from sync import EntityStore, MutationCoordinator, QueryCache


class FarmClient:
    """Entry point for reading and writing farm data.

    Usage:
        async with await get_farm_client() as farm:
            batches = await farm.batches.list()
            await farm.feed.create({"groupId": "g-1", "feedType": "Postura",
                                    "quantity": "12.5", "date": "2025-03-01"})
    """

    def __init__(
        self,
        gateways: Mapping[EntityKind, EntityGateway],
        metrics: Optional[MetricsCollector] = None,
        reports: Optional[ReportsClient] = None,
        api: Optional[FarmApiClient] = None,
    ):
        self.metrics = metrics or MetricsCollector.instance()
        self.cache = QueryCache(self.metrics)
        self.coordinator = MutationCoordinator(self.cache, gateways, metrics=self.metrics)
        self.stores: Dict[EntityKind, EntityStore] = {
            kind: EntityStore(kind, gateway, self.cache, self.coordinator)
            for kind, gateway in gateways.items()
        }
        self.reports = reports
        self._api = api

    def store(self, kind: EntityKind) -> EntityStore:
        return self.stores[kind]

    @property
    def groups(self) -> EntityStore:
        return self.stores[EntityKind.GROUP]

    @property
    def cages(self) -> EntityStore:
        return self.stores[EntityKind.CAGE]

    @property
    def batches(self) -> EntityStore:
        return self.stores[EntityKind.BATCH]

    @property
    def feed(self) -> EntityStore:
        return self.stores[EntityKind.FEED_RECORD]

    @property
    def incubation(self) -> EntityStore:
        return self.stores[EntityKind.INCUBATION]

    @property
    def sales(self) -> EntityStore:
        return self.stores[EntityKind.SALE]

    async def close(self) -> None:
        """Close HTTP sessions owned by the client."""
        if self._api is not None:
            await self._api.disconnect()
        if self.reports is not None:
            await self.reports.close()

    async def __aenter__(self) -> "FarmClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()


async def get_farm_client(settings: Optional[FarmSettings] = None) -> FarmClient:
    """Create a FarmClient connected to the REST backend.

    Args:
        settings: Client settings (default: FarmSettings.from_env())

    Returns:
        Connected FarmClient; call ``close()`` or use it as an async context manager

    Raises:
        ValueError: If required environment variables are missing
    """
    settings = settings or FarmSettings.from_env()
    configure_logging(
        level=getattr(logging, settings.log_level, logging.INFO),
        json_format=settings.log_json,
    )

    api = FarmApiClient(FarmApiConfig(
        base_url=settings.api_url,
        api_key=settings.api_key,
        timeout_seconds=settings.timeout_seconds,
    ))
    reports = ReportsClient.from_settings(settings)

    try:
        await api.connect()
        await reports.connect()
        gateways = create_gateways("rest", settings=settings, client=api)
    except Exception:
        await api.disconnect()
        await reports.close()
        raise

    return FarmClient(gateways, reports=reports, api=api)


def build_in_memory_client(latency: float = 0.0, metrics: Optional[MetricsCollector] = None) -> FarmClient:
    """FarmClient over in-memory gateways (offline use and tests)."""
    return FarmClient(create_gateways("memory", latency=latency), metrics=metrics)
