"""Client configuration from environment.

Reads configuration from environment variables, loading a ``.env`` file at the
repository root first if one exists:

- FARM_API_URL: Backend base URL (required)
- FARM_API_KEY: Access credential for the backend (required)
- FARM_REPORTS_URL: Report/analytics service URL (default: <FARM_API_URL>/reports)
- FARM_HTTP_TIMEOUT: Request timeout in seconds (default: 30)
- FARM_ENDPOINT_<KIND>: Override the endpoint path of one entity kind,
  e.g. FARM_ENDPOINT_BATCHES=lotes
- FARM_LOG_LEVEL: Logging level name (default: INFO)
- FARM_LOG_JSON: "1"/"true" for JSON log lines (default: human-readable)
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Optional

from dotenv import load_dotenv

from core.models import EntityKind

env_path = Path(__file__).resolve().parents[1] / ".env"
if env_path.exists():
    load_dotenv(env_path)


# Backend path per entity kind
DEFAULT_ENDPOINTS: Dict[EntityKind, str] = {
    EntityKind.GROUP: "groups",
    EntityKind.CAGE: "cages",
    EntityKind.BATCH: "lotes",
    EntityKind.FEED_RECORD: "feed_consumption",
    EntityKind.INCUBATION: "incubation",
    EntityKind.SALE: "vendas",
}


def _env_flag(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class FarmSettings:
    """Settings consumed by the sync layer and its gateways."""
    api_url: str
    api_key: str
    reports_url: Optional[str] = None
    timeout_seconds: float = 30.0
    endpoints: Dict[EntityKind, str] = field(default_factory=lambda: dict(DEFAULT_ENDPOINTS))
    log_level: str = "INFO"
    log_json: bool = False

    def __post_init__(self):
        self.api_url = self.api_url.rstrip("/")
        if not self.reports_url:
            self.reports_url = f"{self.api_url}/reports"

    def endpoint_for(self, kind: EntityKind) -> str:
        """Backend path for an entity kind."""
        return self.endpoints[kind]

    @classmethod
    def from_env(cls) -> "FarmSettings":
        """Build settings from the environment.

        Raises:
            ValueError: If a required environment variable is missing
        """
        api_url = os.getenv("FARM_API_URL")
        api_key = os.getenv("FARM_API_KEY")

        if not api_url:
            raise ValueError(
                "FARM_API_URL environment variable not set. "
                "Set to the farm backend base URL (e.g., 'https://farm.example.com/api')"
            )

        if not api_key:
            raise ValueError(
                "FARM_API_KEY environment variable not set. "
                "Set to the access key issued for the farm backend"
            )

        endpoints = dict(DEFAULT_ENDPOINTS)
        for kind in EntityKind:
            override = os.getenv(f"FARM_ENDPOINT_{kind.name}") or os.getenv(f"FARM_ENDPOINT_{kind.value.upper()}")
            if override:
                endpoints[kind] = override.strip("/")

        return cls(
            api_url=api_url,
            api_key=api_key,
            reports_url=os.getenv("FARM_REPORTS_URL"),
            timeout_seconds=float(os.getenv("FARM_HTTP_TIMEOUT", "30")),
            endpoints=endpoints,
            log_level=os.getenv("FARM_LOG_LEVEL", "INFO").upper(),
            log_json=_env_flag("FARM_LOG_JSON"),
        )
