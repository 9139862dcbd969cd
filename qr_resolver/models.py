"""QR Resolver Data Models."""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict


class ScanTargetType(str, Enum):
    """What a scanned code points at."""
    BOX = "caixa"      # Growth box (caixa de crescimento)
    CAGE = "gaiola"


# Text prefixes printed on labels
PREFIXES = {
    ScanTargetType.BOX: "CAIXA:",
    ScanTargetType.CAGE: "GAIOLA:",
}

# Declared "type" values accepted in JSON payloads
TYPE_ALIASES = {
    "caixa": ScanTargetType.BOX,
    "box": ScanTargetType.BOX,
    "gaiola": ScanTargetType.CAGE,
    "cage": ScanTargetType.CAGE,
}


class ScanResolution(BaseModel):
    """Normalized result of a scan.

    Attributes:
        id: Record id (empty string for empty scans)
        type: Target type, or None when the code carries no type
    """
    model_config = ConfigDict(frozen=True)

    id: str
    type: Optional[ScanTargetType] = None

    @property
    def is_empty(self) -> bool:
        return self.id == ""
