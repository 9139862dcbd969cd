"""Scanned Code Resolution.

Turns the raw text of a scanned QR code into a ScanResolution. Labels in the
field come in three generations, tried in order:

1. Prefixed text:  "CAIXA:<id>" (box), "GAIOLA:<id>" (cage)
2. JSON objects:   {"id": ..., "type": ...}, {"cageId": ...}, {"groupId": ...}
3. Anything else:  the trimmed text is the id

Examples:
    "CAIXA:123"         -> id="123", type=BOX
    '{"cageId": "5"}'   -> id="5",   type=CAGE
    "  lote-77 "        -> id="lote-77"
"""

import json
from typing import Any, Optional, Union

from qr_resolver.models import PREFIXES, TYPE_ALIASES, ScanResolution, ScanTargetType


def _declared_type(value: Any) -> Optional[ScanTargetType]:
    if not isinstance(value, str):
        return None
    return TYPE_ALIASES.get(value.strip().lower())


def _from_json(text: str) -> Optional[ScanResolution]:
    try:
        parsed = json.loads(text)
    except ValueError:
        # Not JSON
        return None

    if not isinstance(parsed, dict):
        return None

    if parsed.get("id"):
        return ScanResolution(id=str(parsed["id"]), type=_declared_type(parsed.get("type")))
    if parsed.get("cageId"):
        return ScanResolution(id=str(parsed["cageId"]), type=ScanTargetType.CAGE)
    # Older group labels resolve as cages
    if parsed.get("groupId"):
        return ScanResolution(id=str(parsed["groupId"]), type=ScanTargetType.CAGE)
    return None


def resolve(raw_text: Optional[str]) -> ScanResolution:
    """Resolve scanned text to an id and optional target type.

    Never raises; unrecognized input resolves to the trimmed text.

    Args:
        raw_text: Text decoded from the QR code

    Returns:
        ScanResolution
    """
    if not raw_text:
        return ScanResolution(id="")

    trimmed = raw_text.strip()
    if not trimmed:
        return ScanResolution(id="")

    for target_type, prefix in PREFIXES.items():
        if trimmed.startswith(prefix):
            return ScanResolution(id=trimmed[len(prefix):], type=target_type)

    resolution = _from_json(trimmed)
    if resolution is not None:
        return resolution

    return ScanResolution(id=trimmed)


def build_scan_payload(target_type: Union[ScanTargetType, str], entity_id: str) -> str:
    """Text to encode on a label so that ``resolve`` returns (entity_id, target_type).

    Raises:
        ValueError: If target_type is not a known scan target
    """
    return f"{PREFIXES[ScanTargetType(target_type)]}{entity_id}"
