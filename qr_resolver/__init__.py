"""QR Resolver - scanned label text to record ids.

Usage:
    from qr_resolver import resolve, ScanTargetType

    scan = resolve(decoded_text)
    if scan.type is ScanTargetType.CAGE:
        cage = await client.cages.get(scan.id)
"""

from qr_resolver.models import ScanResolution, ScanTargetType
from qr_resolver.resolver import build_scan_payload, resolve

__all__ = [
    "ScanResolution",
    "ScanTargetType",
    "resolve",
    "build_scan_payload",
]
