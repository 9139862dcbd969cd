#!/usr/bin/env python
"""Print a snapshot of farm entities read through the sync layer.

Lists the requested entity kinds, reading each one twice so the second read
is served from the cache, then prints the cache and write metrics.

Usage:
    # Against the backend (FARM_API_URL / FARM_API_KEY in env or .env):
    python scripts/farm_snapshot.py --kind batches --kind cages

    # Offline, against seeded in-memory data:
    python scripts/farm_snapshot.py --offline

    # Resolve a scanned label:
    python scripts/farm_snapshot.py --offline --scan "GAIOLA:c-1"
"""

import argparse
import asyncio
import json
import os
import sys
from datetime import date, timedelta

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from core.models import Batch, Cage, EntityKind, Group, GroupClassification
from feed_classifier import classify
from farm_client import FarmClient, build_in_memory_client, get_farm_client
from qr_resolver import ScanTargetType, resolve


def seed_demo_data(client: FarmClient) -> None:
    """Fill in-memory gateways with a small aviary."""
    today = date.today()
    client.groups.gateway.seed(
        Group(id="g-1", name="Galpão Produtoras", classification=GroupClassification.PRODUCERS),
        Group(id="g-2", name="Caixa de Crescimento", classification=GroupClassification.GROWTH),
    )
    client.cages.gateway.seed(
        Cage(id="c-1", group_id="g-1", name="Gaiola 1", capacity=120, current_quantity=96),
        Cage(id="c-2", group_id="g-2", name="Caixa 1", capacity=300, current_quantity=240),
    )
    client.batches.gateway.seed(
        Batch(id="b-1", cage_id="c-1", name="LOTE-001", quantity=96, birth_date=today - timedelta(days=60)),
        Batch(id="b-2", cage_id="c-2", name="LOTE-002", quantity=240, birth_date=today - timedelta(days=17)),
    )


async def print_kind(client: FarmClient, kind: EntityKind) -> None:
    store = client.store(kind)
    records = await store.list()
    # Served from the cache
    await store.list()

    print(f"\n=== {kind.value.upper()} ({len(records)}) ===")
    for record in records:
        print(f"  {json.dumps(record.model_dump(mode='json'), ensure_ascii=False)}")


async def print_scan(client: FarmClient, text: str) -> None:
    scan = resolve(text)
    print(f"\n=== SCAN {text!r} ===")
    print(f"  id={scan.id!r} type={scan.type.value if scan.type else None}")

    if scan.type is not ScanTargetType.CAGE or scan.is_empty:
        return

    cage = await client.cages.get(scan.id)
    if cage is None:
        print("  cage not found")
        return

    group = await client.groups.get(cage.group_id)
    batches = await client.batches.list_by_parent(EntityKind.CAGE, cage.id)
    for batch in batches:
        feed_type = classify(
            group.classification if group else None,
            batch.birth_date,
            False,
            "Inicial",
        )
        print(f"  {batch.name}: {batch.quantity} birds, feed {feed_type}")


async def run(kinds, offline: bool, scan: str = None) -> int:
    if offline:
        client = build_in_memory_client()
        seed_demo_data(client)
    else:
        client = await get_farm_client()

    async with client:
        for kind in kinds:
            await print_kind(client, kind)
        if scan:
            await print_scan(client, scan)

        print("\n=== METRICS ===")
        print(json.dumps(client.metrics.get_summary()["cache"], indent=2))

    return 0


def main():
    parser = argparse.ArgumentParser(description="Print farm entities through the sync layer")
    parser.add_argument(
        "--kind",
        action="append",
        choices=[kind.value for kind in EntityKind],
        help="Entity kind to list (repeatable, default: groups, cages, batches)",
    )
    parser.add_argument("--offline", action="store_true", help="Use seeded in-memory data")
    parser.add_argument("--scan", help="Scanned label text to resolve")
    args = parser.parse_args()

    kinds = [EntityKind(k) for k in (args.kind or ["groups", "cages", "batches"])]

    try:
        sys.exit(asyncio.run(run(kinds, args.offline, args.scan)))
    except ValueError as e:
        print(f"Configuration error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
