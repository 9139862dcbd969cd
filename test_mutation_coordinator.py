"""
Mutation Coordinator Tests

Validates write-then-invalidate:
1. Successful writes invalidate the listing, detail and parent-scoped keys
2. Invalidation happens strictly after the gateway acknowledges
3. Failed writes invalidate nothing and surface the gateway error unchanged;
   writes committed without a confirmed record still invalidate
4. Payloads are validated before any remote call
5. In-flight state is visible while a write is pending
"""

import asyncio
from datetime import date
from unittest.mock import AsyncMock

import pytest
from pydantic import ValidationError

from connectors.gateway_base import (
    CommittedWriteError,
    EntityNotFoundError,
    TransportError,
    UnsupportedOperationError,
)
from core.models import (
    Batch,
    Cage,
    EntityKind,
    FeedRecord,
    Group,
    GroupClassification,
    Incubation,
    UpdateBatchRequest,
)
from core.observability.metrics import MetricsCollector
from farm_client import build_in_memory_client
from sync import CacheKey


def seeded_client():
    client = build_in_memory_client(metrics=MetricsCollector())
    client.groups.gateway.seed(
        Group(id="g-1", name="Produtoras", classification=GroupClassification.PRODUCERS),
        Group(id="g-2", name="Crescimento", classification=GroupClassification.GROWTH),
    )
    client.cages.gateway.seed(
        Cage(id="c-1", group_id="g-1", name="Gaiola 1", capacity=100),
        Cage(id="c-2", group_id="g-2", name="Caixa 1", capacity=300),
    )
    client.batches.gateway.seed(
        Batch(id="b-1", cage_id="c-1", name="LOTE-001", quantity=80, birth_date=date(2025, 1, 10)),
        Batch(id="b-2", cage_id="c-2", name="LOTE-002", quantity=200, birth_date=date(2025, 2, 20)),
    )
    client.feed.gateway.seed(
        FeedRecord(id="f-1", group_id="g-1", feed_type="Postura", quantity="12.5", date=date(2025, 3, 1)),
        FeedRecord(id="f-2", batch_id="b-2", feed_type="Inicial", quantity="3", date=date(2025, 3, 1)),
    )
    client.incubation.gateway.seed(
        Incubation(id="i-1", start_date=date(2025, 3, 1), egg_quantity=120),
    )
    return client


def is_valid(client, key: CacheKey) -> bool:
    return client.cache.peek(key).is_valid


NEW_FEED_RECORD = {
    "groupId": "g-1",
    "feedType": "Postura",
    "quantity": "8",
    "date": "2025-03-02",
}

FINALIZE_I1 = {
    "actualHatchDate": "2025-03-18",
    "hatchedQuantity": 100,
    "eggQuantity": 120,
    "growthBoxId": "c-2",
}

# Keys read by warmed_client()
WARMED_KEYS = [
    CacheKey.all(EntityKind.FEED_RECORD),
    CacheKey.by_id(EntityKind.FEED_RECORD, "f-1"),
    CacheKey.by_parent(EntityKind.FEED_RECORD, EntityKind.GROUP, "g-1"),
    CacheKey.all(EntityKind.INCUBATION),
    CacheKey.by_id(EntityKind.INCUBATION, "i-1"),
    CacheKey.all(EntityKind.BATCH),
]

# operation -> (kind, gateway method, store call)
FAILED_WRITES = {
    "create": (EntityKind.FEED_RECORD, "create", lambda c: c.feed.create(NEW_FEED_RECORD)),
    "update": (EntityKind.FEED_RECORD, "update", lambda c: c.feed.update("f-1", {"quantity": "3"})),
    "delete": (EntityKind.FEED_RECORD, "delete", lambda c: c.feed.delete("f-1")),
    "finalize": (
        EntityKind.INCUBATION,
        "perform",
        lambda c: c.incubation.perform("finalize", "i-1", FINALIZE_I1),
    ),
}


async def warmed_client():
    client = seeded_client()
    await client.feed.list()
    await client.feed.get("f-1")
    await client.feed.list_by_parent(EntityKind.GROUP, "g-1")
    await client.incubation.list()
    await client.incubation.get("i-1")
    await client.batches.list()
    return client


class TestSuccessfulWrites:
    """Successful writes fan out invalidation."""

    def test_update_invalidates_listing_detail_and_both_parents(self):
        async def scenario():
            client = seeded_client()
            await client.batches.list()
            await client.batches.get("b-1")
            await client.batches.list_by_parent(EntityKind.CAGE, "c-1")
            await client.batches.list_by_parent(EntityKind.CAGE, "c-2")
            await client.batches.get("b-2")

            # Move b-1 from cage c-1 to cage c-2
            await client.batches.update("b-1", {"cageId": "c-2"})
            return client

        client = asyncio.run(scenario())
        assert not is_valid(client, CacheKey.all(EntityKind.BATCH))
        assert not is_valid(client, CacheKey.by_id(EntityKind.BATCH, "b-1"))
        assert not is_valid(client, CacheKey.by_parent(EntityKind.BATCH, EntityKind.CAGE, "c-1"))
        assert not is_valid(client, CacheKey.by_parent(EntityKind.BATCH, EntityKind.CAGE, "c-2"))
        # Other records' details are untouched
        assert is_valid(client, CacheKey.by_id(EntityKind.BATCH, "b-2"))

    def test_update_leaves_other_kinds_valid(self):
        async def scenario():
            client = seeded_client()
            await client.cages.list()
            await client.batches.list()
            await client.batches.update("b-1", UpdateBatchRequest(quantity=75))
            return client

        client = asyncio.run(scenario())
        assert is_valid(client, CacheKey.all(EntityKind.CAGE))
        assert not is_valid(client, CacheKey.all(EntityKind.BATCH))

    def test_create_invalidates_listing_and_owner_scope(self):
        async def scenario():
            client = seeded_client()
            await client.feed.list()
            await client.feed.list_by_parent(EntityKind.GROUP, "g-1")
            await client.feed.list_by_parent(EntityKind.GROUP, "g-2")
            await client.feed.list_by_parent(EntityKind.BATCH, "b-2")

            await client.feed.create({
                "groupId": "g-1",
                "feedType": "Postura",
                "quantity": "8",
                "date": "2025-03-02",
            })
            return client

        client = asyncio.run(scenario())
        assert not is_valid(client, CacheKey.all(EntityKind.FEED_RECORD))
        assert not is_valid(client, CacheKey.by_parent(EntityKind.FEED_RECORD, EntityKind.GROUP, "g-1"))
        assert is_valid(client, CacheKey.by_parent(EntityKind.FEED_RECORD, EntityKind.GROUP, "g-2"))
        assert is_valid(client, CacheKey.by_parent(EntityKind.FEED_RECORD, EntityKind.BATCH, "b-2"))

    def test_delete_uses_cached_record_for_parent_scope(self):
        async def scenario():
            client = seeded_client()
            await client.feed.list()
            await client.feed.list_by_parent(EntityKind.BATCH, "b-2")
            await client.feed.list_by_parent(EntityKind.GROUP, "g-1")

            await client.feed.delete("f-2")
            return client

        client = asyncio.run(scenario())
        assert not is_valid(client, CacheKey.all(EntityKind.FEED_RECORD))
        assert not is_valid(client, CacheKey.by_parent(EntityKind.FEED_RECORD, EntityKind.BATCH, "b-2"))
        assert is_valid(client, CacheKey.by_parent(EntityKind.FEED_RECORD, EntityKind.GROUP, "g-1"))

    def test_delete_without_cached_record_invalidates_every_parent_scope(self):
        async def scenario():
            client = seeded_client()
            await client.feed.list_by_parent(EntityKind.BATCH, "b-2")
            await client.feed.list_by_parent(EntityKind.GROUP, "g-1")

            await client.feed.delete("f-2")
            return client

        client = asyncio.run(scenario())
        assert not is_valid(client, CacheKey.by_parent(EntityKind.FEED_RECORD, EntityKind.BATCH, "b-2"))
        assert not is_valid(client, CacheKey.by_parent(EntityKind.FEED_RECORD, EntityKind.GROUP, "g-1"))

    def test_read_after_write_observes_new_state(self):
        async def scenario():
            client = seeded_client()
            before = await client.batches.get("b-1")
            await client.batches.update("b-1", {"quantity": 42})
            after = await client.batches.get("b-1")
            listing = await client.batches.list()
            return before, after, listing

        before, after, listing = asyncio.run(scenario())
        assert before.quantity == 80
        assert after.quantity == 42
        assert next(b for b in listing if b.id == "b-1").quantity == 42

    def test_finalize_action_also_invalidates_batches(self):
        async def scenario():
            client = seeded_client()
            await client.incubation.list()
            await client.batches.list()
            await client.cages.list()

            record = await client.incubation.perform("finalize", "i-1", {
                "actualHatchDate": "2025-03-18",
                "hatchedQuantity": 100,
                "eggQuantity": 120,
                "growthBoxId": "c-2",
            })
            return client, record

        client, record = asyncio.run(scenario())
        assert record.status.value == "completed"
        assert record.finalization.losses == 20
        assert not is_valid(client, CacheKey.all(EntityKind.INCUBATION))
        assert not is_valid(client, CacheKey.all(EntityKind.BATCH))
        assert is_valid(client, CacheKey.all(EntityKind.CAGE))


class TestWriteOrdering:
    """Invalidation is ordered after the write acknowledgment."""

    def test_cache_untouched_while_write_is_pending(self):
        async def scenario():
            client = seeded_client()
            gateway = client.batches.gateway
            real_update = gateway.update
            observed = []

            async def observing_update(entity_id, payload):
                snapshot = client.cache.peek(CacheKey.all(EntityKind.BATCH))
                observed.append((snapshot.is_valid, [b.quantity for b in snapshot.value]))
                observed.append(client.batches.is_updating)
                return await real_update(entity_id, payload)

            await client.batches.list()
            gateway.update = observing_update
            await client.batches.update("b-1", {"quantity": 10})
            return client, observed

        client, observed = asyncio.run(scenario())
        # No optimistic edit: old value, still valid, during the write
        assert observed[0] == (True, [80, 200])
        assert observed[1] is True
        assert not is_valid(client, CacheKey.all(EntityKind.BATCH))
        assert client.batches.is_updating is False

    def test_pending_state_reported_per_operation(self):
        async def scenario():
            client = seeded_client()
            gate = asyncio.Event()
            gateway = client.cages.gateway
            real_create = gateway.create

            async def held_create(payload):
                await gate.wait()
                return await real_create(payload)

            gateway.create = held_create
            write = asyncio.ensure_future(
                client.cages.create({"name": "Gaiola 3", "groupId": "g-1", "capacity": 50})
            )
            await asyncio.sleep(0.01)
            during = (
                client.cages.is_creating,
                client.cages.is_updating,
                client.coordinator.is_pending(EntityKind.CAGE),
                client.coordinator.is_pending(EntityKind.BATCH),
            )
            gate.set()
            await write
            return during, client.cages.is_creating

        during, after = asyncio.run(scenario())
        assert during == (True, False, True, False)
        assert after is False


class TestFailedWrites:
    """Failed writes leave the cache exactly as it was."""

    def test_failed_update_invalidates_nothing(self):
        async def scenario():
            client = seeded_client()
            await client.batches.list()
            await client.batches.get("b-1")
            await client.batches.list_by_parent(EntityKind.CAGE, "c-1")

            client.batches.gateway.update = AsyncMock(side_effect=TransportError("backend down"))
            with pytest.raises(TransportError):
                await client.batches.update("b-1", {"quantity": 1})
            return client

        client = asyncio.run(scenario())
        assert is_valid(client, CacheKey.all(EntityKind.BATCH))
        assert is_valid(client, CacheKey.by_id(EntityKind.BATCH, "b-1"))
        assert is_valid(client, CacheKey.by_parent(EntityKind.BATCH, EntityKind.CAGE, "c-1"))
        assert client.batches.is_updating is False
        mutations = client.metrics.get_summary()["mutations"]
        assert mutations["failed"] == 1
        assert mutations["succeeded"] == 0

    @pytest.mark.parametrize("operation", ["create", "update", "delete", "finalize"])
    def test_failed_write_of_any_operation_invalidates_nothing(self, operation):
        kind, method, write = FAILED_WRITES[operation]

        async def scenario():
            client = await warmed_client()
            setattr(
                client.store(kind).gateway,
                method,
                AsyncMock(side_effect=TransportError("backend down")),
            )
            with pytest.raises(TransportError):
                await write(client)
            return client

        client = asyncio.run(scenario())
        for key in WARMED_KEYS:
            assert is_valid(client, key), str(key)
        assert client.metrics.get_summary()["mutations"]["failed"] == 1

    def test_write_is_not_retried(self):
        async def scenario():
            client = seeded_client()
            failing = AsyncMock(side_effect=TransportError("timeout"))
            client.sales.gateway.create = failing
            with pytest.raises(TransportError):
                await client.sales.create({
                    "date": "2025-03-01",
                    "quantity": 30,
                    "unitPrice": "1.50",
                    "productType": "Ovos",
                    "paymentMethod": "cash",
                })
            return failing.await_count

        assert asyncio.run(scenario()) == 1

    def test_duplicate_deletes_surface_not_found(self):
        async def scenario():
            client = seeded_client()
            return await asyncio.gather(
                client.batches.delete("b-1"),
                client.batches.delete("b-1"),
                return_exceptions=True,
            )

        first, second = asyncio.run(scenario())
        assert first is None
        assert isinstance(second, EntityNotFoundError)
        assert second.entity_id == "b-1"

    def test_update_of_missing_record_raises_not_found(self):
        async def scenario():
            client = seeded_client()
            await client.groups.list()
            with pytest.raises(EntityNotFoundError):
                await client.groups.update("nope", {"name": "X"})
            return client

        client = asyncio.run(scenario())
        assert is_valid(client, CacheKey.all(EntityKind.GROUP))


class TestCommittedWrites:
    """A write the backend acknowledged invalidates even when its follow-up fails."""

    def test_update_committed_without_record_invalidates_and_raises(self):
        async def scenario():
            client = await warmed_client()
            client.feed.gateway.update = AsyncMock(
                side_effect=CommittedWriteError(EntityKind.FEED_RECORD, "f-1")
            )
            with pytest.raises(CommittedWriteError):
                await client.feed.update("f-1", {"quantity": "3"})
            return client

        client = asyncio.run(scenario())
        assert not is_valid(client, CacheKey.all(EntityKind.FEED_RECORD))
        assert not is_valid(client, CacheKey.by_id(EntityKind.FEED_RECORD, "f-1"))
        # Parent taken from the cached copy of f-1
        assert not is_valid(client, CacheKey.by_parent(EntityKind.FEED_RECORD, EntityKind.GROUP, "g-1"))
        assert is_valid(client, CacheKey.all(EntityKind.INCUBATION))
        mutations = client.metrics.get_summary()["mutations"]
        assert mutations["failed"] == 1
        assert client.feed.is_updating is False

    def test_create_committed_without_record_uses_request_parent(self):
        async def scenario():
            client = await warmed_client()
            await client.feed.list_by_parent(EntityKind.GROUP, "g-2")
            client.feed.gateway.create = AsyncMock(
                side_effect=CommittedWriteError(EntityKind.FEED_RECORD, None)
            )
            with pytest.raises(CommittedWriteError):
                await client.feed.create(NEW_FEED_RECORD)
            return client

        client = asyncio.run(scenario())
        assert not is_valid(client, CacheKey.all(EntityKind.FEED_RECORD))
        assert not is_valid(client, CacheKey.by_parent(EntityKind.FEED_RECORD, EntityKind.GROUP, "g-1"))
        assert is_valid(client, CacheKey.by_parent(EntityKind.FEED_RECORD, EntityKind.GROUP, "g-2"))

    def test_finalize_committed_without_record_invalidates_batches(self):
        async def scenario():
            client = await warmed_client()
            client.incubation.gateway.perform = AsyncMock(
                side_effect=CommittedWriteError(EntityKind.INCUBATION, "i-1")
            )
            with pytest.raises(CommittedWriteError):
                await client.incubation.perform("finalize", "i-1", FINALIZE_I1)
            return client

        client = asyncio.run(scenario())
        assert not is_valid(client, CacheKey.all(EntityKind.INCUBATION))
        assert not is_valid(client, CacheKey.by_id(EntityKind.INCUBATION, "i-1"))
        assert not is_valid(client, CacheKey.all(EntityKind.BATCH))


class TestPayloadValidation:
    """Payloads are checked before any remote call."""

    def test_invalid_payload_never_reaches_gateway(self):
        async def scenario():
            client = seeded_client()
            with pytest.raises(ValidationError):
                # Both owners set
                await client.feed.create({
                    "groupId": "g-1",
                    "batchId": "b-1",
                    "feedType": "Postura",
                    "quantity": "2",
                    "date": "2025-03-01",
                })
            with pytest.raises(ValidationError):
                await client.batches.update("b-1", {"unknownField": 1})
            return client

        client = asyncio.run(scenario())
        assert client.feed.gateway.calls["create"] == 0
        assert client.batches.gateway.calls["update"] == 0

    def test_finalize_rejects_more_chicks_than_eggs(self):
        async def scenario():
            client = seeded_client()
            with pytest.raises(ValidationError):
                await client.incubation.perform("finalize", "i-1", {
                    "actualHatchDate": "2025-03-18",
                    "hatchedQuantity": 130,
                    "eggQuantity": 120,
                    "growthBoxId": "c-2",
                })
            return client.incubation.gateway.calls["finalize"]

        assert asyncio.run(scenario()) == 0

    def test_unknown_action_is_rejected(self):
        async def scenario():
            client = seeded_client()
            with pytest.raises(UnsupportedOperationError):
                await client.batches.perform("finalize", "b-1", {})

        asyncio.run(scenario())

    def test_wrong_request_struct_is_rejected(self):
        async def scenario():
            client = seeded_client()
            with pytest.raises(TypeError):
                await client.cages.update("c-1", UpdateBatchRequest(quantity=1))

        asyncio.run(scenario())
