"""Tests for the in-memory subscription registry."""

import asyncio

import pytest

from arcfx.exceptions import ValidationError
from arcfx.models import DeliveryOutcome
from arcfx.storage import InMemorySubscriptionRegistry, RecordLocks
from arcfx.webhooks import HealthTracker


@pytest.mark.asyncio
class TestRegister:
    """Tests for registering subscriptions."""

    async def test_register_returns_active_subscription(self, registry):
        subscription = await registry.register(
            "https://partner.example/hooks",
            ["onSwapFinalized", "onPayoutCompleted"],
            secret="s3cr3t",
            description="Partner settlement feed",
        )

        assert subscription.id.startswith("whk_")
        assert str(subscription.endpoint) == "https://partner.example/hooks"
        assert subscription.event_types == ["onSwapFinalized", "onPayoutCompleted"]
        assert subscription.status == "active"
        assert subscription.failure_count == 0
        assert subscription.secret == "s3cr3t"
        assert subscription.description == "Partner settlement feed"

    async def test_register_without_secret(self, registry):
        subscription = await registry.register("https://partner.example/hooks", ["onComplianceFlag"])
        assert subscription.secret is None
        assert subscription.has_secret is False

    async def test_register_generates_distinct_ids(self, registry):
        first = await registry.register("https://partner.example/hooks", ["onSwapFinalized"])
        second = await registry.register("https://partner.example/hooks", ["onSwapFinalized"])
        assert first.id != second.id
        assert len(registry) == 2

    async def test_rejects_malformed_url(self, registry):
        with pytest.raises(ValidationError) as exc_info:
            await registry.register("not-a-url", ["onSwapFinalized"])
        assert exc_info.value.field == "endpoint"
        assert len(registry) == 0

    async def test_rejects_unknown_event_type(self, registry):
        with pytest.raises(ValidationError) as exc_info:
            await registry.register("https://partner.example/hooks", ["onSwapFinalised"])
        assert exc_info.value.field == "event_types"
        assert len(registry) == 0

    async def test_rejects_empty_event_types(self, registry):
        with pytest.raises(ValidationError):
            await registry.register("https://partner.example/hooks", [])


@pytest.mark.asyncio
class TestLookup:
    """Tests for get, list and remove."""

    async def test_get_returns_copy(self, registry):
        created = await registry.register("https://partner.example/hooks", ["onSwapFinalized"])

        fetched = await registry.get(created.id)
        assert fetched == created

        fetched.status = "inactive"
        fetched.failure_count = 7
        stored = await registry.get(created.id)
        assert stored.status == "active"
        assert stored.failure_count == 0

    async def test_get_unknown_returns_none(self, registry):
        assert await registry.get("whk_missing") is None

    async def test_list_includes_all_statuses(self, registry):
        active = await registry.register("https://a.example/hooks", ["onSwapFinalized"])
        inactive = await registry.register("https://b.example/hooks", ["onSwapFinalized"])
        await registry.set_status(inactive.id, "inactive")

        ids = {s.id for s in await registry.list()}
        assert ids == {active.id, inactive.id}

    async def test_remove(self, registry):
        created = await registry.register("https://partner.example/hooks", ["onSwapFinalized"])

        assert await registry.remove(created.id) is True
        assert await registry.get(created.id) is None
        assert await registry.remove(created.id) is False

    async def test_remove_unknown(self, registry):
        assert await registry.remove("whk_missing") is False

    async def test_remove_releases_record_lock(self, registry):
        created = await registry.register("https://partner.example/hooks", ["onSwapFinalized"])
        await registry.set_status(created.id, "inactive")
        await registry.remove(created.id)
        assert len(registry._locks) == 0


@pytest.mark.asyncio
class TestMatching:
    """Tests for resolving recipients of an event."""

    async def test_matches_active_subscribers_of_event(self, registry):
        swaps = await registry.register("https://a.example/hooks", ["onSwapFinalized"])
        both = await registry.register(
            "https://b.example/hooks", ["onPayoutCompleted", "onSwapFinalized"]
        )
        await registry.register("https://c.example/hooks", ["onPayoutCompleted"])

        ids = {s.id for s in await registry.matching("onSwapFinalized")}
        assert ids == {swaps.id, both.id}

    async def test_excludes_inactive_and_failed(self, registry):
        inactive = await registry.register("https://a.example/hooks", ["onSwapFinalized"])
        failed = await registry.register("https://b.example/hooks", ["onSwapFinalized"])
        await registry.set_status(inactive.id, "inactive")

        def _quarantine(subscription):
            subscription.status = "failed"
            return subscription

        await registry.apply(failed.id, _quarantine)

        assert await registry.matching("onSwapFinalized") == []

    async def test_no_subscribers(self, registry):
        assert await registry.matching("onCCTPTransferCompleted") == []


@pytest.mark.asyncio
class TestSetStatus:
    """Tests for operator status changes."""

    async def test_deactivate_and_reactivate(self, registry):
        created = await registry.register("https://partner.example/hooks", ["onSwapFinalized"])

        assert await registry.set_status(created.id, "inactive") is True
        assert (await registry.get(created.id)).status == "inactive"

        assert await registry.set_status(created.id, "active") is True
        assert (await registry.get(created.id)).status == "active"

    async def test_unknown_id(self, registry):
        assert await registry.set_status("whk_missing", "inactive") is False

    async def test_failed_is_not_an_operator_status(self, registry):
        created = await registry.register("https://partner.example/hooks", ["onSwapFinalized"])

        with pytest.raises(ValidationError) as exc_info:
            await registry.set_status(created.id, "failed")
        assert exc_info.value.field == "status"
        assert (await registry.get(created.id)).status == "active"

    async def test_unknown_status_rejected(self, registry):
        created = await registry.register("https://partner.example/hooks", ["onSwapFinalized"])
        with pytest.raises(ValidationError):
            await registry.set_status(created.id, "paused")

    async def test_reactivating_failed_keeps_failure_count(self, registry):
        created = await registry.register("https://partner.example/hooks", ["onSwapFinalized"])

        def _quarantine(subscription):
            subscription.status = "failed"
            subscription.failure_count = 10
            return subscription

        await registry.apply(created.id, _quarantine)
        assert await registry.set_status(created.id, "active") is True

        stored = await registry.get(created.id)
        assert stored.status == "active"
        assert stored.failure_count == 10


@pytest.mark.asyncio
class TestApply:
    """Tests for atomic read-modify-write."""

    async def test_apply_unknown_returns_none(self, registry):
        assert await registry.apply("whk_missing", lambda s: s) is None

    async def test_apply_persists_result(self, registry):
        created = await registry.register("https://partner.example/hooks", ["onSwapFinalized"])

        def _bump(subscription):
            subscription.failure_count += 1
            return subscription

        updated = await registry.apply(created.id, _bump)
        assert updated.failure_count == 1
        assert (await registry.get(created.id)).failure_count == 1

    async def test_concurrent_updates_are_not_lost(self):
        """Interleaved read-modify-writes on one record all land."""

        class SlowRegistry(InMemorySubscriptionRegistry):
            async def get(self, subscription_id):
                subscription = await super().get(subscription_id)
                await asyncio.sleep(0)
                return subscription

        registry = SlowRegistry()
        created = await registry.register("https://partner.example/hooks", ["onSwapFinalized"])

        def _bump(subscription):
            subscription.failure_count += 1
            return subscription

        await asyncio.gather(*(registry.apply(created.id, _bump) for _ in range(25)))

        assert (await registry.get(created.id)).failure_count == 25

    async def test_apply_after_remove_does_not_resurrect(self, registry):
        created = await registry.register("https://partner.example/hooks", ["onSwapFinalized"])
        await registry.remove(created.id)

        assert await registry.apply(created.id, lambda s: s) is None
        assert await registry.get(created.id) is None


@pytest.mark.asyncio
class TestRecordLocks:
    async def test_lock_dropped_after_release(self):
        locks = RecordLocks()
        async with locks.hold("whk_1"):
            assert len(locks) == 1
        assert len(locks) == 0

    async def test_waiters_share_one_lock(self):
        locks = RecordLocks()
        order = []

        async def worker(name):
            async with locks.hold("whk_1"):
                order.append(f"{name}-in")
                await asyncio.sleep(0)
                order.append(f"{name}-out")

        await asyncio.gather(worker("a"), worker("b"), worker("c"))

        assert order == ["a-in", "a-out", "b-in", "b-out", "c-in", "c-out"]
        assert len(locks) == 0

    async def test_unrelated_keys_do_not_block(self):
        locks = RecordLocks()
        async with locks.hold("whk_1"):
            async with locks.hold("whk_2"):
                assert len(locks) == 2
        assert len(locks) == 0

    async def test_released_on_error(self):
        locks = RecordLocks()
        with pytest.raises(RuntimeError):
            async with locks.hold("whk_1"):
                raise RuntimeError("boom")
        assert len(locks) == 0


@pytest.mark.asyncio
class TestLockHousekeeping:
    """No lock outlives the operation that needed it."""

    async def test_unknown_ids_leave_no_locks(self, registry):
        for i in range(100):
            assert await registry.set_status(f"whk_missing_{i}", "inactive") is False
            assert await registry.apply(f"whk_gone_{i}", lambda s: s) is None
            assert await registry.remove(f"whk_absent_{i}") is False
        assert len(registry._locks) == 0

    async def test_updates_after_remove_leave_no_locks(self, registry):
        health = HealthTracker(registry)
        created = await registry.register("https://partner.example/hooks", ["onSwapFinalized"])
        await registry.remove(created.id)

        await health.report(created.id, DeliveryOutcome.EXHAUSTED)

        assert await registry.get(created.id) is None
        assert len(registry._locks) == 0

    async def test_concurrent_updates_leave_no_locks(self, registry):
        created = await registry.register("https://partner.example/hooks", ["onSwapFinalized"])

        def bump(subscription):
            subscription.failure_count += 1
            return subscription

        await asyncio.gather(*(registry.apply(created.id, bump) for _ in range(20)))

        assert (await registry.get(created.id)).failure_count == 20
        assert len(registry._locks) == 0


@pytest.mark.asyncio
async def test_registry_context_manager():
    async with InMemorySubscriptionRegistry() as registry:
        await registry.register("https://partner.example/hooks", ["onSwapFinalized"])
        assert len(registry) == 1
