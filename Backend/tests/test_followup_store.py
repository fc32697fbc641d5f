"""Tests for the in-memory follow-up store and per-user locks."""
import asyncio

from tools.models import PendingFollowup, TimeOfDay
from followup.store import InMemoryFollowupStore, UserLocks


class FakeClock:
    def __init__(self, start: float = 1000.0):
        self.value = start

    def __call__(self) -> float:
        return self.value


def _pending(**overrides) -> PendingFollowup:
    fields = dict(intent_type="meeting", title="sync", missing="DATE_TIME_RANGE", created_at=1000.0)
    fields.update(overrides)
    return PendingFollowup(**fields)


class TestInMemoryFollowupStore:
    def test_set_and_get(self):
        store = InMemoryFollowupStore(clock=FakeClock())
        store.set("u1", _pending())
        got = store.get("u1")
        assert got.title == "sync"
        assert got.updated_at == 1000.0
        assert store.get("u2") is None

    def test_returned_records_are_copies(self):
        store = InMemoryFollowupStore(clock=FakeClock())
        original = _pending()
        store.set("u1", original)
        original.title = "changed after set"
        got = store.get("u1")
        got.missing = "TIME"
        again = store.get("u1")
        assert again.title == "sync"
        assert again.missing == "DATE_TIME_RANGE"

    def test_update(self):
        store = InMemoryFollowupStore(clock=FakeClock())
        store.set("u1", _pending())
        updated = store.update("u1", missing="TIME", date="2026-01-22")
        assert updated.missing == "TIME"
        assert store.get("u1").date == "2026-01-22"

    def test_update_missing_record(self):
        store = InMemoryFollowupStore(clock=FakeClock())
        assert store.update("u1", missing="TIME") is None
        assert len(store) == 0

    def test_delete(self):
        store = InMemoryFollowupStore(clock=FakeClock())
        store.set("u1", _pending())
        store.delete("u1")
        store.delete("u1")
        assert store.get("u1") is None

    def test_empty_user_id_is_ignored(self):
        store = InMemoryFollowupStore(clock=FakeClock())
        store.set("", _pending())
        assert len(store) == 0
        assert store.get("") is None


class TestExpiry:
    def test_record_expires_after_ttl(self):
        clock = FakeClock()
        store = InMemoryFollowupStore(ttl_seconds=1800, clock=clock)
        store.set("u1", _pending())

        clock.value += 1800
        assert store.get("u1") is not None

        clock.value += 1
        assert store.get("u1") is None
        assert len(store) == 0

    def test_ttl_counts_from_last_write(self):
        clock = FakeClock()
        store = InMemoryFollowupStore(ttl_seconds=100, clock=clock)
        store.set("u1", _pending())
        clock.value += 90
        store.update("u1", missing="TIME")
        clock.value += 90
        assert store.get("u1").missing == "TIME"

    def test_zero_ttl_never_expires(self):
        clock = FakeClock()
        store = InMemoryFollowupStore(ttl_seconds=0, clock=clock)
        store.set("u1", _pending())
        clock.value += 10**9
        assert store.get("u1") is not None


class TestPendingFollowupSerialisation:
    def test_dict_round_trip_keeps_partial_slots(self):
        pending = _pending(missing="DATE", start_time=TimeOfDay(18, 0), raw_time_expression="בשש בערב")
        data = pending.to_dict()
        assert data["startTime"] == {"hour": 18, "minute": 0}
        assert data["intentType"] == "meeting"
        assert PendingFollowup.from_dict(data) == pending


class TestUserLocks:
    def test_turns_for_one_user_share_a_lock(self):
        locks = UserLocks()

        async def scenario():
            async with locks.hold("u1") as first:
                waiter = asyncio.create_task(_hold_once(locks, "u1"))
                await asyncio.sleep(0)
                assert not waiter.done()
                assert len(locks) == 1
            return first, await waiter

        first, second = asyncio.run(scenario())
        assert first is second

    def test_different_users_do_not_contend(self):
        locks = UserLocks()

        async def scenario():
            async with locks.hold("u1") as a:
                async with locks.hold("u2") as b:
                    return a is b, len(locks)

        same, count = asyncio.run(scenario())
        assert same is False
        assert count == 2

    def test_idle_locks_are_dropped(self):
        locks = UserLocks()

        async def scenario():
            for user in ("u1", "u2", "u3"):
                async with locks.hold(user):
                    pass

        asyncio.run(scenario())
        assert len(locks) == 0


async def _hold_once(locks: UserLocks, user_id: str):
    async with locks.hold(user_id) as lock:
        return lock
