"""End-to-end turns through TurnHandler with a fake extractor."""
import asyncio
from datetime import datetime
from unittest.mock import AsyncMock

from actions.dispatcher import ActionDispatcher
from decision import messages
from decision.turn_handler import TurnHandler
from followup.store import InMemoryFollowupStore
from tools.models import RawIntent

NOW = datetime(2026, 1, 21, 12, 0)


def _handler(extractor):
    store = InMemoryFollowupStore()
    return TurnHandler(store, ActionDispatcher(store), extractor), store


def _extractor_returning(**fields):
    return AsyncMock(return_value=RawIntent.model_validate(fields))


class TestFreshTurns:
    def test_complete_meeting_needs_no_followup(self):
        extractor = _extractor_returning(hypothesis="meeting", title="sync", relativeTime="מחר בעשר בבוקר")
        handler, store = _handler(extractor)

        turn = asyncio.run(handler.handle("u1", "פגישה מחר בעשר בבוקר", NOW))

        assert turn.plan.action_types == ["CREATE_MEETING", "SEND_MESSAGE"]
        assert [r["status"] for r in turn.results] == ["success", "success"]
        assert turn.followup_pending is False
        extractor.assert_awaited_once_with("פגישה מחר בעשר בבוקר")

    def test_extractor_failure_falls_back(self):
        extractor = AsyncMock(side_effect=ValueError("Intent extraction failed after repair pass"))
        handler, store = _handler(extractor)

        turn = asyncio.run(handler.handle("u1", "???", NOW))

        assert turn.plan.action_types == ["SEND_MESSAGE"]
        assert turn.plan.actions[0].message == messages.MESSAGES["not_understood"]
        assert turn.followup_pending is False


class TestFollowupTurns:
    def test_followup_conversation_clears_state_when_done(self):
        extractor = _extractor_returning(hypothesis="meeting", title="meeting with Dani")
        handler, store = _handler(extractor)

        first = asyncio.run(handler.handle("u1", "meeting with Dani", NOW))
        assert first.plan.action_types == ["REQUEST_FOLLOWUP"]
        assert first.followup_pending is True

        second = asyncio.run(handler.handle("u1", "tomorrow", NOW))
        assert second.plan.action_types == ["SEND_MESSAGE"]
        assert second.followup_pending is True
        assert store.get("u1").missing == "TIME"

        third = asyncio.run(handler.handle("u1", "six in the evening", NOW))
        assert third.plan.actions[0].start == "2026-01-22T18:00:00"
        assert third.followup_pending is False
        assert store.get("u1") is None

        assert len(handler.locks) == 0
        # only the first turn goes through the extractor
        extractor.assert_awaited_once()

    def test_users_do_not_share_state(self):
        extractor = _extractor_returning(hypothesis="meeting", title="sync")
        handler, store = _handler(extractor)

        asyncio.run(handler.handle("u1", "sync", NOW))
        other = asyncio.run(handler.handle("u2", "sync", NOW))

        assert other.plan.action_types == ["REQUEST_FOLLOWUP"]
        assert store.get("u1") is not None
        assert store.get("u2") is not None

    def test_concurrent_turns_for_one_user_are_serialised(self):
        extractor = _extractor_returning(hypothesis="meeting", title="sync")
        handler, store = _handler(extractor)

        async def run_both():
            return await asyncio.gather(
                handler.handle("u1", "sync", NOW),
                handler.handle("u1", "tomorrow", NOW),
            )

        first, second = asyncio.run(run_both())

        # the second turn sees the state written by the first
        assert first.plan.action_types == ["REQUEST_FOLLOWUP"]
        assert second.plan.action_types == ["SEND_MESSAGE"]
        assert store.get("u1").date == "2026-01-22"
        extractor.assert_awaited_once()
