"""One conversational turn: pending follow-up or fresh extraction, then dispatch."""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Awaitable, Callable

from openai import OpenAIError

from actions.dispatcher import ActionDispatcher
from actions.types import ActionPlan
from followup.resolver import FollowupResolver
from followup.store import FollowupStore, UserLocks
from tools.models import RawIntent

from .decision_engine import decide, fallback_plan

logger = logging.getLogger(__name__)

Extractor = Callable[[str], Awaitable[RawIntent]]


@dataclass
class TurnResult:
    plan: ActionPlan
    results: list[dict] = field(default_factory=list)
    followup_pending: bool = False


class TurnHandler:
    def __init__(
        self,
        store: FollowupStore,
        dispatcher: ActionDispatcher,
        extractor: Extractor,
        *,
        resolver: FollowupResolver | None = None,
        locks: UserLocks | None = None,
    ):
        self.store = store
        self.dispatcher = dispatcher
        self.extractor = extractor
        self.resolver = resolver or FollowupResolver(store)
        self.locks = locks or UserLocks()

    async def handle(self, user_id: str, text: str, now: datetime | None = None) -> TurnResult:
        """
        Run a full turn for ``user_id`` while holding that user's lock.

        A waiting follow-up consumes the message; it is cleared once the
        resulting plan creates something. Otherwise the message goes through
        the extractor and the decision layer.
        """
        async with self.locks.hold(user_id):
            pending = self.store.get(user_id)
            if pending is not None:
                logger.info("[%s] Continuing follow-up (missing=%s)", user_id, pending.missing)
                plan = self.resolver.resolve(pending, text, user_id, now)
                if plan.is_terminal:
                    self.store.delete(user_id)
            else:
                plan = await self._plan_from_text(user_id, text, now)

            logger.info("[%s] Plan: %s", user_id, plan.action_types)
            results = await self.dispatcher.execute_plan(plan, user_id)
            return TurnResult(
                plan=plan,
                results=results,
                followup_pending=self.store.get(user_id) is not None,
            )

    async def _plan_from_text(self, user_id: str, text: str, now: datetime | None) -> ActionPlan:
        try:
            raw = await self.extractor(text)
        except (ValueError, OpenAIError) as e:
            logger.warning("[%s] Intent extraction failed: %s", user_id, e)
            return fallback_plan()
        return decide(raw, now)
