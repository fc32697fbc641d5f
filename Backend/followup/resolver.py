"""Follow-up state machine: merge a user's reply into the pending record."""

import logging
from datetime import date as Date, datetime

from actions.types import ActionPlan, CreateMeeting, CreateTask, SendMessage
from decision import messages
from decision.resolve_intent import MEETING_DEFAULT_MINUTES
from tools.models import PendingFollowup, TimeOfDay
from tools.nlp import add_minutes_iso, build_date_time, resolve_date_time_from_text
from utils.timezone import local_now

from .store import FollowupStore

logger = logging.getLogger(__name__)


def _ask(missing: str) -> ActionPlan:
    return ActionPlan(actions=[SendMessage(message=messages.question_for(missing))])


def _stored_date(pending: PendingFollowup) -> Date | None:
    if not pending.date:
        return None
    try:
        return Date.fromisoformat(pending.date)
    except ValueError:
        logger.warning("Ignoring malformed stored date %r for %r", pending.date, pending.title)
        return None


class FollowupResolver:
    """
    Advances a PendingFollowup by one user reply.

    States: DATE_TIME_RANGE -> TIME (date known) or DATE (time known) -> terminal.
    Partial slots are written back through the store. The resolver never
    deletes the record: the caller clears it once the returned plan is terminal.
    """

    def __init__(self, store: FollowupStore):
        self.store = store

    def resolve(
        self,
        pending: PendingFollowup,
        user_reply: str,
        user_id: str,
        now: datetime | None = None,
    ) -> ActionPlan:
        now = now or local_now()
        combined = " ".join(part for part in (pending.raw_time_expression, user_reply) if part)
        parsed_date, parsed_time, _ = resolve_date_time_from_text(combined, now)

        # slots captured on earlier turns win over a fresh re-parse
        date = _stored_date(pending) or parsed_date
        time_of_day = pending.start_time or parsed_time.to_time_of_day()

        logger.info(
            "Follow-up for user %s: missing=%s, date=%s, time=%s",
            user_id,
            pending.missing,
            date,
            time_of_day,
        )

        if date and time_of_day:
            start = build_date_time(date, time_of_day)
            if start:
                return self._complete(pending, start)
            logger.warning("Stored time %r is invalid for %r", time_of_day, pending.title)
            time_of_day = None

        if date and not time_of_day:
            self._persist(user_id, pending, date, None, "TIME")
            return _ask("TIME")

        if time_of_day and not date:
            self._persist(user_id, pending, None, time_of_day, "DATE")
            return _ask("DATE")

        return _ask(pending.missing)

    def _persist(
        self,
        user_id: str,
        pending: PendingFollowup,
        date: Date | None,
        time_of_day: TimeOfDay | None,
        missing: str,
    ) -> None:
        pending.date = date.isoformat() if date else None
        pending.start_time = time_of_day
        pending.missing = missing
        if self.store.update(user_id, date=pending.date, start_time=time_of_day, missing=missing) is None:
            # record vanished (expired or never stored)
            self.store.set(user_id, pending)
        logger.info("Follow-up for user %s now waiting for %s", user_id, missing)

    def _complete(self, pending: PendingFollowup, start: str) -> ActionPlan:
        if pending.intent_type == "meeting":
            end = add_minutes_iso(start, MEETING_DEFAULT_MINUTES)
            return ActionPlan(actions=[
                CreateMeeting(title=pending.title, start=start, end=end),
                SendMessage(message=messages.meeting_created(pending.title, start)),
            ])
        return ActionPlan(actions=[
            CreateTask(title=pending.title, due=start),
            SendMessage(message=messages.task_created(pending.title, start)),
        ])
