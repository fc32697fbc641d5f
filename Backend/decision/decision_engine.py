"""Decision layer: RawIntent -> resolved intent -> ActionPlan for the dispatcher."""

import logging
from datetime import datetime

from actions.types import (
    ActionPlan,
    CreateMeeting,
    CreateTask,
    RequestFollowup,
    SaveIdea,
    SendMessage,
)
from tools.models import IdeaIntent, MeetingIntent, RawIntent, TaskIntent, UnclearIntent

from . import messages
from .resolve_intent import resolve_intent

logger = logging.getLogger(__name__)

REASON_TO_MISSING = {
    "MISSING_DATE": "DATE",
    "MISSING_TIME": "TIME",
    "MISSING_BOTH": "DATE_TIME_RANGE",
}


def fallback_plan() -> ActionPlan:
    return ActionPlan(actions=[SendMessage(message=messages.MESSAGES["not_understood"])])


def decide(raw: RawIntent, now: datetime | None = None) -> ActionPlan:
    intent = resolve_intent(raw, now)
    logger.info("Resolved intent: %s (hypothesis=%s)", type(intent).__name__, raw.hypothesis)

    match intent:
        case TaskIntent(title=title, due=due):
            return ActionPlan(actions=[
                CreateTask(title=title, due=due),
                SendMessage(message=messages.task_created(title, due)),
            ])

        case MeetingIntent(title=title, start=start, end=end):
            return ActionPlan(actions=[
                CreateMeeting(title=title, start=start, end=end),
                SendMessage(message=messages.meeting_created(title, start)),
            ])

        case IdeaIntent(title=title):
            return ActionPlan(actions=[
                SaveIdea(title=title),
                SendMessage(message=messages.idea_saved(title)),
            ])

        case UnclearIntent(reason="UNKNOWN_TYPE"):
            return fallback_plan()

        case UnclearIntent(title=title, reason=reason):
            missing = REASON_TO_MISSING[reason]
            return ActionPlan(actions=[
                RequestFollowup(
                    intent_type=raw.hypothesis,
                    title=title,
                    missing=missing,
                    context=raw.relative_time or raw.title or None,
                    question=messages.question_for(missing),
                ),
            ])

    return fallback_plan()
