"""Turn an upstream hypothesis into a definite intent, or say what is missing."""

import logging
import os
from datetime import datetime

from tools.models import (
    HYPOTHESES,
    IdeaIntent,
    MeetingIntent,
    RawIntent,
    ResolvedIntent,
    TaskIntent,
    TimeOfDay,
    UnclearIntent,
)
from tools.nlp import (
    add_minutes_iso,
    build_date_time,
    parse_iso,
    resolve_date_from_text,
    resolve_time_from_text,
)
from utils.timezone import local_now

from .messages import DEFAULT_TITLE

logger = logging.getLogger(__name__)

MEETING_DEFAULT_MINUTES = int(os.getenv("MEETING_DEFAULT_MINUTES", "60"))
END_OF_DAY = TimeOfDay(hour=23, minute=59)


def resolve_intent(raw: RawIntent, now: datetime | None = None) -> ResolvedIntent:
    """
    Resolve a RawIntent into a task, meeting, idea or unclear intent.

    Explicit upstream timestamps are trusted when they parse as ISO-8601.
    Otherwise the free-text time expression (falling back to the title) is
    parsed locally. Never raises for ambiguous input.
    """
    title = raw.title or DEFAULT_TITLE
    confidence = raw.confidence
    hypothesis = raw.hypothesis

    if hypothesis not in HYPOTHESES:
        logger.info("Unknown hypothesis %r for %r", hypothesis, title)
        return UnclearIntent(title=title, confidence=confidence, reason="UNKNOWN_TYPE")

    if hypothesis == "idea":
        return IdeaIntent(title=title, confidence=confidence)

    if hypothesis == "meeting" and raw.start:
        if parse_iso(raw.start):
            end = raw.end if parse_iso(raw.end) else add_minutes_iso(raw.start, MEETING_DEFAULT_MINUTES)
            return MeetingIntent(title=title, confidence=confidence, start=raw.start, end=end)
        logger.warning("Ignoring malformed upstream start %r", raw.start)

    if hypothesis == "task" and raw.due:
        if parse_iso(raw.due):
            return TaskIntent(title=title, confidence=confidence, due=raw.due)
        logger.warning("Ignoring malformed upstream due %r", raw.due)

    now = now or local_now()
    text_source = raw.relative_time or raw.title or ""
    date = resolve_date_from_text(text_source, now)
    time = resolve_time_from_text(text_source)
    has_date = date is not None
    has_time = time.found

    if hypothesis == "meeting":
        if not has_date and not has_time:
            return UnclearIntent(title=title, confidence=confidence, reason="MISSING_BOTH")
        if not has_date:
            return UnclearIntent(title=title, confidence=confidence, reason="MISSING_DATE")
        if not has_time:
            return UnclearIntent(title=title, confidence=confidence, reason="MISSING_TIME")

        start = build_date_time(date, time)
        if not start:
            return UnclearIntent(title=title, confidence=confidence, reason="MISSING_BOTH")
        end = add_minutes_iso(start, MEETING_DEFAULT_MINUTES)
        return MeetingIntent(title=title, confidence=confidence, start=start, end=end)

    if hypothesis == "task":
        # tasks never need a time, only an optional date
        if has_date:
            return TaskIntent(title=title, confidence=confidence, due=build_date_time(date, END_OF_DAY))
        return TaskIntent(title=title, confidence=confidence)

    return UnclearIntent(title=title, confidence=confidence, reason="MISSING_BOTH")
