"""Single fixed timezone used for every local timestamp the backend produces."""

import os
from datetime import datetime
from zoneinfo import ZoneInfo

TIMEZONE = ZoneInfo(os.getenv("APP_TIMEZONE", "Asia/Jerusalem"))


def now() -> datetime:
    return datetime.now(TIMEZONE)


def local_now() -> datetime:
    """Naive wall-clock time in TIMEZONE; the resolvers work on naive local datetimes."""
    return now().replace(tzinfo=None)
