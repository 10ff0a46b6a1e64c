"""Time helpers.

Timestamps are stored as naive UTC datetimes so that SQLite and PostgreSQL
compare them the same way.
"""

from datetime import datetime
from typing import Callable

import pytz

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    """Current UTC time without tzinfo."""
    return datetime.now(pytz.utc).replace(tzinfo=None)
