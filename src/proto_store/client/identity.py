"""Identity and time-bucket helpers.

GUIDs identify every node, hotspot and comment. Day and hour buckets name
the archive and activity-log folders (one folder per calendar day, one
file per hour of the day), in local time.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Callable, Optional

IdFactory = Callable[[], str]
Clock = Callable[[], datetime]


def create_guid() -> str:
    """Return a random version-4 GUID string (122 random bits)."""
    return str(uuid.uuid4())


def day_bucket(moment: Optional[datetime] = None) -> str:
    """Return the day folder name, e.g. ``Mon-Oct-19-2026``."""
    moment = moment or datetime.now()
    return f"{moment:%a}-{moment:%b}-{moment.day:02d}-{moment.year}"


def hour_bucket(moment: Optional[datetime] = None) -> str:
    """Return the hour file stem: ``"0"`` .. ``"23"`` without padding."""
    moment = moment or datetime.now()
    return str(moment.hour)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def timestamp(moment: Optional[datetime] = None) -> str:
    """Return an ISO-8601 UTC timestamp with millisecond precision and ``Z`` suffix."""
    moment = moment or utc_now()
    if moment.tzinfo is None:
        moment = moment.astimezone()
    moment = moment.astimezone(timezone.utc)
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")
