# backend/modules/kitchen/utils/time_utils.py

"""
Kitchen timestamps are naive UTC everywhere: in the database, in pacing
arithmetic and in comparisons. Aware values are normalised at the boundary.
"""

from datetime import datetime, timezone
from typing import Optional


def utcnow() -> datetime:
    """Current time as naive UTC"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)
