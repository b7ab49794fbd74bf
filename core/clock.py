"""
Time helpers shared by the store, the state machine and error context.
"""

from datetime import datetime, timezone


def utcnow() -> datetime:
    """Naive UTC timestamp, matching the DateTime columns of the job store."""
    return datetime.now(timezone.utc).replace(tzinfo=None)
