from datetime import datetime, timezone


def utcnow() -> datetime:
    """Current UTC time as a naive datetime with second resolution."""
    return datetime.now(timezone.utc).replace(tzinfo=None, microsecond=0)


def to_utc_naive(value: datetime) -> datetime:
    # stored timestamps are naive UTC, truncated to whole seconds
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value.replace(microsecond=0)
