from datetime import datetime, timedelta, timezone


def get_current_utc_time() -> datetime:
    """
    Naive UTC timestamp, the same shape the Mongo driver hands back on reads.
    BSON dates hold milliseconds, so the value is truncated to match what is stored.
    """
    now = datetime.now(timezone.utc).replace(tzinfo=None)
    return now.replace(microsecond=now.microsecond // 1000 * 1000)


def days_from_now(days: int) -> datetime:
    return get_current_utc_time() + timedelta(days=days)
