from datetime import datetime, timezone
from zoneinfo import ZoneInfo


def now_utc() -> datetime:
    return datetime.now(timezone.utc)


def now_ms() -> int:
    """Current time in the units the pump process stamps its frames with."""
    return int(now_utc().timestamp() * 1000)


def now_local(tz: str) -> datetime:
    return now_utc().astimezone(ZoneInfo(tz))
