import hashlib, json
import time as time_module
from datetime import datetime, date, timezone

def sha256_json(obj) -> str:
    return hashlib.sha256(json.dumps(obj, sort_keys=True, default=str).encode()).hexdigest()

def utc_now() -> datetime:
    return datetime.now(timezone.utc)

def now_utc_iso() -> str:
    return utc_now().isoformat()

def to_iso_z(dt: datetime) -> str:
    """ISO-8601 instant in UTC with millisecond precision and a Z suffix."""
    dt = dt.astimezone(timezone.utc)
    return dt.strftime("%Y-%m-%dT%H:%M:%S.") + f"{dt.microsecond // 1000:03d}Z"

def parse_iso(value: str | None) -> datetime | None:
    if not value:
        return None
    try:
        dt = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt

def day_key(timestamp: str) -> str:
    # Calendar day of a stored instant; timestamps are always written in UTC.
    return (timestamp or "")[:10]

def day_key_date(timestamp: str) -> date | None:
    try:
        return date.fromisoformat(day_key(timestamp))
    except ValueError:
        return None

def retry_call(
    fn,
    *,
    attempts: int = 3,
    base_delay: float = 1.0,
    max_delay: float = 5.0,
    deadline: float | None = None,
    retry_on: tuple[type[BaseException], ...] = (Exception,),
):
    """Call fn until it returns, retrying only exceptions listed in retry_on.

    Backoff doubles from base_delay up to max_delay and never sleeps past the
    monotonic deadline; a spent deadline raises TimeoutError.
    """
    for attempt in range(1, max(1, attempts) + 1):
        if deadline is not None and time_module.monotonic() >= deadline:
            raise TimeoutError("time_budget_exceeded")
        try:
            return fn()
        except retry_on:
            if attempt >= attempts:
                raise
            _sleep_with_deadline(base_delay, attempt, max_delay, deadline)

def _sleep_with_deadline(base_delay: float, attempt: int, max_delay: float, deadline: float | None):
    delay = min(max_delay, base_delay * (2 ** (attempt - 1)))
    if deadline is not None:
        remaining = deadline - time_module.monotonic()
        if remaining <= 0:
            raise TimeoutError("time_budget_exceeded")
        delay = min(delay, max(0.0, remaining))
    if delay > 0:
        time_module.sleep(delay)
