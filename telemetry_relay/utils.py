import asyncio
import json
import logging
import random
from datetime import datetime, timezone
from typing import Any

log = logging.getLogger(__name__)


def utc_now_iso() -> str:
    """Current UTC time as ISO-8601 with millisecond precision and a trailing Z."""
    now = datetime.now(timezone.utc)
    return now.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def backoff_delay(attempt: int, base: float = 1.0, cap: float = 60.0) -> float:
    """
    Exponential backoff delay with jitter.
    attempt: 0-based attempt count
    base: base seconds
    cap: maximum seconds
    """
    # exponent clamped so float(base * 2**n) cannot overflow on long failure streaks
    delay = min(cap, base * (2 ** min(max(attempt, 0), 62)))
    # add jitter up to +/-20%
    jitter = delay * 0.2
    return max(0.0, delay + (jitter * (2 * (random.random() - 0.5))))


async def backoff_sleep(attempt: int, base: float = 1.0, cap: float = 60.0) -> None:
    delay = backoff_delay(attempt, base=base, cap=cap)
    log.debug("backoff sleep: %.2f s (attempt=%d)", delay, attempt)
    await asyncio.sleep(delay)


def pretty(msg: Any) -> str:
    """Return a pretty-printed JSON string for logging/printing."""
    try:
        return json.dumps(msg, ensure_ascii=False, indent=2)
    except (TypeError, ValueError):
        return str(msg)
