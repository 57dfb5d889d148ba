"""
Best-effort parsing of wake times for sleep_until.

Understands ISO timestamps, short durations ("30s", "5m", "2h", "1d",
"in 10 minutes"), "tomorrow [at] 9am" and "at 14:30". Anything else is
treated as unparseable and callers fall back to a default delay.
"""

import re
from datetime import datetime, timedelta

_DURATION_RE = re.compile(
    r"^(?:in\s+)?(\d+(?:\.\d+)?)\s*"
    r"(s|secs?|seconds?|m|mins?|minutes?|h|hrs?|hours?|d|days?)$"
)
_CLOCK_RE = re.compile(r"(\d{1,2})(?::(\d{2}))?\s*(am|pm)?")
_AT_RE = re.compile(r"\bat\s+(\d{1,2})(?::(\d{2}))?\s*(am|pm)?\b")

_UNIT_SECONDS = {"s": 1, "m": 60, "h": 3600, "d": 86400}

# Longest single sleep; later wake times are clamped to this.
MAX_WAKE_DELAY = timedelta(days=365)


def _now() -> datetime:
    return datetime.now().astimezone()


def _to_24h(hour: int, period: str | None) -> int:
    if period == "pm" and hour < 12:
        return hour + 12
    if period == "am" and hour == 12:
        return 0
    return hour


def _parse_iso(text: str, now: datetime) -> datetime | None:
    try:
        parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=now.tzinfo)
    return parsed


def parse_wake_time(text: str, now: datetime | None = None) -> datetime | None:
    """Parse a wake-time expression relative to ``now``. Returns None if unparseable."""
    now = now or _now()
    text = (text or "").strip()
    if not text:
        return None

    parsed = _parse_iso(text, now)
    if parsed is not None:
        return parsed

    lower = text.lower()

    try:
        match = _DURATION_RE.match(lower)
        if match:
            amount = float(match.group(1))
            return now + timedelta(seconds=amount * _UNIT_SECONDS[match.group(2)[0]])

        if "tomorrow" in lower:
            tomorrow = now + timedelta(days=1)
            clock = _CLOCK_RE.search(lower)
            if clock:
                hour = _to_24h(int(clock.group(1)), clock.group(3))
                minute = int(clock.group(2) or 0)
                tomorrow = tomorrow.replace(hour=hour, minute=minute, second=0, microsecond=0)
            return tomorrow

        at = _AT_RE.search(lower)
        if at:
            hour = _to_24h(int(at.group(1)), at.group(3))
            minute = int(at.group(2) or 0)
            result = now.replace(hour=hour, minute=minute, second=0, microsecond=0)
            if result <= now:
                result += timedelta(days=1)
            return result
    except (ValueError, OverflowError):
        # hour/minute or date out of range
        return None

    return None


def resolve_wake_delay(
    text: str,
    now: datetime | None = None,
    default: timedelta = timedelta(seconds=60),
) -> timedelta:
    """How long to sleep for ``text``; ``default`` when it cannot be parsed."""
    now = now or _now()
    wake = parse_wake_time(text, now)
    if wake is None:
        return default
    return min(max(timedelta(0), wake - now), MAX_WAKE_DELAY)
