"""
Cron expression helpers.
"""

from datetime import datetime

from croniter import croniter


def is_valid_cron(expression: str) -> bool:
    """Check a cron expression without raising."""
    if not expression or not expression.strip():
        return False
    return croniter.is_valid(expression.strip())


def next_fire_time(expression: str, base: datetime | None = None) -> datetime:
    """Next time ``expression`` fires after ``base`` (local time by default)."""
    base = base or datetime.now().astimezone()
    return croniter(expression.strip(), base).get_next(datetime)
