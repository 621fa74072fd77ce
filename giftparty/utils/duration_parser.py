import re
from datetime import datetime, timedelta
from typing import Optional

import dateparser

from giftparty.config.constants import MAX_SIGNUP_WINDOW_DAYS
from giftparty.core.exceptions import InvalidSignupWindow
from giftparty.utils.datetime_helpers import ensure_utc, utcnow

_UNIT_SECONDS = {
    "s": 1, "sec": 1, "secs": 1, "second": 1, "seconds": 1,
    "m": 60, "min": 60, "mins": 60, "minute": 60, "minutes": 60,
    "h": 3600, "hr": 3600, "hrs": 3600, "hour": 3600, "hours": 3600,
    "d": 86400, "day": 86400, "days": 86400,
    "w": 604800, "wk": 604800, "week": 604800, "weeks": 604800,
}

# "1h30m", "2 days 4 hours", "90s"
_COMPONENT_RE = re.compile(r"(\d+(?:\.\d+)?)\s*([a-z]+)")
_COMPOUND_RE = re.compile(r"^(?:\s*\d+(?:\.\d+)?\s*[a-z]+\s*,?)+$")


def _parse_compound(text: str) -> Optional[timedelta]:
    if not _COMPOUND_RE.match(text):
        return None
    total = 0.0
    for amount, unit in _COMPONENT_RE.findall(text):
        if unit not in _UNIT_SECONDS:
            return None
        total += float(amount) * _UNIT_SECONDS[unit]
    return timedelta(seconds=total)


def parse_signup_window(text: str, now: Optional[datetime] = None) -> timedelta:
    """
    Turn a free-form signup window into a duration.

    Unit strings ("2d 3h", "45 minutes") are summed directly. Anything else
    is read as a deadline ("in 3 days", "tomorrow 18:00") by dateparser and
    measured from `now`.
    """
    if not text or not text.strip():
        raise InvalidSignupWindow("Signup window is empty")

    now = ensure_utc(now) or utcnow()
    cleaned = text.strip().lower()

    window = _parse_compound(cleaned)
    if window is None:
        deadline = dateparser.parse(
            cleaned,
            settings={
                'PREFER_DATES_FROM': 'future',
                'RELATIVE_BASE': now.replace(tzinfo=None),
                'TIMEZONE': 'UTC',
                'RETURN_AS_TIMEZONE_AWARE': True,
            },
        )
        if deadline is None:
            raise InvalidSignupWindow(f"Could not understand signup window {text!r}")
        window = ensure_utc(deadline) - now

    if window <= timedelta(0):
        raise InvalidSignupWindow("Signup window must be in the future")
    if window > timedelta(days=MAX_SIGNUP_WINDOW_DAYS):
        raise InvalidSignupWindow(f"Signup window may not exceed {MAX_SIGNUP_WINDOW_DAYS} days")
    return window
