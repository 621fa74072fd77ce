from datetime import datetime, timedelta, timezone
from unittest.mock import patch

import pytest

from giftparty.core.exceptions import InvalidSignupWindow
from giftparty.utils.duration_parser import parse_signup_window

NOW = datetime(2026, 12, 1, 12, 0, tzinfo=timezone.utc)


@pytest.mark.parametrize("text,expected", [
    ("60s", timedelta(seconds=60)),
    ("90 seconds", timedelta(seconds=90)),
    ("1h30m", timedelta(hours=1, minutes=30)),
    ("2d 3h", timedelta(days=2, hours=3)),
    ("2 days, 4 hours", timedelta(days=2, hours=4)),
    ("1w", timedelta(weeks=1)),
    ("1.5h", timedelta(minutes=90)),
    ("  45 Minutes ", timedelta(minutes=45)),
])
def test_compound_durations(text, expected):
    assert parse_signup_window(text, now=NOW) == expected


def test_deadline_phrases_use_dateparser():
    deadline = NOW + timedelta(days=3)
    with patch("giftparty.utils.duration_parser.dateparser.parse", return_value=deadline) as mock_parse:
        assert parse_signup_window("in 3 days", now=NOW) == timedelta(days=3)
    mock_parse.assert_called_once()
    assert mock_parse.call_args.args[0] == "in 3 days"


def test_naive_dateparser_result_is_treated_as_utc():
    with patch("giftparty.utils.duration_parser.dateparser.parse",
               return_value=datetime(2026, 12, 2, 12, 0)):
        assert parse_signup_window("tomorrow noon", now=NOW) == timedelta(days=1)


def test_unparseable_window_is_rejected():
    with patch("giftparty.utils.duration_parser.dateparser.parse", return_value=None):
        with pytest.raises(InvalidSignupWindow):
            parse_signup_window("whenever", now=NOW)


@pytest.mark.parametrize("text", ["", "   ", "0s", "0 days"])
def test_empty_or_zero_window_is_rejected(text):
    with pytest.raises(InvalidSignupWindow):
        parse_signup_window(text, now=NOW)


def test_past_deadline_is_rejected():
    with patch("giftparty.utils.duration_parser.dateparser.parse", return_value=NOW - timedelta(hours=1)):
        with pytest.raises(InvalidSignupWindow):
            parse_signup_window("yesterday", now=NOW)


def test_overlong_window_is_rejected():
    with pytest.raises(InvalidSignupWindow):
        parse_signup_window("400d", now=NOW)
