from datetime import datetime, timedelta, timezone

import pytest

from course_reminders.credentials import RefreshingTokenProvider, StaticTokenProvider
from course_reminders.errors import ConfigurationError


class Clock:
    def __init__(self):
        self.now = datetime(2026, 3, 1, tzinfo=timezone.utc)

    def __call__(self):
        return self.now


def test_static_token():
    assert StaticTokenProvider("abc").get_token() == "abc"


def test_missing_static_token_raises():
    with pytest.raises(ConfigurationError):
        StaticTokenProvider("").get_token()


def test_token_is_cached_until_close_to_expiry():
    clock = Clock()
    issued = []

    def refresh():
        issued.append(clock.now)
        return f"token-{len(issued)}", clock.now + timedelta(hours=1)

    provider = RefreshingTokenProvider(refresh, leeway=timedelta(minutes=5), clock=clock)

    assert provider.get_token() == "token-1"
    clock.now += timedelta(minutes=50)
    assert provider.get_token() == "token-1"
    clock.now += timedelta(minutes=6)
    assert provider.get_token() == "token-2"
    assert len(issued) == 2


def test_invalidate_forces_refresh():
    clock = Clock()
    counter = iter(range(1, 10))
    provider = RefreshingTokenProvider(lambda: (f"t{next(counter)}", clock.now + timedelta(hours=1)), clock=clock)

    assert provider.get_token() == "t1"
    provider.invalidate()
    assert provider.get_token() == "t2"
