"""Bearer token providers for outbound API calls.

Adapters never read tokens from ambient state. They are handed a provider
and call get_token() before each request; the provider owns the
expiry-check-and-refresh logic.
"""

from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from typing import Protocol

from course_reminders.errors import ConfigurationError
from course_reminders.logging import get_logger

logger = get_logger(__name__)


class TokenProvider(Protocol):
    def get_token(self) -> str: ...


class StaticTokenProvider:
    """A long-lived API key, e.g. the Periskope key from .env."""

    def __init__(self, token: str) -> None:
        self._token = token

    def get_token(self) -> str:
        if not self._token:
            raise ConfigurationError("API token is not configured")
        return self._token


class RefreshingTokenProvider:
    """Caches a short-lived token and refreshes it shortly before it expires.

    *refresh* returns ``(token, expires_at)``; it is called when no token is
    cached or the cached one expires within *leeway*.
    """

    def __init__(
        self,
        refresh: Callable[[], tuple[str, datetime]],
        leeway: timedelta = timedelta(minutes=5),
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ) -> None:
        self._refresh = refresh
        self._leeway = leeway
        self._clock = clock
        self._token: str | None = None
        self._expires_at: datetime | None = None

    def is_token_valid(self) -> bool:
        if self._token is None or self._expires_at is None:
            logger.debug("token_check", result="missing")
            return False
        remaining = self._expires_at - self._clock()
        if remaining <= self._leeway:
            logger.info("token_check", result="expiring", remaining_seconds=remaining.total_seconds())
            return False
        return True

    def get_token(self) -> str:
        if not self.is_token_valid():
            self._token, self._expires_at = self._refresh()
            logger.info("token_refreshed", expires_at=self._expires_at.isoformat())
        return self._token

    def invalidate(self) -> None:
        """Drop the cached token, forcing a refresh on next use."""
        self._token = None
        self._expires_at = None
