"""Outbound message transport.

The dispatch core only sees the Notifier protocol. PeriskopeNotifier talks to
the Periskope WhatsApp API; transient gateway failures are retried here with
tenacity so the core never has to. DryRunNotifier sends nothing.
"""

from typing import Protocol

import requests
from tenacity import (
    RetryError,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from course_reminders.credentials import TokenProvider
from course_reminders.errors import AuthenticationError, RateLimitError, TransientError
from course_reminders.logging import get_logger
from course_reminders.models import NotifierResult

logger = get_logger(__name__)


class Notifier(Protocol):
    def send(self, destination: str, message: str) -> NotifierResult: ...


def format_chat_id(phone: str) -> str:
    """1-1 chats are addressed as <digits>@c.us; full chat ids pass through."""
    return phone if "@" in phone else f"{phone}@c.us"


class PeriskopeNotifier:
    """Send WhatsApp messages through POST {api_url}/message/send."""

    def __init__(
        self,
        api_url: str,
        token_provider: TokenProvider,
        org_phone: str,
        *,
        timeout: float = 30.0,
        max_attempts: int = 3,
        backoff: float = 1.0,
        session: requests.Session | None = None,
    ) -> None:
        self.api_url = api_url.rstrip("/")
        self.token_provider = token_provider
        self.org_phone = org_phone
        self.timeout = timeout
        self.max_attempts = max_attempts
        self.backoff = backoff
        self.session = session or requests.Session()

    def send(self, destination: str, message: str) -> NotifierResult:
        """Send *message* to *destination* (phone number or chat id).

        Raises:
            AuthenticationError: If the gateway rejects the API key.
        """
        chat_id = format_chat_id(destination)
        post = retry(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_exponential(multiplier=self.backoff, max=10),
            retry=retry_if_exception_type(TransientError),
        )(self._post)

        try:
            resp = post(chat_id, message)
        except RetryError as e:
            cause = e.last_attempt.exception()
            logger.warning("send_gave_up", chat_id=chat_id, attempts=self.max_attempts, error=str(cause))
            return NotifierResult(ok=False, detail=str(cause))

        data = _json_or_text(resp)
        if not resp.ok:
            logger.error("send_rejected", chat_id=chat_id, status=resp.status_code, body=data)
            return NotifierResult(ok=False, detail=f"[{resp.status_code}] {data}")

        queue_id = data.get("queue_id") if isinstance(data, dict) else None
        logger.info("message_queued", chat_id=chat_id, queue_id=queue_id)
        return NotifierResult(ok=True, queued=True, queue_id=queue_id)

    def _post(self, chat_id: str, message: str) -> requests.Response:
        headers = {
            "Authorization": f"Bearer {self.token_provider.get_token()}",
            "Content-Type": "application/json",
            "x-phone": self.org_phone,
        }
        try:
            resp = self.session.post(
                f"{self.api_url}/message/send",
                headers=headers,
                json={"chat_id": chat_id, "message": message},
                timeout=self.timeout,
            )
        except (requests.ConnectionError, requests.Timeout) as e:
            logger.warning("send_network_error", chat_id=chat_id, error=str(e))
            raise TransientError(f"Periskope unreachable: {e}") from e

        if resp.status_code in (401, 403):
            raise AuthenticationError(f"Periskope rejected the API key [{resp.status_code}]")
        if resp.status_code == 429:
            raise RateLimitError("Periskope rate limit exceeded [429]")
        if resp.status_code >= 500:
            raise TransientError(f"Periskope server error [{resp.status_code}]")
        return resp


def _json_or_text(resp: requests.Response):
    try:
        return resp.json()
    except ValueError:
        return resp.text


class DryRunNotifier:
    """Logs and remembers what would have been sent."""

    def __init__(self) -> None:
        self.sent: list[tuple[str, str]] = []

    def send(self, destination: str, message: str) -> NotifierResult:
        self.sent.append((destination, message))
        logger.info("dry_run_send", chat_id=format_chat_id(destination), length=len(message))
        return NotifierResult(ok=True)
