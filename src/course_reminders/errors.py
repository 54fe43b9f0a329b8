"""Error hierarchy for reminder dispatch.

Separates transient notifier failures (retried inside the notifier adapter by
tenacity) from permanent ones (recorded as failed and never retried), plus the
sent-log read failure that the dedup gate has to make a policy decision about.

Example usage with tenacity:
    @retry(retry=retry_if_exception_type(TransientError), stop=stop_after_attempt(3))
    def _post(self, payload: dict) -> requests.Response:
        ...
"""


class ReminderError(Exception):
    """Base exception for all reminder engine errors."""

    pass


class TransientError(ReminderError):
    """Temporary failure that may succeed on retry.

    Examples: network timeouts, 502/503 from the WhatsApp gateway.
    """

    pass


class RateLimitError(TransientError):
    """Rate limit exceeded (HTTP 429) - needs longer backoff.

    Inherits from TransientError so tenacity will retry it.
    """

    pass


class PermanentError(ReminderError):
    """Failure that won't succeed on retry.

    Examples: rejected payload, unknown chat id, missing configuration.
    """

    pass


class AuthenticationError(PermanentError):
    """API key rejected by the notifier (HTTP 401/403).

    Requires a new key from the operator, cannot be fixed by retry.
    """

    pass


class ConfigurationError(PermanentError):
    """Required setting is missing, e.g. no API key when sending for real."""

    pass


class SentLogError(ReminderError):
    """The sent-message log could not be read or written.

    Raised by SentLog implementations; the dedup gate decides whether the
    affected rule is skipped or sent anyway (see DedupFailurePolicy).
    """

    pass
