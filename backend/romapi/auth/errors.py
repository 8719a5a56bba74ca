"""Auth-specific errors raised by the admission controller.

The message on credential errors is for internal logging only —
the client always receives the same generic 401 for missing,
unknown, inactive, and expired keys.
"""


class AuthenticationError(Exception):
    """Base class for admission failures."""


class MissingCredential(AuthenticationError):
    """No API key in any accepted request location."""


class InvalidCredential(AuthenticationError):
    """Key unknown, inactive, or expired (deliberately indistinguishable)."""


class RateLimitExceeded(AuthenticationError):
    """The key has used its whole ceiling for the current window."""

    def __init__(self, limit: int) -> None:
        self.limit = limit
        super().__init__(f"Rate limit exceeded: {limit} requests/hour")


class RateLimitUnavailable(AuthenticationError):
    """Counter store unreachable while RATE_LIMIT_FAIL_MODE is 'closed'."""
