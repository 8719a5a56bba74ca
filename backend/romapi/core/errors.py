"""Directory-level errors (records, ownership, payloads, stores)."""


class DirectoryError(Exception):
    """Base error for business-directory operations."""


class NotFound(DirectoryError):
    """A referenced business / category / API key does not exist."""

    def __init__(self, resource: str, identifier: object | None = None) -> None:
        self.resource = resource
        self.identifier = identifier
        super().__init__(f"{resource} not found")


class OwnershipViolation(DirectoryError):
    """Caller is neither the record owner nor an administrator."""


class InvalidPayload(DirectoryError):
    """Payload references something that does not exist or is incomplete."""


class StoreUnavailable(Exception):
    """Counter / cache store timed out or could not be reached.

    Raised by store adapters so the core can apply its fail-open
    policy without knowing the client library's exception types.
    """


class AdminRequired(DirectoryError):
    """Operation reserved to users with the ADMIN role."""
