"""Exceptions for the role resolution engine and the cross-context synchronizer."""


class RoleEngineError(Exception):
    """Base class for role engine errors."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ConfigurationError(RoleEngineError):
    """Unknown tier or malformed catalog entry.

    Always a deployment/config bug. Raised by startup validation and by
    lookups that reference a tier missing from the tier table.
    """

    def __init__(self, message: str, key: str | None = None):
        self.key = key
        super().__init__(message)


class UnknownRoleError(RoleEngineError):
    """A role name that is absent from the catalog was passed in."""

    def __init__(self, role: object, kind: str = "role"):
        self.role = role
        self.kind = kind
        super().__init__(f"Unknown {kind}: {role!r}")


class ClaimsTooLargeError(RoleEngineError):
    """Serialized custom claims exceed the identity provider's size limit."""

    def __init__(self, size: int, limit: int):
        self.size = size
        self.limit = limit
        super().__init__(f"Custom claims are {size} bytes, limit is {limit}")


class SyncError(RoleEngineError):
    """Base class for delivery failures inside the synchronizer."""


class SyncTransientError(SyncError):
    """Network or availability failure talking to the other context.

    The synchronizer retries these with bounded exponential backoff.
    """


class SyncPermanentError(SyncError):
    """Malformed payload or referential integrity failure.

    The event moves straight to FAILED and is kept for operator review.
    """
