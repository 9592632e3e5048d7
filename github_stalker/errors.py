"""Error types raised by the tracking engine."""


class StalkerError(Exception):
    """Base class for all errors raised by the service."""

    code = "error"


class InvalidIdentityFormat(StalkerError):
    """The identity text is not a valid user name or owner/repo pair."""

    code = "invalid_identity_format"


class IdentityNotFound(StalkerError):
    """GitHub reports that the user or repository does not exist."""

    code = "identity_not_found"


class AlreadyTracking(StalkerError):
    """The subscriber already tracks this identity."""

    code = "already_tracking"


class NotTracking(StalkerError):
    """The subscriber does not track this identity."""

    code = "not_tracking"


class FetchFailed(StalkerError):
    """GitHub could not be reached or returned nothing usable."""

    code = "fetch_failed"


class NotifyFailed(StalkerError):
    """A notification could not be delivered to a subscriber.

    ``permanent`` is set when the destination rejected the message outright
    (e.g. a 4xx from ntfy), as opposed to a timeout or server error.
    """

    code = "notify_failed"

    def __init__(self, message, permanent=False):
        super().__init__(message)
        self.permanent = permanent


class StorageError(StalkerError):
    """The subscription store could not be read or written."""

    code = "storage_error"
