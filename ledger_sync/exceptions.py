"""
Error taxonomy for the sync engine.

Every error the store surfaces derives from LedgerSyncError so
a consumer can display any of them with a single handler.
Transport-specific failures never leak past the repositories;
they arrive wrapped in RemoteError.
"""


class LedgerSyncError(Exception):
    """Base class for all sync engine errors."""


class ValidationError(LedgerSyncError):
    """A local precondition failed. Raised before any I/O."""


class NotFoundError(ValidationError):
    """A ledger or entry id is not known to the local store."""

    def __init__(self, kind: str, entity_id: str):
        self.kind = kind
        self.entity_id = entity_id
        super().__init__(f"{kind} {entity_id} not found")


class AuthenticationError(LedgerSyncError):
    """No account id is available for a call that needs one."""


class RemoteError(LedgerSyncError):
    """A relational store or blob store call failed."""

    def __init__(self, operation: str, cause: BaseException):
        self.operation = operation
        self.cause = cause
        super().__init__(f"{operation} failed: {cause}")


class SyncError(RemoteError):
    """Loading the authoritative state failed."""


class PartialFailure(LedgerSyncError):
    """
    The primary write succeeded but an attachment did not upload.

    Never raised. The store records it as a notice and returns
    the degraded result.
    """

    def __init__(self, operation: str, entity_id: str, attachment_id: str):
        self.operation = operation
        self.entity_id = entity_id
        self.attachment_id = attachment_id
        super().__init__(
            f"{operation}: attachment {attachment_id} of entry "
            f"{entity_id} is still pending upload"
        )


class DesyncError(LedgerSyncError):
    """
    An optimistic local change was rejected remotely.

    Recovered by reloading everything from the remote store,
    never by patching fields back.
    """

    def __init__(self, operation: str, entity_id: str, cause: BaseException):
        self.operation = operation
        self.entity_id = entity_id
        self.cause = cause
        self.resync_error: SyncError | None = None
        super().__init__(f"{operation} on {entity_id} was rejected: {cause}")
