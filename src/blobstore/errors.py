"""
Error types for blob store operations.

All errors are explicit and never silent.
"""

from typing import Optional


class BlobStoreError(Exception):
    """Base exception for all blob store errors."""
    pass


class ObjectNotFoundError(BlobStoreError):
    """Raised when a requested object (or staging link) does not exist."""

    def __init__(self, object_id: str, message: Optional[str] = None):
        self.object_id = object_id
        super().__init__(message or f"No such object: '{object_id}'")


class InvalidObjectIdError(ObjectNotFoundError):
    """
    Raised when an identifier is not a well-formed digest.

    A malformed identifier can never name a committed object, so this is
    a kind of not-found. It is raised before any path is built from it.
    """

    def __init__(self, object_id: str, reason: str):
        self.reason = reason
        super().__init__(object_id, f"Invalid object id {object_id!r}: {reason}")


class NotCommittedError(BlobStoreError):
    """Raised when linking to an object that was never committed."""

    def __init__(self, object_id: str):
        self.object_id = object_id
        super().__init__(f"No committed blob: '{object_id}'")


class PathResolutionError(BlobStoreError):
    """Raised when the store root cannot be resolved."""

    def __init__(self, root, cause: Exception = None):
        self.root = root
        self.cause = cause
        msg = f"Cannot resolve store root: {root!r}"
        if cause:
            msg += f"\nCause: {cause}"
        super().__init__(msg)


class StorageError(BlobStoreError):
    """Raised when filesystem operations fail."""

    def __init__(self, operation: str, path: str, cause: Exception = None):
        self.operation = operation
        self.path = path
        self.cause = cause
        msg = f"Storage error during {operation}: {path}"
        if cause:
            msg += f"\nCause: {cause}"
        super().__init__(msg)


class GarbageCollectionError(StorageError):
    """
    Raised when a garbage collection run cannot start or is aborted.

    `removed` lists the objects already removed before the failure; they
    stay removed. The run is safe to retry.
    """

    def __init__(self, reason: str, removed: list = None, cause: Exception = None):
        self.reason = reason
        self.removed = list(removed or [])
        super().__init__("garbage_collect", reason, cause)


class ObjectCorruptedError(BlobStoreError):
    """Raised when an object's content does not match its identifier."""

    def __init__(self, object_id: str, actual: str):
        self.object_id = object_id
        self.expected = object_id
        self.actual = actual
        super().__init__(
            f"Object corrupted: {object_id}\n"
            f"Expected hash: {object_id}\n"
            f"Actual hash: {actual}"
        )


class InvalidStagePathError(BlobStoreError):
    """Raised when a stage path is unsafe or names something other than a link."""

    def __init__(self, stage_path: str, reason: str):
        self.stage_path = stage_path
        self.reason = reason
        super().__init__(f"Invalid stage path {stage_path!r}: {reason}")


class ConfigurationError(BlobStoreError):
    """Raised when a store configuration is invalid."""

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Invalid configuration: {reason}")


class InvariantViolationError(BlobStoreError):
    """Raised when a store invariant is violated."""

    def __init__(self, invariant: str, details: str):
        self.invariant = invariant
        self.details = details
        super().__init__(f"Invariant violation: {invariant}\nDetails: {details}")
