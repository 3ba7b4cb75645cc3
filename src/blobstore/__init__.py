"""
Blob Store - content-addressable storage with staging links and garbage collection.

This package provides:
- Immutable objects named by the digest of their bytes
- Streaming write sessions committed by atomic rename
- Staging links (symlinks) that make objects reachable
- Pluggable garbage collection of unlinked objects

Example usage:
    from blobstore import open_store

    store = open_store('/path/to/root')

    with store.create() as session:
        session.write(b'hello')
        obj = store.commit(session)

    store.link(obj, 'latest/greeting')

    with store.lock() as lock:
        store.run_gc(lock=lock)
"""

from .config import StoreConfig
from .engine import BlobStore, open_store
from .errors import (
    BlobStoreError,
    ObjectNotFoundError,
    InvalidObjectIdError,
    NotCommittedError,
    PathResolutionError,
    StorageError,
    GarbageCollectionError,
    ObjectCorruptedError,
    InvalidStagePathError,
    ConfigurationError,
    InvariantViolationError,
)
from .model.blob import Blob
from .storage.gc import GarbageCollector, MarkAndSweepCollector, GracePeriodCollector
from .storage.lock import StoreLock, LockHeldError
from .storage.writer import WriteSession

__version__ = '0.1.0'

__all__ = [
    # Main entry points
    'BlobStore',
    'open_store',
    'StoreConfig',

    # Objects and writes
    'Blob',
    'WriteSession',

    # Garbage collection
    'GarbageCollector',
    'MarkAndSweepCollector',
    'GracePeriodCollector',
    'StoreLock',
    'LockHeldError',

    # Errors
    'BlobStoreError',
    'ObjectNotFoundError',
    'InvalidObjectIdError',
    'NotCommittedError',
    'PathResolutionError',
    'StorageError',
    'GarbageCollectionError',
    'ObjectCorruptedError',
    'InvalidStagePathError',
    'ConfigurationError',
    'InvariantViolationError',
]
