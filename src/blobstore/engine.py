"""
Blob Store Engine.

Main entry point coordinating all components.
"""

import logging
from pathlib import Path
from typing import BinaryIO, Dict, List, Optional, Union

from .config import StoreConfig
from .errors import (
    GarbageCollectionError,
    ObjectCorruptedError,
    ObjectNotFoundError,
    PathResolutionError,
    StorageError,
)
from .invariants import verify_store_invariants
from .model.blob import Blob, BlobRef
from .storage.gc import GarbageCollector, MarkAndSweepCollector
from .storage.layout import StorageLayout
from .storage.lock import StoreLock
from .storage.object_store import ObjectStore
from .storage.staging import StagingArea
from .storage.writer import WriteSession

logger = logging.getLogger(__name__)


class BlobStore:
    """
    Handle on a content-addressable blob store rooted at a directory.

    This is the primary interface for:
    - Writing objects (create / write / commit)
    - Reading, listing and removing objects
    - Linking objects into the stage area
    - Running garbage collection

    The handle carries its configuration; nothing is shared between
    handles except the filesystem.
    """

    def __init__(self, root: Path, config: Optional[StoreConfig] = None):
        """
        Initialize a store handle.

        Args:
            root: absolute, resolved root directory
            config: layout and hashing configuration (defaults if None)
        """
        self.root = Path(root)
        self.config = config or StoreConfig()
        self.layout = StorageLayout(self.root, self.config)
        self.object_store = ObjectStore(self.layout)
        self.staging = StagingArea(self.layout, self.object_store)

    @classmethod
    def load(cls, root: Union[str, Path], config: Optional[StoreConfig] = None) -> 'BlobStore':
        """
        Open a store at `root`.

        Only resolves the path; the store does not need to exist yet.
        Directories are created lazily by the first write or link.

        Raises PathResolutionError if root cannot be resolved.
        """
        if root is None or (isinstance(root, str) and not root.strip()):
            raise PathResolutionError(root)
        try:
            resolved = Path(root).expanduser().resolve()
        except (OSError, RuntimeError, TypeError, ValueError) as e:
            raise PathResolutionError(root, e) from e

        logger.debug("Opened blob store at %s", resolved)
        return cls(resolved, config)

    def initialize(self) -> None:
        """
        Create the blob and temp areas.

        Optional: every write creates what it needs. Idempotent.
        """
        for directory in (self.layout.blob_dir, self.layout.temp_dir):
            try:
                directory.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                raise StorageError("initialize", str(directory), e) from e

    # ========== Objects ==========

    def exists(self, ref: BlobRef) -> bool:
        """Check if an object is committed."""
        return self.object_store.exists(ref)

    def open(self, ref: BlobRef) -> BinaryIO:
        """Open a committed object for reading."""
        return self.object_store.open(ref)

    def read(self, ref: BlobRef) -> bytes:
        """Read a committed object's bytes."""
        return self.object_store.read(ref)

    def size(self, ref: BlobRef) -> int:
        return self.object_store.size(ref)

    def modified_time(self, ref: BlobRef) -> float:
        return self.object_store.modified_time(ref)

    def load_by_hex(self, object_id: str) -> Blob:
        """Resolve an identifier string to a committed object."""
        return self.object_store.load_by_hex(object_id)

    def list(self) -> List[Blob]:
        """List all committed objects, in traversal order."""
        return self.object_store.list_all_objects()

    def remove(self, ref: BlobRef) -> None:
        """Delete an object. Links to it are left dangling."""
        self.object_store.remove(ref)

    # ========== Writing ==========

    def create(self) -> WriteSession:
        """Start a write session in the temp area."""
        return self.object_store.create()

    def commit(self, session: WriteSession) -> Blob:
        """Publish a write session as an immutable object."""
        return self.object_store.commit(session)

    def put(self, data: bytes) -> Blob:
        """Store bytes in one call."""
        return self.object_store.put(data)

    def put_stream(self, stream: BinaryIO) -> Blob:
        """Store a readable binary stream in one call."""
        return self.object_store.put_stream(stream)

    # ========== Staging ==========

    def link(self, ref: BlobRef, stage_path: str) -> Path:
        """Create or replace the staging link at stage_path."""
        return self.staging.link(ref, stage_path)

    def unlink(self, stage_path: str) -> None:
        """Remove the staging link at stage_path."""
        self.staging.unlink(stage_path)

    def resolve(self, stage_path: str) -> Blob:
        """Return the object a staging link points at."""
        return self.staging.resolve(stage_path)

    def linked(self) -> Dict[Blob, List[str]]:
        """Map every linked object to the stage paths referencing it."""
        return self.staging.linked()

    # ========== Garbage Collection ==========

    def lock(self) -> StoreLock:
        """
        Return an (unacquired) exclusive lock on this store.

        Hold it around link batches and GC runs:
            with store.lock() as lock:
                store.run_gc(lock=lock)
        """
        return StoreLock(self.layout.lock_path)

    def run_gc(
        self,
        collector: Optional[GarbageCollector] = None,
        *,
        lock: StoreLock,
        dry_run: bool = False,
    ) -> Dict[str, List[Blob]]:
        """
        Run garbage collection.

        Marking and sweeping are separate filesystem passes, so a link
        created between them could name an object that gets swept. The
        caller must therefore hold this store's lock, and everything
        that links must take the same lock.

        Args:
            collector: strategy finding candidates (mark-and-sweep if None)
            lock: this store's StoreLock, currently held by the caller
            dry_run: if True, only report candidates

        Returns dict with:
            - candidates: objects the collector selected
            - removed: objects removed (empty if dry_run)

        Raises GarbageCollectionError if the lock is not held, or when a
        removal fails. The sweep stops at the first failure; objects
        already removed stay removed and `removed` lists them.
        """
        if lock is None or not lock.held or Path(lock.path) != self.layout.lock_path:
            raise GarbageCollectionError(
                f"run_gc requires the store lock {self.layout.lock_path} to be held"
            )

        if collector is None:
            collector = MarkAndSweepCollector()

        candidates = collector.find(self)
        removed: List[Blob] = []

        if not dry_run:
            for obj in candidates:
                try:
                    self.object_store.remove(obj)
                except (StorageError, ObjectNotFoundError) as e:
                    logger.warning(
                        "GC aborted after removing %d of %d objects: %s",
                        len(removed),
                        len(candidates),
                        e,
                    )
                    raise GarbageCollectionError(
                        f"failed to remove {obj.id}", removed, e
                    ) from e
                removed.append(obj)

        logger.info(
            "GC (%s): %d candidates, %d removed%s",
            type(collector).__name__,
            len(candidates),
            len(removed),
            " (dry run)" if dry_run else "",
        )
        return {'candidates': candidates, 'removed': removed}

    # ========== Integrity and Diagnostics ==========

    def verify(self, ref: BlobRef) -> None:
        """Re-hash an object; raises ObjectCorruptedError on mismatch."""
        self.object_store.verify(ref)

    def detect_tampering(self) -> List[Blob]:
        """Return every object whose bytes no longer hash to its identifier."""
        corrupted = []
        for obj in self.list():
            try:
                self.object_store.verify(obj)
            except ObjectCorruptedError:
                corrupted.append(obj)
        return corrupted

    def check(self) -> dict:
        """Verify all store invariants (see blobstore.invariants)."""
        return verify_store_invariants(self)

    def clean_temp(self, older_than: float) -> List[Path]:
        """Remove temp files abandoned for more than `older_than` seconds."""
        return self.object_store.clean_temp(older_than)

    def stats(self) -> dict:
        """
        Get store statistics.

        Returns dict with:
        - total_objects: number of committed objects
        - total_size_bytes: their total size
        - staging_links: number of staging links into the blob area
        - temp_files: number of files in the temp area
        """
        objects = self.list()
        total_size = 0
        for obj in objects:
            try:
                total_size += self.size(obj)
            except ObjectNotFoundError:
                continue

        return {
            'total_objects': len(objects),
            'total_size_bytes': total_size,
            'staging_links': sum(len(paths) for paths in self.linked().values()),
            'temp_files': len(self.object_store.list_temp_files()),
        }

    def __repr__(self) -> str:
        return (
            f"BlobStore("
            f"root={self.root}, "
            f"algorithm={self.config.hash_algorithm})"
        )


def open_store(root: Union[str, Path], config: Optional[StoreConfig] = None) -> BlobStore:
    """Open the blob store rooted at `root`."""
    return BlobStore.load(root, config)
