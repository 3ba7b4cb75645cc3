"""
Content-addressed object storage.

Provides immutable object storage with content addressing: bytes are
streamed into a temp-area file, hashed on the way, and published into
the blob area under their digest by an atomic rename.
"""

import logging
import os
import stat
import tempfile
import time
from pathlib import Path
from typing import BinaryIO, List, Optional

from ..errors import (
    InvalidObjectIdError,
    ObjectNotFoundError,
    StorageError,
)
from ..integrity.hashing import DEFAULT_CHUNK_SIZE, get_hash_constructor
from ..integrity.verification import validate_object_id, verify_file_integrity
from ..model.blob import Blob, BlobRef, as_object_id
from .layout import StorageLayout
from .writer import WriteSession

logger = logging.getLogger(__name__)

TEMP_PREFIX = 'blob'


class ObjectStore:
    """
    Content-addressed object store with immutable objects.

    Objects are stored by their content hash.
    Once committed, objects never change; they are only ever removed.
    """

    def __init__(self, layout: StorageLayout):
        """Initialize object store with given layout."""
        self.layout = layout
        self.algorithm = layout.config.hash_algorithm
        self._hasher_factory = get_hash_constructor(self.algorithm)

    # ========== Lookup ==========

    def exists(self, ref: BlobRef) -> bool:
        """
        Check if a committed object exists.

        True iff a regular file sits at the object's path. Malformed
        identifiers never exist.
        """
        try:
            obj_path = self.layout.get_object_path(as_object_id(ref))
        except InvalidObjectIdError:
            return False

        try:
            st = os.lstat(obj_path)
        except (FileNotFoundError, NotADirectoryError):
            return False
        except OSError as e:
            raise StorageError("stat_object", str(obj_path), e) from e
        return stat.S_ISREG(st.st_mode)

    def load_by_hex(self, object_id: str) -> Blob:
        """
        Resolve an identifier string to a committed object.

        Raises InvalidObjectIdError (a not-found) for malformed ids and
        ObjectNotFoundError if nothing was committed under the id.
        """
        validate_object_id(object_id, self.layout.id_length)
        if not self.exists(object_id):
            raise ObjectNotFoundError(object_id)
        return Blob(object_id)

    def open(self, ref: BlobRef) -> BinaryIO:
        """Open a committed object for reading. The caller closes the stream."""
        object_id = as_object_id(ref)
        obj_path = self.layout.get_object_path(object_id)
        try:
            return open(obj_path, 'rb')
        except (FileNotFoundError, NotADirectoryError, IsADirectoryError) as e:
            raise ObjectNotFoundError(object_id) from e
        except OSError as e:
            raise StorageError("open_object", str(obj_path), e) from e

    def read(self, ref: BlobRef) -> bytes:
        """Read a committed object's bytes."""
        with self.open(ref) as f:
            try:
                return f.read()
            except OSError as e:
                raise StorageError("read_object", f.name, e) from e

    def size(self, ref: BlobRef) -> int:
        """Size of a committed object in bytes."""
        object_id = as_object_id(ref)
        obj_path = self.layout.get_object_path(object_id)
        try:
            return obj_path.stat().st_size
        except (FileNotFoundError, NotADirectoryError) as e:
            raise ObjectNotFoundError(object_id) from e
        except OSError as e:
            raise StorageError("stat_object", str(obj_path), e) from e

    def modified_time(self, ref: BlobRef) -> float:
        """Modification time of a committed object (its commit time)."""
        object_id = as_object_id(ref)
        obj_path = self.layout.get_object_path(object_id)
        try:
            return obj_path.stat().st_mtime
        except (FileNotFoundError, NotADirectoryError) as e:
            raise ObjectNotFoundError(object_id) from e
        except OSError as e:
            raise StorageError("stat_object", str(obj_path), e) from e

    def list_all_objects(self) -> List[Blob]:
        """
        List every committed object in the blob area.

        Order is traversal order. Files that are not valid identifiers
        at their fan-out location are not objects and are skipped.
        """
        objects = []
        for path in self.layout.iter_object_files():
            object_id = self.layout.object_id_from_path(path)
            if object_id is None:
                logger.warning("Skipping foreign file in blob area: %s", path)
                continue
            objects.append(Blob(object_id))
        return objects

    # ========== Removal ==========

    def remove(self, ref: BlobRef) -> None:
        """
        Delete an object from the store.

        Staging links still pointing at it are left dangling; keeping
        linked objects alive is the collector's job, not this primitive's.
        """
        object_id = as_object_id(ref)
        obj_path = self.layout.get_object_path(object_id)

        if not self.exists(object_id):
            raise ObjectNotFoundError(object_id)

        try:
            obj_path.unlink()
        except FileNotFoundError as e:
            raise ObjectNotFoundError(object_id) from e
        except OSError as e:
            raise StorageError("remove_object", str(obj_path), e) from e

        logger.debug("Removed object %s", object_id)

    # ========== Writing ==========

    def create(self) -> WriteSession:
        """
        Start a write session.

        Opens a new uniquely named file in the temp area with a digest
        accumulator attached.
        """
        self.layout.ensure_temp_dir()
        try:
            fd, temp_path = tempfile.mkstemp(dir=str(self.layout.temp_dir), prefix=TEMP_PREFIX)
            fileobj = os.fdopen(fd, 'wb')
        except OSError as e:
            raise StorageError("create_temp", str(self.layout.temp_dir), e) from e

        return WriteSession(
            self,
            Path(temp_path),
            fileobj,
            self._hasher_factory,
            fsync=self.layout.config.fsync,
        )

    def commit(self, session: WriteSession) -> Blob:
        """
        Finalize a write session into an immutable object.

        1. Close (flush) the temp file
        2. Finalize the digest into the identifier
        3. Ensure the fan-out directories exist
        4. Atomically rename the temp file into place

        Committing bytes that are already stored is a no-op: the
        redundant temp file is discarded and the existing object
        returned, so the published file is never replaced or absent.
        """
        if not session.belongs_to(self):
            raise ValueError("write session belongs to a different store")
        if session.committed:
            raise ValueError("write session already committed")
        if session.failed:
            session.discard()
            raise StorageError("commit", str(session.path), None)

        try:
            session.close()
        except StorageError:
            session.discard()
            raise

        object_id = session.hexdigest()
        obj = Blob(object_id)
        obj_path = self.layout.get_object_path(object_id)
        try:
            self.layout.ensure_parent(obj_path)
            already_committed = self.exists(object_id)
        except StorageError:
            session.discard()
            raise

        if already_committed:
            session.discard()
            session._mark_committed()
            logger.debug("Object %s already committed, discarded duplicate", object_id)
            return obj

        try:
            os.replace(session.path, obj_path)
        except OSError as e:
            session.discard()
            raise StorageError("commit", str(obj_path), e) from e

        session._mark_committed()
        logger.debug("Committed object %s (%d bytes)", object_id, session.bytes_written)
        return obj

    def put(self, data: bytes) -> Blob:
        """Store bytes and return the committed object."""
        with self.create() as session:
            session.write(data)
            return self.commit(session)

    def put_stream(self, stream: BinaryIO, chunk_size: int = DEFAULT_CHUNK_SIZE) -> Blob:
        """Store the contents of a readable binary stream."""
        with self.create() as session:
            session.write_from(stream, chunk_size)
            return self.commit(session)

    # ========== Integrity and maintenance ==========

    def verify(self, ref: BlobRef) -> None:
        """
        Re-hash an object's stored bytes against its identifier.

        Raises ObjectNotFoundError or ObjectCorruptedError.
        """
        object_id = as_object_id(ref)
        obj_path = self.layout.get_object_path(object_id)
        if not self.exists(object_id):
            raise ObjectNotFoundError(object_id)
        verify_file_integrity(obj_path, object_id, self.algorithm)

    def list_temp_files(self) -> List[Path]:
        """List files in the temp area (in-flight or abandoned writes)."""
        return list(self.layout.iter_temp_files())

    def clean_temp(self, older_than: float, now: Optional[float] = None) -> List[Path]:
        """
        Remove abandoned temp files.

        Only files whose modification time is more than `older_than`
        seconds in the past are removed; a live session that has not
        written for that long loses its file too.

        Returns the removed paths.
        """
        if now is None:
            now = time.time()
        cutoff = now - older_than

        removed = []
        for path in self.layout.iter_temp_files():
            try:
                if path.stat().st_mtime >= cutoff:
                    continue
                path.unlink()
            except FileNotFoundError:
                continue
            except OSError as e:
                raise StorageError("clean_temp", str(path), e) from e
            removed.append(path)

        if removed:
            logger.info("Removed %d abandoned temp files", len(removed))
        return removed
