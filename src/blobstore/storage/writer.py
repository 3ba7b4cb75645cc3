"""
Write sessions.

A WriteSession is a single in-flight write: a uniquely named temp-area
file plus a digest accumulator fed with exactly the bytes written to it.
"""

import logging
import os
from pathlib import Path
from typing import BinaryIO, Callable

from ..errors import StorageError
from ..integrity.hashing import DEFAULT_CHUNK_SIZE

logger = logging.getLogger(__name__)


class WriteSession:
    """
    Uncommitted object being written to the temp area.

    Created by ObjectStore.create() and finalized by ObjectStore.commit().
    Used as a context manager, leaving the block without a commit
    discards the temp file.
    """

    def __init__(self, owner, path: Path, fileobj: BinaryIO, hasher_factory: Callable, fsync: bool = True):
        self._owner = owner
        self.path = Path(path)
        self._file = fileobj
        self._hasher = hasher_factory()
        self._fsync = fsync
        self._bytes_written = 0
        self._failed = False
        self._committed = False
        self._discarded = False

    @property
    def bytes_written(self) -> int:
        return self._bytes_written

    @property
    def closed(self) -> bool:
        return self._file.closed

    @property
    def committed(self) -> bool:
        return self._committed

    @property
    def failed(self) -> bool:
        return self._failed

    def belongs_to(self, owner) -> bool:
        return self._owner is owner

    def write(self, data: bytes) -> int:
        """
        Append bytes to the temp file and feed them to the digest.

        Accepts any bytes-like object; anything else raises TypeError.
        The digest is only updated once the file write has succeeded.
        A failed write poisons the session: it can no longer be committed.
        """
        if self.closed or self._committed or self._discarded:
            raise ValueError("write to a closed write session")

        data = memoryview(data).tobytes()
        try:
            self._file.write(data)
        except OSError as e:
            self._failed = True
            raise StorageError("write", str(self.path), e) from e

        self._hasher.update(data)
        self._bytes_written += len(data)
        return len(data)

    def write_from(self, stream: BinaryIO, chunk_size: int = DEFAULT_CHUNK_SIZE) -> int:
        """Copy a readable binary stream into the session. Returns bytes copied."""
        total = 0
        for chunk in iter(lambda: stream.read(chunk_size), b''):
            total += self.write(chunk)
        return total

    def close(self) -> None:
        """Flush and close the temp file. Idempotent."""
        if self.closed:
            return
        try:
            self._file.flush()
            if self._fsync:
                os.fsync(self._file.fileno())
        except OSError as e:
            self._failed = True
            try:
                self._file.close()
            except OSError:
                logger.debug("Ignoring close error after failed flush of %s", self.path)
            raise StorageError("flush", str(self.path), e) from e

        try:
            self._file.close()
        except OSError as e:
            self._failed = True
            raise StorageError("close", str(self.path), e) from e

    def hexdigest(self) -> str:
        """Identifier of the bytes written so far."""
        return self._hasher.hexdigest()

    def discard(self) -> None:
        """Abandon the session and remove its temp file."""
        if self._committed or self._discarded:
            return
        self._discarded = True
        try:
            self._file.close()
        except OSError:
            logger.debug("Ignoring close error on discarded temp file %s", self.path)
        try:
            self.path.unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            raise StorageError("discard", str(self.path), e) from e

    def _mark_committed(self) -> None:
        self._committed = True

    def __enter__(self) -> 'WriteSession':
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if not self._committed:
            self.discard()

    def __repr__(self) -> str:
        state = 'committed' if self._committed else 'open' if not self.closed else 'closed'
        return f"WriteSession(path={self.path.name}, bytes={self._bytes_written}, {state})"
