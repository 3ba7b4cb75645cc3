"""
Advisory store lock.

Garbage collection marks and sweeps in two steps, so a link created in
between can point at an object that is about to be swept. Writers that
link, and the collector, serialize on this lock. The store never takes
it on its own; run_gc() requires the caller to hold it.
"""

import fcntl
import logging
from pathlib import Path
from typing import Optional, TextIO

from ..errors import StorageError

logger = logging.getLogger(__name__)


class LockHeldError(StorageError):
    """Raised by a non-blocking acquire when another holder has the lock."""

    def __init__(self, path: str):
        super().__init__("lock", path, None)


class StoreLock:
    """
    Exclusive flock() on the store's lock file.

    Usage:
        with store.lock():
            store.link(obj, 'latest')
    """

    def __init__(self, path: Path):
        self.path = Path(path)
        self._fd: Optional[TextIO] = None

    @property
    def held(self) -> bool:
        return self._fd is not None

    def acquire(self, blocking: bool = True) -> 'StoreLock':
        if self._fd is not None:
            raise RuntimeError(f"lock already held: {self.path}")

        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd = open(self.path, 'a')
        except OSError as e:
            raise StorageError("lock", str(self.path), e) from e

        flags = fcntl.LOCK_EX if blocking else fcntl.LOCK_EX | fcntl.LOCK_NB
        try:
            fcntl.flock(fd.fileno(), flags)
        except BlockingIOError:
            fd.close()
            raise LockHeldError(str(self.path)) from None
        except OSError as e:
            fd.close()
            raise StorageError("lock", str(self.path), e) from e

        self._fd = fd
        logger.debug("Acquired store lock %s", self.path)
        return self

    def release(self) -> None:
        if self._fd is None:
            return
        fd, self._fd = self._fd, None
        try:
            fcntl.flock(fd.fileno(), fcntl.LOCK_UN)
        except OSError as e:
            raise StorageError("unlock", str(self.path), e) from e
        finally:
            fd.close()
        logger.debug("Released store lock %s", self.path)

    def __enter__(self) -> 'StoreLock':
        return self.acquire()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release()

    def __repr__(self) -> str:
        return f"StoreLock(path={self.path}, held={self.held})"
