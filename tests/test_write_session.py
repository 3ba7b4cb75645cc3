"""
Test write sessions, temp-area cleanup and the store lock.
"""

import hashlib
import io
import os
import tempfile
import time

import pytest

from blobstore import LockHeldError, StorageError, WriteSession, open_store


class FailingFile:
    """File stand-in whose writes fail like a full disk."""

    closed = False

    def write(self, data):
        raise OSError(28, "No space left on device")

    def flush(self):
        pass

    def fileno(self):
        raise OSError("no descriptor")

    def close(self):
        self.closed = True


class UnflushableFile:
    """File stand-in whose flush and close both fail."""

    closed = False

    def write(self, data):
        return len(data)

    def flush(self):
        raise OSError(5, "Input/output error")

    def fileno(self):
        raise OSError("no descriptor")

    def close(self):
        self.closed = True
        raise OSError(5, "Input/output error")


class TestWriteSession:
    """Test the lifecycle of a write session."""

    @pytest.fixture
    def store(self):
        """Create a temporary store for testing."""
        with tempfile.TemporaryDirectory() as tmpdir:
            yield open_store(tmpdir)

    def test_create_makes_temp_file(self, store):
        """A session owns a unique file in the temp area."""
        s1 = store.create()
        s2 = store.create()

        assert s1.path != s2.path
        assert s1.path.parent == store.layout.temp_dir
        assert s1.path.exists()
        s1.discard()
        s2.discard()

    def test_commit_moves_temp_file(self, store):
        """Commit relocates the temp file into the blob area."""
        session = store.create()
        session.write(b'hello')
        temp_path = session.path

        obj = store.commit(session)

        assert not temp_path.exists()
        assert session.committed
        assert store.layout.get_object_path(obj.id).read_bytes() == b'hello'

    def test_write_returns_length(self, store):
        """write() reports the number of bytes written."""
        with store.create() as session:
            assert session.write(b'abc') == 3
            assert session.write(bytearray(b'de')) == 2
            assert session.bytes_written == 5

    def test_write_from_stream(self, store):
        """write_from() copies a stream into the session."""
        data = os.urandom(100 * 1024)

        with store.create() as session:
            assert session.write_from(io.BytesIO(data), chunk_size=4096) == len(data)
            obj = store.commit(session)

        assert store.read(obj) == data

    def test_context_exit_discards_uncommitted(self, store):
        """Leaving the block without commit removes the temp file."""
        with store.create() as session:
            session.write(b'abandoned')
            temp_path = session.path

        assert not temp_path.exists()
        assert store.list() == []

    def test_exception_discards_uncommitted(self, store):
        """An exception inside the block removes the temp file."""
        with pytest.raises(RuntimeError):
            with store.create() as session:
                session.write(b'partial')
                temp_path = session.path
                raise RuntimeError("caller failed")

        assert not temp_path.exists()

    def test_write_after_commit_rejected(self, store):
        """A committed session cannot be written to."""
        session = store.create()
        store.commit(session)

        with pytest.raises(ValueError):
            session.write(b'more')

    def test_double_commit_rejected(self, store):
        """A session commits at most once."""
        session = store.create()
        session.write(b'once')
        store.commit(session)

        with pytest.raises(ValueError):
            store.commit(session)

    def test_commit_foreign_session_rejected(self, store, tmp_path):
        """A session can only be committed by the store that created it."""
        other = open_store(tmp_path)
        session = store.create()
        session.write(b'mine')

        with pytest.raises(ValueError):
            other.commit(session)

        assert other.list() == []
        session.discard()

    def test_failed_write_poisons_session(self, store):
        """After a failed write, commit discards and raises."""
        session = store.create()
        session.write(b'good ')
        real_file = session._file
        session._file = FailingFile()

        with pytest.raises(StorageError):
            session.write(b'lost')
        assert session.failed

        with pytest.raises(StorageError):
            store.commit(session)

        real_file.close()
        assert not session.path.exists()
        assert store.list() == []

    def test_empty_commit(self, store):
        """An empty session commits the empty object."""
        session = store.create()

        obj = store.commit(session)

        assert obj.id == 'e3b0c44298fc1c149afbf4c8996fb92427ae41e4649b934ca495991b7852b855'
        assert store.read(obj) == b''

    def test_abandoned_session_leaves_orphan(self, store):
        """A session neither committed nor discarded stays in the temp area."""
        session = store.create()
        session.write(b'orphan')
        session.close()

        assert store.object_store.list_temp_files() == [session.path]
        assert store.list() == []

    @pytest.mark.parametrize('bad_data', [5, 'text', None])
    def test_write_rejects_non_bytes(self, store, bad_data):
        """Only bytes-like objects can be written."""
        with store.create() as session:
            with pytest.raises(TypeError):
                session.write(bad_data)

            assert session.bytes_written == 0
            obj = store.commit(session)

        assert store.read(obj) == b''

    def test_write_accepts_memoryview(self, store):
        """Any bytes-like object is written as its raw bytes."""
        with store.create() as session:
            session.write(memoryview(b'hello'))
            obj = store.commit(session)

        assert store.read(obj) == b'hello'

    def test_close_error_is_storage_error(self, tmp_path):
        """A flush failure stays a StorageError even when close fails too."""
        session = WriteSession(
            None,
            tmp_path / 'blob-temp',
            UnflushableFile(),
            hashlib.sha256,
            fsync=False,
        )

        with pytest.raises(StorageError) as exc_info:
            session.close()

        assert exc_info.value.operation == 'flush'
        assert session.failed
        assert session.closed

    def test_commit_discards_when_directory_creation_fails(self, store, monkeypatch):
        """A commit that cannot create the fan-out directories removes its temp file."""
        session = store.create()
        session.write(b'hello')

        def fail_mkdir(path):
            raise StorageError("mkdir", str(path.parent), OSError(13, "Permission denied"))

        monkeypatch.setattr(store.layout, 'ensure_parent', fail_mkdir)

        with pytest.raises(StorageError):
            store.commit(session)

        assert not session.path.exists()
        assert store.object_store.list_temp_files() == []


class TestCleanTemp:
    """Test removal of abandoned temp files."""

    @pytest.fixture
    def store(self):
        """Create a temporary store for testing."""
        with tempfile.TemporaryDirectory() as tmpdir:
            yield open_store(tmpdir)

    def test_clean_old_temp_files(self, store):
        """Temp files older than the threshold are removed."""
        old = store.create()
        old.close()
        past = time.time() - 7200
        os.utime(old.path, (past, past))
        fresh = store.create()

        removed = store.clean_temp(older_than=3600)

        assert removed == [old.path]
        assert not old.path.exists()
        assert fresh.path.exists()
        fresh.discard()

    def test_clean_temp_empty(self, store):
        """Nothing to clean in a fresh store."""
        assert store.clean_temp(older_than=0) == []

    def test_clean_temp_leaves_objects(self, store):
        """Cleaning the temp area never touches committed objects."""
        obj = store.put(b'hello')

        store.object_store.clean_temp(older_than=0, now=time.time() + 10)

        assert store.exists(obj)


class TestStoreLock:
    """Test the advisory store lock."""

    @pytest.fixture
    def store(self):
        """Create a temporary store for testing."""
        with tempfile.TemporaryDirectory() as tmpdir:
            yield open_store(tmpdir)

    def test_lock_context(self, store):
        """The lock is held inside the block and released after."""
        lock = store.lock()

        with lock:
            assert lock.held
            assert store.layout.lock_path.exists()

        assert not lock.held

    def test_lock_is_exclusive(self, store):
        """A second holder cannot take the lock without blocking."""
        with store.lock():
            with pytest.raises(LockHeldError):
                store.lock().acquire(blocking=False)

    def test_lock_reacquire_after_release(self, store):
        """The lock can be taken again once released."""
        with store.lock():
            pass

        lock = store.lock().acquire(blocking=False)
        assert lock.held
        lock.release()
        lock.release()
        assert not lock.held

    def test_lock_not_reentrant(self, store):
        """Acquiring a held lock object is a programming error."""
        with store.lock() as lock:
            with pytest.raises(RuntimeError):
                lock.acquire()

    def test_lock_file_not_an_object(self, store):
        """The lock file never shows up as an object or a link."""
        with store.lock():
            store.put(b'hello')
            assert len(store.list()) == 1
            assert store.linked() == {}
