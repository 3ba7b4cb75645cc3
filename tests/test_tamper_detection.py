"""
Test tamper detection.

Verifies that modified objects, foreign files and dangling links are
reported by verification and the invariant checks.
"""

import tempfile

import pytest

from blobstore import (
    InvariantViolationError,
    ObjectCorruptedError,
    ObjectNotFoundError,
    open_store,
)
from blobstore.integrity.verification import detect_tampering
from blobstore.invariants import InvariantRegistry, create_core_invariants


class TestTamperDetection:
    """Test detection of tampered objects."""

    @pytest.fixture
    def store(self):
        """Create a temporary store for testing."""
        with tempfile.TemporaryDirectory() as tmpdir:
            yield open_store(tmpdir)

    def test_verify_intact_object(self, store):
        """An untouched object verifies."""
        obj = store.put(b'hello')

        store.verify(obj)

    def test_detect_modified_content(self, store):
        """Modified bytes no longer match the identifier."""
        obj = store.put(b'hello')
        store.layout.get_object_path(obj.id).write_bytes(b'HELLO')

        with pytest.raises(ObjectCorruptedError) as exc_info:
            store.verify(obj)

        assert exc_info.value.expected == obj.id
        assert exc_info.value.actual != obj.id

    def test_detect_truncated_content(self, store):
        """A truncated object is detected."""
        obj = store.put(b'hello world')
        store.layout.get_object_path(obj.id).write_bytes(b'hello')

        with pytest.raises(ObjectCorruptedError):
            store.verify(obj)

    def test_verify_missing_object(self, store):
        """Verifying a missing object is not found."""
        with pytest.raises(ObjectNotFoundError):
            store.verify('ab' * 32)

    def test_detect_tampering_lists_corrupted(self, store):
        """detect_tampering() returns only the modified objects."""
        good = store.put(b'good')
        bad = store.put(b'bad')
        store.layout.get_object_path(bad.id).write_bytes(b'evil')

        assert store.detect_tampering() == [bad]
        store.verify(good)

    def test_detect_tampering_bytes(self):
        """Raw byte comparison against an identifier."""
        obj_id = '2cf24dba5fb0a30e26e83b2ac5b9e29e1b161e5c1fa7425e73043362938b9824'

        assert detect_tampering(obj_id, b'hello') is False
        assert detect_tampering(obj_id, b'hellO') is True


class TestStoreInvariants:
    """Test the store invariant registry."""

    @pytest.fixture
    def store(self):
        """Create a temporary store for testing."""
        with tempfile.TemporaryDirectory() as tmpdir:
            yield open_store(tmpdir)

    def test_clean_store_passes(self, store):
        """A consistent store passes every invariant."""
        obj = store.put(b'hello')
        store.link(obj, 'latest')

        result = store.check()

        assert result['all_passed'] is True
        assert result['failed'] == []
        assert set(result['passed']) == {
            'content_addressing',
            'fanout_placement',
            'link_targets_exist',
        }

    def test_empty_store_passes(self, store):
        """An empty store passes every invariant."""
        assert store.check()['all_passed'] is True

    def test_corruption_fails_content_addressing(self, store):
        """A modified object fails content_addressing."""
        obj = store.put(b'hello')
        store.layout.get_object_path(obj.id).write_bytes(b'tampered')

        result = store.check()

        assert result['all_passed'] is False
        assert [name for name, _ in result['failed']] == ['content_addressing']

    def test_foreign_file_fails_placement(self, store):
        """A foreign blob-area file fails fanout_placement."""
        store.put(b'hello')
        (store.layout.blob_dir / 'stray').write_text('?')

        failed = [name for name, _ in store.check()['failed']]

        assert failed == ['fanout_placement']

    def test_misplaced_object_fails_placement(self, store):
        """A valid identifier outside its fan-out directory is foreign."""
        obj = store.put(b'hello')
        src = store.layout.get_object_path(obj.id)
        src.rename(store.layout.blob_dir / obj.id)

        failed = [name for name, _ in store.check()['failed']]

        assert 'fanout_placement' in failed
        assert store.list() == []

    def test_dangling_link_fails_link_targets(self, store):
        """A link to a removed object fails link_targets_exist."""
        obj = store.put(b'hello')
        store.link(obj, 'latest')
        store.remove(obj)

        failed = [name for name, _ in store.check()['failed']]

        assert failed == ['link_targets_exist']

    def test_verify_one(self, store):
        """A single invariant can be checked by name."""
        registry = create_core_invariants(store)

        assert registry.verify_one('content_addressing') is True
        with pytest.raises(ValueError):
            registry.verify_one('no_such_invariant')

    def test_list_invariants(self, store):
        """Invariants are listed with their descriptions."""
        names = [name for name, _ in create_core_invariants(store).list_invariants()]

        assert names == ['content_addressing', 'fanout_placement', 'link_targets_exist']

    def test_check_exception_becomes_violation(self):
        """A check that raises is reported as a violation."""
        registry = InvariantRegistry()

        def broken():
            raise RuntimeError("boom")

        registry.register('broken', 'always raises', broken)

        with pytest.raises(InvariantViolationError):
            registry.verify_one('broken')
        assert registry.verify_all()['all_passed'] is False
