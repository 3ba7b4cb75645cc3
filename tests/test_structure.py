"""
Test package structure and exports.

Verifies that the package is correctly structured and exposes the right API.
"""

import blobstore
from blobstore import (
    Blob,
    BlobStore,
    BlobStoreError,
    GarbageCollector,
    MarkAndSweepCollector,
    StoreConfig,
    open_store,
)


def test_package_exports():
    """Verify that the package exposes the expected names."""
    for name in blobstore.__all__:
        assert getattr(blobstore, name) is not None


def test_error_hierarchy():
    """Every error derives from BlobStoreError."""
    assert issubclass(blobstore.ObjectNotFoundError, BlobStoreError)
    assert issubclass(blobstore.InvalidObjectIdError, blobstore.ObjectNotFoundError)
    assert issubclass(blobstore.GarbageCollectionError, blobstore.StorageError)
    assert issubclass(blobstore.NotCommittedError, BlobStoreError)
    assert issubclass(blobstore.PathResolutionError, BlobStoreError)


def test_open_store_is_lazy(tmp_path):
    """Opening a store does not create anything on disk."""
    root = tmp_path / 'not-yet'

    store = open_store(root)

    assert isinstance(store, BlobStore)
    assert store.root == root.resolve()
    assert not root.exists()


def test_initialize_creates_areas(tmp_path):
    """initialize() creates the blob and temp areas."""
    store = open_store(tmp_path)
    store.initialize()
    store.initialize()

    assert (tmp_path / '.blobs' / 'store').is_dir()
    assert (tmp_path / '.blobs' / 'new').is_dir()


def test_default_collector_is_mark_and_sweep():
    """The default strategy is a GarbageCollector."""
    assert issubclass(MarkAndSweepCollector, GarbageCollector)


def test_blob_value_semantics():
    """Blobs compare and hash by identifier."""
    a = Blob('ab' * 32)
    b = Blob('ab' * 32)

    assert a == b
    assert len({a, b}) == 1
    assert str(a) == 'ab' * 32
    assert a.short_id() == 'abababab'


def test_handles_do_not_share_config(tmp_path):
    """Each handle carries its own configuration."""
    s1 = open_store(tmp_path / 'one')
    s2 = open_store(tmp_path / 'two', StoreConfig(hash_algorithm='blake3'))

    assert s1.config.hash_algorithm == 'sha256'
    assert s2.config.hash_algorithm == 'blake3'


def test_subpackage_imports():
    """Verify that subpackages are importable (even if not exposed directly)."""
    import blobstore.storage.object_store
    import blobstore.storage.staging
    import blobstore.integrity.hashing
    import blobstore.model.blob

    assert blobstore.storage.object_store.ObjectStore is not None
    assert blobstore.storage.staging.StagingArea is not None
    assert blobstore.integrity.hashing.compute_hash is not None
