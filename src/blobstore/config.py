"""
Store configuration.

A StoreConfig names the sub-areas of a store (relative to its root) and
the hash construction used for identifiers. It is a read-only value
carried by each store handle.

Environment Variables:
    BLOBSTORE_BLOB_DIR: blob area (default: .blobs/store)
    BLOBSTORE_TEMP_DIR: temp area (default: .blobs/new)
    BLOBSTORE_STAGE_DIR: stage area (default: store root)
    BLOBSTORE_HASH_ALGORITHM: sha256, sha512, blake2b or blake3 (default: sha256)
    BLOBSTORE_FSYNC: fsync temp files before commit (default: true)
"""

import os
from dataclasses import dataclass, replace
from pathlib import PurePosixPath
from typing import Mapping, Optional

from .errors import ConfigurationError
from .integrity.hashing import DEFAULT_ALGORITHM, get_hash_constructor

BLOB_DIR_ENV = 'BLOBSTORE_BLOB_DIR'
TEMP_DIR_ENV = 'BLOBSTORE_TEMP_DIR'
STAGE_DIR_ENV = 'BLOBSTORE_STAGE_DIR'
HASH_ALGORITHM_ENV = 'BLOBSTORE_HASH_ALGORITHM'
FSYNC_ENV = 'BLOBSTORE_FSYNC'


def _get_env_bool(env: Mapping[str, str], key: str, default: bool) -> bool:
    val = env.get(key, '').strip().lower()
    if val in ('1', 'true', 'yes'):
        return True
    if val in ('0', 'false', 'no'):
        return False
    return default


def _check_relative(name: str, value: str, allow_empty: bool = False) -> None:
    if not value:
        if allow_empty:
            return
        raise ConfigurationError(f"{name} must not be empty")
    path = PurePosixPath(value)
    if path.is_absolute() or value.startswith('~'):
        raise ConfigurationError(f"{name} must be relative to the store root: {value!r}")
    if '..' in path.parts:
        raise ConfigurationError(f"{name} must not contain '..': {value!r}")


@dataclass(frozen=True)
class StoreConfig:
    """
    Layout and hashing configuration for a store.

    Attributes:
        blob_dir: Blob area, relative to the root.
        temp_dir: Temp area, relative to the root.
        stage_dir: Stage area, relative to the root ('' is the root itself).
        hash_algorithm: Name of the hash construction for identifiers.
        fsync: Flush temp files to disk before publishing them.
        lock_file: Advisory lock file, relative to the root.
    """

    blob_dir: str = '.blobs/store'
    temp_dir: str = '.blobs/new'
    stage_dir: str = ''
    hash_algorithm: str = DEFAULT_ALGORITHM
    fsync: bool = True
    lock_file: str = '.blobs/lock'

    def __post_init__(self):
        _check_relative('blob_dir', self.blob_dir)
        _check_relative('temp_dir', self.temp_dir)
        _check_relative('stage_dir', self.stage_dir, allow_empty=True)
        _check_relative('lock_file', self.lock_file)

        if PurePosixPath(self.blob_dir) == PurePosixPath(self.temp_dir):
            raise ConfigurationError("blob_dir and temp_dir must be different directories")

        if self.stage_dir:
            stage = PurePosixPath(self.stage_dir)
            for name in ('blob_dir', 'temp_dir', 'lock_file'):
                area = PurePosixPath(getattr(self, name))
                if stage == area or area in stage.parents:
                    raise ConfigurationError(f"stage_dir must not lie inside {name}: {self.stage_dir!r}")

        # Fails early on unknown algorithms.
        get_hash_constructor(self.hash_algorithm)

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> 'StoreConfig':
        """Build a configuration from environment variables, falling back to defaults."""
        if env is None:
            env = os.environ

        defaults = cls()
        return cls(
            blob_dir=env.get(BLOB_DIR_ENV, defaults.blob_dir),
            temp_dir=env.get(TEMP_DIR_ENV, defaults.temp_dir),
            stage_dir=env.get(STAGE_DIR_ENV, defaults.stage_dir),
            hash_algorithm=env.get(HASH_ALGORITHM_ENV, defaults.hash_algorithm),
            fsync=_get_env_bool(env, FSYNC_ENV, defaults.fsync),
        )

    def with_changes(self, **changes) -> 'StoreConfig':
        """Return a copy with some fields replaced."""
        return replace(self, **changes)
