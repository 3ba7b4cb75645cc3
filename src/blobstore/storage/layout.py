"""
Filesystem layout for object storage.

Implements the path scheme: identifiers map to a three-level fan-out
inside the blob area, stage paths map into the stage area.
"""

import logging
import os
from pathlib import Path, PurePosixPath
from typing import Iterator, Optional

from ..config import StoreConfig
from ..errors import InvalidStagePathError, StorageError
from ..integrity.hashing import hex_length
from ..integrity.verification import is_valid_object_id, validate_object_id

logger = logging.getLogger(__name__)


def _is_within(path: Path, ancestor: Path) -> bool:
    """Lexical containment check on normalized absolute paths."""
    path = Path(os.path.normpath(path))
    ancestor = Path(os.path.normpath(ancestor))
    return path == ancestor or ancestor in path.parents


class StorageLayout:
    """
    Manages filesystem layout for content-addressed objects.

    Layout (default configuration):
        root/
            .blobs/
                store/
                    <h0>/<h1>/<h2..h5>/<hash>   # committed objects
                new/
                    blob*                       # in-flight writes
                lock                            # advisory store lock
            <stage path>                        # symlink -> store/.../<hash>

    The layout is pure: nothing here touches the filesystem except the
    walk and mkdir helpers.
    """

    def __init__(self, root: Path, config: StoreConfig):
        """Initialize layout for an already-resolved root."""
        self.root = Path(root)
        self.config = config
        self.blob_dir = self.root / config.blob_dir
        self.temp_dir = self.root / config.temp_dir
        self.stage_dir = self.root / config.stage_dir if config.stage_dir else self.root
        self.lock_path = self.root / config.lock_file
        self.id_length = hex_length(config.hash_algorithm)

    def get_object_path(self, object_id: str) -> Path:
        """
        Get filesystem path for an object by its identifier.

        The identifier is validated before it becomes a path component.
        """
        validate_object_id(object_id, self.id_length)
        return (
            self.blob_dir
            / object_id[0:1]
            / object_id[1:2]
            / object_id[2:6]
            / object_id
        )

    def object_id_from_path(self, path: Path) -> Optional[str]:
        """
        Interpret a blob-area file as an object.

        Returns None if the file name is not a valid identifier or the
        file does not sit at its fan-out location.
        """
        name = Path(path).name
        if not is_valid_object_id(name, self.id_length):
            return None
        if Path(os.path.normpath(path)) != self.get_object_path(name):
            return None
        return name

    def get_stage_path(self, stage_path: str) -> Path:
        """
        Get filesystem path for a caller-given stage path.

        Rejects absolute paths, '..' segments, NUL bytes and any path
        that would land on or inside the blob or temp area.
        """
        if not isinstance(stage_path, str) or not stage_path.strip():
            raise InvalidStagePathError(repr(stage_path), "stage path must be a non-empty string")
        if '\x00' in stage_path:
            raise InvalidStagePathError(stage_path, "NUL byte in stage path")
        if '\\' in stage_path:
            raise InvalidStagePathError(stage_path, "backslash in stage path")

        rel = PurePosixPath(stage_path)
        if rel.is_absolute() or stage_path.startswith('~'):
            raise InvalidStagePathError(stage_path, "stage path must be relative")
        if '..' in rel.parts:
            raise InvalidStagePathError(stage_path, "'..' segment in stage path")

        full = Path(os.path.normpath(self.stage_dir.joinpath(*rel.parts)))
        if full == Path(os.path.normpath(self.stage_dir)):
            raise InvalidStagePathError(stage_path, "stage path names the stage area itself")
        for area in (self.blob_dir, self.temp_dir, self.lock_path):
            if _is_within(full, area) or _is_within(area, full):
                raise InvalidStagePathError(stage_path, "stage path overlaps the store's own areas")
        return full

    def check_stage_parent(self, full_path: Path, stage_path: str) -> None:
        """
        Reject a stage path whose existing parent directories lead out of
        the stage area, or into the blob or temp area, through symbolic links.

        get_stage_path() is lexical; this looks at what is on disk. Only the
        deepest existing ancestor is resolved, so nothing is created first.
        """
        stage_dir = Path(os.path.normpath(self.stage_dir))
        parent = Path(full_path).parent
        while parent != stage_dir and not os.path.lexists(parent):
            parent = parent.parent

        real = Path(os.path.realpath(parent))
        if not _is_within(real, Path(os.path.realpath(stage_dir))):
            raise InvalidStagePathError(stage_path, "stage path leaves the stage area through a symbolic link")
        for area in (self.blob_dir, self.temp_dir):
            if _is_within(real, Path(os.path.realpath(area))):
                raise InvalidStagePathError(stage_path, "stage path enters the store's own areas through a symbolic link")

    def stage_relative(self, path: Path) -> str:
        """Stage-relative POSIX name of a stage-area path."""
        return Path(path).relative_to(self.stage_dir).as_posix()

    def is_in_blob_area(self, path: Path) -> bool:
        """True if path lies strictly inside the blob area."""
        path = Path(os.path.normpath(path))
        return Path(os.path.normpath(self.blob_dir)) in path.parents

    def ensure_parent(self, path: Path) -> None:
        """Ensure the parent directories of path exist."""
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageError("mkdir", str(path.parent), e) from e

    def ensure_temp_dir(self) -> None:
        """Ensure the temp area exists."""
        try:
            self.temp_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageError("mkdir", str(self.temp_dir), e) from e

    def iter_object_files(self) -> Iterator[Path]:
        """
        Walk the blob area and yield every regular file in it.

        Symbolic links inside the blob area are not objects and are skipped.
        The temp area and lock file are excluded when the blob area
        contains them.
        """
        return self._iter_regular_files(
            self.blob_dir,
            "list_objects",
            exclude=(self.temp_dir, self.lock_path),
        )

    def iter_temp_files(self) -> Iterator[Path]:
        """Walk the temp area and yield every regular file in it."""
        return self._iter_regular_files(self.temp_dir, "list_temp")

    def _iter_regular_files(self, top: Path, operation: str, exclude=()) -> Iterator[Path]:
        if not top.is_dir():
            return

        excluded = {os.path.normpath(p) for p in exclude}

        def onerror(e: OSError):
            raise StorageError(operation, str(e.filename or top), e) from e

        for dirpath, dirnames, filenames in os.walk(top, onerror=onerror):
            dirnames[:] = [
                d for d in dirnames
                if os.path.normpath(os.path.join(dirpath, d)) not in excluded
            ]
            for filename in filenames:
                path = Path(dirpath) / filename
                if os.path.normpath(path) in excluded:
                    continue
                if path.is_symlink():
                    logger.warning("Skipping symlink in %s: %s", top, path)
                    continue
                yield path
