"""
Staging links.

A staging link is a symbolic link in the stage area whose target is the
blob-area path of a committed object. Links are the only thing that
makes an object reachable.
"""

import logging
import os
from pathlib import Path
from typing import Dict, List

from ..errors import (
    InvalidStagePathError,
    NotCommittedError,
    ObjectNotFoundError,
    StorageError,
)
from ..integrity.verification import is_valid_object_id
from ..model.blob import Blob, BlobRef, as_object_id
from .layout import StorageLayout
from .object_store import ObjectStore

logger = logging.getLogger(__name__)


class StagingArea:
    """
    Creates, reads and enumerates staging links.

    Reachability is never cached: linked() walks the stage area every
    time it is called.
    """

    def __init__(self, layout: StorageLayout, object_store: ObjectStore):
        self.layout = layout
        self.object_store = object_store

    def link(self, ref: BlobRef, stage_path: str) -> Path:
        """
        Point a stage path at a committed object.

        An existing link at stage_path is replaced (removed, then
        recreated). Replacement is not atomic for concurrent readers
        of the same path. The blob area is never modified.

        Returns the filesystem path of the link.
        """
        object_id = as_object_id(ref)
        full_path = self.layout.get_stage_path(stage_path)

        if not self.object_store.exists(object_id):
            raise NotCommittedError(object_id)
        target = self.layout.get_object_path(object_id)

        self.layout.check_stage_parent(full_path, stage_path)
        self.layout.ensure_parent(full_path)

        if os.path.lexists(full_path):
            if not full_path.is_symlink():
                raise InvalidStagePathError(stage_path, "path exists and is not a staging link")
            try:
                full_path.unlink()
            except FileNotFoundError:
                pass
            except OSError as e:
                raise StorageError("replace_link", str(full_path), e) from e

        try:
            os.symlink(target, full_path)
        except OSError as e:
            raise StorageError("link", str(full_path), e) from e

        logger.debug("Linked %s -> %s", stage_path, object_id)
        return full_path

    def unlink(self, stage_path: str) -> None:
        """
        Remove a staging link.

        Only symbolic links are removed; anything else at the path is
        left alone and reported.
        """
        full_path = self.layout.get_stage_path(stage_path)
        self.layout.check_stage_parent(full_path, stage_path)

        if not os.path.lexists(full_path):
            raise ObjectNotFoundError(stage_path, f"No staging link: '{stage_path}'")
        if not full_path.is_symlink():
            raise InvalidStagePathError(stage_path, "path exists and is not a staging link")

        try:
            full_path.unlink()
        except FileNotFoundError as e:
            raise ObjectNotFoundError(stage_path, f"No staging link: '{stage_path}'") from e
        except OSError as e:
            raise StorageError("unlink", str(full_path), e) from e

        logger.debug("Unlinked %s", stage_path)

    def resolve(self, stage_path: str) -> Blob:
        """Return the object a staging link names."""
        full_path = self.layout.get_stage_path(stage_path)
        try:
            target = os.readlink(full_path)
        except (FileNotFoundError, NotADirectoryError) as e:
            raise ObjectNotFoundError(stage_path, f"No staging link: '{stage_path}'") from e
        except OSError as e:
            raise InvalidStagePathError(stage_path, "path is not a staging link") from e

        object_id = self._object_id_for_target(full_path, target)
        if object_id is None:
            raise ObjectNotFoundError(
                stage_path, f"Staging link '{stage_path}' does not point into the blob area"
            )
        return Blob(object_id)

    def linked(self) -> Dict[Blob, List[str]]:
        """
        Map every linked object to the stage paths that reference it.

        Walks the whole stage area without following links. Entries that
        are not symbolic links, and links pointing outside the blob area,
        are ignored. The blob and temp areas are pruned from the walk.
        """
        seen: Dict[Blob, List[str]] = {}
        stage_dir = self.layout.stage_dir
        if not stage_dir.is_dir():
            return seen

        pruned = {
            os.path.normpath(self.layout.blob_dir),
            os.path.normpath(self.layout.temp_dir),
        }

        def onerror(e: OSError):
            raise StorageError("list_links", str(e.filename or stage_dir), e) from e

        for dirpath, dirnames, filenames in os.walk(stage_dir, onerror=onerror):
            dirnames[:] = [
                d for d in dirnames
                if os.path.normpath(os.path.join(dirpath, d)) not in pruned
            ]

            for name in dirnames + filenames:
                entry = Path(dirpath) / name
                try:
                    target = os.readlink(entry)
                except OSError:
                    # Not a symbolic link.
                    continue

                object_id = self._object_id_for_target(entry, target)
                if object_id is None:
                    continue

                seen.setdefault(Blob(object_id), []).append(self.layout.stage_relative(entry))

        for paths in seen.values():
            paths.sort()
        return seen

    def _object_id_for_target(self, link_path: Path, target: str):
        target_path = Path(target)
        if not target_path.is_absolute():
            target_path = link_path.parent / target_path

        if not self.layout.is_in_blob_area(target_path):
            return None

        object_id = target_path.name
        if not is_valid_object_id(object_id, self.layout.id_length):
            logger.debug("Ignoring link %s to non-object %s", link_path, target)
            return None
        return object_id
