from __future__ import annotations

import os
import shutil
import tempfile
import weakref
from pathlib import Path
from typing import Optional

from .constants import ARCHIVE_NAME, STAGED_ENTRIES_DIR, STAGING_PREFIX
from .errors import StagingError


class StagingArea:
    """Private temporary directory holding staged entries and the archive file.

    Layout::

        <tmp>/pkforge-XXXX/
            Pass.pkpass        the archive being built
            entries/000001     staged entry bytes, one numbered file per write

    The directory is removed by ``close()``, by leaving the ``with`` block, or
    when the object is garbage collected, whichever comes first.
    """

    def __init__(self, root: Optional[str] = None, prefix: str = STAGING_PREFIX):
        self.root = root
        self.prefix = prefix
        self.path: Optional[Path] = None
        self._finalizer: Optional[weakref.finalize] = None
        self._staged_count = 0

    def __enter__(self):
        self.open()
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    def open(self) -> Path:
        if self.path is not None:
            return self.path
        try:
            path = Path(tempfile.mkdtemp(prefix=self.prefix, dir=self.root))
            (path / STAGED_ENTRIES_DIR).mkdir()
        except OSError as exc:
            raise StagingError(f"Cannot create staging directory: {exc}") from exc
        self.path = path
        self._finalizer = weakref.finalize(self, remove_tree, str(path))
        return path

    def close(self) -> None:
        if self._finalizer is not None:
            self._finalizer()
            self._finalizer = None
        self.path = None

    @property
    def closed(self) -> bool:
        return self.path is None

    @property
    def archive_path(self) -> Path:
        return self._require_open() / ARCHIVE_NAME

    def next_entry_path(self) -> Path:
        # Entry names never map onto the filesystem, so "a" and "a/b" can coexist.
        base = self._require_open() / STAGED_ENTRIES_DIR
        self._staged_count += 1
        return base / f"{self._staged_count:06d}"

    def write(self, rel: str, data: bytes) -> Path:
        """Write ``data`` to a fresh staged file for entry ``rel`` and return its path."""
        target = self.next_entry_path()
        try:
            with open(target, "wb") as fh:
                fh.write(data)
        except OSError as exc:
            raise StagingError(f"Cannot stage {rel}: {exc}") from exc
        return target

    def _require_open(self) -> Path:
        if self.path is None:
            raise RuntimeError("Staging area not open")
        return self.path


def remove_tree(path: str) -> None:
    # Cleanup target may already be gone.
    if not os.path.exists(path):
        return
    shutil.rmtree(path, ignore_errors=True)
