"""Bulk upload of a local directory tree into the object store."""

from __future__ import annotations

import logging
import mimetypes
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Iterator

from borgy.store import ObjectStore, StoreError

LOGGER = logging.getLogger(__name__)


def _is_hidden(path: Path) -> bool:
    return any(part.startswith(".") for part in path.parts if part not in (".", ".."))


@dataclass(slots=True)
class UploadResult:
    """Keys written by an upload run and the files that failed."""

    uploaded: list[str] = field(default_factory=list)
    errors: dict[str, str] = field(default_factory=dict)
    bytes_written: int = 0


class DirectoryScanner:
    """Discover regular files under a root directory."""

    def __init__(self, *, recursive: bool, include_hidden: bool) -> None:
        self.recursive = recursive
        self.include_hidden = include_hidden

    def scan(self, root: Path) -> Iterator[Path]:
        """Yield files under ``root`` in a stable, sorted order."""
        root = root.expanduser().resolve()
        if root.is_file():
            yield root
            return
        for path in sorted(self._iter_paths(root)):
            if not path.is_file():
                continue
            if not self.include_hidden and _is_hidden(path.relative_to(root)):
                continue
            yield path

    def _iter_paths(self, root: Path) -> Iterable[Path]:
        if self.recursive:
            return root.rglob("*")
        return root.iterdir()


class BulkUploader:
    """Put every scanned file into the store under its relative POSIX path.

    Folder structure is preserved in the key (``deal/inspection/report.pdf``)
    so the parent path can later be recorded as an object's original folder.
    """

    def __init__(self, store: ObjectStore, scanner: DirectoryScanner) -> None:
        self._store = store
        self._scanner = scanner

    def upload(self, root: Path, *, key_prefix: str = "") -> UploadResult:
        """Upload files under ``root``; individual failures are collected, not raised."""
        result = UploadResult()
        base = root.expanduser().resolve()
        anchor = base.parent if base.is_file() else base
        prefix = key_prefix.strip("/")

        for path in self._scanner.scan(base):
            relative = path.relative_to(anchor).as_posix()
            key = f"{prefix}/{relative}" if prefix else relative
            content_type = mimetypes.guess_type(path.name)[0] or "application/octet-stream"
            try:
                data = path.read_bytes()
                self._store.put_object(key, data, content_type=content_type)
            except (OSError, StoreError) as exc:
                LOGGER.error("Upload of %s failed: %s", path, exc)
                result.errors[path.as_posix()] = str(exc)
                continue
            LOGGER.debug("Uploaded %s as %s", path, key)
            result.uploaded.append(key)
            result.bytes_written += len(data)
        return result


__all__ = ["BulkUploader", "DirectoryScanner", "UploadResult"]
