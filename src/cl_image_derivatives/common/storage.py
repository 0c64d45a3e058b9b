"""Filesystem layout for sources, derivatives and pending descriptors.

Layout:
    root/
        <dir>/photo.jpg                       source
        <dir>/photo.640x360.webp              derivative
        <dir>/photo.640x360.webp.queue        pending descriptor
"""

from __future__ import annotations

import glob
import os
import tempfile
from pathlib import Path
from typing import Final

from loguru import logger

QUEUE_SUFFIX: Final[str] = ".queue"


class DerivativeStorage:
    """Local filesystem storage rooted at ``root`` and published under ``base_url``."""

    def __init__(self, root: str | os.PathLike[str], base_url: str = "/"):
        self._root: Path = Path(root).expanduser().resolve()
        self._base_url: str = base_url.rstrip("/") + "/"

    @property
    def root(self) -> Path:
        return self._root

    # ------------------------------------------------------------------
    # Path helpers
    # ------------------------------------------------------------------

    def safe_path(self, relative_path: str) -> Path:
        """
        Resolve a root-relative path (e.g. from a URL).
        Prevents path traversal.
        """
        resolved = (self._root / relative_path.lstrip("/")).resolve()
        if self._root not in resolved.parents and resolved != self._root:
            raise ValueError("Invalid relative path (path traversal detected)")
        return resolved

    def relative(self, path: Path) -> str:
        """Root-relative posix path, or the absolute path when outside root."""
        path = path.resolve()
        try:
            return path.relative_to(self._root).as_posix()
        except ValueError:
            return str(path)

    def absolute(self, stored: str) -> Path:
        path = Path(stored)
        return path if path.is_absolute() else self._root / stored

    def url_for(self, path: Path) -> str:
        return self._base_url + self.relative(path)

    @staticmethod
    def queue_path(destination: Path) -> Path:
        return destination.with_name(destination.name + QUEUE_SUFFIX)

    # ------------------------------------------------------------------
    # Writing
    # ------------------------------------------------------------------

    @staticmethod
    def write_atomic(destination: Path, data: bytes) -> None:
        """Write to a sibling temp file, then rename over ``destination``.

        Readers see either the old file, no file, or the complete new file.
        """
        destination.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            dir=destination.parent, prefix=f".{destination.name}.", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "wb") as f:
                _ = f.write(data)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_name, destination)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    # ------------------------------------------------------------------
    # Cleanup
    # ------------------------------------------------------------------

    @staticmethod
    def remove_variations(source: Path) -> list[Path]:
        """Remove every ``<stem>.*`` sibling of ``source`` except the source itself."""
        removed: list[Path] = []
        source = source.resolve()
        for candidate in source.parent.glob(f"{glob.escape(source.stem)}.*"):
            if candidate.resolve() == source or not candidate.is_file():
                continue
            try:
                candidate.unlink()
                removed.append(candidate)
            except OSError as e:
                logger.warning(f"Could not remove variation {candidate}: {e}")
        if removed:
            logger.info(f"Removed {len(removed)} variation(s) of {source.name}")
        return removed
