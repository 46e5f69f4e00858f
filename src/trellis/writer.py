"""Filesystem-backed write function for the rendering pipeline."""

from __future__ import annotations

import logging
import stat
from pathlib import Path
from typing import Iterable, Sequence

from .errors import SkeletonRenderError

__all__ = ["LocalFileWriter"]


LOGGER = logging.getLogger(__name__)


def _ensure_directory(path: Path) -> None:
    path.mkdir(parents=True, exist_ok=True)


class LocalFileWriter:
    """Write rendered skeleton files below a project root.

    A file is skipped when the pipeline asks for it or when one of its skip
    tags is active. Files flagged ``create_once`` are never overwritten.
    """

    def __init__(self, root: Path | str, active_skips: Iterable[str] = ()) -> None:
        self._root = Path(root).resolve()
        self.active_skips = frozenset(active_skips)
        self.written: list[str] = []
        self.skipped: list[str] = []
        self.recorded: list[str] = []

    @property
    def root(self) -> Path:
        """Directory the relative output paths are resolved against."""

        return self._root

    def _destination(self, path: str) -> Path:
        destination = (self._root / path).resolve()
        if not destination.is_relative_to(self._root):
            raise SkeletonRenderError(path, f"refusing to write outside of {self._root}")
        return destination

    def __call__(
        self,
        path: str,
        *,
        create_once: bool,
        skip_tags: Sequence[str],
        content: str,
        record: bool,
        skip: bool,
        permission_bits: int,
    ) -> None:
        active = [tag for tag in skip_tags if tag in self.active_skips]
        if skip or active:
            LOGGER.debug("skipping %s (skip=%s, tags=%s)", path, skip, active)
            self.skipped.append(path)
            return

        destination = self._destination(path)
        if create_once and destination.exists():
            LOGGER.debug("keeping existing %s", path)
            return

        _ensure_directory(destination.parent)
        if destination.exists():
            destination.chmod(stat.S_IMODE(destination.stat().st_mode) | stat.S_IWUSR)
        destination.write_bytes(content.encode("utf-8", errors="surrogateescape"))
        destination.chmod(permission_bits)
        self.written.append(path)
        if record:
            self.recorded.append(path)
