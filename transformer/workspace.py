"""Filesystem-backed ContextSource."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from .base import Document
from .errors import ContextUnavailable

logger = logging.getLogger(__name__)


class WorkspaceContextSource:
    """Reads documents from a workspace directory on disk.

    Implements the ContextSource protocol. Document paths are reported
    relative to the workspace root with POSIX separators.
    """

    def __init__(self, root: Path, active_path: Optional[Path] = None):
        """Initialize the source.

        Args:
            root: Workspace root directory.
            active_path: File treated as the active document, relative to
                root or absolute. None means no document is open.
        """
        self.root = Path(root).resolve()
        self.active_path = Path(active_path) if active_path is not None else None

    def get_active_document(self) -> Optional[Document]:
        if self.active_path is None:
            return None
        path = self.active_path if self.active_path.is_absolute() else self.root / self.active_path
        if not path.is_file():
            logger.warning("Active document %s does not exist", path)
            return None
        return self._read(path.resolve())

    def find_files(self, pattern: str) -> list[Document]:
        try:
            matches = sorted(path for path in self.root.glob(pattern) if path.is_file())
        except (NotImplementedError, ValueError) as e:
            raise ContextUnavailable(f"Invalid include pattern '{pattern}': {e}") from e
        return [self._read(path) for path in matches]

    def _relative_path(self, path: Path) -> str:
        try:
            return path.relative_to(self.root).as_posix()
        except ValueError:
            # Outside the workspace; keep the absolute path.
            return path.as_posix()

    def _read(self, path: Path) -> Document:
        text = path.read_text(encoding="utf-8", errors="replace")
        return Document(path=self._relative_path(path), text=text)
