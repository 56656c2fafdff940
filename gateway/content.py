"""Content store — serves text files from a single directory."""

from __future__ import annotations

from pathlib import Path

from contracts.errors import ContentNotFound, ContentReadFailed


class FileContentStore:
    """Read files by bare name from *directory*; nothing outside it is reachable."""

    def __init__(self, directory: str | Path) -> None:
        self._root = Path(directory).resolve()

    @property
    def root(self) -> Path:
        return self._root

    def read(self, filename: str) -> str:
        if not filename or filename in (".", "..") or "/" in filename or "\\" in filename:
            raise ContentNotFound()

        path = (self._root / filename).resolve()
        if path.parent != self._root or not path.is_file():
            raise ContentNotFound()

        try:
            return path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            raise ContentReadFailed() from exc
