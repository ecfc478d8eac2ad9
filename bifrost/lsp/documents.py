"""Open document tracking."""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

import structlog

log = structlog.get_logger()


def document_path(path: Union[str, Path], root: Optional[Path] = None) -> Path:
    """Absolute, normalised path for a document.

    Relative paths are taken from ``root`` when given, otherwise from the
    current directory. Symlinks are left alone so the URI matches what the
    caller passed.
    """
    file_path = Path(path).expanduser()
    if not file_path.is_absolute():
        file_path = (root or Path.cwd()) / file_path
    return Path(os.path.abspath(file_path))


def document_uri(path: Union[str, Path], root: Optional[Path] = None) -> str:
    """Canonical ``file://`` URI for a document path."""
    return document_path(path, root).as_uri()


@dataclass
class DocumentHandle:
    """A document opened in the engine session."""

    uri: str
    path: Path
    version: int
    text: str


class DocumentStore:
    """Versions of every document opened during the session.

    Documents are never closed; every open of a known document is a content
    refresh with the next version number.
    """

    def __init__(self) -> None:
        self._documents: dict[str, DocumentHandle] = {}

    def open(self, path: Path, text: str) -> DocumentHandle:
        """Record an open of ``path`` with ``text`` and return its handle."""
        uri = path.as_uri()
        handle = self._documents.get(uri)
        if handle is None:
            handle = DocumentHandle(uri=uri, path=path, version=1, text=text)
            self._documents[uri] = handle
        else:
            handle.version += 1
            handle.text = text
        log.debug("document_opened", uri=uri, version=handle.version)
        return handle

    def get(self, uri: str) -> Optional[DocumentHandle]:
        return self._documents.get(uri)

    def __contains__(self, uri: str) -> bool:
        return uri in self._documents

    def __len__(self) -> int:
        return len(self._documents)
