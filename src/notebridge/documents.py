"""Document store protocol and the bundled folder-backed implementation.

The bridge never reaches into a global host object; the router receives a
`DocumentStore` and only uses the five operations below.

Paths are `/`-separated, relative to the store root, with no empty segments
(e.g. `Telegram/Groceries.md`).

Design notes / invariants:
- `exists(path)` is true only for documents, never for folders. The router
  uses it to decide between `create` and `modify`.
- `create_folder(path)` is idempotent: creating an existing folder is a no-op.
- `create(path, ...)` requires the parent folder to exist; callers use
  `ensure_folder` first.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Protocol, runtime_checkable


@runtime_checkable
class DocumentStore(Protocol):
    """Protocol for the opaque key-value document store the router writes to."""

    def exists(self, path: str) -> bool:
        """Return whether `path` names an existing document."""

    def read(self, path: str) -> str:
        """Return the document content at `path`."""

    def create(self, path: str, content: str) -> None:
        """Create a new document at `path`."""

    def modify(self, path: str, content: str) -> None:
        """Overwrite the content of the existing document at `path`."""

    def create_folder(self, path: str) -> None:
        """Create the folder at `path` if absent."""


def ensure_folder(store: DocumentStore, folder: str) -> None:
    """Create `folder` segment by segment (`a`, `a/b`, `a/b/c`)."""

    current = ""
    for segment in folder.split("/"):
        if not segment:
            continue
        current = f"{current}/{segment}" if current else segment
        store.create_folder(current)


@dataclass(slots=True)
class FolderDocumentStore:
    """`DocumentStore` over a directory of UTF-8 text files.

    Document paths are resolved under `root`; paths that would escape the root
    (absolute paths, `..` segments) raise `ValueError`.
    """

    root: Path
    encoding: str = "utf-8"

    def __post_init__(self) -> None:
        self.root = Path(self.root).expanduser().resolve()

    def _resolve(self, path: str) -> Path:
        parts = [p for p in path.split("/") if p]
        if not parts or any(p in {".", ".."} for p in parts):
            raise ValueError(f"Invalid document path: {path!r}")
        resolved = self.root.joinpath(*parts).resolve()
        if not resolved.is_relative_to(self.root):
            raise ValueError(f"Document path escapes store root: {path!r}")
        return resolved

    def exists(self, path: str) -> bool:
        return self._resolve(path).is_file()

    def read(self, path: str) -> str:
        return self._resolve(path).read_text(encoding=self.encoding)

    def create(self, path: str, content: str) -> None:
        target = self._resolve(path)
        # `x` mode: never clobber a document that appeared since `exists()`.
        with target.open("x", encoding=self.encoding) as f:
            f.write(content)

    def modify(self, path: str, content: str) -> None:
        target = self._resolve(path)
        if not target.is_file():
            raise FileNotFoundError(f"Document does not exist: {path!r}")
        target.write_text(content, encoding=self.encoding)

    def create_folder(self, path: str) -> None:
        self._resolve(path).mkdir(exist_ok=True)
