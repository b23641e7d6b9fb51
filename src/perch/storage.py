"""Storage abstraction — the open/stat/read/close seam the static layer serves from.

A ``FileSystem`` opens slash-separated names and returns ``File`` handles.
Every failure is an ``OSError`` (``FileNotFoundError``, ``PermissionError``,
``InvalidPathError``...), so callers need a single ``except`` clause.

Two implementations ship:

- ``DirFileSystem``: a directory on disk. Names are cleaned against a
  virtual root, so ``..`` can never climb out of the directory.
- ``MemoryFileSystem``: files held in memory, with directories implied
  by the file names. Useful for embedded assets and tests.

Usage::

    fs = static_file_system("public", work_path="/srv/site")
    with fs.open("/css/site.css") as f:
        info = f.stat()
        data = f.read()
"""

from __future__ import annotations

import io
import os
import posixpath
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import Protocol, Self, runtime_checkable

from perch.errors import InvalidPathError


@dataclass(frozen=True, slots=True)
class FileInfo:
    """What ``File.stat()`` reports about an opened resource."""

    name: str
    size: int
    mod_time: datetime
    is_dir: bool


@runtime_checkable
class File(Protocol):
    """An opened resource. Closed on every exit path via ``with``."""

    def stat(self) -> FileInfo: ...
    def read(self, size: int = -1) -> bytes: ...
    def seek(self, offset: int, whence: int = 0) -> int: ...
    def close(self) -> None: ...
    def __enter__(self) -> Self: ...
    def __exit__(self, *exc_info: object) -> None: ...


@runtime_checkable
class FileSystem(Protocol):
    """Opens named resources. Raises ``OSError`` when a name can't be opened."""

    def open(self, name: str) -> File: ...


def clean_name(name: str) -> str:
    """Clean a slash-separated name against a virtual root.

    The result always starts with ``/`` and never contains ``.`` or
    ``..`` segments or repeated slashes::

        clean_name("css/../js//app.js")  -> "/js/app.js"
        clean_name("/../../etc/passwd")  -> "/etc/passwd"
    """
    cleaned = posixpath.normpath("/" + name)
    # normpath keeps a leading "//" (POSIX implementation-defined root)
    if cleaned.startswith("//"):
        cleaned = "/" + cleaned.lstrip("/")
    return cleaned


def _check_name(name: str) -> None:
    if "\x00" in name:
        msg = f"invalid character in file path: {name!r}"
        raise InvalidPathError(msg)
    if os.sep != "/" and os.sep in name:
        msg = f"invalid character in file path: {name!r}"
        raise InvalidPathError(msg)


# ---------------------------------------------------------------------------
# Directory on disk
# ---------------------------------------------------------------------------


class OSFile:
    """A file or directory opened from disk.

    Regular files hold an open binary handle. Directories hold only their
    path: they can be stat'd and closed, not read.
    """

    __slots__ = ("_handle", "_path")

    def __init__(self, path: Path, handle: io.BufferedReader | None = None) -> None:
        self._path = path
        self._handle = handle

    def stat(self) -> FileInfo:
        st = os.fstat(self._handle.fileno()) if self._handle is not None else os.stat(self._path)
        return FileInfo(
            name=self._path.name or str(self._path),
            size=st.st_size,
            mod_time=datetime.fromtimestamp(st.st_mtime, tz=UTC),
            is_dir=self._handle is None,
        )

    def read(self, size: int = -1) -> bytes:
        if self._handle is None:
            raise IsADirectoryError(str(self._path))
        return self._handle.read(size)

    def seek(self, offset: int, whence: int = 0) -> int:
        if self._handle is None:
            raise IsADirectoryError(str(self._path))
        return self._handle.seek(offset, whence)

    def close(self) -> None:
        if self._handle is not None:
            self._handle.close()

    def __enter__(self) -> Self:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"OSFile({str(self._path)!r})"


class DirFileSystem:
    """Serves names from a directory on disk.

    ``open("/a/../b.css")`` opens ``<root>/b.css``; no name can reach
    outside *root*. Symlinks inside the root are followed.
    """

    __slots__ = ("root",)

    def __init__(self, root: str | Path) -> None:
        self.root = Path(root or ".")

    def open(self, name: str) -> OSFile:
        _check_name(name)
        full = self.root.joinpath(*clean_name(name).split("/")[1:])
        if full.is_dir():
            return OSFile(full)
        # Raises FileNotFoundError / PermissionError / NotADirectoryError
        handle = open(full, "rb")  # noqa: SIM115 — closed by OSFile.close()
        return OSFile(full, handle)

    def __repr__(self) -> str:
        return f"DirFileSystem({str(self.root)!r})"


def static_file_system(directory: str | Path, work_path: str | Path) -> DirFileSystem:
    """A ``DirFileSystem`` for *directory*, anchored at *work_path* when relative."""
    path = Path(directory)
    if not path.is_absolute():
        path = Path(work_path) / path
    return DirFileSystem(path)


# ---------------------------------------------------------------------------
# In-memory
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class MemoryEntry:
    """A file stored in a ``MemoryFileSystem``."""

    data: bytes
    mod_time: datetime


class MemoryFile:
    """A handle on a ``MemoryFileSystem`` entry or implied directory."""

    __slots__ = ("_buffer", "_closed", "_fs", "_name")

    def __init__(self, fs: MemoryFileSystem, name: str, data: bytes | None) -> None:
        self._fs = fs
        self._name = name
        self._buffer = io.BytesIO(data) if data is not None else None
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def stat(self) -> FileInfo:
        if self._name in self._fs.broken:
            msg = f"stat failed: {self._name}"
            raise OSError(msg)
        base = posixpath.basename(self._name) or "/"
        if self._buffer is None:
            return FileInfo(name=base, size=0, mod_time=self._fs.created, is_dir=True)
        entry = self._fs.files[self._name]
        return FileInfo(name=base, size=len(entry.data), mod_time=entry.mod_time, is_dir=False)

    def read(self, size: int = -1) -> bytes:
        if self._buffer is None:
            raise IsADirectoryError(self._name)
        return self._buffer.read(size)

    def seek(self, offset: int, whence: int = 0) -> int:
        if self._buffer is None:
            raise IsADirectoryError(self._name)
        return self._buffer.seek(offset, whence)

    def close(self) -> None:
        self._closed = True
        self._fs.open_handles.discard(self)

    def __enter__(self) -> Self:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


class MemoryFileSystem:
    """Files held in memory, keyed by cleaned name.

    Directories exist implicitly for every parent of a stored file (and
    the root always exists). Names listed in ``broken`` open fine but
    fail on ``stat()``, the way an unreadable file does on disk.

    ``open_handles`` tracks handles that have not been closed yet.
    """

    __slots__ = ("broken", "created", "files", "open_handles")

    def __init__(
        self,
        files: dict[str, bytes] | None = None,
        *,
        mod_time: datetime | None = None,
    ) -> None:
        self.created = mod_time or datetime.now(UTC).replace(microsecond=0)
        self.files: dict[str, MemoryEntry] = {}
        self.broken: set[str] = set()
        self.open_handles: set[MemoryFile] = set()
        for name, data in (files or {}).items():
            self.add(name, data)

    def add(self, name: str, data: bytes | str, *, mod_time: datetime | None = None) -> None:
        """Store *data* under *name* (replacing any existing entry)."""
        raw = data.encode("utf-8") if isinstance(data, str) else data
        self.files[clean_name(name)] = MemoryEntry(raw, mod_time or self.created)

    def break_stat(self, name: str) -> None:
        """Make ``stat()`` fail for *name*."""
        self.broken.add(clean_name(name))

    def _is_dir(self, name: str) -> bool:
        if name == "/":
            return True
        prefix = name + "/"
        return any(stored.startswith(prefix) for stored in self.files)

    def open(self, name: str) -> MemoryFile:
        _check_name(name)
        cleaned = clean_name(name)
        if cleaned in self.files:
            handle = MemoryFile(self, cleaned, self.files[cleaned].data)
        elif self._is_dir(cleaned):
            handle = MemoryFile(self, cleaned, None)
        else:
            raise FileNotFoundError(cleaned)
        self.open_handles.add(handle)
        return handle
