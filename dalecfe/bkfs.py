"""A read-only filesystem view over a solved build reference."""

from __future__ import annotations

import posixpath
import stat as _stat
from dataclasses import dataclass
from typing import Protocol


class PathError(OSError):
    """An operation on a path failed."""

    def __init__(self, op: str, path: str, err: object):
        super().__init__(f"{op} {path}: {err}")
        self.op = op
        self.path = path
        self.err = err


@dataclass(frozen=True)
class Stat:
    """File metadata as reported by a build reference."""

    path: str
    mode: int = 0
    size: int = 0
    uid: int = 0
    gid: int = 0
    mod_time: int = 0
    linkname: str = ""

    @property
    def name(self) -> str:
        return posixpath.basename(self.path)

    @property
    def is_dir(self) -> bool:
        return _stat.S_ISDIR(self.mode)


class Reference(Protocol):
    """The reading interface of a solved build result."""

    def read_file(self, path: str, offset: int | None = None, length: int | None = None) -> bytes: ...

    def read_dir(self, path: str) -> list[Stat]: ...

    def stat_file(self, path: str) -> Stat: ...


def valid_path(name: str) -> bool:
    """Report whether name is an unrooted, clean, slash-separated path."""
    if name == ".":
        return True
    return all(elem not in ("", ".", "..") for elem in name.split("/"))


@dataclass(frozen=True)
class DirEntry:
    """One entry of a directory listing."""

    stat: Stat

    @property
    def name(self) -> str:
        return posixpath.basename(self.stat.path)

    @property
    def type(self) -> int:
        return self.stat.mode

    def is_dir(self) -> bool:
        return self.stat.is_dir

    def info(self) -> Stat:
        return self.stat


class StateRefFile:
    """A file opened from a build reference, read lazily by range."""

    def __init__(self, path: str, ref: Reference, stat: Stat):
        self.path = path
        self._ref = ref
        self._stat = stat
        self.offset = 0
        self.closed = False

    def read_at(self, size: int, offset: int) -> bytes:
        """Read up to size bytes starting at offset; empty at end of file."""
        if offset < 0:
            raise PathError("read", self.path, "invalid argument")
        if offset >= self._stat.size or size <= 0:
            return b""
        data = self._ref.read_file(self.path, offset=offset, length=size)
        return bytes(data[:size])

    def read(self, size: int = -1) -> bytes:
        """Read from the current position, advancing it."""
        if size is None or size < 0:
            size = max(self._stat.size - self.offset, 0)
        data = self.read_at(size, self.offset)
        self.offset += len(data)
        return data

    def stat(self) -> Stat:
        return self._stat

    def close(self) -> None:
        """Mark the file closed; no resources are held."""
        self.closed = True

    def __enter__(self) -> StateRefFile:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


class StateRefFS:
    """A filesystem backed by a build reference."""

    def __init__(self, ref: Reference):
        self.ref = ref

    def open(self, name: str) -> StateRefFile:
        if not valid_path(name):
            raise PathError("open", name, "invalid argument")
        try:
            info = self.ref.stat_file(name)
        except Exception as exc:
            raise PathError("open", name, exc) from exc
        return StateRefFile(name, self.ref, info)

    def read_dir(self, name: str) -> list[DirEntry]:
        try:
            contents = self.ref.read_dir(name)
        except Exception as exc:
            raise PathError("readdir", name, exc) from exc
        return [DirEntry(s) for s in contents]


class NullFS:
    """A filesystem in which nothing exists."""

    def open(self, name: str) -> StateRefFile:
        raise FileNotFoundError(f"nullfs: {name}: file does not exist")

    def read_dir(self, name: str) -> list[DirEntry]:
        raise FileNotFoundError(f"nullfs: {name}: file does not exist")


def from_ref(ref: Reference) -> StateRefFS:
    """Build a filesystem view over a solved reference."""
    return StateRefFS(ref)