from __future__ import annotations

import fnmatch
import os
import stat
import sys
from collections.abc import Iterator, Sequence
from dataclasses import dataclass, field
from typing import Protocol

MODE_MASK = 0o7777

TYPE_FILES = "f"
TYPE_DIRS = "d"
_TYPE_FILTERS = (TYPE_FILES, TYPE_DIRS)


class Pattern(Protocol):
    def matches(self, candidate: str) -> bool: ...


@dataclass(frozen=True)
class GlobPattern:
    pattern: str
    case_insensitive: bool = False

    def matches(self, candidate: str) -> bool:
        pattern = self.pattern
        if self.case_insensitive:
            candidate = candidate.lower()
            pattern = pattern.lower()
        return fnmatch.fnmatchcase(candidate, pattern)


def parse_mode(expr: str) -> int:
    if not expr:
        raise ValueError("mode cannot be empty")
    try:
        mode = int(expr, 8)
    except ValueError:
        raise ValueError(f"invalid octal mode: {expr}") from None
    if not 0 <= mode <= MODE_MASK:
        raise ValueError(f"mode out of range: {expr}")
    return mode


@dataclass(frozen=True)
class Entry:
    path: str
    is_directory: bool
    owner_uid: int
    owner_gid: int
    permission_bits: int
    name: str = field(init=False)

    def __post_init__(self) -> None:
        name = self.path.split("/")[-1]
        if not name:
            raise ValueError(f"entry path has no final component: {self.path!r}")
        if self.owner_uid < 0 or self.owner_gid < 0:
            raise ValueError("owner ids must be non-negative")
        if not 0 <= self.permission_bits <= MODE_MASK:
            raise ValueError(f"permission bits out of range: {self.permission_bits:#o}")
        object.__setattr__(self, "name", name)

    @classmethod
    def from_stat(cls, path: str, st: os.stat_result) -> Entry:
        return cls(
            path=path,
            is_directory=stat.S_ISDIR(st.st_mode),
            owner_uid=st.st_uid,
            owner_gid=st.st_gid,
            permission_bits=st.st_mode & MODE_MASK,
        )


class DirectoryWalker:
    """Depth-first walker over one directory tree."""

    def __init__(self, program_name: str = "findmatch", quiet: bool = False) -> None:
        self.program_name = program_name
        self.quiet = quiet

    def walk(
        self,
        root: str,
        post_order: bool = False,
        max_depth: int | None = None,
    ) -> list[Entry]:
        if max_depth is not None and max_depth < 0:
            raise ValueError("max_depth cannot be negative")
        return list(self._walk(os.fspath(root), post_order, max_depth))

    def _walk(self, root: str, post_order: bool, max_depth: int | None) -> Iterator[Entry]:
        # (directory, remaining depth, unvisited child names, entry to emit on pop)
        stack: list[tuple[str, int | None, Iterator[str], Entry | None]] = [
            (root, max_depth, iter(self._list(root)), None)
        ]

        while stack:
            cur_path, depth, names, pending = stack[-1]
            name = next(names, None)
            if name is None:
                stack.pop()
                if pending is not None:
                    yield pending
                continue

            path = os.path.join(cur_path, name)
            try:
                st = os.stat(path)
            except OSError as e:
                self._report_metadata_failure(path, e)
                continue

            entry = Entry.from_stat(path, st)
            if not entry.is_directory:
                yield entry
                continue

            if not post_order:
                yield entry
            if depth is None or depth > 0:
                stack.append(
                    (
                        path,
                        None if depth is None else depth - 1,
                        iter(self._list(path)),
                        entry if post_order else None,
                    )
                )
            elif post_order:
                yield entry

    @staticmethod
    def _list(path: str) -> list[str]:
        with os.scandir(path) as it:
            return [entry.name for entry in it]

    def _report_metadata_failure(self, path: str, error: OSError) -> None:
        if self.quiet:
            return
        print(
            f"{self.program_name}: Failed to get file metadata: {path}: {error}.",
            file=sys.stderr,
        )


def walk(root: str, post_order: bool = False, max_depth: int | None = None) -> list[Entry]:
    return DirectoryWalker().walk(root, post_order, max_depth)


class EntryMatcher:
    def __init__(self, entries: Sequence[Entry]) -> None:
        self._entries: tuple[Entry, ...] = tuple(entries)
        self.name_pattern: Pattern | None = None
        self.path_pattern: Pattern | None = None
        self.owner_gid: int | None = None
        self.owner_uid: int | None = None
        self.permission_bits: int | None = None
        self.type_filter: str | None = None

    @classmethod
    def from_directory(
        cls,
        root: str,
        post_order: bool = False,
        max_depth: int | None = None,
        walker: DirectoryWalker | None = None,
    ) -> EntryMatcher:
        walker = walker or DirectoryWalker()
        return cls(walker.walk(root, post_order, max_depth))

    @property
    def entries(self) -> tuple[Entry, ...]:
        return self._entries

    def set_type_filter(self, type_filter: str | None) -> None:
        if type_filter is not None and type_filter not in _TYPE_FILTERS:
            raise ValueError(f"invalid type filter: {type_filter!r}")
        self.type_filter = type_filter

    def set_name_pattern(self, pattern: Pattern | None) -> None:
        self.name_pattern = pattern

    def set_path_pattern(self, pattern: Pattern | None) -> None:
        self.path_pattern = pattern

    def set_owner_gid(self, gid: int | None) -> None:
        self.owner_gid = gid

    def set_owner_uid(self, uid: int | None) -> None:
        self.owner_uid = uid

    def set_permission_bits(self, bits: int | None) -> None:
        self.permission_bits = bits

    def matches(self) -> list[Entry]:
        return [entry for entry in self._entries if self._accepts(entry)]

    def _accepts(self, entry: Entry) -> bool:
        if self.name_pattern is not None and not self.name_pattern.matches(entry.name):
            return False
        # The path slot is matched against the name too, not the full path.
        if self.path_pattern is not None and not self.path_pattern.matches(entry.name):
            return False
        if self.owner_gid is not None and entry.owner_gid != self.owner_gid:
            return False
        if self.owner_uid is not None and entry.owner_uid != self.owner_uid:
            return False
        if self.permission_bits is not None and entry.permission_bits != self.permission_bits:
            return False
        if self.type_filter == TYPE_FILES and entry.is_directory:
            return False
        if self.type_filter == TYPE_DIRS and not entry.is_directory:
            return False
        return True
