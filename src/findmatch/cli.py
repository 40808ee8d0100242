from __future__ import annotations

import argparse
import contextlib
import grp
import pwd
import sys
from collections.abc import Sequence

from .core import DirectoryWalker, Entry, EntryMatcher, GlobPattern, parse_mode

PROG = "findmatch"


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog=PROG,
        description="Find filesystem entries by name, owner, mode and type.",
    )
    p.add_argument("paths", nargs="*", default=["."], help="Root directories to search")

    name_group = p.add_mutually_exclusive_group()
    name_group.add_argument("-name", dest="name", help="Glob pattern to match names")
    name_group.add_argument(
        "-iname", dest="iname", help="Case-insensitive glob pattern to match names"
    )
    p.add_argument("-path", dest="path", help="Glob pattern for the path slot (matched on names)")

    p.add_argument(
        "-type",
        dest="type",
        choices=["f", "d"],
        help="Filter by entry type: f=file, d=dir",
    )

    uid_group = p.add_mutually_exclusive_group()
    uid_group.add_argument("-uid", type=int, help="Owning user id")
    uid_group.add_argument("-user", help="Owning user name or id")
    gid_group = p.add_mutually_exclusive_group()
    gid_group.add_argument("-gid", type=int, help="Owning group id")
    gid_group.add_argument("-group", help="Owning group name or id")

    p.add_argument("-perm", help="Exact octal permission bits, e.g. 644 or 4755")
    p.add_argument(
        "-maxdepth",
        type=int,
        help="Recurse into at most N levels of subdirectories (0 lists only immediate children)",
    )
    p.add_argument(
        "-depth",
        action="store_true",
        help="Print directory contents before the directory itself",
    )
    p.add_argument(
        "-print0",
        action="store_true",
        help="Separate output with NUL instead of newline",
    )
    p.add_argument("-q", "--quiet", action="store_true", help="Suppress error messages")
    return p


def resolve_uid(user: str) -> int:
    if user.isdigit():
        return int(user)
    try:
        return pwd.getpwnam(user).pw_uid
    except KeyError:
        raise ValueError(f"unknown user: {user}") from None


def resolve_gid(group: str) -> int:
    if group.isdigit():
        return int(group)
    try:
        return grp.getgrnam(group).gr_gid
    except KeyError:
        raise ValueError(f"unknown group: {group}") from None


def _configure(
    matcher: EntryMatcher,
    ns: argparse.Namespace,
    uid: int | None,
    gid: int | None,
    perm: int | None,
) -> None:
    if ns.name:
        matcher.set_name_pattern(GlobPattern(ns.name))
    elif ns.iname:
        matcher.set_name_pattern(GlobPattern(ns.iname, case_insensitive=True))
    if ns.path:
        matcher.set_path_pattern(GlobPattern(ns.path))
    matcher.set_type_filter(ns.type)
    matcher.set_owner_uid(uid)
    matcher.set_owner_gid(gid)
    matcher.set_permission_bits(perm)


def _write(entries: Sequence[Entry], sep: str) -> None:
    for entry in entries:
        sys.stdout.write(entry.path)
        sys.stdout.write(sep)


def main(argv: Sequence[str] | None = None) -> int:
    p = build_parser()
    ns = p.parse_args(argv)

    if ns.maxdepth is not None and ns.maxdepth < 0:
        print(f"{PROG}: invalid -maxdepth: {ns.maxdepth}", file=sys.stderr)
        return 2

    try:
        uid = resolve_uid(ns.user) if ns.user is not None else ns.uid
        gid = resolve_gid(ns.group) if ns.group is not None else ns.gid
        perm = parse_mode(ns.perm) if ns.perm is not None else None
    except ValueError as e:
        print(f"{PROG}: {e}", file=sys.stderr)
        return 2

    walker = DirectoryWalker(program_name=PROG, quiet=ns.quiet)
    sep = "\0" if ns.print0 else "\n"
    rc = 0

    try:
        for root in ns.paths:
            try:
                matcher = EntryMatcher.from_directory(root, ns.depth, ns.maxdepth, walker=walker)
            except OSError as e:
                print(f"{PROG}: cannot read directory '{root}': {e.strerror}", file=sys.stderr)
                rc = 1
                continue
            _configure(matcher, ns, uid, gid, perm)
            _write(matcher.matches(), sep)
        sys.stdout.flush()
    except BrokenPipeError:
        with contextlib.suppress(Exception):
            sys.stdout.close()
        return 0

    return rc


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
