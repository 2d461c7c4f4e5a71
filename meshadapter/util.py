"""Filesystem and endpoint helpers shared by the runtime adapters."""

from __future__ import annotations

import errno
import os
import posixpath
import re
import shutil
import stat
from collections.abc import Callable, Sequence
from typing import Any

__all__ = [
    "resolve_local_grpc_endpoint",
    "remove_file_from_list",
    "file_exists",
    "clear_directory_contents",
    "secure_join",
]

_PORT_ENDPOINT_RE = re.compile(r"port:[0-9]+")
_MAX_SYMLINKS = 255


def resolve_local_grpc_endpoint(endpoint: str) -> str:
    """Turn ``port:N`` into ``localhost:N``; pass ``unix:`` endpoints through."""
    if _PORT_ENDPOINT_RE.fullmatch(endpoint):
        return endpoint.replace("port", "localhost", 1)
    if not endpoint.startswith("unix:"):
        raise ValueError("Invalid Endpoint: " + endpoint)
    return endpoint


def _entry_name(entry: Any) -> str:
    return entry if isinstance(entry, str) else entry.name


def remove_file_from_list(filename: str, files: Sequence[Any]) -> tuple[bool, list[Any]]:
    """Drop the entry named ``filename`` from ``files``.

    Entries are names or objects with a ``name`` attribute. The removed entry's
    place is taken by the last entry. Returns whether it was found and the new list.
    """
    index = None
    for position, entry in enumerate(files):
        if _entry_name(entry) == filename:
            index = position
    remaining = list(files)
    if index is None:
        return False, remaining
    remaining[index] = remaining[-1]
    remaining.pop()
    return True, remaining


def file_exists(path: str) -> bool:
    """Whether something exists at ``path``; other stat errors propagate."""
    try:
        os.stat(path)
    except FileNotFoundError:
        return False
    return True


def _remove_all(path: str) -> None:
    try:
        if os.path.isdir(path) and not os.path.islink(path):
            shutil.rmtree(path)
        else:
            os.unlink(path)
    except FileNotFoundError:
        pass


def clear_directory_contents(
    dir_path: str, condition: Callable[[os.DirEntry], bool] | None = None
) -> None:
    """Remove every entry of ``dir_path`` for which ``condition`` holds.

    A missing directory is not an error. Without a condition, all entries go.
    """
    try:
        with os.scandir(dir_path) as scan:
            entries = sorted(scan, key=lambda entry: entry.name)
    except FileNotFoundError:
        return
    except OSError as err:
        raise OSError(
            f"Error listing files to clean up in model dir {dir_path}: {err}"
        ) from err
    for entry in entries:
        if condition is not None and not condition(entry):
            continue
        entry_path = os.path.join(dir_path, entry.name)
        try:
            _remove_all(entry_path)
        except OSError as err:
            raise OSError(
                f"Error removing preexisting entry from model store dir: {entry_path}: {err}"
            ) from err


def _clean(path: str) -> str:
    if not path:
        return "."
    cleaned = posixpath.normpath(path)
    if cleaned.startswith("//"):
        cleaned = "/" + cleaned.lstrip("/")
    return cleaned


def _join(*parts: str) -> str:
    present = [part for part in parts if part]
    if not present:
        return ""
    return _clean("/".join(present))


def _scoped_join(root: str, unsafe_path: str) -> str:
    """Join ``unsafe_path`` to ``root`` so that the result stays under ``root``.

    Symlinks met along the way are resolved as though ``root`` were the
    filesystem root; ``..`` never climbs above it.
    """
    resolved = ""
    links_followed = 0
    remaining = unsafe_path
    while remaining:
        if links_followed > _MAX_SYMLINKS:
            raise OSError(
                errno.ELOOP, os.strerror(errno.ELOOP), root + "/" + remaining
            )
        component, _, remaining = remaining.partition("/")

        scoped = _clean("/" + resolved + component)
        if scoped == "/":
            resolved = ""
            continue
        full_path = _clean(root + scoped)

        try:
            info = os.lstat(full_path)
        except OSError as err:
            if err.errno not in (errno.ENOENT, errno.ENOTDIR):
                raise
            info = None
        if info is None or not stat.S_ISLNK(info.st_mode):
            resolved += component + "/"
            continue

        links_followed += 1
        destination = os.readlink(full_path)
        if destination.startswith("/"):
            resolved = ""
        remaining = destination + "/" + remaining

    return _join(root, _join("/", resolved))


def secure_join(*elements: str) -> str:
    """Join path elements under the first one, never escaping it.

    Needs at least two elements; all after the first are joined lexically
    and then resolved inside the first.
    """
    if len(elements) > 2:
        return _scoped_join(elements[0], _join(*elements[1:]))
    if len(elements) == 2:
        return _scoped_join(elements[0], elements[1])
    raise ValueError("Expected at least 2 parameters")