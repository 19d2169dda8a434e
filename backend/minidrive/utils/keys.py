"""Mapping between per-user virtual paths and flat object-store keys.

A key has the shape ``userID/[virtualPath/]filename``. The ``userID/``
prefix is the only thing separating tenants in the bucket, so every path
that reaches a key goes through :func:`normalize_path` first.
"""

from __future__ import annotations

from minidrive.exceptions import InvalidPath

FOLDER_MARKER = ".keep"

_FORBIDDEN_SEGMENTS = {".", ".."}


def normalize_path(path: str | None) -> str:
    """Return ``path`` as ``a/b/c`` with no leading, trailing or empty segments.

    Backslashes are treated as separators. ``.`` and ``..`` segments are
    rejected rather than resolved, so a crafted path can never step outside
    the caller's prefix.
    """
    if not path:
        return ""
    segments = [s for s in path.replace("\\", "/").split("/") if s]
    for segment in segments:
        if segment in _FORBIDDEN_SEGMENTS:
            raise InvalidPath(f"Invalid path segment: {segment!r}")
    return "/".join(segments)


def validate_filename(filename: str | None) -> str:
    if not filename:
        raise InvalidPath("Missing filename")
    if "/" in filename or "\\" in filename:
        raise InvalidPath("Filename must not contain path separators")
    if filename in _FORBIDDEN_SEGMENTS:
        raise InvalidPath(f"Invalid filename: {filename!r}")
    return filename


def _validate_user_id(user_id: str) -> str:
    if not user_id or "/" in user_id or user_id in _FORBIDDEN_SEGMENTS:
        raise InvalidPath("Invalid user id")
    return user_id


def user_prefix(user_id: str, path: str | None = "") -> str:
    """Scan prefix for ``path`` inside the user's namespace, always ``/``-terminated."""
    prefix = _validate_user_id(user_id) + "/"
    normalized = normalize_path(path)
    if normalized:
        prefix += normalized + "/"
    return prefix


def build_key(user_id: str, path: str | None, filename: str) -> str:
    """Object key for ``filename`` stored under ``path`` for ``user_id``."""
    return user_prefix(user_id, path) + validate_filename(filename)


def folder_marker_key(user_id: str, path: str | None) -> str:
    """Key of the zero-byte marker that keeps an empty folder visible."""
    if not normalize_path(path):
        raise InvalidPath("Missing folder path")
    return build_key(user_id, path, FOLDER_MARKER)


def split_relative(relative_name: str) -> tuple[str, str]:
    """Split a client-relative name like ``a/b/c.txt`` into ``("a/b", "c.txt")``."""
    normalized = normalize_path(relative_name)
    if not normalized:
        raise InvalidPath("Missing filename")
    directory, _, filename = normalized.rpartition("/")
    return directory, filename


def join_paths(*parts: str | None) -> str:
    return normalize_path("/".join(p for p in parts if p))


def is_folder_marker(name: str) -> bool:
    return name.rsplit("/", 1)[-1] == FOLDER_MARKER
