"""Namespace lister: rebuilds folder views from flat prefix scans.

Shallow listings fold every key below the queried level into its first path
segment, so ``u/a/b/c.txt`` shows up as one item of folder ``a`` when
listing ``u/``. Deeper structure is only visible by listing ``a`` itself.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable, Optional, Union

from minidrive.services.object_store import ObjectInfo, ObjectStore
from minidrive.utils.keys import FOLDER_MARKER, is_folder_marker, normalize_path, user_prefix
from minidrive.utils.storage import format_size

logger = logging.getLogger(__name__)


@dataclass
class FileEntry:
    name: str
    size: int
    last_modified: Optional[datetime]
    content_type: Optional[str]


@dataclass
class FolderEntry:
    name: str
    item_count: int = 0
    last_modified: Optional[datetime] = None

    def touch(self, when: Optional[datetime]) -> None:
        if when is not None and (self.last_modified is None or when > self.last_modified):
            self.last_modified = when


@dataclass
class ListingStatistics:
    total_files: int = 0
    total_folders: int = 0
    total_size: int = 0
    latest_modified: Optional[datetime] = None

    @property
    def total_size_human(self) -> str:
        return format_size(self.total_size)


@dataclass
class DirectoryListing:
    path: str
    user_id: str
    files: list[FileEntry] = field(default_factory=list)
    folders: list[FolderEntry] = field(default_factory=list)
    statistics: ListingStatistics = field(default_factory=ListingStatistics)

    @property
    def folder_names(self) -> list[str]:
        return [f.name for f in self.folders]

    @property
    def file_names(self) -> list[str]:
        return [f.name for f in self.files]


def summarize_listing(prefix: str, objects: Iterable[ObjectInfo]) -> tuple[list[FileEntry], list[FolderEntry]]:
    """Split a prefix scan into the files and folders directly below ``prefix``."""
    files: list[FileEntry] = []
    folders: dict[str, FolderEntry] = {}

    for obj in objects:
        if not obj.key.startswith(prefix):
            continue
        relative = obj.key[len(prefix):]
        if not relative:
            continue

        head, sep, rest = relative.partition("/")

        if not sep:
            if head == FOLDER_MARKER:
                # Marker of the listed folder itself
                continue
            files.append(
                FileEntry(
                    name=head,
                    size=obj.size,
                    last_modified=obj.last_modified,
                    content_type=obj.content_type,
                )
            )
            continue

        folder = folders.get(head)
        if folder is None:
            folder = folders[head] = FolderEntry(name=head)
        folder.touch(obj.last_modified)

        # Markers and directory placeholders make the folder visible but are not items
        if obj.is_dir or not rest or is_folder_marker(rest):
            continue
        folder.item_count += 1

    return files, sorted(folders.values(), key=lambda f: f.name)


def list_directory(store: ObjectStore, user_id: str, path: str | None = "") -> DirectoryListing:
    """Immediate files and folders of ``path`` inside ``user_id``'s namespace."""
    normalized = normalize_path(path)
    prefix = user_prefix(user_id, normalized)
    files, folders = summarize_listing(prefix, store.list_objects(prefix, recursive=True))

    stats = ListingStatistics(total_files=len(files), total_folders=len(folders))
    for entry in files:
        stats.total_size += entry.size
        if entry.last_modified and (stats.latest_modified is None or entry.last_modified > stats.latest_modified):
            stats.latest_modified = entry.last_modified

    logger.debug("Listed %s: %d files, %d folders", prefix, len(files), len(folders))
    return DirectoryListing(
        path=normalized,
        user_id=user_id,
        files=files,
        folders=folders,
        statistics=stats,
    )


@dataclass
class FileNode:
    info: ObjectInfo

    @property
    def name(self) -> str:
        return self.info.key.rsplit("/", 1)[-1]


@dataclass
class FolderNode:
    name: str
    children: dict[str, "Node"] = field(default_factory=dict)

    def folder(self, name: str) -> Optional["FolderNode"]:
        child = self.children.get(name)
        return child if isinstance(child, FolderNode) else None


Node = Union[FileNode, FolderNode]


def build_tree(objects: Iterable[ObjectInfo]) -> FolderNode:
    """Full nested tree of every key, for administrative inspection.

    ``.keep`` markers are kept as ordinary leaves. When a key names both a
    file and a folder (``a`` and ``a/b``) the folder is kept.
    """
    root = FolderNode(name="")
    for obj in objects:
        parts = obj.key.split("/")
        current = root
        for part in parts[:-1]:
            if not part:
                continue
            child = current.children.get(part)
            if isinstance(child, FileNode):
                logger.warning("Tree: folder %r shadows file %s", part, child.info.key)
                child = None
            if child is None:
                child = current.children[part] = FolderNode(name=part)
            current = child

        leaf = parts[-1]
        if not leaf or obj.is_dir:
            continue
        if isinstance(current.children.get(leaf), FolderNode):
            logger.warning("Tree: skipping file %s, a folder of that name exists", obj.key)
            continue
        current.children[leaf] = FileNode(info=obj)
    return root


def count_files(node: Node) -> int:
    if isinstance(node, FileNode):
        return 1
    return sum(count_files(child) for child in node.children.values())
