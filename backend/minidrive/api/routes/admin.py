"""Admin routes for whole-bucket inspection across all users."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends
from fastapi.concurrency import run_in_threadpool

from minidrive.api.deps import get_object_store, require_admin
from minidrive.schemas.files import ObjectItem, TreeFile, TreeFolder, TreeResponse
from minidrive.services.namespace import FileNode, FolderNode, build_tree, count_files
from minidrive.services.object_store import ObjectStore
from minidrive.services.token_service import Identity

logger = logging.getLogger(__name__)
router = APIRouter()


def _tree_schema(node: FolderNode) -> TreeFolder:
    children: dict[str, TreeFile | TreeFolder] = {}
    for name, child in node.children.items():
        match child:
            case FolderNode():
                children[name] = _tree_schema(child)
            case FileNode(info=info):
                children[name] = TreeFile(
                    name=name,
                    key=info.key,
                    size=info.size,
                    last_modified=info.last_modified,
                    content_type=info.content_type,
                )
    return TreeFolder(name=node.name, children=children)


@router.get("/objects", response_model=list[ObjectItem])
async def list_all_objects(
    admin: Identity = Depends(require_admin),
    store: ObjectStore = Depends(get_object_store),
):
    """Every key in the bucket, in store order."""
    objects = await run_in_threadpool(lambda: list(store.list_objects("", recursive=True)))
    return [
        ObjectItem(
            key=o.key,
            size=o.size,
            last_modified=o.last_modified,
            content_type=o.content_type,
        )
        for o in objects
    ]


@router.get("/tree", response_model=TreeResponse)
async def folder_tree(
    admin: Identity = Depends(require_admin),
    store: ObjectStore = Depends(get_object_store),
):
    """Nested folder/file tree of the whole bucket, markers included."""
    objects = await run_in_threadpool(lambda: list(store.list_objects("", recursive=True)))
    root = build_tree(objects)
    logger.info("Admin %s inspected bucket tree (%d objects)", admin.user_id, len(objects))
    return TreeResponse(total_files=count_files(root), root=_tree_schema(root))
