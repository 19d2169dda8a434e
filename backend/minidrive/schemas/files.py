"""File and folder schemas for the virtual filesystem routes."""

from __future__ import annotations

from datetime import datetime
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class _Schema(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class FileItem(_Schema):
    """File metadata, name relative to the listed folder."""
    name: str
    size: int
    last_modified: Optional[datetime] = Field(default=None, alias="lastModified")
    content_type: Optional[str] = Field(default=None, alias="contentType")


class FolderItem(_Schema):
    name: str
    type: Literal["folder"] = "folder"
    item_count: int = Field(default=0, alias="itemCount")
    last_modified: Optional[datetime] = Field(default=None, alias="lastModified")


class ListingStatistics(_Schema):
    total_files: int = Field(alias="totalFiles")
    total_folders: int = Field(alias="totalFolders")
    total_size: int = Field(alias="totalSize")
    total_size_human: str = Field(alias="totalSizeHuman")
    latest_modified: Optional[datetime] = Field(default=None, alias="latestModified")


class ListResponse(_Schema):
    path: str
    user_id: str = Field(alias="userID")
    files: list[FileItem] = []
    folders: list[FolderItem] = []
    statistics: ListingStatistics


class FileInfoResponse(_Schema):
    name: str
    size: int
    last_modified: Optional[datetime] = Field(default=None, alias="lastModified")
    content_type: str = Field(alias="contentType")
    etag: Optional[str] = None
    version_id: Optional[str] = Field(default=None, alias="versionId")
    is_delete_marker: bool = Field(default=False, alias="isDeleteMarker")
    storage_class: Optional[str] = Field(default=None, alias="storageClass")
    metadata: dict[str, str] = {}


class UploadResponse(_Schema):
    key: str
    path: str
    filename: str
    size: int


class MultiUploadResponse(_Schema):
    uploaded: list[str] = []
    errors: list[str] = []
    total: int
    success: int
    failed: int


class DeleteResponse(_Schema):
    deleted: str


class MkdirResponse(_Schema):
    created: str
    path: str


class ObjectItem(_Schema):
    """Raw bucket entry for administrative listings."""
    key: str
    size: int
    last_modified: Optional[datetime] = Field(default=None, alias="lastModified")
    content_type: Optional[str] = Field(default=None, alias="contentType")


class TreeFile(_Schema):
    type: Literal["file"] = "file"
    name: str
    key: str
    size: int
    last_modified: Optional[datetime] = Field(default=None, alias="lastModified")
    content_type: Optional[str] = Field(default=None, alias="contentType")


class TreeFolder(_Schema):
    type: Literal["folder"] = "folder"
    name: str
    children: dict[str, TreeNode] = {}


TreeNode = Annotated[Union[TreeFile, TreeFolder], Field(discriminator="type")]

TreeFolder.model_rebuild()


class TreeResponse(_Schema):
    total_files: int = Field(alias="totalFiles")
    root: TreeFolder
