"""Pydantic models for s3clone API payloads.

Field names follow the JSON the storage service emits; unknown response
fields are ignored so newer servers stay compatible.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class _Response(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class _Input(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


# ---------------- buckets -----------------


class Bucket(_Response):
    """A storage bucket."""

    bucket_id: str
    name: str
    owner_id: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class BucketList(_Response):
    count: int = 0
    buckets: List[Bucket] = Field(default_factory=list)


class BucketStats(_Response):
    bucket_id: str
    total_files: int = 0
    total_size_bytes: int = 0
    last_updated: Optional[datetime] = None


class CreateBucketInput(_Input):
    name: str
    owner_id: Optional[str] = None


class UpdateBucketInput(_Input):
    name: Optional[str] = None


class PolicyResponse(_Response):
    """Stored bucket policy; ``policy`` is the raw policy document."""

    bucket_id: Optional[str] = None
    policy: Optional[str] = None
    name: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    policy_version: Optional[int] = None


class UpdatePolicyInput(_Input):
    effect: Literal["Allow", "Deny"]
    actions: List[str] = Field(min_length=1)
    resources: List[str] = Field(min_length=1)
    principals: List[str] = Field(min_length=1)
    version: Optional[str] = None
    conditions: Optional[Dict[str, Any]] = None


class VersioningInput(_Input):
    enabled: bool


class VersioningOutput(_Response):
    enabled: bool = False
    status: str = ""  # "Enabled", "Suspended" or ""


class LifecycleRule(_Input):
    id: str
    prefix: str = ""
    expiration_days: int
    status: Optional[Literal["Enabled", "Disabled"]] = None


class LifecycleInput(_Input):
    rules: List[LifecycleRule]


# ---------------- files -----------------


class FileInfo(_Response):
    """Metadata of an uploaded object."""

    file_id: str
    bucket_id: Optional[str] = None
    key: str
    size: int = 0
    mime_type: Optional[str] = None
    metadata: Dict[str, str] = Field(default_factory=dict)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    version: Optional[int] = None


class FileList(_Response):
    files: List[FileInfo] = Field(default_factory=list)


class UpdateFileMetadataInput(_Input):
    metadata: Dict[str, str]


class CopyFileInput(_Input):
    destination_bucket: str
    new_key: Optional[str] = None


class MoveFileInput(_Input):
    destination_bucket: str
    new_key: Optional[str] = None


# ---------------- errors -----------------


class ErrorResponse(_Response):
    """Error body returned by the service alongside non-2xx statuses."""

    error: Optional[str] = None
    message: Optional[str] = None
    code: Optional[str] = None
