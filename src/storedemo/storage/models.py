from __future__ import annotations
from pydantic import BaseModel, ConfigDict, Field
from typing import Optional
from datetime import datetime

# Entries of a ListObjectsV2 "Contents" page, as returned by botocore.
class S3ListEntry(BaseModel):
    model_config = ConfigDict(extra='ignore', populate_by_name=True)
    key: str = Field(..., alias="Key", min_length=1, description="Full object key inside the bucket.")
    size: int = Field(..., alias="Size", ge=0, description="Object size in bytes.")
    last_modified: Optional[datetime] = Field(None, alias="LastModified", description="Last modification time reported by S3.")
    e_tag: Optional[str] = Field(None, alias="ETag", description="Entity tag, quoted as S3 returns it.")

class S3ListPage(BaseModel):
    model_config = ConfigDict(extra='ignore', populate_by_name=True)
    contents: list[S3ListEntry] = Field(default_factory=list, alias="Contents", description="Objects on this page; absent when the prefix has no matches.")
    is_truncated: bool = Field(False, alias="IsTruncated", description="True when another page follows.")
    key_count: Optional[int] = Field(None, alias="KeyCount", description="Number of keys on this page.")
