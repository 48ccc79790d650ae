"""Schemas for upload endpoints."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel

from ..session import StoredUpload


class UploadInfo(BaseModel):
    kind: str
    filename: str
    size: int
    digest: str
    uploaded_at: datetime

    @classmethod
    def from_stored(cls, stored: StoredUpload) -> UploadInfo:
        return cls(
            kind=stored.kind,
            filename=stored.filename,
            size=stored.size,
            digest=stored.digest,
            uploaded_at=stored.uploaded_at,
        )


class FileListResponse(BaseModel):
    files: list[UploadInfo]
    generation: int
