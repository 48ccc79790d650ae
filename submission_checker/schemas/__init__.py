"""Pydantic request/response models for the submission checker API."""

from .checkers import (
    CheckerAvailability,
    ClaimSummaryModel,
    InvalidRowsResponse,
    OutcomeModel,
    RunAllResponse,
    RunResponse,
)
from .files import FileListResponse, UploadInfo

__all__ = [
    "CheckerAvailability",
    "ClaimSummaryModel",
    "FileListResponse",
    "InvalidRowsResponse",
    "OutcomeModel",
    "RunAllResponse",
    "RunResponse",
    "UploadInfo",
]
