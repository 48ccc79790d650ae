"""Upload routes.

Each file kind is uploaded once and reused by every checker that reads
it. Any change to the uploads cancels runs still in progress.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, File, HTTPException, Request, UploadFile

from ..config import MAX_UPLOAD_BYTES
from ..errors import CheckerError
from ..ratelimit import READ_LIMIT, UPLOAD_LIMIT, limiter
from ..schemas import FileListResponse, UploadInfo
from ..session import UPLOAD_KINDS, UploadSession
from ..utils import sanitize_filename
from .deps import get_session, http_error

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/files", tags=["files"])


def _check_kind(kind: str) -> None:
    if kind not in UPLOAD_KINDS:
        raise HTTPException(
            status_code=404,
            detail=f"Unknown file kind '{kind}'. Allowed: {', '.join(UPLOAD_KINDS)}",
        )


@router.post("/{kind}", response_model=UploadInfo)
@limiter.limit(UPLOAD_LIMIT)
async def upload_file(
    request: Request,
    kind: str,
    file: UploadFile = File(...),
    session: UploadSession = Depends(get_session),
):
    """Upload (or replace) the file of one kind.

    The file is parsed immediately; a malformed file is rejected with 422
    and the previous upload of that kind is kept.
    """
    _check_kind(kind)
    filename = sanitize_filename(file.filename)

    content = await file.read()
    if len(content) > MAX_UPLOAD_BYTES:
        raise HTTPException(
            status_code=413,
            detail=f"File too large. Maximum size is {MAX_UPLOAD_BYTES // (1024 * 1024)}MB",
        )
    if not content:
        raise HTTPException(status_code=400, detail="Uploaded file is empty")

    try:
        stored = session.upload(kind, filename, content)
    except CheckerError as e:
        logger.warning(f"Rejected {kind} upload '{filename}': {e}")
        raise http_error(e) from e

    return UploadInfo.from_stored(stored)


@router.get("", response_model=FileListResponse)
@limiter.limit(READ_LIMIT)
async def list_files(request: Request, session: UploadSession = Depends(get_session)):
    """List the current uploads."""
    return FileListResponse(
        files=[UploadInfo.from_stored(stored) for stored in session.files()],
        generation=session.generation,
    )


@router.delete("/{kind}")
@limiter.limit(UPLOAD_LIMIT)
async def delete_file(request: Request, kind: str, session: UploadSession = Depends(get_session)):
    """Remove the upload of one kind."""
    _check_kind(kind)
    if not session.remove(kind):
        raise HTTPException(status_code=404, detail=f"No {kind} file uploaded")
    return {"status": "deleted", "kind": kind}
