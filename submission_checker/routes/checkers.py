"""Checker routes: availability, runs, invalid rows and export."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Request, Response

from ..engine.models import RunResult
from ..errors import CheckerError
from ..export import export_workbook, invalid_rows
from ..ratelimit import READ_LIMIT, RUN_LIMIT, limiter
from ..schemas import CheckerAvailability, InvalidRowsResponse, RunAllResponse, RunResponse
from ..session import UploadSession
from ..utils import sanitize_filename
from .deps import get_session, http_error

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/checkers", tags=["checkers"])

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def _stored_result(session: UploadSession, name: str) -> RunResult:
    try:
        result = session.result(name)
    except CheckerError as e:
        raise http_error(e) from e
    if result is None:
        raise HTTPException(status_code=404, detail=f"Checker '{name}' has not been run on the current files")
    return result


@router.get("", response_model=list[CheckerAvailability])
@limiter.limit(READ_LIMIT)
def list_checkers(request: Request, session: UploadSession = Depends(get_session)):
    """Every checker with whether its required files are uploaded."""
    return [CheckerAvailability(**status) for status in session.availability()]


@router.post("/run-all", response_model=RunAllResponse)
@limiter.limit(RUN_LIMIT)
def run_all_checkers(request: Request, session: UploadSession = Depends(get_session)):
    """Run every checker whose files are present.

    A checker that fails is reported under ``errors``; the others still run.
    """
    try:
        batch = session.run_all()
    except CheckerError as e:
        raise http_error(e) from e
    return RunAllResponse.from_batch(batch)


@router.post("/{name}/run", response_model=RunResponse)
@limiter.limit(RUN_LIMIT)
def run_one_checker(request: Request, name: str, session: UploadSession = Depends(get_session)):
    """Run one checker on the current uploads."""
    try:
        result = session.run(name)
    except CheckerError as e:
        logger.warning(f"{name}: run failed: {e}")
        raise http_error(e) from e
    return RunResponse.from_result(result)


@router.get("/{name}/invalid", response_model=InvalidRowsResponse)
@limiter.limit(READ_LIMIT)
def get_invalid_rows(request: Request, name: str, session: UploadSession = Depends(get_session)):
    """Invalid rows of the checker's latest run."""
    result = _stored_result(session, name)
    return InvalidRowsResponse(checker=name, rows=invalid_rows(result))


@router.get("/{name}/export")
@limiter.limit(READ_LIMIT)
def export_invalid_rows(request: Request, name: str, session: UploadSession = Depends(get_session)):
    """Download the invalid rows of the latest run as XLSX."""
    result = _stored_result(session, name)
    filename = sanitize_filename(f"{name}_invalid.xlsx")
    return Response(
        content=export_workbook(result),
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": f"attachment; filename={filename}"},
    )
