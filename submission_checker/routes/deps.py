"""Dependencies and error mapping shared by the routers."""

from __future__ import annotations

from fastapi import HTTPException, Request

from ..errors import (
    CheckerError,
    MalformedDocument,
    MissingReferenceDataset,
    RunCancelled,
    UnknownChecker,
    UnsupportedDocument,
)
from ..session import UploadSession


def get_session(request: Request) -> UploadSession:
    return request.app.state.session


def http_error(error: CheckerError) -> HTTPException:
    """Map a run-level failure to the HTTP status the client sees."""
    if isinstance(error, UnknownChecker):
        status = 404
    elif isinstance(error, (MissingReferenceDataset, UnsupportedDocument)):
        status = 400
    elif isinstance(error, MalformedDocument):
        status = 422
    elif isinstance(error, RunCancelled):
        status = 409
    else:
        status = 500
    return HTTPException(status_code=status, detail=str(error))
