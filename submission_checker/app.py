"""FastAPI app for the submission checker.

Files are uploaded once per session and shared by every checker; see
``routes/files.py`` and ``routes/checkers.py``.
"""

from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from . import __version__
from .checkers import checker_names
from .config import METADATA_DIR, configure_logging
from .ratelimit import limiter
from .routes import checkers_router, files_router
from .session import UploadSession

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create the upload session on startup."""
    configure_logging()
    if getattr(app.state, "session", None) is None:
        app.state.session = UploadSession(metadata_dir=METADATA_DIR)
    logger.info(f"Submission checker ready with checkers: {', '.join(checker_names())}")
    yield


app = FastAPI(
    title="Submission Checker",
    description="Cross-validates claim XML submissions against reference datasets",
    version=__version__,
    lifespan=lifespan,
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# CORS configuration
CORS_ORIGINS = [
    origin.strip()
    for origin in os.getenv(
        "CORS_ORIGINS",
        "http://localhost:3000,http://127.0.0.1:3000,http://localhost:5173,http://127.0.0.1:5173",
    ).split(",")
    if origin.strip()
]

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(files_router)
app.include_router(checkers_router)


@app.get("/health")
async def health_check(request: Request):
    """Health check endpoint."""
    session = getattr(request.app.state, "session", None)
    return {
        "status": "healthy",
        "version": __version__,
        "checkers": list(checker_names()),
        "uploads": [stored.kind for stored in session.files()] if session is not None else [],
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8080)
