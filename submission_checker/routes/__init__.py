"""API routers registered with the FastAPI app.

Routers:
- files: upload-once storage of claim XML, spreadsheets and metadata
- checkers: availability, runs, invalid rows and XLSX export
"""

from .checkers import router as checkers_router
from .files import router as files_router

__all__ = ["checkers_router", "files_router"]
