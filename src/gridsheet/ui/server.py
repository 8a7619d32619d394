"""FastAPI server for the gridsheet browser UI.

Routes are thin wrappers over the shared :class:`SheetService`.  They are
``async`` so every command runs on the event-loop thread, one at a time.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

from fastapi import APIRouter, FastAPI, HTTPException
from fastapi.responses import FileResponse
from fastapi.staticfiles import StaticFiles
from pydantic import BaseModel

from gridsheet.errors import (
    GridsheetError,
    InvalidContentError,
    InvalidNameError,
    PersistenceError,
)
from gridsheet.ui.service import (
    CloseVetoedError,
    DocumentClosedError,
    SavePathRequiredError,
    SheetService,
)

# The singleton service is set at startup by ``create_app()``.
_service: SheetService | None = None


def create_app(file: Path | None = None, config: dict[str, Any] | None = None) -> FastAPI:
    """Create the FastAPI application for one spreadsheet window.

    Args:
        file: Spreadsheet to open, or None for a new document.
        config: Settings overriding ``gridsheet.yaml``.

    Returns:
        Configured FastAPI instance.
    """
    global _service
    _service = SheetService(file=file, config=config)

    from gridsheet import __version__

    app = FastAPI(title="gridsheet", version=__version__)

    static_dir = Path(__file__).parent / "static"
    app.mount("/static", StaticFiles(directory=str(static_dir)), name="static")

    app.include_router(_api_router())

    @app.get("/")
    async def index() -> FileResponse:
        return FileResponse(str(static_dir / "index.html"))

    return app


def _svc() -> SheetService:
    """Get the singleton service, raising if not initialised."""
    if _service is None:
        raise HTTPException(500, "Service not initialised")
    return _service


def _http_error(exc: Exception) -> HTTPException:
    """Translate a service failure into the HTTP error the browser shows."""
    if isinstance(exc, InvalidContentError):
        detail = {"title": exc.title, "message": exc.help_text, "reason": exc.reason}
        return HTTPException(400, detail)
    if isinstance(exc, (CloseVetoedError, SavePathRequiredError, DocumentClosedError)):
        return HTTPException(409, {"title": exc.title, "message": str(exc)})
    if isinstance(exc, PersistenceError):
        return HTTPException(500, {"title": exc.title, "message": str(exc)})
    if isinstance(exc, (InvalidNameError, GridsheetError)):
        return HTTPException(400, {"title": exc.title, "message": str(exc)})
    return HTTPException(400, {"title": "Error", "message": str(exc)})


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class SelectRequest(BaseModel):
    name: str | None = None
    column: int | None = None
    row: int | None = None


class MoveRequest(BaseModel):
    direction: str


class CommitRequest(BaseModel):
    content: str


class SaveRequest(BaseModel):
    path: str | None = None


class SaveAsRequest(BaseModel):
    path: str = ""


class CloseRequest(BaseModel):
    decision: str | None = None
    path: str | None = None


class OpenRequest(BaseModel):
    file: str
    decision: str | None = None
    path: str | None = None


# ---------------------------------------------------------------------------
# Router
# ---------------------------------------------------------------------------


def _api_router() -> APIRouter:
    router = APIRouter(prefix="/api")

    @router.get("/state")
    async def get_state() -> dict[str, Any]:
        return _svc().get_state()

    @router.get("/help")
    async def get_help() -> dict[str, str]:
        return _svc().help()

    @router.post("/select")
    async def select(req: SelectRequest) -> dict[str, Any]:
        try:
            return _svc().select(req.name, req.column, req.row)
        except (GridsheetError, ValueError) as exc:
            raise _http_error(exc)

    @router.post("/move")
    async def move(req: MoveRequest) -> dict[str, Any]:
        try:
            return _svc().move(req.direction)
        except (GridsheetError, ValueError) as exc:
            raise _http_error(exc)

    @router.post("/commit")
    async def commit(req: CommitRequest) -> dict[str, Any]:
        try:
            return _svc().commit(req.content)
        except (GridsheetError, ValueError) as exc:
            raise _http_error(exc)

    # -- Document --

    @router.post("/save")
    async def save(req: SaveRequest) -> dict[str, Any]:
        try:
            return _svc().save(req.path)
        except (GridsheetError, ValueError) as exc:
            raise _http_error(exc)

    @router.post("/save-as")
    async def save_as(req: SaveAsRequest) -> dict[str, Any]:
        try:
            return _svc().save_as(req.path)
        except (GridsheetError, ValueError) as exc:
            raise _http_error(exc)

    @router.post("/close")
    async def close(req: CloseRequest) -> dict[str, Any]:
        try:
            return _svc().close(req.decision, req.path)
        except (GridsheetError, ValueError) as exc:
            raise _http_error(exc)

    @router.post("/new")
    async def new_document(req: CloseRequest) -> dict[str, Any]:
        try:
            return _svc().new_document(req.decision, req.path)
        except (GridsheetError, ValueError) as exc:
            raise _http_error(exc)

    @router.post("/open")
    async def open_document(req: OpenRequest) -> dict[str, Any]:
        if not req.file:
            raise HTTPException(400, {"title": "Open", "message": "A file path is required"})
        try:
            return _svc().open_document(req.file, req.decision, req.path)
        except (GridsheetError, ValueError) as exc:
            raise _http_error(exc)

    return router
