from __future__ import annotations

import time
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Iterator
from zoneinfo import ZoneInfo

from fastapi import Depends, FastAPI, Path, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from . import commands
from . import schema as schema_mod
from .auth import get_settings, require_auth
from .codec import FieldCodec
from .config import Settings, build_sync_config, load_settings
from .engine import SyncEngine
from .errors import ConfigMissingError, SheetUnavailableError, SyncError
from .logging_setup import RequestLogMiddleware, init_logging
from .metrics import LAT, REQS, router as metrics_router
from .oauth import resolve_sheet_credentials
from .sheets import GoogleSheet, SheetSurface

HTTP_STATUS = {
    commands.Status.SUCCESS: 200,
    commands.Status.PARTIAL_FAILURE: 207,
    commands.Status.VALIDATION_FAILED: 422,
    commands.Status.FATAL_ERROR: 502,
}
UNAVAILABLE = {ConfigMissingError.__name__, SheetUnavailableError.__name__}


class Health(BaseModel):
    status: str
    time: str


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = load_settings()
    init_logging(settings.LOG_LEVEL)
    app.state.settings = settings
    app.state.layout = schema_mod.load(settings.LAYOUT_JSON_PATH)
    yield


app = FastAPI(title="firesheet", version="0.1.0", lifespan=lifespan)
app.add_middleware(RequestLogMiddleware)
app.include_router(metrics_router())

origins = [o.strip() for o in load_settings().CORS_ALLOW_ORIGINS.split(",") if o.strip()]
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins or ["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)


def _respond(result: commands.CommandResult) -> JSONResponse:
    status_code = HTTP_STATUS[result.status]
    if result.details.get("error") in UNAVAILABLE:
        status_code = 503
    return JSONResponse(result.model_dump(mode="json"), status_code=status_code)


@app.exception_handler(SyncError)
async def _sync_error(request: Request, exc: SyncError):
    return _respond(commands.fatal(exc))


@app.middleware("http")
async def _metrics(request: Request, call_next):
    method = request.method
    path = request.url.path
    start = time.time()
    status_code = 500
    try:
        response = await call_next(request)
        status_code = response.status_code
        return response
    finally:
        duration = time.time() - start
        REQS.labels(method, path, str(status_code)).inc()
        LAT.labels(method, path).observe(duration)


def get_engine(request: Request, settings: Settings = Depends(get_settings)) -> Iterator[SyncEngine]:
    config = build_sync_config(settings, request.app.state.layout)
    tz = ZoneInfo(settings.DISPLAY_TIMEZONE) if settings.DISPLAY_TIMEZONE else None
    engine = SyncEngine(config, codec=FieldCodec(tz, settings.TIMESTAMP_FORMAT))
    try:
        yield engine
    finally:
        engine.close()


def _google_sheet(settings: Settings, write: bool) -> SheetSurface:
    if not settings.GOOGLE_SHEET_ID:
        raise SheetUnavailableError("GOOGLE_SHEET_ID is not configured")
    creds = resolve_sheet_credentials(settings, write=write)
    if not creds:
        raise SheetUnavailableError("Google credentials not configured")
    return GoogleSheet(creds, settings.GOOGLE_SHEET_ID, settings.GOOGLE_WORKSHEET)


def get_writable_sheet(settings: Settings = Depends(get_settings)) -> SheetSurface:
    return _google_sheet(settings, write=True)


def get_readable_sheet(settings: Settings = Depends(get_settings)) -> SheetSurface:
    return _google_sheet(settings, write=False)


@app.get("/health", response_model=Health)
def health():
    return Health(status="ok", time=datetime.utcnow().isoformat())


@app.post("/commands/load", dependencies=[Depends(require_auth)])
def load_data(
    engine: SyncEngine = Depends(get_engine),
    sheet: SheetSurface = Depends(get_writable_sheet),
):
    return _respond(commands.load_data(engine, sheet))


@app.post("/commands/write-row/{row_number}", dependencies=[Depends(require_auth)])
def write_selected_row(
    row_number: int = Path(..., ge=1),
    engine: SyncEngine = Depends(get_engine),
    sheet: SheetSurface = Depends(get_readable_sheet),
):
    return _respond(commands.write_selected_row(engine, sheet, row_number))


@app.post("/commands/write-all", dependencies=[Depends(require_auth)])
def write_all_rows(
    engine: SyncEngine = Depends(get_engine),
    sheet: SheetSurface = Depends(get_readable_sheet),
):
    return _respond(commands.write_all_rows(engine, sheet))


@app.get("/commands/validate", dependencies=[Depends(require_auth)])
def validate_columns(
    engine: SyncEngine = Depends(get_engine),
    sheet: SheetSurface = Depends(get_readable_sheet),
):
    return _respond(commands.validate_columns(engine, sheet))
