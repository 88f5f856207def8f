"""FastAPI application exposing the storage endpoints."""

from __future__ import annotations

import logging
import re
from typing import AsyncIterator
from urllib.parse import quote

import aiofiles
from fastapi import Depends, FastAPI, HTTPException, Query, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import HTMLResponse, JSONResponse, StreamingResponse
from pydantic import BaseModel, ConfigDict, Field
from starlette.background import BackgroundTask
from starlette.datastructures import UploadFile as StarletteUploadFile
from starlette.exceptions import HTTPException as StarletteHTTPException

from .config import Settings, get_settings
from .middleware import StorageCORSMiddleware
from .storage.errors import StorageError
from .storage.files import FileOperations
from .storage.paths import PathResolver
from .system.models import DiskInfo, OsInfo
from .system.service import SystemInfoError, SystemInfoService

logger = logging.getLogger(__name__)

app = FastAPI(title="Storage API", version="0.1.0")

app.add_middleware(
    StorageCORSMiddleware,
    allow_origins=["*"],
    allow_methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type"],
)

_STATUS_BY_KIND = {
    "traversal_rejected": status.HTTP_400_BAD_REQUEST,
    "not_found": status.HTTP_404_NOT_FOUND,
    "not_a_file": status.HTTP_400_BAD_REQUEST,
    "io_failure": status.HTTP_500_INTERNAL_SERVER_ERROR,
}

_PATH_SEPARATORS = re.compile(r"[/\\]")


class UploadResponse(BaseModel):
    path: str
    size: int


class RenameRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    source: str = Field(..., alias="from", min_length=1, description="Current path relative to the storage root.")
    destination: str = Field(..., alias="to", min_length=1, description="New path relative to the storage root.")


class RenameResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    source: str = Field(..., alias="from")
    destination: str = Field(..., alias="to")


class DeleteResponse(BaseModel):
    deleted: str


# ------------------------------------------------------------ error envelope
@app.exception_handler(StorageError)
async def storage_error_handler(request: Request, exc: StorageError) -> JSONResponse:
    status_code = _STATUS_BY_KIND.get(exc.kind, status.HTTP_500_INTERNAL_SERVER_ERROR)
    return JSONResponse({"error": exc.message}, status_code=status_code)


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    # Unhandled method/path pairs are all "Not Found", including known paths
    if exc.status_code == status.HTTP_405_METHOD_NOT_ALLOWED:
        return JSONResponse({"error": "Not Found"}, status_code=status.HTTP_404_NOT_FOUND)
    return JSONResponse({"error": exc.detail}, status_code=exc.status_code, headers=exc.headers)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    fields = ", ".join(str(error["loc"][-1]) for error in exc.errors() if error.get("loc"))
    return JSONResponse(
        {"error": f"Invalid request: {fields}" if fields else "Invalid request"},
        status_code=status.HTTP_400_BAD_REQUEST,
    )


# -------------------------------------------------------------- dependencies
async def get_resolver(settings: Settings = Depends(get_settings)) -> PathResolver:
    if not hasattr(app.state, "path_resolver"):
        app.state.path_resolver = PathResolver(settings.storage_root)
    return app.state.path_resolver


async def get_file_operations(settings: Settings = Depends(get_settings)) -> FileOperations:
    if not hasattr(app.state, "file_operations"):
        app.state.file_operations = FileOperations(chunk_size=settings.chunk_size)
    return app.state.file_operations


async def get_system_info() -> SystemInfoService:
    if not hasattr(app.state, "system_info"):
        app.state.system_info = SystemInfoService()
    return app.state.system_info


async def _upload_chunks(upload: StarletteUploadFile, chunk_size: int) -> AsyncIterator[bytes]:
    while True:
        chunk = await upload.read(chunk_size)
        if not chunk:
            break
        yield chunk


def _attachment_header(raw_path: str) -> str:
    name = _PATH_SEPARATORS.split(raw_path)[-1] or "download"
    quoted = quote(name)
    if quoted != name:
        return f"attachment; filename*=utf-8''{quoted}"
    return f'attachment; filename="{name}"'


# -------------------------------------------------------------------- routes
@app.get("/healthz")
async def healthcheck() -> dict[str, str]:
    return {"status": "ok"}


@app.get("/api/disk", response_model=DiskInfo, response_model_by_alias=True)
def disk(
    resolver: PathResolver = Depends(get_resolver),
    system: SystemInfoService = Depends(get_system_info),
):
    try:
        return system.disk_info(resolver.root)
    except SystemInfoError as exc:
        raise HTTPException(status_code=500, detail=f"Disk space check failed: {exc}") from exc


@app.get("/api/os", response_model=OsInfo)
async def os_info(system: SystemInfoService = Depends(get_system_info)):
    return system.os_info()


@app.post("/api/upload", response_model=UploadResponse)
async def upload(
    request: Request,
    resolver: PathResolver = Depends(get_resolver),
    files: FileOperations = Depends(get_file_operations),
    settings: Settings = Depends(get_settings),
):
    if "multipart/form-data" not in request.headers.get("content-type", ""):
        raise HTTPException(status_code=400, detail="Content-Type must be multipart/form-data")

    form = await request.form()
    path = form.get("path")
    file = form.get("file")
    if not isinstance(path, str) or not path:
        raise HTTPException(status_code=400, detail="Missing or invalid form field: path")
    if not isinstance(file, StarletteUploadFile):
        raise HTTPException(status_code=400, detail="Missing or invalid form field: file")

    target = resolver.resolve(path)
    try:
        size = await files.store(target, _upload_chunks(file, settings.chunk_size))
    finally:
        await form.close()
    return UploadResponse(path=path, size=size)


@app.patch("/api/rename", response_model=RenameResponse, response_model_by_alias=True)
async def rename(
    request: Request,
    resolver: PathResolver = Depends(get_resolver),
    files: FileOperations = Depends(get_file_operations),
):
    if "application/json" not in request.headers.get("content-type", ""):
        raise HTTPException(status_code=400, detail="Content-Type must be application/json")
    try:
        payload = RenameRequest.model_validate(await request.json())
    except ValueError as exc:
        raise HTTPException(status_code=400, detail="Body must include 'from' and 'to' paths") from exc

    source = resolver.resolve(payload.source)
    destination = resolver.resolve(payload.destination)
    await files.rename(source, destination)
    return RenameResponse(source=payload.source, destination=payload.destination)


@app.get("/api/download")
async def download(
    path: str | None = Query(default=None),
    resolver: PathResolver = Depends(get_resolver),
    files: FileOperations = Depends(get_file_operations),
):
    if not path:
        raise HTTPException(status_code=400, detail="Query parameter 'path' is required")

    stream = await files.read_stream(resolver.resolve(path))
    return StreamingResponse(
        stream,
        media_type="application/octet-stream",
        headers={
            "Content-Disposition": _attachment_header(path),
            "Content-Length": str(stream.size),
        },
        background=BackgroundTask(stream.aclose),
    )


@app.delete("/api/file", response_model=DeleteResponse)
async def delete_file(
    path: str | None = Query(default=None),
    resolver: PathResolver = Depends(get_resolver),
    files: FileOperations = Depends(get_file_operations),
):
    if not path:
        raise HTTPException(status_code=400, detail="Query parameter 'path' is required")

    await files.delete(resolver.resolve(path))
    return DeleteResponse(deleted=path)


@app.get("/dev-ui", response_class=HTMLResponse)
@app.get("/dev-ui/", response_class=HTMLResponse, include_in_schema=False)
async def dev_ui(settings: Settings = Depends(get_settings)):
    try:
        async with aiofiles.open(settings.dev_ui_path, "r", encoding="utf-8") as fh:
            html = await fh.read()
    except OSError as exc:
        logger.debug("Dev UI unavailable at %s: %s", settings.dev_ui_path, exc)
        raise HTTPException(status_code=404, detail="Dev UI not found") from exc
    return HTMLResponse(html)
