import asyncio
import logging
import re
from pathlib import PurePath
from urllib.parse import quote

from fastapi import FastAPI, File, Form, Header, HTTPException, UploadFile
from fastapi.responses import JSONResponse, Response

from converter_api import config
from converter_api.conversion import (
    KNOWN_PAIRS,
    ConversionError,
    ConversionService,
    UnsupportedConversion,
    normalize_format,
)
from converter_api.conversion.adapters import Argon2Security, LocalHistoryStorage
from converter_api.conversion.documents import PdfDocumentConverter
from converter_api.conversion.office import LibreOfficeRenderer
from converter_api.conversion.raster import PdfRasterizer
from converter_api.logging_config import setup_logging

logger = logging.getLogger(__name__)

app = FastAPI(
    title="Document Converter API",
    version=config.DOC_SERVICE_VERSION,
    description=(
        "RESTful API for converting office documents, PDFs and images "
        "between formats."
    ),
)

SERVICE: ConversionService | None = None

CHUNK = 1024 * 1024


def _build_service() -> ConversionService:
    renderer = LibreOfficeRenderer(
        config.SOFFICE_BINARY,
        timeout=config.OFFICE_TIMEOUT_SEC,
        max_concurrent=config.MAX_CONCURRENT_RENDERS,
    )
    rasterizer = PdfRasterizer(dpi=config.RASTER_DPI, jpeg_quality=config.JPEG_QUALITY)
    return ConversionService(
        renderer=renderer,
        rasterizer=rasterizer,
        documents=PdfDocumentConverter(),
        history=LocalHistoryStorage(str(config.DATA_DIR)),
        security=Argon2Security(),
    )


def _service() -> ConversionService:
    if SERVICE is None:
        raise HTTPException(status_code=503, detail={"code": "not_ready", "message": "service not started"})
    return SERVICE


def _error(status_code: int, code: str, message: str) -> HTTPException:
    return HTTPException(status_code=status_code, detail={"code": code, "message": message})


def _attachment(filename: str) -> str:
    # RFC 5987 form keeps non-ASCII upload names intact
    ascii_name = filename.encode("ascii", "replace").decode("ascii").replace('"', "")
    return f"attachment; filename=\"{ascii_name}\"; filename*=UTF-8''{quote(filename)}"


def _validate_bearer_token(auth_header: str | None) -> str:
    if not auth_header:
        raise _error(401, "unauthorized", "missing bearer token")
    scheme, _, rest = auth_header.partition(" ")
    if scheme.lower() != "bearer" or not rest:
        raise _error(401, "unauthorized", "missing bearer token")
    raw_token = rest.strip()
    if not re.fullmatch(r"[A-Za-z0-9_-]+={0,2}", raw_token):
        raise _error(401, "unauthorized", "malformed token")
    token = raw_token.rstrip("=")
    # 32 random bytes -> 43 unpadded base64url characters
    if len(token) != 43:
        raise _error(401, "unauthorized", "malformed token")
    return token


async def _read_upload(file: UploadFile, max_upload_mb: int) -> bytes:
    max_bytes = max_upload_mb * 1024 * 1024
    buf = bytearray()
    while True:
        chunk = await file.read(CHUNK)
        if not chunk:
            break
        buf.extend(chunk)
        if len(buf) > max_bytes:
            raise _error(413, "payload_too_large", f"upload exceeds {max_upload_mb} MB")
    return bytes(buf)


@app.on_event("startup")
async def _startup() -> None:
    setup_logging(config.LOG_LEVEL)
    global SERVICE
    SERVICE = _build_service()
    logger.info("converter service started")


@app.on_event("shutdown")
async def _shutdown() -> None:
    global SERVICE
    SERVICE = None


@app.get("/health")
def health() -> dict[str, str]:
    """Basic health check endpoint."""
    return {"status": "ok"}


@app.get("/api/conversion/formats")
def list_formats() -> dict[str, object]:
    """All supported (source, target) pairs and the route serving each."""
    pairs = [
        {"source": source, "target": target, "route": route.value}
        for (source, target), route in KNOWN_PAIRS.items()
    ]
    return {"pairs": pairs}


@app.post("/api/conversion/convert")
async def convert_file(
    file: UploadFile = File(...),
    targetFormat: str = Form(...),
    sourceFormat: str | None = Form(None),
    keepHistory: bool = Form(False),
) -> Response:
    """Convert an uploaded document and return the converted bytes.

    `sourceFormat` defaults to the upload's file extension. With
    `keepHistory`, the result is also stored and the record id and a
    one-time access token are returned in `X-History-Id` / `X-History-Token`.
    """
    service = _service()
    file_name = file.filename or "upload"
    data = await _read_upload(file, config.MAX_UPLOAD_MB)
    if not data:
        raise _error(400, "empty_file", "no file content uploaded")

    source = sourceFormat or PurePath(file_name).suffix

    try:
        result = await service.convert(data, file_name, source, targetFormat)
    except UnsupportedConversion as e:
        raise _error(400, "unsupported_conversion", e.message)
    except ConversionError:
        logger.exception("conversion failed: %s", file_name)
        raise _error(500, "conversion_failed", "conversion failed")

    headers = {"Content-Disposition": _attachment(result.download_name(file_name))}
    if keepHistory and service.history_enabled:
        pair = (normalize_format(source), normalize_format(targetFormat))
        try:
            record, token = await asyncio.to_thread(service.save_history, file_name, pair, result)
        except OSError:
            logger.exception("could not save history for %s", file_name)
        else:
            headers["X-History-Id"] = record.id
            headers["X-History-Token"] = token

    return Response(content=result.data, media_type=result.mime_type, headers=headers)


def _authorized_record(record_id: str, authorization: str | None):
    token = _validate_bearer_token(authorization)
    service = _service()
    try:
        record = service.load_history(record_id)
    except FileNotFoundError:
        raise _error(404, "not_found", "history record not found")
    if not service.verify_token(record, token):
        raise _error(403, "forbidden", "invalid token")
    return service, record


@app.get("/api/conversion/history/{record_id}")
async def get_history(record_id: str, authorization: str | None = Header(None)) -> JSONResponse:
    _, record = _authorized_record(record_id, authorization)
    return JSONResponse(content=record.public())


@app.get("/api/conversion/download/{record_id}")
async def download_file(record_id: str, authorization: str | None = Header(None)) -> Response:
    service, record = _authorized_record(record_id, authorization)
    try:
        data = service.read_history_file(record)
    except FileNotFoundError:
        raise _error(404, "not_found", "converted file was removed")
    headers = {"Content-Disposition": _attachment(record.download_name())}
    return Response(content=data, media_type=str(record.data.get("mime_type")), headers=headers)


def run() -> None:
    """Run a development ASGI server using uvicorn.

    Exposes the app at host:port (default 0.0.0.0:8080). Set PORT env var to override.
    """
    import uvicorn

    uvicorn.run("converter_api.webapi:app", host=config.HOST, port=config.PORT, reload=config.RELOAD)


if __name__ == "__main__":
    run()
