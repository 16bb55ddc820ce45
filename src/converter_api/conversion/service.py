import asyncio
import logging
import time
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone

from . import formats
from .errors import ConversionError, ExternalToolFailure, UnsupportedConversion
from .interfaces import (
    ConversionRequest,
    ConversionResult,
    DocumentConverter,
    HistoryGateway,
    OfficeRenderer,
    Rasterizer,
    SecurityGateway,
)
from .routes import Route, route_for

logger = logging.getLogger(__name__)


@dataclass
class HistoryRecord:
    data: dict[str, object]

    @property
    def id(self) -> str:
        return str(self.data["id"])  # type: ignore[index]

    @property
    def converted_file_name(self) -> str:
        return str(self.data["converted_file_name"])  # type: ignore[index]

    def download_name(self) -> str:
        original = str(self.data.get("original_file_name") or "")
        stem = original.rsplit(".", 1)[0] if "." in original else original
        return (stem or "converted") + str(self.data.get("extension", ""))

    def public(self) -> dict[str, object]:
        """Record without the token hash."""
        return {k: v for k, v in self.data.items() if k != "access_token_hash"}


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


class ConversionService:
    """Core domain service dispatching conversions to their route.

    This service is framework-agnostic. `convert_request` blocks; `convert`
    runs it on a worker thread so an event loop is never held up by a
    renderer process or a library conversion.
    """

    def __init__(
        self,
        renderer: OfficeRenderer,
        rasterizer: Rasterizer,
        documents: DocumentConverter,
        *,
        history: HistoryGateway | None = None,
        security: SecurityGateway | None = None,
    ) -> None:
        self._renderer = renderer
        self._rasterizer = rasterizer
        self._documents = documents
        self._history = history
        self._security = security

    @property
    def history_enabled(self) -> bool:
        return self._history is not None and self._security is not None

    def _run_route(self, route: Route, request: ConversionRequest) -> bytes:
        if route is Route.OFFICE_TO_PDF:
            return self._renderer.render_to_pdf(request.data, request.source_format)
        if route is Route.PDF_TO_OFFICE:
            return self._documents.pdf_to_office(request.data, request.target_format)
        if route is Route.PDF_TO_IMAGE:
            return self._rasterizer.rasterize(request.data, request.target_format)
        if route is Route.IMAGE_TO_PDF:
            return self._documents.image_to_pdf(request.data)
        raise UnsupportedConversion(*request.pair)

    def convert_request(self, request: ConversionRequest) -> ConversionResult:
        """Convert an already normalised request. Blocking."""
        route = route_for(*request.pair)
        logger.info(
            "converting %s (%s -> %s) via %s, %d bytes",
            request.file_name, request.source_format, request.target_format, route.value, len(request.data),
        )
        started = time.monotonic()
        try:
            data = self._run_route(route, request)
        except ExternalToolFailure as e:
            e.route = route.value
            logger.error("%s failed for %s: %s", route.value, request.file_name, e)
            raise
        except ConversionError as e:
            if e.route is None:
                e.route = route.value
            logger.warning("%s failed for %s: %s", route.value, request.file_name, e)
            raise

        extension, mime_type = formats.resolve(request.target_format, data)
        logger.info(
            "converted %s -> %s (%d bytes) in %.2fs",
            request.file_name, extension, len(data), time.monotonic() - started,
        )
        return ConversionResult(data=data, extension=extension, mime_type=mime_type)

    async def convert(
        self,
        data: bytes,
        file_name: str,
        source_format: str,
        target_format: str,
    ) -> ConversionResult:
        request = ConversionRequest.create(data, file_name, source_format, target_format)
        # fail fast on the event loop before taking a worker thread
        route_for(*request.pair)
        return await asyncio.to_thread(self.convert_request, request)

    # History: converted files kept under an id and a one-time access token

    def save_history(
        self,
        original_file_name: str,
        request_pair: tuple[str, str],
        result: ConversionResult,
    ) -> tuple[HistoryRecord, str]:
        """Persist the result and metadata; return the record and its access token."""
        if self._history is None or self._security is None:
            raise RuntimeError("history storage is not configured")

        record_id = str(uuid.uuid4())
        token = self._security.new_token()
        converted_file_name = f"{uuid.uuid4()}{result.extension}"
        path = self._history.write_file(record_id, converted_file_name, result.data)

        source, target = request_pair
        data: dict[str, object] = {
            "id": record_id,
            "original_file_name": original_file_name,
            "converted_file_name": converted_file_name,
            "file_path": path,
            "extension": result.extension,
            "mime_type": result.mime_type,
            "source_format": source,
            "target_format": target,
            "file_size": len(result.data),
            "created_at": _utc_now(),
            "access_token_hash": self._security.hash_token(token),
        }
        self._history.save_record(data)
        logger.info("saved history record %s (%d bytes)", record_id, len(result.data))
        return HistoryRecord(data), token

    def load_history(self, record_id: str) -> HistoryRecord:
        if self._history is None:
            raise FileNotFoundError("history not configured")
        return HistoryRecord(self._history.load_record(record_id))

    def verify_token(self, record: HistoryRecord, token: str) -> bool:
        if self._security is None:
            return False
        phc = str(record.data.get("access_token_hash", ""))
        return self._security.verify(phc, token)

    def read_history_file(self, record: HistoryRecord) -> bytes:
        if self._history is None:
            raise FileNotFoundError("history not configured")
        return self._history.read_file(record.id, record.converted_file_name)
