from dataclasses import dataclass
from pathlib import Path, PurePath
from typing import Protocol, Sequence

from .routes import normalize_format


@dataclass(frozen=True)
class ProcessOutcome:
    returncode: int
    stderr: str = ""


class ProcessInvoker(Protocol):
    def __call__(self, args: Sequence[str], timeout: float) -> ProcessOutcome:
        """Run an external command to completion and report its exit status.

        Implementations raise ExternalToolFailure when the command cannot be
        started or exceeds `timeout` seconds.
        """


class OfficeRenderer(Protocol):
    def render_to_pdf(self, data: bytes, source_ext: str) -> bytes:
        """Render an office document to PDF bytes.
        This is a blocking call; callers should offload to threads if needed.
        """


class Rasterizer(Protocol):
    def rasterize(self, pdf: bytes, image_format: str) -> bytes:
        ...


class DocumentConverter(Protocol):
    def pdf_to_office(self, pdf: bytes, target: str) -> bytes:
        ...

    def image_to_pdf(self, image: bytes) -> bytes:
        ...


class HistoryGateway(Protocol):
    def record_dir(self, record_id: str) -> str:
        ...

    def save_record(self, record: dict[str, object]) -> None:
        ...

    def load_record(self, record_id: str) -> dict[str, object]:
        ...

    def write_file(self, record_id: str, file_name: str, data: bytes) -> str:
        ...

    def read_file(self, record_id: str, file_name: str) -> bytes:
        ...


class SecurityGateway(Protocol):
    def new_token(self) -> str:
        ...

    def hash_token(self, token: str) -> str:
        ...

    def verify(self, phc_hash: str, token: str) -> bool:
        ...


@dataclass(frozen=True)
class ConversionRequest:
    data: bytes
    file_name: str
    source_format: str
    target_format: str

    @classmethod
    def create(cls, data: bytes, file_name: str, source_format: str, target_format: str) -> "ConversionRequest":
        """Build a request with both formats normalised; the only place normalisation happens."""
        return cls(
            data=bytes(data),
            file_name=file_name,
            source_format=normalize_format(source_format),
            target_format=normalize_format(target_format),
        )

    @property
    def pair(self) -> tuple[str, str]:
        return self.source_format, self.target_format


@dataclass(frozen=True)
class ConversionResult:
    data: bytes
    extension: str
    mime_type: str

    def download_name(self, original_file_name: str | None) -> str:
        stem = PurePath(original_file_name or "").stem or "converted"
        return stem + self.extension


@dataclass(frozen=True)
class RenderJob:
    input_path: Path
    output_dir: Path
    output_path: Path
    correlation_id: str
    profile_dir: Path


@dataclass(frozen=True)
class RasterPage:
    index: int
    data: bytes

    @property
    def number(self) -> int:
        return self.index + 1

    def entry_name(self, ext: str) -> str:
        return f"page_{self.number}.{ext}"
