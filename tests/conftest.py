from __future__ import annotations

import io
from typing import Callable

import fitz
import pytest
from PIL import Image

from converter_api.conversion.errors import ExternalToolFailure


@pytest.fixture()
def pdf_factory() -> Callable[..., bytes]:
    def _create(pages: int = 1, *, width: float = 200, height: float = 100, text: str | None = None) -> bytes:
        doc = fitz.open()
        for n in range(pages):
            page = doc.new_page(width=width, height=height)
            page.insert_text((20, 40), text or f"Page {n + 1}", fontsize=12)
        data = doc.tobytes()
        doc.close()
        return data

    return _create


@pytest.fixture()
def image_factory() -> Callable[..., bytes]:
    def _create(fmt: str = "PNG", size: tuple[int, int] = (120, 80), dpi: tuple[int, int] | None = None) -> bytes:
        img = Image.new("RGB", size, color=(200, 30, 30))
        buf = io.BytesIO()
        kwargs = {"dpi": dpi} if dpi else {}
        img.save(buf, format=fmt, **kwargs)
        return buf.getvalue()

    return _create


class FakeRenderer:
    def __init__(self, error: Exception | None = None) -> None:
        self.calls: list[tuple[bytes, str]] = []
        self.error = error

    def render_to_pdf(self, data: bytes, source_ext: str) -> bytes:
        self.calls.append((data, source_ext))
        if self.error is not None:
            raise self.error
        return b"%PDF-1.7 office"


class FakeRasterizer:
    def __init__(self, output: bytes = b"\x89PNG\r\n\x1a\nfake") -> None:
        self.calls: list[tuple[bytes, str]] = []
        self.output = output

    def rasterize(self, pdf: bytes, image_format: str) -> bytes:
        self.calls.append((pdf, image_format))
        return self.output


class FakeDocuments:
    def __init__(self) -> None:
        self.office_calls: list[tuple[bytes, str]] = []
        self.image_calls: list[bytes] = []

    def pdf_to_office(self, pdf: bytes, target: str) -> bytes:
        self.office_calls.append((pdf, target))
        return b"PK\x03\x04office"

    def image_to_pdf(self, image: bytes) -> bytes:
        self.image_calls.append(image)
        return b"%PDF-1.7 image"


@pytest.fixture()
def fakes() -> tuple[FakeRenderer, FakeRasterizer, FakeDocuments]:
    return FakeRenderer(), FakeRasterizer(), FakeDocuments()


@pytest.fixture()
def failing_tool() -> ExternalToolFailure:
    return ExternalToolFailure("office rendering failed", exit_code=1, diagnostics="Error: source file could not be loaded")
