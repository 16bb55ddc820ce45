"""
PDF → image rasterization.

A single-page PDF yields the encoded image itself; anything longer yields a
zip archive with one `page_<n>.<ext>` entry per page in page order. Pages
are rendered one at a time with PyMuPDF and written straight into the
archive.
"""

import io
import logging
import zipfile
from contextlib import contextmanager
from typing import Iterator

import fitz
from PIL import Image

from .errors import RenderFailure, UnsupportedConversion
from .interfaces import RasterPage

logger = logging.getLogger(__name__)

ROUTE_NAME = "pdf-to-image"

# requested format -> archive entry extension
IMAGE_EXTENSIONS = {"png": "png", "jpg": "jpg", "jpeg": "jpg"}


@contextmanager
def open_pdf(pdf: bytes, route: str = ROUTE_NAME) -> Iterator["fitz.Document"]:
    """Open PDF bytes with PyMuPDF, mapping parser errors to RenderFailure."""
    try:
        doc = fitz.open(stream=pdf, filetype="pdf")
    except (RuntimeError, ValueError) as e:
        raise RenderFailure("could not open PDF", route=route, original_error=e) from e
    if doc.needs_pass:
        doc.close()
        raise RenderFailure("PDF is password protected", route=route)
    try:
        yield doc
    finally:
        doc.close()


class PdfRasterizer:
    def __init__(self, *, dpi: int = 300, jpeg_quality: int = 95) -> None:
        self.dpi = dpi
        self.jpeg_quality = jpeg_quality

    def _encode(self, page: "fitz.Page", ext: str) -> bytes:
        zoom = self.dpi / 72
        pix = page.get_pixmap(matrix=fitz.Matrix(zoom, zoom), alpha=False)
        if ext == "png":
            return pix.tobytes("png")
        image = Image.frombytes("RGB", (pix.width, pix.height), pix.samples)
        buf = io.BytesIO()
        image.save(buf, format="JPEG", quality=self.jpeg_quality)
        return buf.getvalue()

    def iter_pages(self, doc: "fitz.Document", ext: str) -> Iterator[RasterPage]:
        """Yield encoded pages lazily in ascending page order."""
        for index in range(doc.page_count):
            try:
                data = self._encode(doc.load_page(index), ext)
            except (RuntimeError, ValueError, OSError) as e:
                raise RenderFailure(f"could not encode page {index + 1}", route=ROUTE_NAME, original_error=e) from e
            yield RasterPage(index=index, data=data)

    def rasterize(self, pdf: bytes, image_format: str) -> bytes:
        ext = IMAGE_EXTENSIONS.get(image_format.lower())
        if ext is None:
            raise UnsupportedConversion("pdf", image_format)

        with open_pdf(pdf) as doc:
            count = doc.page_count
            if count == 0:
                raise RenderFailure("PDF has no pages", route=ROUTE_NAME)

            if count == 1:
                page = next(self.iter_pages(doc, ext))
                logger.debug("rasterized single page (%d bytes)", len(page.data))
                return page.data

            buf = io.BytesIO()
            with zipfile.ZipFile(buf, "w", compression=zipfile.ZIP_DEFLATED) as archive:
                for page in self.iter_pages(doc, ext):
                    archive.writestr(page.entry_name(ext), page.data)
            logger.debug("rasterized %d pages into archive (%d bytes)", count, buf.tell())
            return buf.getvalue()
