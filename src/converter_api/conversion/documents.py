"""
Library-backed converters: PDF → DOCX/XLSX/PPTX and image → PDF.

These run in-process (no external executable) and are blocking; the
conversion service offloads them to worker threads.
"""

import io
import logging
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable

import fitz
from openpyxl import Workbook
from openpyxl.cell.cell import ILLEGAL_CHARACTERS_RE
from PIL import Image

from .errors import IOFailure, RenderFailure, UnsupportedConversion
from .raster import PdfRasterizer, open_pdf

logger = logging.getLogger(__name__)

ROUTE_PDF_TO_OFFICE = "pdf-to-office"
ROUTE_IMAGE_TO_PDF = "image-to-pdf"

# Used when an image carries no resolution, so one pixel maps to one point
DEFAULT_IMAGE_DPI = 72.0

# Excel caps worksheet titles at 31 characters
MAX_SHEET_TITLE = 31


@dataclass
class ExtractedTable:
    page: int | None
    rows: list[list[str]] = field(default_factory=list)


TableExtractor = Callable[[bytes], list[ExtractedTable]]


class DoclingTableExtractor:
    """Detect tables with docling. The docling converter is built on first use."""

    def __init__(self) -> None:
        self._converter = None

    def _get_converter(self):
        if self._converter is None:
            from docling.document_converter import DocumentConverter

            self._converter = DocumentConverter()
        return self._converter

    def __call__(self, pdf: bytes) -> list[ExtractedTable]:
        from docling.datamodel.base_models import DocumentStream

        result = self._get_converter().convert(DocumentStream(name="input.pdf", stream=io.BytesIO(pdf)))
        doc = result.document
        tables: list[ExtractedTable] = []
        for table in doc.tables:
            df = table.export_to_dataframe(doc=doc)
            page = table.prov[0].page_no if table.prov else None
            tables.append(ExtractedTable(page=page, rows=table_rows(df)))
        return tables


def table_rows(df) -> list[list[str]]:
    """Flatten a table dataframe into string rows, header first when it has one."""
    rows = []
    # headerless tables come back with a RangeIndex of ints
    if len(df.columns) and all(isinstance(c, str) for c in df.columns):
        rows.append([str(c) for c in df.columns])
    rows.extend([str(v) for v in values] for values in df.itertuples(index=False, name=None))
    return rows


class PdfDocumentConverter:
    """DocumentConverter built on pdf2docx, docling/openpyxl, python-pptx and PyMuPDF."""

    def __init__(
        self,
        *,
        table_extractor: TableExtractor | None = None,
        slide_dpi: int = 150,
        temp_dir: str | None = None,
    ) -> None:
        self._table_extractor: TableExtractor = table_extractor or DoclingTableExtractor()
        self._slide_rasterizer = PdfRasterizer(dpi=slide_dpi)
        self._temp_dir = temp_dir

    def pdf_to_office(self, pdf: bytes, target: str) -> bytes:
        handlers = {
            "docx": self.pdf_to_docx,
            "xlsx": self.pdf_to_xlsx,
            "pptx": self.pdf_to_pptx,
        }
        handler = handlers.get(target)
        if handler is None:
            raise UnsupportedConversion("pdf", target)
        return handler(pdf)

    def pdf_to_docx(self, pdf: bytes) -> bytes:
        from pdf2docx import Converter

        _ensure_pages(pdf)
        with tempfile.TemporaryDirectory(prefix="pdf2docx-", dir=self._temp_dir) as tmp:
            src = Path(tmp) / "input.pdf"
            dst = Path(tmp) / "output.docx"
            try:
                src.write_bytes(pdf)
            except OSError as e:
                raise IOFailure("could not write pdf2docx input", route=ROUTE_PDF_TO_OFFICE, original_error=e) from e

            try:
                cv = Converter(str(src))
                try:
                    cv.convert(str(dst))
                finally:
                    cv.close()
            except Exception as e:
                raise RenderFailure("pdf2docx conversion failed", route=ROUTE_PDF_TO_OFFICE, original_error=e) from e

            if not dst.exists():
                raise RenderFailure("pdf2docx produced no output", route=ROUTE_PDF_TO_OFFICE)
            return dst.read_bytes()

    def pdf_to_xlsx(self, pdf: bytes) -> bytes:
        page_lines = _page_text_lines(pdf)
        try:
            tables = self._table_extractor(pdf)
        except Exception as e:
            raise RenderFailure("table extraction failed", route=ROUTE_PDF_TO_OFFICE, original_error=e) from e

        try:
            wb = Workbook()
            wb.remove(wb.active)
            if tables:
                for n, table in enumerate(tables, start=1):
                    title = f"Table {n} (p{table.page})" if table.page else f"Table {n}"
                    ws = wb.create_sheet(title[:MAX_SHEET_TITLE])
                    for row in table.rows:
                        ws.append([_cell(value) for value in row])
            else:
                logger.info("no tables detected; writing page text to %d sheets", len(page_lines))
                for n, lines in enumerate(page_lines, start=1):
                    ws = wb.create_sheet(f"Page {n}")
                    for line in lines:
                        ws.append([_cell(line)])

            buf = io.BytesIO()
            wb.save(buf)
        except Exception as e:
            raise RenderFailure("could not build workbook", route=ROUTE_PDF_TO_OFFICE, original_error=e) from e
        return buf.getvalue()

    def pdf_to_pptx(self, pdf: bytes) -> bytes:
        from pptx import Presentation
        from pptx.util import Pt

        prs = Presentation()
        with open_pdf(pdf, ROUTE_PDF_TO_OFFICE) as doc:
            if doc.page_count == 0:
                raise RenderFailure("PDF has no pages", route=ROUTE_PDF_TO_OFFICE)
            try:
                first = doc.load_page(0).rect
            except (RuntimeError, ValueError) as e:
                raise RenderFailure("could not read first page", route=ROUTE_PDF_TO_OFFICE, original_error=e) from e
            prs.slide_width = Pt(first.width)
            prs.slide_height = Pt(first.height)
            # layout 6 of the default template is "Blank"
            blank = prs.slide_layouts[6]
            for page in self._slide_rasterizer.iter_pages(doc, "png"):
                slide = prs.slides.add_slide(blank)
                slide.shapes.add_picture(
                    io.BytesIO(page.data), 0, 0, width=prs.slide_width, height=prs.slide_height
                )

        buf = io.BytesIO()
        prs.save(buf)
        return buf.getvalue()

    def image_to_pdf(self, image: bytes) -> bytes:
        """Embed an image on one PDF page sized to the image's point dimensions."""
        try:
            with Image.open(io.BytesIO(image)) as img:
                img.load()
                width_px, height_px = img.size
                dpi = img.info.get("dpi") or (DEFAULT_IMAGE_DPI, DEFAULT_IMAGE_DPI)
        except (OSError, ValueError) as e:
            raise RenderFailure("could not read image", route=ROUTE_IMAGE_TO_PDF, original_error=e) from e

        dpi_x = float(dpi[0]) or DEFAULT_IMAGE_DPI
        dpi_y = float(dpi[1]) or DEFAULT_IMAGE_DPI
        width_pt = width_px * 72.0 / dpi_x
        height_pt = height_px * 72.0 / dpi_y

        doc = fitz.open()
        try:
            page = doc.new_page(width=width_pt, height=height_pt)
            page.insert_image(page.rect, stream=image)
            return doc.tobytes()
        except (RuntimeError, ValueError) as e:
            raise RenderFailure("could not embed image", route=ROUTE_IMAGE_TO_PDF, original_error=e) from e
        finally:
            doc.close()


def _ensure_pages(pdf: bytes) -> int:
    with open_pdf(pdf, ROUTE_PDF_TO_OFFICE) as doc:
        if doc.page_count == 0:
            raise RenderFailure("PDF has no pages", route=ROUTE_PDF_TO_OFFICE)
        return doc.page_count


def _page_text_lines(pdf: bytes) -> list[list[str]]:
    with open_pdf(pdf, ROUTE_PDF_TO_OFFICE) as doc:
        if doc.page_count == 0:
            raise RenderFailure("PDF has no pages", route=ROUTE_PDF_TO_OFFICE)
        pages = []
        try:
            for page in doc:
                pages.append([line for line in page.get_text("text").splitlines() if line.strip()])
        except (RuntimeError, ValueError) as e:
            raise RenderFailure("could not extract page text", route=ROUTE_PDF_TO_OFFICE, original_error=e) from e
        return pages


def _cell(value: str) -> str:
    # worksheets reject most C0 control characters
    return ILLEGAL_CHARACTERS_RE.sub("", value)
