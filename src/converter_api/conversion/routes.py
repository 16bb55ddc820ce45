"""
Format normalisation and the table of supported conversion pairs.

Dispatch is a lookup in `KNOWN_PAIRS`; adding a pair is a data change.
"""
from enum import Enum
from types import MappingProxyType
from typing import Mapping

from .errors import UnsupportedConversion


class Route(str, Enum):
    OFFICE_TO_PDF = "office-to-pdf"
    PDF_TO_OFFICE = "pdf-to-office"
    PDF_TO_IMAGE = "pdf-to-image"
    IMAGE_TO_PDF = "image-to-pdf"


OFFICE_FORMATS = ("doc", "docx", "xls", "xlsx", "ppt", "pptx")
PDF_OFFICE_TARGETS = ("docx", "xlsx", "pptx")
RASTER_FORMATS = ("png", "jpg", "jpeg")


def _build_pairs() -> Mapping[tuple[str, str], Route]:
    pairs: dict[tuple[str, str], Route] = {}
    for source in OFFICE_FORMATS:
        pairs[(source, "pdf")] = Route.OFFICE_TO_PDF
    for target in PDF_OFFICE_TARGETS:
        pairs[("pdf", target)] = Route.PDF_TO_OFFICE
    for target in RASTER_FORMATS:
        pairs[("pdf", target)] = Route.PDF_TO_IMAGE
    for source in RASTER_FORMATS:
        pairs[(source, "pdf")] = Route.IMAGE_TO_PDF
    return MappingProxyType(pairs)


KNOWN_PAIRS: Mapping[tuple[str, str], Route] = _build_pairs()


def normalize_format(value: str | None) -> str:
    """Lower-case a format token and strip one leading dot ("." + "DOCX" -> "docx")."""
    token = (value or "").strip().lower()
    if token.startswith("."):
        token = token[1:]
    return token


def route_for(source: str, target: str) -> Route:
    """Return the route for an already normalised pair or raise UnsupportedConversion."""
    try:
        return KNOWN_PAIRS[(source, target)]
    except KeyError:
        raise UnsupportedConversion(source, target) from None


def supported_targets(source: str) -> list[str]:
    source = normalize_format(source)
    return [t for (s, t) in KNOWN_PAIRS if s == source]
