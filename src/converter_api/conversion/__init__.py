"""
Domain layer for document conversion.
Provides the format-pair dispatcher, the office/PDF/image converters behind
it and the gateways for history storage and access tokens, so front-ends
(HTTP or others) can use the same core logic.
"""

from .errors import ConversionError, ExternalToolFailure, IOFailure, RenderFailure, UnsupportedConversion
from .interfaces import ConversionRequest, ConversionResult, DocumentConverter, OfficeRenderer, Rasterizer
from .routes import KNOWN_PAIRS, Route, normalize_format, route_for, supported_targets
from .service import ConversionService, HistoryRecord
