"""Environment-driven settings shared by the web layer and the conversion engine."""

import os
from pathlib import Path


def _flag(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in {"1", "true", "yes", "on"}


DOC_SERVICE_VERSION = os.getenv("DOC_SERVICE_VERSION", "0.1.0")

# Uploads and history
MAX_UPLOAD_MB = int(os.getenv("MAX_UPLOAD_MB", "50"))
DATA_DIR = Path(os.getenv("DATA_DIR", "./data")).resolve()

# Office rendering (LibreOffice headless)
SOFFICE_BINARY = os.getenv("SOFFICE_BINARY", "soffice")
OFFICE_TIMEOUT_SEC = float(os.getenv("OFFICE_TIMEOUT_SEC", "120"))
MAX_CONCURRENT_RENDERS = int(os.getenv("MAX_CONCURRENT_RENDERS", "2"))

# Rasterization
RASTER_DPI = int(os.getenv("RASTER_DPI", "300"))
JPEG_QUALITY = int(os.getenv("JPEG_QUALITY", "95"))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# Dev server
HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", "8080"))
RELOAD = _flag("RELOAD", "true")

# Streamlit client
API_BASE = os.getenv("CONVERTER_API_BASE", os.getenv("API_BASE", "http://localhost:8080")).rstrip("/")
