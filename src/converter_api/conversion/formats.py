"""
Extension and content-type resolution for conversion results.

A multi-page rasterization returns a zip archive even though the caller
asked for an image, so the result bytes are inspected before naming them.
"""

ZIP_SIGNATURE = b"PK\x03\x04"
ARCHIVE_EXTENSION = ".zip"

IMAGE_TARGETS = frozenset({"png", "jpg", "jpeg"})

TARGET_EXTENSIONS: dict[str, str] = {
    "pdf": ".pdf",
    "docx": ".docx",
    "xlsx": ".xlsx",
    "pptx": ".pptx",
    "png": ".png",
    "jpg": ".jpg",
    "jpeg": ".jpg",
}

CONTENT_TYPES: dict[str, str] = {
    ".pdf": "application/pdf",
    ".docx": "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    ".xlsx": "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    ".pptx": "application/vnd.openxmlformats-officedocument.presentationml.presentation",
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".zip": "application/zip",
}

DEFAULT_CONTENT_TYPE = "application/octet-stream"


def is_zip(data: bytes) -> bool:
    return len(data) >= 4 and data[:4] == ZIP_SIGNATURE


def resolve_extension(target: str, data: bytes) -> str:
    """Return the file extension (with dot) for a result of the requested target."""
    target = target.lower()
    if target in IMAGE_TARGETS and is_zip(data):
        return ARCHIVE_EXTENSION
    return TARGET_EXTENSIONS.get(target, "." + target)


def content_type_for(extension: str) -> str:
    return CONTENT_TYPES.get(extension.lower(), DEFAULT_CONTENT_TYPE)


def resolve(target: str, data: bytes) -> tuple[str, str]:
    """Resolve (extension, mime type) for the result bytes of `target`."""
    extension = resolve_extension(target, data)
    return extension, content_type_for(extension)
