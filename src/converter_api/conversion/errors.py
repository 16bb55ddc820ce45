"""
Conversion error taxonomy.

Component boundaries catch library and process errors and re-raise them as
one of these kinds, keeping the original exception in `original_error`.
"""


class ConversionError(Exception):
    """Base class for every conversion failure."""

    def __init__(
        self,
        message: str,
        *,
        route: str | None = None,
        correlation_id: str | None = None,
        original_error: Exception | None = None,
    ) -> None:
        self.message = message
        self.route = route
        self.correlation_id = correlation_id
        self.original_error = original_error
        super().__init__(message)

    def __str__(self) -> str:
        parts = [self.message]
        if self.route:
            parts.append(f"route={self.route}")
        if self.correlation_id:
            parts.append(f"job={self.correlation_id}")
        if self.original_error is not None:
            parts.append(f"cause={self.original_error}")
        return " | ".join(parts)


class UnsupportedConversion(ConversionError):
    """The (source, target) pair is not one the engine knows. Client error."""

    def __init__(self, source: str, target: str) -> None:
        self.source = source
        self.target = target
        super().__init__(f"conversion from '{source}' to '{target}' is not supported")


class ExternalToolFailure(ConversionError):
    """The rendering process failed, produced nothing, timed out or could not start."""

    def __init__(
        self,
        message: str,
        *,
        exit_code: int | None = None,
        diagnostics: str = "",
        **kwargs,
    ) -> None:
        self.exit_code = exit_code
        self.diagnostics = diagnostics
        super().__init__(message, **kwargs)

    def __str__(self) -> str:
        text = super().__str__()
        if self.exit_code is not None:
            text += f" | exit_code={self.exit_code}"
        if self.diagnostics:
            text += f" | stderr={self.diagnostics.strip()}"
        return text


class RenderFailure(ConversionError):
    """Malformed input, zero pages or an encoding error inside a library."""


class IOFailure(ConversionError):
    """Temp file creation, read or write failed."""
