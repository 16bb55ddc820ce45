"""
Office/PDF/image converter service package.

This module provides a FastAPI application exposing conversion endpoints
under `/api/conversion`. The conversion engine lives in
`converter_api.conversion`.
"""

__all__ = ["__version__"]

__version__ = "0.1.0"
