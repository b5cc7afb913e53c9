"""
API Dependencies
================
Middleware and dependency providers for the routes.
"""

from song_library.api.dependencies.logging import RequestLoggingMiddleware
from song_library.api.dependencies.services import build_library_service, get_library_service

__all__ = [
    "RequestLoggingMiddleware",
    "build_library_service",
    "get_library_service",
]
