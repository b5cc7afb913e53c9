"""
Library Services
================
Folder/song taxonomy over flat object keys, and the request-level service.

``LibraryService`` lives in ``song_library.services.library.service``.
"""

from song_library.services.library import taxonomy

__all__ = ["taxonomy"]
