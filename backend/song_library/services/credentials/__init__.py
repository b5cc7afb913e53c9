"""
Credential Services
===================
Cached backend credential and signed URL issuance.
"""

from song_library.services.credentials.cache import Credential, CredentialCache
from song_library.services.credentials.issuer import CredentialIssuer

__all__ = ["Credential", "CredentialCache", "CredentialIssuer"]
