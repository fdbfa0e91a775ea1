"""
Dropbox v1 SDK - Python client for the Dropbox v1 REST API.

This package provides:
- OAuth 1.0a authorization (request token, authorize URL, access token)
- Request signing with HMAC-SHA1
- File download and upload, including chunked uploads
- Metadata, search, revisions and change deltas
- Share links, media links and copy references
- File operations (copy, move, delete, create folder)
- A command line tool for everyday use
"""

__version__ = "1.0.0"

from .auth import Credentials, OAuthSigner
from .client import DropboxClient
from .config import AccessRoot, CredentialManager, OAuthConfig
from .session import Session
from .transport import FileStream
from .models import (
    AccountInfo,
    ChunkedUpload,
    CopyRef,
    Delta,
    Entry,
    Metadata,
    QuotaInfo,
    Share,
)
from .exceptions import (
    DropboxError,
    TransportError,
    AuthorizationError,
    APIError,
    OffsetMismatchError,
    StateError,
    DecodeError,
    ConfigurationError,
)

__all__ = [
    # Session and client
    "Credentials",
    "OAuthSigner",
    "Session",
    "DropboxClient",
    "FileStream",
    "AccessRoot",
    "OAuthConfig",
    "CredentialManager",

    # Data models
    "AccountInfo",
    "ChunkedUpload",
    "CopyRef",
    "Delta",
    "Entry",
    "Metadata",
    "QuotaInfo",
    "Share",

    # Exceptions
    "DropboxError",
    "TransportError",
    "AuthorizationError",
    "APIError",
    "OffsetMismatchError",
    "StateError",
    "DecodeError",
    "ConfigurationError",
]
