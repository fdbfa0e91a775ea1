"""
Custom exceptions for the Dropbox v1 SDK.

This module defines all the exception classes used throughout the SDK
so callers can tell network faults, server-side API errors, authorization
failures and local usage errors apart.
"""


class DropboxError(Exception):
    """Base exception for all Dropbox SDK errors."""

    def __init__(self, message: str, error_code: str = None, details: dict = None):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.details = details or {}

    def __str__(self):
        if self.error_code:
            return f"[{self.error_code}] {self.message}"
        return self.message


class TransportError(DropboxError):
    """Raised when the HTTP exchange itself fails (connection, timeout, token endpoint status)."""

    def __init__(self, message: str = "Network operation failed", status_code: int = None, **kwargs):
        super().__init__(message, error_code="NETWORK_ERROR", **kwargs)
        self.status_code = status_code


class AuthorizationError(DropboxError):
    """Raised when the server answers 401 (bad or expired token)."""

    def __init__(self, context: str, cause: Exception = None, **kwargs):
        if cause is not None:
            message = f"Authorization Error ({context}): {cause}"
        else:
            message = f"Authorization Error ({context})"
        super().__init__(message, error_code="AUTHZ_ERROR", **kwargs)
        self.context = context
        self.cause = cause


class APIError(DropboxError):
    """Raised when the server returns a non-200 status with an error body."""

    def __init__(self, status_code: int, message: str = "", **kwargs):
        super().__init__(f"Dropbox API Error({status_code}): {message}", error_code="API_ERROR", **kwargs)
        self.status_code = status_code
        self.error = message


class OffsetMismatchError(APIError):
    """
    Raised by a chunked upload when the server expected a different offset.

    The server reports its expected upload state alongside the error, which
    is available as ``upload``.
    """

    def __init__(self, status_code: int, message: str = "", upload=None, **kwargs):
        super().__init__(status_code, message, **kwargs)
        self.upload = upload


class StateError(DropboxError):
    """Raised when a session is used in the wrong lifecycle state."""

    def __init__(self, message: str = "Invalid session state", **kwargs):
        super().__init__(message, error_code="STATE_ERROR", **kwargs)


class DecodeError(DropboxError):
    """Raised when a response body, header or timestamp cannot be decoded."""

    def __init__(self, message: str = "Failed to decode response", **kwargs):
        super().__init__(message, error_code="DECODE_ERROR", **kwargs)


class ConfigurationError(DropboxError):
    """Raised when SDK configuration is invalid."""

    def __init__(self, message: str = "Invalid configuration", config_key: str = None, **kwargs):
        super().__init__(message, error_code="CONFIG_ERROR", **kwargs)
        self.config_key = config_key
