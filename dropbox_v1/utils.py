"""
Utility functions for the Dropbox v1 SDK.

Path handling under the storage root, request parameter formatting and
small I/O helpers shared by the transport, client and CLI.
"""

import logging
import math
import posixpath
from typing import BinaryIO, Iterator, Union
from urllib.parse import quote

import requests

logger = logging.getLogger(__name__)


def normalize_path(path: str) -> str:
    """
    Normalize a remote path to an absolute path with no ``.``/``..`` segments.

    ``..`` never climbs above ``/``.

    Args:
        path: Remote path, absolute or relative

    Returns:
        Normalized absolute path (``/`` for the root)
    """
    normalized = posixpath.normpath("/" + (path or ""))
    # POSIX keeps a leading "//" as-is
    if normalized.startswith("//"):
        normalized = "/" + normalized.lstrip("/")
    return normalized


def rooted_path(root: str, path: str) -> str:
    """
    Place a remote path under a storage root.

    >>> rooted_path("dropbox", "../../etc")
    '/dropbox/etc'
    """
    normalized = normalize_path(path)
    if normalized == "/":
        return "/" + root
    return "/" + root + normalized


def quote_path(path: str) -> str:
    """Percent-encode a remote path for use in a request URL."""
    return quote(path, safe="/")


def format_param(value: Union[bool, int, str]) -> str:
    """Format a parameter value the way the API expects it on the wire."""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def chunk_file(file_obj: BinaryIO, chunk_size: int = 4 * 1024 * 1024) -> Iterator[bytes]:
    """
    Read file in chunks.

    Args:
        file_obj: File object to read from
        chunk_size: Size of each chunk in bytes

    Yields:
        File chunks as bytes
    """
    while True:
        chunk = file_obj.read(chunk_size)
        if not chunk:
            break
        yield chunk


def drain_and_close(response: requests.Response) -> None:
    """Consume whatever is left of a response body and release its connection."""
    try:
        if not response._content_consumed:
            for _ in response.iter_content(64 * 1024):
                pass
    except requests.RequestException as e:
        logger.debug("Could not drain response body from %s: %s", response.url, e)
    finally:
        response.close()


def format_file_size(size_bytes: int) -> str:
    """
    Format file size in human-readable format.

    Args:
        size_bytes: Size in bytes

    Returns:
        Formatted size string (e.g., "1.5 MB")
    """
    if size_bytes == 0:
        return "0 B"

    size_names = ["B", "KB", "MB", "GB", "TB", "PB"]
    i = int(math.floor(math.log(size_bytes, 1024)))

    if i >= len(size_names):
        i = len(size_names) - 1

    p = math.pow(1024, i)
    size = round(size_bytes / p, 2)

    return f"{size} {size_names[i]}"
