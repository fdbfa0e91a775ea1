"""
Signed HTTP transport and response decoding for the Dropbox v1 SDK.

Every API call goes through ``Transport``: parameters are signed by the
session, the request is sent, and a 401 is turned into an
``AuthorizationError``. Responses are then decoded by ``decode_json``,
which reads either the expected result or an ``APIError`` from the same
body. Response bodies are always released before these functions return,
except for download streams, which the caller closes.
"""

import json
import logging
from typing import Any, BinaryIO, Callable, Dict, Iterator, Optional, TypeVar, Union
from urllib.parse import unquote, urlencode, urlsplit

import requests

from .config import METADATA_HEADER
from .exceptions import APIError, AuthorizationError, DecodeError, TransportError
from .models import Metadata
from .session import Session
from .utils import drain_and_close

logger = logging.getLogger(__name__)

T = TypeVar("T")


def request_context(url: str) -> str:
    """The request path without its leading version segment, e.g. ``metadata/dropbox/a``."""
    path = unquote(urlsplit(url).path).lstrip("/")
    _, _, rest = path.partition("/")
    return rest


def check_response(response: requests.Response) -> requests.Response:
    """
    Classify a response before decoding.

    Raises:
        AuthorizationError: On 401; the body is released first
    """
    if response.status_code == 401:
        context = request_context(response.request.url if response.request is not None else response.url)
        drain_and_close(response)
        raise AuthorizationError(context, Exception("bad or expired token"))
    return response


def _load_json(raw: Union[bytes, str], what: str) -> Any:
    try:
        return json.loads(raw)
    except ValueError as e:
        raise DecodeError(f"Malformed JSON in {what}: {e}") from e


def api_error(response: requests.Response, body: bytes) -> APIError:
    """
    Build an APIError from a non-200 response body.

    The status code is kept even when the body is empty or not JSON.
    """
    message = ""
    if body.strip():
        try:
            data = json.loads(body)
        except ValueError:
            message = body.decode("utf-8", errors="replace").strip()
        else:
            if isinstance(data, dict):
                message = str(data.get("error", ""))
            else:
                message = str(data)
    return APIError(response.status_code, message)


def read_body(response: requests.Response) -> bytes:
    """Read the whole body and release the connection."""
    try:
        return response.content
    except requests.RequestException as e:
        raise TransportError(f"Failed to read response body: {e}") from e
    finally:
        drain_and_close(response)


def decode_json(response: requests.Response, decoder: Callable[[Any], T]) -> T:
    """
    Decode a response into the shape built by ``decoder``.

    On 200 the JSON body is passed to ``decoder``; on any other status an
    ``APIError`` carrying the status code is raised. The response is
    always drained and closed.

    Raises:
        APIError: For non-200 responses
        DecodeError: For malformed success bodies
    """
    body = read_body(response)
    if response.status_code != 200:
        raise api_error(response, body)
    return decode_body(body, decoder)


def decode_body(body: bytes, decoder: Callable[[Any], T]) -> T:
    """Parse a JSON body and hand it to ``decoder``."""
    return decoder(_load_json(body, "response body"))


def decode_file_metadata(response: requests.Response) -> Optional[Metadata]:
    """
    Read file metadata from the ``x-dropbox-metadata`` header of a download.

    A missing header means no metadata; a malformed one is an error.
    """
    header = response.headers.get(METADATA_HEADER)
    if not header:
        return None
    return Metadata.from_dict(_load_json(header, f"{METADATA_HEADER} header"))


class FileStream:
    """
    Body of a file or thumbnail download.

    Read it sequentially and close it (or use it as a context manager) to
    release the connection.
    """

    def __init__(self, response: requests.Response, metadata: Optional[Metadata] = None):
        self._response = response
        self.metadata = metadata
        raw = response.raw
        if hasattr(raw, "decode_content"):
            raw.decode_content = True

    @property
    def headers(self):
        return self._response.headers

    def read(self, size: int = -1) -> bytes:
        return self._response.raw.read(None if size is None or size < 0 else size)

    def iter_content(self, chunk_size: int = 64 * 1024) -> Iterator[bytes]:
        return self._response.iter_content(chunk_size)

    def close(self):
        self._response.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()


class Transport:
    """
    Sends signed requests for a session.

    Parameters travel in the query string for GET and PUT and in the form
    body for POST. Parameters left out of ``params`` never reach the
    signature.
    """

    def __init__(self, session: Session):
        self.session = session

    def get(self, url: str, params: Dict[str, str]) -> requests.Response:
        self.session.sign_request("GET", url, params)
        return self._send(requests.Request("GET", url + "?" + urlencode(params)))

    def post_form(self, url: str, params: Dict[str, str]) -> requests.Response:
        self.session.sign_request("POST", url, params)
        return self._send(requests.Request("POST", url, data=params))

    def put(
        self,
        url: str,
        params: Dict[str, str],
        body: Union[bytes, BinaryIO, None],
        content_length: int = 0,
    ) -> requests.Response:
        """
        Upload ``body`` with PUT.

        A positive ``content_length`` is sent as the Content-Length header,
        replacing whatever was inferred from the body, so a stream of known
        size is sent without buffering or chunked encoding.
        """
        self.session.sign_request("PUT", url, params)
        return self._send(requests.Request("PUT", url + "?" + urlencode(params), data=body), content_length)

    def _send(self, request: requests.Request, content_length: int = 0) -> requests.Response:
        http = self.session.http_client
        prepared = http.prepare_request(request)
        if content_length > 0:
            prepared.headers.pop("Transfer-Encoding", None)
            prepared.headers["Content-Length"] = str(content_length)

        logger.debug("%s %s", prepared.method, prepared.url.split("?", 1)[0])
        settings = http.merge_environment_settings(prepared.url, {}, True, None, None)
        try:
            response = http.send(prepared, timeout=self.session.timeout, **settings)
        except requests.RequestException as e:
            raise TransportError(f"{prepared.method} {request.url.split('?', 1)[0]} failed: {e}") from e

        return check_response(response)

    def get_json(self, url: str, params: Dict[str, str], decoder: Callable[[Any], T]) -> T:
        return decode_json(self.get(url, params), decoder)

    def post_form_json(self, url: str, params: Dict[str, str], decoder: Callable[[Any], T]) -> T:
        return decode_json(self.post_form(url, params), decoder)

    def put_json(
        self,
        url: str,
        params: Dict[str, str],
        body: Union[bytes, BinaryIO, None],
        content_length: int,
        decoder: Callable[[Any], T],
    ) -> T:
        return decode_json(self.put(url, params, body, content_length), decoder)

    def file_access(self, url: str, params: Dict[str, str]) -> FileStream:
        """GET a file body as a stream, with its metadata taken from the response header."""
        response = self.get(url, params)
        if response.status_code != 200:
            raise api_error(response, read_body(response))
        try:
            metadata = decode_file_metadata(response)
        except DecodeError:
            drain_and_close(response)
            raise
        return FileStream(response, metadata)
