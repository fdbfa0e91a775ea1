"""
Dropbox v1 API client.

This module provides the client for the Dropbox REST API: account info,
file download and upload (plain and chunked), metadata, search, deltas,
sharing, revisions and file operations. Each call builds its parameters,
sends one signed request through the session and decodes the result.
"""

import logging
from typing import BinaryIO, List, Optional, Tuple, Union

from .auth import Credentials
from .config import AccessRoot
from .exceptions import APIError, ConfigurationError, DecodeError, OffsetMismatchError
from .models import AccountInfo, ChunkedUpload, CopyRef, Delta, Metadata, Share
from .session import Session
from .transport import FileStream, Transport, api_error, decode_body, decode_json, read_body
from .utils import chunk_file, format_param, normalize_path, quote_path, rooted_path

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 4 * 1024 * 1024


class DropboxClient:
    """
    Client for the Dropbox v1 REST API.

    Works on behalf of an authorized session under one storage root: the
    whole account (``AccessRoot.DROPBOX``) or the app folder
    (``AccessRoot.SANDBOX``). Every path argument is resolved under that
    root and cannot escape it.

    Raises:
        ConfigurationError: If the session is not authorized
    """

    def __init__(self, session: Session, root: Union[AccessRoot, str] = AccessRoot.DROPBOX):
        if not session.is_authorized():
            raise ConfigurationError("Session not authorized; obtain an access token before creating a client")

        self.session = session
        self.root = AccessRoot(root)
        self.transport = Transport(session)

        config = session.config
        self.account_info_url = config.api_prefix + "/account/info"
        self.files_url = config.content_prefix + "/files"
        self.files_put_url = config.content_prefix + "/files_put"
        self.metadata_url = config.api_prefix + "/metadata"
        self.delta_url = config.api_prefix + "/delta"
        self.revisions_url = config.api_prefix + "/revisions"
        self.restore_url = config.api_prefix + "/restore"
        self.search_url = config.api_prefix + "/search"
        self.shares_url = config.api_prefix + "/shares"
        self.media_url = config.api_prefix + "/media"
        self.copy_ref_url = config.api_prefix + "/copy_ref"
        self.thumbnails_url = config.content_prefix + "/thumbnails"
        self.chunked_upload_url = config.content_prefix + "/chunked_upload"
        self.commit_chunked_upload_url = config.content_prefix + "/commit_chunked_upload"
        self.fileops_copy_url = config.api_prefix + "/fileops/copy"
        self.fileops_create_folder_url = config.api_prefix + "/fileops/create_folder"
        self.fileops_delete_url = config.api_prefix + "/fileops/delete"
        self.fileops_move_url = config.api_prefix + "/fileops/move"

    # Session forwarding

    @property
    def locale(self) -> Optional[str]:
        return self.session.locale

    @locale.setter
    def locale(self, value: Optional[str]):
        self.session.locale = value

    @property
    def access_token(self) -> Optional[Credentials]:
        return self.session.access_token

    def is_authorized(self) -> bool:
        return self.session.is_authorized()

    def reset(self):
        """Forget the session's tokens. Further calls fail until it is authorized again."""
        self.session.reset()

    def _file_url(self, prefix: str, path: str) -> str:
        return prefix + quote_path(rooted_path(self.root.value, path))

    def _params(self, locale: bool = True) -> dict:
        return self.session.make_params(locale=locale)

    # Account

    def account_info(self) -> AccountInfo:
        """Get information about the authorized user's account."""
        return self.transport.get_json(self.account_info_url, self._params(), AccountInfo.from_dict)

    # File contents

    def get_file(self, path: str, rev: Optional[str] = None) -> FileStream:
        """
        Download a file.

        Args:
            path: Remote file path
            rev: Revision to fetch instead of the latest

        Returns:
            FileStream with the file body; its ``metadata`` is taken from the
            response header (None if the server sent none). Close it when done.
        """
        params = self._params(locale=False)
        if rev:
            params["rev"] = rev
        return self.transport.file_access(self._file_url(self.files_url, path), params)

    def thumbnail(self, path: str, format: Optional[str] = None, size: Optional[str] = None) -> FileStream:
        """
        Download a thumbnail for an image file.

        Args:
            path: Remote image path
            format: ``jpeg`` or ``png``
            size: Size name such as ``s``, ``m``, ``l``
        """
        params = self._params(locale=False)
        if format:
            params["format"] = format
        if size:
            params["size"] = size
        return self.transport.file_access(self._file_url(self.thumbnails_url, path), params)

    def put_file(
        self,
        path: str,
        data: Union[bytes, BinaryIO],
        size: int = 0,
        overwrite: bool = False,
        parent_rev: Optional[str] = None,
    ) -> Metadata:
        """
        Upload a file in one request.

        Args:
            path: Remote destination path
            data: File contents or a readable binary stream
            size: Content length; when positive it is sent as-is so a stream is not buffered
            overwrite: Replace an existing file instead of renaming the upload
            parent_rev: Revision the upload is based on
        """
        params = self._params()
        if overwrite:
            params["overwrite"] = format_param(True)
        if parent_rev:
            params["parent_rev"] = parent_rev
        return self.transport.put_json(
            self._file_url(self.files_put_url, path), params, data, size, Metadata.from_dict
        )

    # Metadata

    def metadata(
        self,
        path: str,
        file_limit: int = 0,
        hash: Optional[str] = None,
        list: bool = True,
        include_deleted: bool = False,
        rev: Optional[str] = None,
    ) -> Tuple[Optional[Metadata], bool]:
        """
        Get metadata for a file or folder.

        Args:
            path: Remote path
            file_limit: Fail if a folder holds more entries than this (server default 10,000)
            hash: Hash from an earlier listing; unchanged folders are reported as unmodified
            list: Include folder contents
            include_deleted: Include deleted entries in folder contents
            rev: Revision to describe instead of the latest

        Returns:
            ``(metadata, unmodified)``; ``(None, True)`` when ``hash`` still matches
        """
        params = self._params()
        if file_limit > 0:
            params["file_limit"] = format_param(file_limit)
        if hash:
            params["hash"] = hash
        if not list:
            params["list"] = format_param(False)
        if include_deleted:
            params["include_deleted"] = format_param(True)
        if rev:
            params["rev"] = rev

        try:
            meta = self.transport.get_json(self._file_url(self.metadata_url, path), params, Metadata.from_dict)
        except APIError as e:
            if e.status_code == 304:
                logger.debug("Metadata for %s not modified since hash %s", path, hash)
                return None, True
            raise
        return meta, False

    def search(self, path: str, query: str, file_limit: int = 0, include_deleted: bool = False) -> List[Metadata]:
        """
        Search a folder (recursively) for entries whose names contain ``query``.

        Args:
            file_limit: Return at most this many results
            include_deleted: Include deleted files
        """
        params = self._params()
        params["query"] = query
        if file_limit > 0:
            params["file_limit"] = format_param(file_limit)
        if include_deleted:
            params["include_deleted"] = format_param(True)
        return self.transport.get_json(self._file_url(self.search_url, path), params, _metadata_list)

    def delta(self, cursor: Optional[str] = None) -> Delta:
        """
        Get changes since ``cursor``, or since the account was created when no cursor is given.

        Keep calling with the returned cursor while ``has_more`` is set.
        """
        params = self._params()
        if cursor:
            params["cursor"] = cursor
        return self.transport.post_form_json(self.delta_url, params, Delta.from_dict)

    def revisions(self, path: str, rev_limit: int = 0) -> List[Metadata]:
        """Get metadata for previous revisions of a file, newest first."""
        params = self._params()
        if rev_limit > 0:
            params["rev_limit"] = format_param(rev_limit)
        return self.transport.get_json(self._file_url(self.revisions_url, path), params, _metadata_list)

    def restore(self, path: str, rev: str) -> Metadata:
        """Restore a file to an earlier revision."""
        params = self._params()
        params["rev"] = rev
        return self.transport.get_json(self._file_url(self.restore_url, path), params, Metadata.from_dict)

    # Sharing

    def media(self, path: str) -> Share:
        """Get a short-lived direct link for streaming a file."""
        return self.transport.post_form_json(self._file_url(self.media_url, path), self._params(), Share.from_dict)

    def shares(self, path: str, short_url: bool = False) -> Share:
        """Get a long-lived shareable link to a file or folder."""
        params = self._params()
        if short_url:
            params["short_url"] = format_param(True)
        return self.transport.post_form_json(self._file_url(self.shares_url, path), params, Share.from_dict)

    def copy_ref(self, path: str) -> CopyRef:
        """Get a reference another account can use to copy the file with ``copy(from_copy_ref=...)``."""
        return self.transport.get_json(
            self._file_url(self.copy_ref_url, path), self._params(locale=False), CopyRef.from_dict
        )

    # Chunked uploads

    def chunked_upload(
        self,
        data: Union[bytes, BinaryIO],
        size: int = 0,
        upload_id: Optional[str] = None,
        offset: int = 0,
    ) -> ChunkedUpload:
        """
        Upload one chunk of a chunked upload.

        Leave ``upload_id`` unset for the first chunk; pass the returned
        ``upload_id`` and ``offset`` for the following ones.

        Raises:
            OffsetMismatchError: If ``offset`` is not where the server
                expects it; the error's ``upload`` holds the expected state
        """
        params = self._params(locale=False)
        if upload_id:
            params["upload_id"] = upload_id
            params["offset"] = format_param(offset)

        response = self.transport.put(self.chunked_upload_url, params, data, size)
        if response.status_code != 400:
            return decode_json(response, ChunkedUpload.from_dict)

        # the server reports its expected state alongside the error
        body = read_body(response)
        error = api_error(response, body)
        try:
            expected = decode_body(body, ChunkedUpload.from_dict)
        except DecodeError:
            raise error
        logger.warning(
            "Chunked upload %s offset mismatch: sent %d, server expects %d",
            upload_id, offset, expected.offset,
        )
        raise OffsetMismatchError(error.status_code, error.error, upload=expected)

    def commit_chunked_upload(
        self,
        path: str,
        upload_id: str,
        overwrite: bool = False,
        parent_rev: Optional[str] = None,
    ) -> Metadata:
        """Finish a chunked upload, storing the uploaded data at ``path``."""
        params = self._params()
        params["overwrite"] = format_param(overwrite)
        if parent_rev:
            params["parent_rev"] = parent_rev
        params["upload_id"] = upload_id
        return self.transport.post_form_json(
            self._file_url(self.commit_chunked_upload_url, path), params, Metadata.from_dict
        )

    def upload_chunked(
        self,
        path: str,
        file_obj: BinaryIO,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        overwrite: bool = False,
        parent_rev: Optional[str] = None,
    ) -> Metadata:
        """
        Upload a stream in chunks and commit it to ``path``.

        When the server reports a different offset than expected, reading
        continues from the server's offset.
        """
        upload = ChunkedUpload()
        start = file_obj.tell() if file_obj.seekable() else 0

        for chunk in chunk_file(file_obj, chunk_size):
            try:
                upload = self.chunked_upload(chunk, len(chunk), upload.upload_id or None, upload.offset)
            except OffsetMismatchError as e:
                if not file_obj.seekable() or e.upload.offset == upload.offset:
                    raise
                upload = ChunkedUpload(e.upload.upload_id or upload.upload_id, e.upload.offset, e.upload.expires)
                file_obj.seek(start + upload.offset)
                continue
            logger.debug("Uploaded chunk of %s up to offset %d", path, upload.offset)

        if not upload.upload_id:
            # empty stream: start an upload with no data so there is something to commit
            upload = self.chunked_upload(b"", 0)

        return self.commit_chunked_upload(path, upload.upload_id, overwrite=overwrite, parent_rev=parent_rev)

    # File operations

    def copy(self, to_path: str, from_path: Optional[str] = None, from_copy_ref: Optional[str] = None) -> Metadata:
        """
        Copy a file or folder to ``to_path``.

        The source is either ``from_path`` in this account or a copy
        reference obtained from ``copy_ref`` (possibly by another account).
        """
        if not from_path and not from_copy_ref:
            raise ValueError("copy needs from_path or from_copy_ref")
        params = self._fileops_params(to_path=to_path)
        if from_path:
            params["from_path"] = normalize_path(from_path)
        if from_copy_ref:
            params["from_copy_ref"] = from_copy_ref
        return self.transport.post_form_json(self.fileops_copy_url, params, Metadata.from_dict)

    def create_folder(self, path: str) -> Metadata:
        """Create a folder."""
        params = self._fileops_params(path=path)
        return self.transport.post_form_json(self.fileops_create_folder_url, params, Metadata.from_dict)

    def delete(self, path: str) -> Metadata:
        """Delete a file or folder. Returns the metadata of the deleted entry."""
        params = self._fileops_params(path=path)
        return self.transport.post_form_json(self.fileops_delete_url, params, Metadata.from_dict)

    def move(self, from_path: str, to_path: str) -> Metadata:
        """Move or rename a file or folder."""
        params = self._fileops_params(from_path=from_path, to_path=to_path)
        return self.transport.post_form_json(self.fileops_move_url, params, Metadata.from_dict)

    def _fileops_params(self, **paths: str) -> dict:
        params = self._params()
        params["root"] = self.root.value
        for key, value in paths.items():
            params[key] = normalize_path(value)
        return params

    def __enter__(self):
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit. A caller-supplied HTTP session is left open."""
        self.session.close()


def _metadata_list(data) -> List[Metadata]:
    if not isinstance(data, list):
        raise DecodeError(f"Expected a JSON array of metadata, got {type(data).__name__}")
    return [Metadata.from_dict(item) for item in data]
