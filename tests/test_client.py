import io
import json
from unittest.mock import Mock
from urllib.parse import parse_qs, unquote, urlsplit

import pytest

from dropbox_v1 import (
    APIError,
    AccessRoot,
    AuthorizationError,
    ConfigurationError,
    DecodeError,
    DropboxClient,
    OffsetMismatchError,
    Session,
)

from .conftest import ACCESS, file_metadata, folder_metadata


def query(url):
    return {k: v[0] for k, v in parse_qs(urlsplit(url).query).items()}


def form(request):
    return {k: v[0] for k, v in parse_qs(request.body).items()}


def path_of(request):
    return unquote(urlsplit(request.url).path)


def test_client_requires_authorized_session(session):
    with pytest.raises(ConfigurationError):
        DropboxClient(session)


def test_client_forwards_session_state(client, authorized_session):
    client.locale = "pt"

    assert authorized_session.locale == "pt"
    assert client.access_token == authorized_session.access_token
    assert client.is_authorized()

    client.reset()

    assert not authorized_session.is_authorized()


def test_account_info(client, adapter):
    adapter.queue(body={
        "uid": 42,
        "display_name": "Jane",
        "country": "NZ",
        "referral_link": "https://db.tt/x",
        "quota_info": {"shared": 1, "quota": 10, "normal": 2},
    })

    info = client.account_info()

    assert info.uid == 42
    assert info.quota_info.used == 3
    assert adapter.last.url.startswith("https://api.dropbox.com/1/account/info?")


def test_metadata_decodes_folder(client, adapter):
    adapter.queue(body=folder_metadata(contents=[file_metadata("/Photos/a.jpg")]))

    meta, unmodified = client.metadata("/Photos")

    assert not unmodified
    assert meta.is_dir
    assert meta.contents[0].path == "/Photos/a.jpg"
    assert path_of(adapter.last) == "/1/metadata/dropbox/Photos"


def test_metadata_not_modified(client, adapter):
    adapter.queue(status=304, body=b"")

    meta, unmodified = client.metadata("/Photos", hash="37eb1ba1849d4b0fb0b28caf7ef3af52")

    assert meta is None
    assert unmodified
    assert query(adapter.last.url)["hash"] == "37eb1ba1849d4b0fb0b28caf7ef3af52"


def test_metadata_other_errors_propagate(client, adapter):
    adapter.queue(status=404, body={"error": "Path '/nope' not found"})

    with pytest.raises(APIError) as excinfo:
        client.metadata("/nope")

    assert excinfo.value.status_code == 404


def test_metadata_sends_only_chosen_options(client, adapter):
    adapter.queue(body=file_metadata())

    client.metadata("/photo.jpg")

    sent = query(adapter.last.url)
    for name in ("file_limit", "hash", "list", "include_deleted", "rev"):
        assert name not in sent


def test_metadata_options_are_formatted(client, adapter):
    adapter.queue(body=file_metadata())

    client.metadata("/photo.jpg", file_limit=25, list=False, include_deleted=True, rev="abc")

    sent = query(adapter.last.url)
    assert sent["file_limit"] == "25"
    assert sent["list"] == "false"
    assert sent["include_deleted"] == "true"
    assert sent["rev"] == "abc"


def test_paths_cannot_escape_root(client, adapter):
    adapter.queue(body=file_metadata("/etc"))

    client.metadata("../../etc")

    assert path_of(adapter.last) == "/1/metadata/dropbox/etc"


def test_sandbox_root_and_quoting(authorized_session, adapter):
    client = DropboxClient(authorized_session, root=AccessRoot.SANDBOX)
    adapter.queue(body=file_metadata("/My Photos/a b.jpg"))

    client.metadata("My Photos/a b.jpg")

    assert urlsplit(adapter.last.url).path == "/1/metadata/sandbox/My%20Photos/a%20b.jpg"


def test_locale_sent_on_metadata_but_not_on_downloads(client, adapter):
    client.locale = "en"
    adapter.queue(body=file_metadata())
    adapter.queue(body=b"bytes")

    client.metadata("/photo.jpg")
    assert query(adapter.last.url)["locale"] == "en"

    client.get_file("/photo.jpg").close()
    assert "locale" not in query(adapter.last.url)


def test_get_file_with_metadata_header(client, adapter):
    adapter.queue(body=b"JPEGDATA", headers={"x-dropbox-metadata": json.dumps(file_metadata())})

    with client.get_file("/photo.jpg", rev="35e97029684fe") as stream:
        assert stream.read() == b"JPEGDATA"
        assert stream.metadata.rev == "35e97029684fe"

    assert adapter.last.url.startswith("https://api-content.dropbox.com/1/files/dropbox/photo.jpg?")
    assert query(adapter.last.url)["rev"] == "35e97029684fe"


def test_thumbnail_parameters(client, adapter):
    adapter.queue(body=b"PNG")

    client.thumbnail("/photo.jpg", format="png", size="m").close()

    sent = query(adapter.last.url)
    assert path_of(adapter.last) == "/1/thumbnails/dropbox/photo.jpg"
    assert sent["format"] == "png"
    assert sent["size"] == "m"


def test_put_file(client, adapter):
    adapter.queue(body=file_metadata("/notes.txt"))

    meta = client.put_file("/notes.txt", io.BytesIO(b"hello world"), 11, overwrite=True, parent_rev="r1")

    request = adapter.last
    sent = query(request.url)
    assert meta.path == "/notes.txt"
    assert request.method == "PUT"
    assert path_of(request) == "/1/files_put/dropbox/notes.txt"
    assert request.headers["Content-Length"] == "11"
    assert sent["overwrite"] == "true"
    assert sent["parent_rev"] == "r1"


def test_search_returns_list(client, adapter):
    adapter.queue(body=[file_metadata("/a/x.txt"), file_metadata("/b/x.txt")])

    results = client.search("/", "x", file_limit=2)

    assert [m.path for m in results] == ["/a/x.txt", "/b/x.txt"]
    assert query(adapter.last.url)["query"] == "x"
    assert path_of(adapter.last) == "/1/search/dropbox"


def test_search_rejects_non_list(client, adapter):
    adapter.queue(body={"error": "not a list"})

    with pytest.raises(DecodeError):
        client.search("/", "x")


def test_delta_posts_cursor(client, adapter):
    adapter.queue(body={
        "entries": [["/a.txt", file_metadata("/a.txt")], ["/gone", None]],
        "reset": False,
        "cursor": "next",
        "has_more": False,
    })

    delta = client.delta(cursor="prev")

    assert adapter.last.method == "POST"
    assert form(adapter.last)["cursor"] == "prev"
    assert delta.cursor == "next"
    assert delta.entries[1].is_deleted


def test_revisions_and_restore(client, adapter):
    adapter.queue(body=[file_metadata(rev="r2"), file_metadata(rev="r1")])
    adapter.queue(body=file_metadata(rev="r3"))

    revisions = client.revisions("/photo.jpg", rev_limit=2)
    assert [m.rev for m in revisions] == ["r2", "r1"]
    assert query(adapter.last.url)["rev_limit"] == "2"

    restored = client.restore("/photo.jpg", "r1")
    assert restored.rev == "r3"
    assert query(adapter.last.url)["rev"] == "r1"


def test_shares_and_media(client, adapter):
    adapter.queue(body={"url": "https://db.tt/short", "expires": "Tue, 01 Jan 2030 00:00:00 +0000"})
    adapter.queue(body={"url": "https://dl.dropbox.com/x", "expires": "Tue, 01 Jan 2030 00:00:00 +0000"})

    share = client.shares("/photo.jpg", short_url=True)
    assert share.url == "https://db.tt/short"
    assert form(adapter.last)["short_url"] == "true"

    media = client.media("/photo.jpg")
    assert media.url == "https://dl.dropbox.com/x"
    assert path_of(adapter.last) == "/1/media/dropbox/photo.jpg"


def test_copy_ref_omits_locale(client, adapter):
    client.locale = "en"
    adapter.queue(body={"copy_ref": "ref", "expires": "Fri, 31 Jan 2042 21:01:05 +0000"})

    ref = client.copy_ref("/photo.jpg")

    assert ref.copy_ref == "ref"
    assert "locale" not in query(adapter.last.url)


def test_chunked_upload_first_chunk(client, adapter):
    adapter.queue(body={"upload_id": "u1", "offset": 4, "expires": "Tue, 01 Jan 2030 00:00:00 +0000"})

    upload = client.chunked_upload(b"abcd", 4)

    sent = query(adapter.last.url)
    assert upload.upload_id == "u1"
    assert upload.offset == 4
    assert "upload_id" not in sent
    assert "offset" not in sent


def test_chunked_upload_offset_mismatch(client, adapter):
    adapter.queue(status=400, body={"error": "offset mismatch", "upload_id": "u1", "offset": 512})

    with pytest.raises(OffsetMismatchError) as excinfo:
        client.chunked_upload(b"data", 4, upload_id="u1", offset=1024)

    error = excinfo.value
    assert error.status_code == 400
    assert error.error == "offset mismatch"
    assert error.upload.offset == 512
    assert query(adapter.last.url)["offset"] == "1024"


def test_chunked_upload_unreadable_400_is_plain_api_error(client, adapter):
    adapter.queue(status=400, body="bad request")

    with pytest.raises(APIError) as excinfo:
        client.chunked_upload(b"data", 4, upload_id="u1", offset=0)

    assert not isinstance(excinfo.value, OffsetMismatchError)
    assert excinfo.value.error == "bad request"


def test_commit_chunked_upload_always_sends_overwrite(client, adapter):
    adapter.queue(body=file_metadata("/big.bin"))

    client.commit_chunked_upload("/big.bin", "u1")

    sent = form(adapter.last)
    assert path_of(adapter.last) == "/1/commit_chunked_upload/dropbox/big.bin"
    assert sent["overwrite"] == "false"
    assert sent["upload_id"] == "u1"
    assert "parent_rev" not in sent


def test_upload_chunked(client, adapter):
    adapter.queue(body={"upload_id": "u1", "offset": 4})
    adapter.queue(body={"upload_id": "u1", "offset": 8})
    adapter.queue(body={"upload_id": "u1", "offset": 10})
    adapter.queue(body=file_metadata("/big.bin"))

    meta = client.upload_chunked("/big.bin", io.BytesIO(b"0123456789"), chunk_size=4, overwrite=True)

    assert meta.path == "/big.bin"
    assert [r.body for r in adapter.requests[:3]] == [b"0123", b"4567", b"89"]
    assert [query(r.url).get("offset") for r in adapter.requests[:3]] == [None, "4", "8"]
    committed = form(adapter.last)
    assert committed["upload_id"] == "u1"
    assert committed["overwrite"] == "true"


def test_upload_chunked_resumes_from_server_offset(client, adapter):
    adapter.queue(body={"upload_id": "u1", "offset": 4})
    adapter.queue(status=400, body={"error": "offset mismatch", "upload_id": "u1", "offset": 2})
    adapter.queue(body={"upload_id": "u1", "offset": 6})
    adapter.queue(body={"upload_id": "u1", "offset": 8})
    adapter.queue(body=file_metadata("/big.bin"))

    client.upload_chunked("/big.bin", io.BytesIO(b"abcdefgh"), chunk_size=4)

    assert [r.body for r in adapter.requests[:4]] == [b"abcd", b"efgh", b"cdef", b"gh"]
    assert query(adapter.requests[2].url)["offset"] == "2"
    assert form(adapter.last)["upload_id"] == "u1"


def test_upload_chunked_empty_stream(client, adapter):
    adapter.queue(body={"upload_id": "u9", "offset": 0})
    adapter.queue(body=file_metadata("/empty"))

    client.upload_chunked("/empty", io.BytesIO(b""))

    assert len(adapter.requests) == 2
    assert form(adapter.last)["upload_id"] == "u9"


def test_fileops_send_root_and_normalized_paths(client, adapter):
    adapter.queue(body=file_metadata("/c"))

    client.move("a/../b", "/c/")

    sent = form(adapter.last)
    assert adapter.last.url == "https://api.dropbox.com/1/fileops/move"
    assert sent["root"] == "dropbox"
    assert sent["from_path"] == "/b"
    assert sent["to_path"] == "/c"


def test_create_folder_and_delete(client, adapter):
    adapter.queue(body=folder_metadata("/New"))
    adapter.queue(body=folder_metadata("/New"))

    client.create_folder("New")
    assert form(adapter.last)["path"] == "/New"
    assert adapter.last.url.endswith("/fileops/create_folder")

    client.delete("/New")
    assert adapter.last.url.endswith("/fileops/delete")


def test_copy_from_ref(client, adapter):
    adapter.queue(body=file_metadata("/copy.jpg"))

    client.copy("/copy.jpg", from_copy_ref="ref")

    sent = form(adapter.last)
    assert sent["from_copy_ref"] == "ref"
    assert "from_path" not in sent


def test_copy_needs_a_source(client, adapter):
    with pytest.raises(ValueError):
        client.copy("/copy.jpg")

    assert adapter.requests == []


def test_expired_token_reports_request_context(client, adapter):
    adapter.queue(status=401, body={"error": "expired"})

    with pytest.raises(AuthorizationError) as excinfo:
        client.metadata("/Photos")

    assert excinfo.value.context == "metadata/dropbox/Photos"


def test_context_exit_leaves_supplied_http_session_open(authorized_session, monkeypatch):
    close = Mock()
    monkeypatch.setattr(authorized_session.http_client, "close", close)

    with DropboxClient(authorized_session):
        pass

    close.assert_not_called()


def test_context_exit_closes_own_http_session(monkeypatch):
    session = Session("k", "s", access_token=ACCESS)
    close = Mock()
    monkeypatch.setattr(session.http_client, "close", close)

    with DropboxClient(session):
        pass

    close.assert_called_once_with()
