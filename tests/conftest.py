import io
import json

import pytest
import requests
from requests.adapters import BaseAdapter
from requests.structures import CaseInsensitiveDict

from dropbox_v1 import Credentials, DropboxClient, OAuthSigner, Session

APP_KEY = "app-key"
APP_SECRET = "app-secret"
ACCESS = Credentials("access-token", "access-secret")


class FakeAdapter(BaseAdapter):
    """Records prepared requests and answers them with queued responses."""

    def __init__(self):
        super().__init__()
        self.requests = []
        self.responses = []
        self.returned = []

    def queue(self, status=200, body=b"", headers=None):
        if isinstance(body, (dict, list)):
            body = json.dumps(body).encode("utf-8")
        elif isinstance(body, str):
            body = body.encode("utf-8")
        self.responses.append((status, body, headers or {}))

    def queue_error(self, error):
        self.responses.append(error)

    def send(self, request, stream=False, timeout=None, verify=True, cert=None, proxies=None):
        self.requests.append(request)
        queued = self.responses.pop(0)
        if isinstance(queued, Exception):
            raise queued

        status, body, headers = queued
        response = requests.Response()
        response.status_code = status
        response.headers = CaseInsensitiveDict(headers)
        response.raw = io.BytesIO(body)
        response.encoding = "utf-8"
        response.url = request.url
        response.request = request
        self.returned.append(response)
        return response

    def close(self):
        pass

    @property
    def last(self):
        return self.requests[-1]


@pytest.fixture
def adapter():
    return FakeAdapter()


@pytest.fixture
def http(adapter):
    session = requests.Session()
    session.mount("https://", adapter)
    session.mount("http://", adapter)
    return session


@pytest.fixture
def signer():
    return OAuthSigner(
        Credentials(APP_KEY, APP_SECRET),
        nonce_factory=lambda: "fixed-nonce",
        timestamp_factory=lambda: "1300000000",
    )


@pytest.fixture
def session(http, signer):
    return Session(APP_KEY, APP_SECRET, http_client=http, signer=signer)


@pytest.fixture
def authorized_session(http, signer):
    return Session(APP_KEY, APP_SECRET, http_client=http, access_token=ACCESS, signer=signer)


@pytest.fixture
def client(authorized_session):
    return DropboxClient(authorized_session)


def file_metadata(path="/photo.jpg", **overrides):
    data = {
        "size": "225.4 KB",
        "rev": "35e97029684fe",
        "thumb_exists": True,
        "bytes": 230783,
        "modified": "Tue, 19 Jul 2011 21:55:38 +0000",
        "client_mtime": "Mon, 18 Jul 2011 18:04:35 +0000",
        "path": path,
        "is_dir": False,
        "icon": "page_white_picture",
        "root": "dropbox",
        "mime_type": "image/jpeg",
        "revision": 220823,
    }
    data.update(overrides)
    return data


def folder_metadata(path="/Photos", contents=None):
    return {
        "size": "0 bytes",
        "hash": "37eb1ba1849d4b0fb0b28caf7ef3af52",
        "bytes": 0,
        "thumb_exists": False,
        "rev": "714f029684fe",
        "modified": "Wed, 27 Apr 2011 22:18:51 +0000",
        "path": path,
        "is_dir": True,
        "icon": "folder",
        "root": "dropbox",
        "revision": 29007,
        "contents": contents or [],
    }
