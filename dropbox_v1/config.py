"""
Configuration for the Dropbox v1 SDK.

This module holds the service URLs, the storage root enumeration, the
OAuth endpoint configuration handed to each session, and credential lookup
from environment variables and credential files.
"""

import json
import os
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Dict, Optional


API_VERSION = 1
SCHEME = "https://"
PREFIX = f"/{API_VERSION}"

API_HOST = "api.dropbox.com"
WEB_HOST = "www.dropbox.com"
CONTENT_HOST = "api-content.dropbox.com"

API_PREFIX = SCHEME + API_HOST + PREFIX
WEB_PREFIX = SCHEME + WEB_HOST + PREFIX
CONTENT_PREFIX = SCHEME + CONTENT_HOST + PREFIX

METADATA_HEADER = "x-dropbox-metadata"


class AccessRoot(Enum):
    """Storage root a client works under."""
    DROPBOX = "dropbox"  # whole account
    SANDBOX = "sandbox"  # app folder
    APP_FOLDER = "sandbox"


@dataclass(frozen=True)
class OAuthConfig:
    """
    Endpoints used by a session.

    Built once per session and threaded through to the transport; override
    the prefixes to point the SDK at a test server.
    """

    api_prefix: str = API_PREFIX
    content_prefix: str = CONTENT_PREFIX
    web_prefix: str = WEB_PREFIX

    @property
    def request_token_url(self) -> str:
        return self.api_prefix + "/oauth/request_token"

    @property
    def authorize_url(self) -> str:
        return self.web_prefix + "/oauth/authorize"

    @property
    def access_token_url(self) -> str:
        return self.api_prefix + "/oauth/access_token"


class CredentialManager:
    """
    Looks up app credentials and stored tokens.

    Environment variables are checked first, then JSON credential files in order.
    """

    ENV_PREFIX = "DROPBOX_"

    def __init__(self, credential_files=None):
        self.credentials_cache: Dict[str, str] = {}
        self.credential_files = [Path(p) for p in credential_files] if credential_files else [
            Path.home() / ".dropbox_v1" / "credentials.json",
            Path.cwd() / ".dropbox_v1.json",
        ]

    def get_credential(self, key: str, default: Optional[str] = None) -> Optional[str]:
        """
        Get credential from various sources.

        Args:
            key: Credential key name (e.g. ``app_key``)
            default: Default value if not found

        Returns:
            Credential value or default
        """
        if key in self.credentials_cache:
            return self.credentials_cache[key]

        for env_var in (key, key.upper(), f"{self.ENV_PREFIX}{key.upper()}"):
            env_value = os.getenv(env_var)
            if env_value:
                self.credentials_cache[key] = env_value
                return env_value

        file_value = self._load_from_credentials_file(key)
        if file_value:
            self.credentials_cache[key] = file_value
            return file_value

        return default

    def _load_from_credentials_file(self, key: str) -> Optional[str]:
        for cred_file in self.credential_files:
            if not cred_file.exists():
                continue
            try:
                with open(cred_file, "r") as f:
                    credentials = json.load(f)
            except (json.JSONDecodeError, IOError):
                continue
            if key in credentials:
                return credentials[key]
        return None
