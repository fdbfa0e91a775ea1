"""
OAuth session management for the Dropbox v1 SDK.

A Session owns the application's consumer credentials and walks the OAuth
1.0a token lifecycle:

    unauthenticated -> request token obtained -> access token obtained

Only an authorized session (one holding an access token) can sign API
requests. A Session is not thread-safe; callers sharing one across threads
must serialize the token-changing operations themselves.
"""

import logging
from typing import Dict, Optional
from urllib.parse import urlencode

import requests
from oauthlib.common import urldecode

from .auth import Credentials, OAuthSigner
from .config import OAuthConfig
from .exceptions import DecodeError, StateError, TransportError

logger = logging.getLogger(__name__)


class Session:
    """
    OAuth 1.0a session with the Dropbox API.

    Args:
        app_key: Application (consumer) key
        app_secret: Application (consumer) secret
        http_client: ``requests.Session`` used for every call; a new one is created (and
            owned by this session) when omitted. A supplied one stays the caller's to close.
        access_token: Previously obtained access credentials, if any
        locale: Locale sent with locale-aware calls
        config: Endpoint configuration
        signer: Request signer; built from the app key/secret when omitted
        timeout: Timeout passed to every HTTP call
    """

    def __init__(
        self,
        app_key: str,
        app_secret: str,
        http_client: Optional[requests.Session] = None,
        access_token: Optional[Credentials] = None,
        locale: Optional[str] = None,
        config: Optional[OAuthConfig] = None,
        signer: Optional[OAuthSigner] = None,
        timeout: Optional[float] = None,
    ):
        self.consumer = Credentials(app_key, app_secret)
        self.owns_http_client = http_client is None
        self.http_client = http_client if http_client is not None else requests.Session()
        self.config = config or OAuthConfig()
        self.signer = signer or OAuthSigner(self.consumer)
        self.timeout = timeout
        self.locale = locale
        self.request_token: Optional[Credentials] = None
        self.access_token: Optional[Credentials] = access_token

    def close(self):
        """Close the HTTP session if this session created it."""
        if self.owns_http_client:
            self.http_client.close()

    def reset(self):
        """Forget all tokens so the authorization cycle starts over."""
        self.request_token = None
        self.access_token = None

    def is_authorized(self) -> bool:
        """
        True when the session holds access credentials.

        The user may still have revoked them server-side.
        """
        return self.access_token is not None

    def make_params(self, locale: bool = False) -> Dict[str, str]:
        """Start a parameter set, including the locale for locale-aware calls."""
        params = {}
        if locale and self.locale:
            params["locale"] = self.locale
        return params

    def obtain_request_token(self) -> Credentials:
        """
        Fetch request credentials unless the session already has some.

        Returns:
            The session's request token
        """
        if self.request_token is None:
            self.request_token = self._fetch_credentials(self.config.request_token_url)
            logger.info("Obtained request token (oauth_token=%s)", self.request_token.token)
        return self.request_token

    def build_authorize_url(self, callback: Optional[str] = None) -> str:
        """
        Build the URL the user must visit to authorize the request token.

        A request token is fetched first if the session has none. Directing
        the user there is up to the caller.

        Args:
            callback: URL the user is sent back to after authorizing
        """
        token = self.obtain_request_token()
        params = self.make_params(locale=True)
        params["oauth_token"] = token.token
        if callback:
            params["oauth_callback"] = callback
        return self.config.authorize_url + "?" + urlencode(params)

    def exchange_for_access_token(self, request_token: Credentials, verifier: Optional[str] = None) -> Credentials:
        """
        Exchange an authorized request token for access credentials.

        Used by web applications handling the authorization callback, where
        the request token arrives with the redirect rather than from this
        session. The access token is stored in the session and returned.

        Raises:
            StateError: If no request token is supplied
        """
        if request_token is None:
            raise StateError("No request token")
        self.access_token = self._fetch_credentials(self.config.access_token_url, request_token, verifier)
        logger.info("Obtained access token (oauth_token=%s)", self.access_token.token)
        return self.access_token

    def complete_access_token(self) -> Credentials:
        """
        Exchange this session's own request token for access credentials.

        Does nothing if the session is already authorized.

        Raises:
            StateError: If the session has no request token
        """
        if self.is_authorized():
            return self.access_token
        if self.request_token is None:
            raise StateError("No request token")
        return self.exchange_for_access_token(self.request_token)

    def sign_request(self, method: str, url: str, params: Dict[str, str]) -> None:
        """
        Sign ``params`` in place with the access token.

        Raises:
            StateError: If the session is not authorized
        """
        if not self.is_authorized():
            raise StateError("Session not authorized")
        self.signer.sign(method, url, params, self.access_token)

    def _fetch_credentials(
        self, url: str, token: Optional[Credentials] = None, verifier: Optional[str] = None
    ) -> Credentials:
        params = {}
        if verifier:
            params["oauth_verifier"] = verifier
        self.signer.sign("POST", url, params, token)

        logger.debug("POST %s", url)
        try:
            response = self.http_client.post(url, data=params, timeout=self.timeout)
        except requests.RequestException as e:
            raise TransportError(f"Token request failed: {e}") from e

        with response:
            body = response.text
            if response.status_code != 200:
                raise TransportError(
                    f"Token request to {url} failed with status {response.status_code}: {body.strip()}",
                    status_code=response.status_code,
                )

        try:
            values = dict(urldecode(body))
        except ValueError as e:
            raise DecodeError(f"Malformed token response: {e}") from e
        if "oauth_token" not in values or "oauth_token_secret" not in values:
            raise DecodeError("Token response is missing oauth_token or oauth_token_secret")
        return Credentials(values["oauth_token"], values["oauth_token_secret"])
