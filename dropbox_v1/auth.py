"""
OAuth 1.0a request signing for the Dropbox v1 SDK.

This module defines the credential pair used for consumer, request and
access tokens, and the signer that adds ``oauth_*`` parameters (including
the HMAC-SHA1 signature) to a request's parameter set.
"""

from dataclasses import dataclass
from typing import Callable, Dict, Optional
from urllib.parse import urlsplit

from oauthlib.common import generate_nonce, generate_timestamp, urldecode
from oauthlib.oauth1 import Client as OAuthClient
from oauthlib.oauth1.rfc5849 import signature

SIGNATURE_METHOD = "HMAC-SHA1"
OAUTH_VERSION = "1.0"


@dataclass(frozen=True)
class Credentials:
    """A token/secret pair. Replaced, never mutated."""

    token: str
    secret: str

    def __repr__(self):
        return f"Credentials(token={self.token!r}, secret='***')"


class OAuthSigner:
    """
    Signs requests on behalf of an application.

    The nonce and timestamp sources can be replaced so signatures are
    reproducible in tests.
    """

    def __init__(
        self,
        consumer: Credentials,
        nonce_factory: Callable[[], str] = generate_nonce,
        timestamp_factory: Callable[[], str] = generate_timestamp,
    ):
        self.consumer = consumer
        self.nonce_factory = nonce_factory
        self.timestamp_factory = timestamp_factory

    def sign(self, method: str, url: str, params: Dict[str, str], token: Optional[Credentials] = None) -> None:
        """
        Add OAuth protocol parameters and the signature to ``params`` in place.

        Args:
            method: HTTP method
            url: Target URL; any query string is included in the signature
            params: Request parameters, sent as query string or form body
            token: Request or access token; omitted for the request-token step
        """
        params["oauth_consumer_key"] = self.consumer.token
        params["oauth_nonce"] = self.nonce_factory()
        params["oauth_signature_method"] = SIGNATURE_METHOD
        params["oauth_timestamp"] = str(self.timestamp_factory())
        params["oauth_version"] = OAUTH_VERSION
        if token is not None:
            params["oauth_token"] = token.token
        params.pop("oauth_signature", None)

        params["oauth_signature"] = self.signature(method, url, params, token)

    def signature(self, method: str, url: str, params: Dict[str, str], token: Optional[Credentials] = None) -> str:
        """Compute the base64 HMAC-SHA1 signature for a fully populated parameter set."""
        query = urlsplit(url).query
        collected = list(params.items()) + (urldecode(query) if query else [])
        base_string = signature.signature_base_string(
            method.upper(),
            signature.base_string_uri(url),
            signature.normalize_parameters(collected),
        )
        client = OAuthClient(
            self.consumer.token,
            client_secret=self.consumer.secret,
            resource_owner_secret=token.secret if token is not None else "",
        )
        return signature.sign_hmac_sha1_with_client(base_string, client)
