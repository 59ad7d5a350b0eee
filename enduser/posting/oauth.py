"""OAuth 1.0a request signing (HMAC-SHA1) for the X API.

Signing is done by oauthlib. JSON bodies are not part of the signature
base string; query parameters in the URL are.
"""

import secrets

from oauthlib.oauth1 import SIGNATURE_HMAC_SHA1, Client
from pydantic import BaseModel, Field

NONCE_BYTES = 16


class OAuthCredentials(BaseModel):
    """Consumer and access token pair for user-context requests."""

    model_config = {"frozen": True}

    consumer_key: str = Field(..., description="Consumer (API) key")
    consumer_secret: str = Field(..., description="Consumer (API) secret")
    access_token: str = Field(..., description="Access token")
    access_token_secret: str = Field(..., description="Access token secret")


def generate_nonce(num_bytes: int = NONCE_BYTES) -> str:
    """Hex-encoded random nonce."""
    return secrets.token_hex(num_bytes)


def build_authorization_header(
    credentials: OAuthCredentials,
    method: str,
    url: str,
    nonce: str | None = None,
    timestamp: str | None = None,
) -> str:
    """Build a signed OAuth Authorization header value.

    Args:
        credentials: Consumer and access token pair
        method: HTTP method
        url: Request URL; its query parameters take part in the signature
        nonce: Fixed nonce (random hex when omitted)
        timestamp: Fixed Unix timestamp string (now when omitted)

    Returns:
        Header value starting with "OAuth "
    """
    client = Client(
        credentials.consumer_key,
        client_secret=credentials.consumer_secret,
        resource_owner_key=credentials.access_token,
        resource_owner_secret=credentials.access_token_secret,
        signature_method=SIGNATURE_HMAC_SHA1,
        nonce=nonce or generate_nonce(),
        timestamp=timestamp,
    )
    _, headers, _ = client.sign(url, http_method=method.upper())
    return headers["Authorization"]
