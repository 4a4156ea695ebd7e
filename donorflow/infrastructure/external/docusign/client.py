"""DocuSign eSignature REST client (implements ISigningProvider).

Authenticates with the OAuth JWT grant: an RS256 assertion signed with the
integration's private key is exchanged for an access token, which is cached
until shortly before it expires. The account id comes from settings or, when
unset, from the default account in /oauth/userinfo.
"""

from __future__ import annotations

import asyncio
import base64
import binascii
import logging
import time
from typing import TYPE_CHECKING, Any
from urllib.parse import urlparse

import httpx
from jose import JWTError, jwt

from donorflow.application.services.retry import RETRYABLE_STATUS_CODES
from donorflow.infrastructure.exceptions import (
    SigningProviderError,
    SigningProviderNotConfiguredError,
)

if TYPE_CHECKING:
    from donorflow.core.config import Settings

logger = logging.getLogger(__name__)

JWT_GRANT_TYPE = "urn:ietf:params:oauth:grant-type:jwt-bearer"
JWT_SCOPE = "signature impersonation"
ASSERTION_LIFETIME_SECONDS = 3600
# Refresh this many seconds before the provider-reported expiry.
TOKEN_EXPIRY_MARGIN_SECONDS = 60


def _load_private_key(raw: str) -> str:
    """Accept a PEM string or the base64-encoded PEM used in env files."""
    raw = raw.strip()
    if raw.startswith("-----BEGIN"):
        return raw.replace("\\n", "\n")
    try:
        decoded = base64.b64decode(raw, validate=True).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError) as e:
        raise SigningProviderError("DOCUSIGN_PRIVATE_KEY is neither PEM nor base64 PEM") from e
    return decoded


def _error_from_response(response: httpx.Response, action: str) -> SigningProviderError:
    detail = response.text[:300] if response.text else ""
    return SigningProviderError(
        f"DocuSign {action} failed: {response.status_code} {detail}".strip(),
        status_code=response.status_code,
        transient=response.status_code in RETRYABLE_STATUS_CODES,
    )


class DocuSignClient:
    """Minimal eSignature client: envelope status and combined document download."""

    def __init__(self, settings: Settings, http_client: httpx.AsyncClient | None = None) -> None:
        if not settings.docusign_configured:
            raise SigningProviderNotConfiguredError()
        self._integration_key = settings.docusign_integration_key or ""
        self._user_id = settings.docusign_user_id or ""
        self._private_key_raw = (
            settings.docusign_private_key.get_secret_value() if settings.docusign_private_key else ""
        )
        self._oauth_base_url = settings.docusign_oauth_base_url.rstrip("/")
        self._base_url = settings.docusign_base_url.rstrip("/")
        self._account_id = settings.docusign_account_id
        self._owns_client = http_client is None
        self._http = http_client or httpx.AsyncClient(timeout=settings.docusign_timeout_seconds)
        self._access_token: str | None = None
        self._token_expires_at = 0.0
        self._auth_lock = asyncio.Lock()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._http.aclose()

    def _assertion(self) -> str:
        now = int(time.time())
        claims = {
            "iss": self._integration_key,
            "sub": self._user_id,
            "aud": urlparse(self._oauth_base_url).netloc or self._oauth_base_url,
            "iat": now,
            "exp": now + ASSERTION_LIFETIME_SECONDS,
            "scope": JWT_SCOPE,
        }
        try:
            return jwt.encode(claims, _load_private_key(self._private_key_raw), algorithm="RS256")
        except JWTError as e:
            raise SigningProviderError(f"Could not sign DocuSign JWT assertion: {e}") from e

    async def _send(self, method: str, url: str, action: str, **kwargs: Any) -> httpx.Response:
        try:
            response = await self._http.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            raise SigningProviderError(f"DocuSign {action} request failed: {e}", transient=True) from e
        if response.status_code >= 400:
            raise _error_from_response(response, action)
        return response

    async def _authenticate(self) -> None:
        response = await self._send(
            "POST",
            f"{self._oauth_base_url}/oauth/token",
            "token exchange",
            data={"grant_type": JWT_GRANT_TYPE, "assertion": self._assertion()},
            headers={"Accept": "application/json"},
        )
        payload = response.json()
        token = payload.get("access_token")
        if not token:
            raise SigningProviderError("DocuSign token response has no access_token")
        self._access_token = token
        expires_in = int(payload.get("expires_in") or ASSERTION_LIFETIME_SECONDS)
        self._token_expires_at = time.monotonic() + expires_in - TOKEN_EXPIRY_MARGIN_SECONDS
        logger.debug("DocuSign access token obtained (expires in %ds)", expires_in)

        if not self._account_id:
            info = await self._send(
                "GET",
                f"{self._oauth_base_url}/oauth/userinfo",
                "userinfo",
                headers={"Authorization": f"Bearer {token}", "Accept": "application/json"},
            )
            accounts = info.json().get("accounts") or []
            if not accounts:
                raise SigningProviderError("No DocuSign accounts found for the configured user")
            account = next((a for a in accounts if a.get("is_default")), accounts[0])
            self._account_id = account.get("account_id")
            logger.info("Using DocuSign account %s", self._account_id)

    async def _token(self) -> str:
        async with self._auth_lock:
            if self._access_token is None or time.monotonic() >= self._token_expires_at:
                await self._authenticate()
            return self._access_token or ""

    def _envelope_url(self, envelope_id: str, suffix: str = "") -> str:
        return f"{self._base_url}/v2.1/accounts/{self._account_id}/envelopes/{envelope_id}{suffix}"

    async def get_envelope_status(self, envelope_id: str) -> dict[str, Any]:
        token = await self._token()
        response = await self._send(
            "GET",
            self._envelope_url(envelope_id),
            f"status of envelope {envelope_id}",
            params={"include": "recipients"},
            headers={"Authorization": f"Bearer {token}", "Accept": "application/json"},
        )
        return response.json()

    async def download_combined_document(self, envelope_id: str) -> bytes:
        token = await self._token()
        response = await self._send(
            "GET",
            self._envelope_url(envelope_id, "/documents/combined"),
            f"download of envelope {envelope_id}",
            headers={"Authorization": f"Bearer {token}", "Accept": "application/pdf"},
        )
        if not response.content:
            raise SigningProviderError(
                f"DocuSign returned an empty document for envelope {envelope_id}", transient=True
            )
        return response.content
