"""Token endpoint client, credential refresh and first-time setup.

Both grant types go through :class:`TokenClient`, a form-encoded POST to
``https://auth.<host>/connect/token`` with the client identity in the body.
:class:`CredentialRefresher` is the only code path, besides :func:`setup`,
that writes a credential.
"""
from __future__ import annotations

import logging
from typing import Optional

import httpx
from prometheus_client import Counter
from pydantic import BaseModel, ValidationError

from .config import Environment
from .credentials import Credential, CredentialStore
from .errors import CredentialExpired, ProviderError
from .scopes import parse_scope

_LOG = logging.getLogger(__name__)

_TOKENS_ISSUED = Counter(
    "tlob_oauth_tokens_issued_total", "OAuth tokens issued", ["env", "grant_type"]
)
_TOKEN_ERRORS = Counter(
    "tlob_oauth_token_errors_total",
    "OAuth token endpoint errors",
    ["env", "grant_type", "reason"],
)

__all__ = [
    "TokenResponse",
    "TokenClient",
    "CredentialRefresher",
    "credential_from_response",
    "setup",
]

EXPIRED_CODE_HINT = "(Error most likely caused by time-expired code)"


class TokenResponse(BaseModel):
    access_token: str
    expires_in: int
    refresh_token: Optional[str] = None
    scope: Optional[str] = None


class TokenClient:
    def __init__(
        self,
        environment: Environment,
        *,
        transport: Optional[httpx.BaseTransport] = None,
        timeout: float = 20,
    ) -> None:
        self._env = environment
        self._transport = transport
        self._timeout = timeout

    def exchange_code(self, code: str) -> TokenResponse:
        return self._request(
            "authorization_code",
            {"redirect_uri": self._env.redirect_uri, "code": code},
        )

    def refresh(self, refresh_token: str) -> TokenResponse:
        return self._request("refresh_token", {"refresh_token": refresh_token})

    def _request(self, grant_type: str, extra: dict[str, str]) -> TokenResponse:
        data = {
            "grant_type": grant_type,
            "client_id": self._env.client_id,
            "client_secret": self._env.client_secret,
            **extra,
        }
        try:
            with httpx.Client(timeout=self._timeout, transport=self._transport) as client:
                resp = client.post(self._env.token_url, data=data)
        except httpx.RequestError as exc:
            _TOKEN_ERRORS.labels(self._env.name, grant_type, "transport").inc()
            raise ProviderError(f"token request failed: {exc}") from exc

        body = resp.text
        if resp.is_error:
            _TOKEN_ERRORS.labels(self._env.name, grant_type, str(resp.status_code)).inc()
            raise ProviderError(body, status_code=resp.status_code)
        try:
            payload = resp.json()
        except ValueError as exc:
            _TOKEN_ERRORS.labels(self._env.name, grant_type, "invalid_json").inc()
            raise ProviderError(body, status_code=resp.status_code) from exc
        if not isinstance(payload, dict) or "error" in payload:
            _TOKEN_ERRORS.labels(self._env.name, grant_type, "error_body").inc()
            raise ProviderError(body, status_code=resp.status_code)
        try:
            token = TokenResponse.model_validate(payload)
        except ValidationError as exc:
            _TOKEN_ERRORS.labels(self._env.name, grant_type, "invalid_body").inc()
            raise ProviderError(body, status_code=resp.status_code) from exc

        _TOKENS_ISSUED.labels(self._env.name, grant_type).inc()
        _LOG.debug(
            "issued %s token; expires_in=%s scope=%s",
            grant_type,
            token.expires_in,
            token.scope,
            extra={"env": self._env.name},
        )
        return token


def credential_from_response(
    response: TokenResponse, now: float, previous: Optional[Credential] = None
) -> Credential:
    """Build a credential expiring ``expires_in`` seconds after *now*.

    Scope and refresh token fall back to *previous* when the response omits them.
    """
    if response.scope is not None:
        scope = parse_scope(response.scope)
    else:
        scope = previous.scope if previous else frozenset()
    refresh_token = response.refresh_token or (previous.refresh_token if previous else None)
    return Credential(
        access_token=response.access_token,
        expiry=int(now) + response.expires_in,
        refresh_token=refresh_token,
        scope=scope,
    )


class CredentialRefresher:
    def __init__(self, token_client: TokenClient, store: CredentialStore) -> None:
        self._token_client = token_client
        self._store = store

    def ensure_fresh(self, credential: Credential, now: float) -> Credential:
        """Return a usable credential, refreshing and persisting it if expired.

        Raises:
            CredentialExpired: expired and the grant has no offline access.
            ProviderError: the token endpoint rejected the refresh.
        """
        if not credential.is_expired(now):
            return credential

        if not credential.can_refresh:
            raise CredentialExpired(
                "token expired, not authorised to refresh (expired, no refresh capability). "
                "Run 'setup' again with a new code from TrueLayer"
            )

        _LOG.info("access token expired at %s; refreshing", credential.expiry)
        response = self._token_client.refresh(credential.refresh_token)
        fresh = credential_from_response(response, now, previous=credential)
        self._store.save(fresh)
        return fresh


def setup(code: str, now: float, token_client: TokenClient, store: CredentialStore) -> Credential:
    """Exchange an authorization *code* and persist the first credential.

    Nothing is written when the exchange fails.
    """
    try:
        response = token_client.exchange_code(code)
    except ProviderError as exc:
        if exc.status_code is not None:
            exc.hint = exc.hint or EXPIRED_CODE_HINT
        raise
    credential = credential_from_response(response, now)
    store.save(credential)
    _LOG.info("stored new credential; scope=%s", " ".join(sorted(credential.scope)))
    return credential
