"""Error taxonomy for the tlob client.

Every error is terminal for the current invocation. The CLI prints the
message to stderr and exits with ``exit_code``.
"""
from __future__ import annotations

from typing import Iterable

__all__ = [
    "TlobError",
    "UsageError",
    "ConfigError",
    "CredentialMissing",
    "CredentialExpired",
    "ProviderError",
    "AuthorizationDenied",
]


class TlobError(Exception):
    exit_code = 1


class UsageError(TlobError):
    """Malformed invocation: unknown environment/command or wrong arity."""

    exit_code = 2


class ConfigError(TlobError):
    """Client identity configuration is missing or incomplete."""


class CredentialMissing(TlobError):
    """No stored credential for the selected environment."""


class CredentialExpired(TlobError):
    """Credential expired and cannot be refreshed."""


class ProviderError(TlobError):
    """Token or data endpoint answered with an error payload.

    ``body`` holds the raw response text so it can be shown verbatim.
    """

    def __init__(self, body: str, *, status_code: int | None = None, hint: str | None = None) -> None:
        super().__init__(body)
        self.body = body
        self.status_code = status_code
        self.hint = hint


class AuthorizationDenied(TlobError):
    """Granted scope lacks permission(s) needed by the command."""

    def __init__(self, missing: Iterable[str]) -> None:
        self.missing = frozenset(missing)
        names = " and ".join(sorted(self.missing))
        super().__init__(f"not authorised. {names} not included in scope")
