"""Scope parsing and the local authorization gate."""
from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Iterable

from .errors import AuthorizationDenied

if TYPE_CHECKING:
    from .credentials import Credential

__all__ = ["parse_scope", "missing_scopes", "authorize"]

_LOG = logging.getLogger(__name__)


def parse_scope(value: str | Iterable[str] | None) -> frozenset[str]:
    """Return the permission set for a provider scope value.

    The provider sends a space-separated string; stored records may also
    carry a list.
    """
    if value is None:
        return frozenset()
    if isinstance(value, str):
        return frozenset(value.split())
    return frozenset(str(item).strip() for item in value if str(item).strip())


def missing_scopes(credential: "Credential", required: Iterable[str]) -> frozenset[str]:
    return frozenset(required) - credential.scope


def authorize(credential: "Credential", required: Iterable[str]) -> None:
    """Raise :class:`AuthorizationDenied` unless every *required* permission is granted."""
    missing = missing_scopes(credential, required)
    if missing:
        _LOG.info("authorization denied; missing=%s", ",".join(sorted(missing)))
        raise AuthorizationDenied(missing)
