"""Credential record and its on-disk store."""
from __future__ import annotations

import json
import logging
import os
import stat
import tempfile
from pathlib import Path
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_serializer, field_validator

from . import OFFLINE_ACCESS
from .errors import CredentialMissing
from .scopes import parse_scope

__all__ = ["Credential", "CredentialStore", "default_tokens_path"]

_LOG = logging.getLogger(__name__)


class Credential(BaseModel):
    """Bearer token set granted by the provider.

    Serialised with the short keys ``access``/``expiry``/``refresh``/``scope``
    so token files written by earlier versions of the tool still load.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    access_token: str = Field(alias="access")
    expiry: int
    refresh_token: Optional[str] = Field(default=None, alias="refresh")
    scope: frozenset[str] = frozenset()

    @field_validator("scope", mode="before")
    @classmethod
    def _parse_scope(cls, value: Any) -> frozenset[str]:
        return parse_scope(value)

    @field_serializer("scope")
    def _dump_scope(self, value: frozenset[str]) -> str:
        return " ".join(sorted(value))

    def is_expired(self, now: float) -> bool:
        return now >= self.expiry

    @property
    def can_refresh(self) -> bool:
        return OFFLINE_ACCESS in self.scope and bool(self.refresh_token)


def default_tokens_path(env_name: str, tokens_dir: str | Path | None = None) -> Path:
    directory = Path(tokens_dir or os.getenv("TLOB_TOKENS_DIR") or Path.home())
    return directory.expanduser() / f".tlob_tokens_{env_name}.json"


class CredentialStore:
    """Single-record JSON store. Writes replace the whole file atomically."""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)

    def exists(self) -> bool:
        return self.path.exists()

    def load(self) -> Credential:
        try:
            raw = self.path.read_text(encoding="utf-8")
        except FileNotFoundError as exc:
            raise CredentialMissing(
                f"Missing tokens at {self.path}. Run 'setup' with a code provided by TrueLayer"
            ) from exc
        try:
            return Credential.model_validate(json.loads(raw))
        except (ValueError, ValidationError) as exc:
            raise CredentialMissing(
                f"Unreadable tokens at {self.path} ({exc}). Run 'setup' again"
            ) from exc

    def save(self, credential: Credential) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        payload = credential.model_dump(by_alias=True, exclude_none=True)
        fd, tmp_name = tempfile.mkstemp(
            prefix=self.path.name + ".", suffix=".tmp", dir=self.path.parent
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(payload, fh, indent=2)
                fh.write("\n")
            os.chmod(tmp_name, stat.S_IRUSR | stat.S_IWUSR)
            os.replace(tmp_name, self.path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
        _LOG.debug("saved credential to %s (expiry=%s)", self.path, credential.expiry)
