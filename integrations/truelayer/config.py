"""Per-invocation environment configuration.

The environment (``sandbox`` or ``live``) and its client identity are
resolved once and passed explicitly to every component.
"""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

from common.secrets import SecretsManager

from . import DEFAULT_REDIRECT_URI, HOSTS
from .errors import ConfigError, UsageError

__all__ = ["Environment", "load_environment", "load_env_file"]

_LOG = logging.getLogger(__name__)


@dataclass(frozen=True)
class Environment:
    name: str
    host: str
    client_id: str
    client_secret: str
    redirect_uri: str = DEFAULT_REDIRECT_URI

    @property
    def api_base(self) -> str:
        return f"https://api.{self.host}/data/v1"

    @property
    def token_url(self) -> str:
        return f"https://auth.{self.host}/connect/token"

    def __repr__(self) -> str:
        # keep client_secret out of logs and tracebacks
        return f"Environment(name={self.name!r}, host={self.host!r}, client_id={self.client_id!r})"


def load_env_file(path: str | Path = ".env") -> None:
    """Load ``.env`` without overriding variables already set in the process."""
    path = Path(path)
    if path.exists():
        load_dotenv(dotenv_path=path, override=False)
        _LOG.debug("loaded env file %s", path)


def config_path(name: str, config_dir: str | Path | None = None) -> Path:
    directory = Path(config_dir or os.getenv("TLOB_CONFIG_DIR", "."))
    return directory.expanduser() / f"{name}.cfg"


def load_environment(
    name: str,
    config_dir: str | Path | None = None,
    *,
    secrets: SecretsManager | None = None,
) -> Environment:
    """Resolve *name* into an :class:`Environment`.

    Client identity comes from ``TLOB_<ENV>_CLIENT_ID`` /
    ``TLOB_<ENV>_CLIENT_SECRET`` when set, otherwise from ``<name>.cfg``.
    """
    host = HOSTS.get(name)
    if host is None:
        raise UsageError(f"unknown environment: {name!r} (expected one of: {', '.join(HOSTS)})")

    secrets = secrets or SecretsManager(config_path(name, config_dir))
    try:
        client_id = os.getenv(f"TLOB_{name.upper()}_CLIENT_ID") or secrets.get("client_id")
        client_secret = os.getenv(f"TLOB_{name.upper()}_CLIENT_SECRET") or secrets.get("client_secret")
        redirect_uri = secrets.get("redirect_uri") or DEFAULT_REDIRECT_URI
    except ValueError as exc:
        raise ConfigError(f"unreadable configuration {secrets.path}: {exc}") from exc

    if not client_id or not client_secret:
        raise ConfigError(
            f"Populate {secrets.path} with client_id and client_secret from your truelayer.com account"
        )
    _LOG.debug("resolved environment %s (client_id=%s)", name, client_id, extra={"env": name})
    return Environment(
        name=name,
        host=host,
        client_id=str(client_id),
        client_secret=str(client_secret),
        redirect_uri=str(redirect_uri),
    )
