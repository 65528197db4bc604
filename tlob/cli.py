"""``tlob ENVIRONMENT COMMAND [PARAMETERS]``

Loads the stored credential, refreshes it if expired, checks the granted
scope for the command and prints the JSON response on stdout. Every error
ends the run; messages go to stderr.
"""
from __future__ import annotations

import argparse
import datetime as _dt
import json
import logging
import os
import sys
import time
from typing import Callable, Optional, Sequence, TextIO

import httpx
from prometheus_client import REGISTRY, write_to_textfile

from common.datetime import today as _today
from common.logging import configure_logging
from integrations.truelayer import HOSTS
from integrations.truelayer.auth import CredentialRefresher, TokenClient, setup
from integrations.truelayer.commands import resolve, usage
from integrations.truelayer.config import load_env_file, load_environment
from integrations.truelayer.credentials import CredentialStore, default_tokens_path
from integrations.truelayer.errors import ProviderError, TlobError, UsageError
from integrations.truelayer.http import DataClient
from integrations.truelayer.scopes import authorize

_LOG = logging.getLogger(__name__)

SETUP = "setup"
CODE_PROMPT = "Construct an authentication link at truelayer.com and paste code provided here: "


class _Parser(argparse.ArgumentParser):
    def error(self, message: str) -> None:  # type: ignore[override]
        raise UsageError(message)


def build_parser() -> argparse.ArgumentParser:
    ap = _Parser(prog="tlob", description="Query the TrueLayer data API", add_help=False)
    ap.add_argument("environment", help="sandbox or live")
    ap.add_argument("command", help="setup, info, accounts, balance, ...")
    ap.add_argument("params", nargs="*", help="account_id, from/to dates or setup code")
    return ap


def _run_setup(args: argparse.Namespace, token_client: TokenClient, store: CredentialStore,
               now: float, prompt: Callable[[str], str], out: TextIO) -> int:
    if len(args.params) > 1:
        raise UsageError("setup takes at most one parameter (the code)")
    if args.params:
        code = args.params[0]
    else:
        try:
            code = prompt(CODE_PROMPT).strip()
        except EOFError as exc:
            raise UsageError("no code provided") from exc
    if not code:
        raise UsageError("no code provided")

    credential = setup(code, now, token_client, store)
    expires = _dt.datetime.fromtimestamp(credential.expiry, tz=_dt.timezone.utc).isoformat()
    print(f"Tokens saved to {store.path}", file=out)
    print(f"Scope: {' '.join(sorted(credential.scope))}", file=out)
    print(f"Access token expires: {expires}", file=out)
    return 0


def main(
    argv: Optional[Sequence[str]] = None,
    *,
    transport: Optional[httpx.BaseTransport] = None,
    clock: Callable[[], float] = time.time,
    today: Optional[_dt.date] = None,
    prompt: Callable[[str], str] = input,
    out: Optional[TextIO] = None,
    err: Optional[TextIO] = None,
) -> int:
    out = out or sys.stdout
    err = err or sys.stderr
    try:
        args = build_parser().parse_args(argv)
        if args.environment not in HOSTS:
            raise UsageError(f"unknown environment: {args.environment!r}")

        request = None
        if args.command != SETUP:
            request = resolve(args.command, args.params, today or _today())

        env = load_environment(args.environment)
        store = CredentialStore(default_tokens_path(env.name))
        token_client = TokenClient(env, transport=transport)

        if request is None:
            return _run_setup(args, token_client, store, clock(), prompt, out)

        credential = store.load()
        credential = CredentialRefresher(token_client, store).ensure_fresh(credential, clock())
        authorize(credential, request.required_scope)
        _LOG.debug("authorized %s", request.target, extra={"env": env.name, "command": request.command.value})

        with DataClient(env, transport=transport) as client:
            payload = client.get(request, credential.access_token)
        print(json.dumps(payload, indent=2), file=out)
        return 0
    except UsageError as exc:
        print(f"Error: {exc}", file=err)
        print(usage(), file=err)
        return exc.exit_code
    except ProviderError as exc:
        print(exc.body, file=err)
        if exc.hint:
            print(exc.hint, file=err)
        return exc.exit_code
    except TlobError as exc:
        print(f"Error: {exc}", file=err)
        return exc.exit_code
    except OSError as exc:
        print(f"Error: cannot access token file: {exc}", file=err)
        return 1


def export_metrics(path: Optional[str] = None) -> None:
    """Write the process registry to *path* (or $TLOB_METRICS_FILE) for a textfile collector."""
    path = path or os.getenv("TLOB_METRICS_FILE")
    if not path:
        return
    try:
        write_to_textfile(path, REGISTRY)
    except OSError as exc:
        _LOG.warning("could not write metrics to %s: %s", path, exc)


def cli() -> None:
    load_env_file()
    configure_logging()
    try:
        code = main()
    finally:
        export_metrics()
    sys.exit(code)


if __name__ == "__main__":
    cli()
