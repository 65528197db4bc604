"""Command table and router for the data API.

Each :class:`Command` has exactly one :class:`CommandSpec`; ``resolve``
validates the positional arguments and produces a :class:`Request` that
carries everything needed for the authorization check and the GET call.
"""
from __future__ import annotations

import datetime as _dt
import enum
from dataclasses import dataclass, field
from typing import Dict, Mapping, Sequence
from urllib.parse import quote, urlencode

from common.datetime import parse_date

from .errors import UsageError

__all__ = ["Command", "ArgKind", "CommandSpec", "COMMANDS", "Request", "resolve", "usage"]


class Command(str, enum.Enum):
    INFO = "info"
    ACCOUNTS = "accounts"
    CARDS = "cards"
    BALANCE = "balance"
    TRANSACTIONS = "transactions"
    PENDING = "pending"
    DIRECT_DEBITS = "direct_debits"
    STANDING_ORDERS = "standing_orders"
    CARD_BALANCE = "card_balance"
    CARD_TRANSACTIONS = "card_transactions"
    CARD_PENDING = "card_pending"


class ArgKind(enum.Enum):
    NONE = (0, 0)
    OPTIONAL_ID = (0, 1)
    ID = (1, 1)
    ID_DATES = (1, 3)

    @property
    def min_args(self) -> int:
        return self.value[0]

    @property
    def max_args(self) -> int:
        return self.value[1]


@dataclass(frozen=True)
class CommandSpec:
    path: str
    scope: frozenset[str]
    kind: ArgKind
    help: str = ""


COMMANDS: Mapping[Command, CommandSpec] = {
    Command.INFO: CommandSpec("/info", frozenset({"info"}), ArgKind.NONE),
    Command.ACCOUNTS: CommandSpec(
        "/accounts", frozenset({"accounts"}), ArgKind.OPTIONAL_ID, "account_id is optional"
    ),
    Command.CARDS: CommandSpec(
        "/cards", frozenset({"cards"}), ArgKind.OPTIONAL_ID, "account_id is optional"
    ),
    Command.BALANCE: CommandSpec(
        "/accounts/{id}/balance", frozenset({"balance"}), ArgKind.ID, "requires account_id"
    ),
    Command.TRANSACTIONS: CommandSpec(
        "/accounts/{id}/transactions",
        frozenset({"transactions"}),
        ArgKind.ID_DATES,
        "requires account_id, 'from' and 'to' dates are optional",
    ),
    Command.PENDING: CommandSpec(
        "/accounts/{id}/transactions/pending",
        frozenset({"transactions"}),
        ArgKind.ID,
        "requires account_id",
    ),
    Command.DIRECT_DEBITS: CommandSpec(
        "/accounts/{id}/direct_debits",
        frozenset({"accounts", "direct_debits"}),
        ArgKind.ID,
        "requires account_id",
    ),
    Command.STANDING_ORDERS: CommandSpec(
        "/accounts/{id}/standing_orders",
        frozenset({"accounts", "standing_orders"}),
        ArgKind.ID,
        "requires account_id",
    ),
    Command.CARD_BALANCE: CommandSpec(
        "/cards/{id}/balance", frozenset({"cards", "balance"}), ArgKind.ID, "requires account_id"
    ),
    Command.CARD_TRANSACTIONS: CommandSpec(
        "/cards/{id}/transactions",
        frozenset({"cards", "transactions"}),
        ArgKind.ID_DATES,
        "requires account_id, 'from' and 'to' dates are optional",
    ),
    Command.CARD_PENDING: CommandSpec(
        "/cards/{id}/transactions/pending",
        frozenset({"cards", "transactions"}),
        ArgKind.ID,
        "requires account_id",
    ),
}


@dataclass(frozen=True)
class Request:
    command: Command
    endpoint: str
    required_scope: frozenset[str]
    query_params: Dict[str, str] = field(default_factory=dict)

    @property
    def target(self) -> str:
        """Endpoint with its query string, as sent to the API."""
        if not self.query_params:
            return self.endpoint
        return f"{self.endpoint}?{urlencode(self.query_params)}"


def _date_arg(value: str, name: str) -> str:
    try:
        return parse_date(value).isoformat()
    except ValueError as exc:
        raise UsageError(f"'{name}' must be a date like 2020-10-21, got {value!r}") from exc


def _account_id(value: str) -> str:
    if not value.strip():
        raise UsageError("account_id must not be empty")
    return quote(value, safe="")


def resolve(command: str | Command, args: Sequence[str], today: _dt.date) -> Request:
    """Map *command* and its positional *args* to a :class:`Request`.

    Raises:
        UsageError: unknown command, wrong number of arguments, bad date.
    """
    try:
        cmd = Command(command)
    except ValueError as exc:
        raise UsageError(f"unknown command: {command!r}") from exc

    spec = COMMANDS[cmd]
    args = list(args)
    if not spec.kind.min_args <= len(args) <= spec.kind.max_args:
        raise UsageError(f"{cmd.value}: wrong number of parameters ({spec.help or 'takes none'})")

    query: Dict[str, str] = {}
    if spec.kind is ArgKind.NONE:
        endpoint = spec.path
    elif spec.kind is ArgKind.OPTIONAL_ID:
        endpoint = spec.path + (f"/{_account_id(args[0])}" if args else "")
    else:
        endpoint = spec.path.format(id=_account_id(args[0]))
        if spec.kind is ArgKind.ID_DATES and len(args) > 1:
            query["from"] = _date_arg(args[1], "from")
            query["to"] = _date_arg(args[2], "to") if len(args) > 2 else today.isoformat()

    return Request(command=cmd, endpoint=endpoint, required_scope=spec.scope, query_params=query)


def usage(prog: str = "tlob") -> str:
    lines = [
        f"USAGE: {prog} ENVIRONMENT COMMAND [PARAMETERS]",
        "Valid environments:",
        "  sandbox",
        "  live",
        "Valid commands:",
        "  setup               (optional code from truelayer.com authentication link)",
    ]
    for cmd, spec in COMMANDS.items():
        lines.append(f"  {cmd.value:<20}({spec.help})" if spec.help else f"  {cmd.value}")
    lines += [
        "",
        "Examples:",
        f"  {prog} sandbox setup",
        f"  {prog} sandbox accounts 8de2de9eab01b935b21abcbed11adf26",
        f"  {prog} sandbox transactions 8de2de9eab01b935b21abcbed11adf26 2020-10-21 2020-11-30",
    ]
    return "\n".join(lines)
