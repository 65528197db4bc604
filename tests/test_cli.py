import datetime as _dt
import io
import json

import pytest

from integrations.truelayer.credentials import Credential, CredentialStore
from tlob.cli import main

from .conftest import API_HOST, AUTH_HOST, NOW, RoutingTransport, respond

TODAY = _dt.date(2020, 12, 1)


def _run(argv, transport, **kw):
    out, err = io.StringIO(), io.StringIO()
    code = main(argv, transport=transport, clock=lambda: NOW, today=TODAY, out=out, err=err, **kw)
    return code, out.getvalue(), err.getvalue()


def _store(cli_env) -> CredentialStore:
    return CredentialStore(cli_env / ".tlob_tokens_sandbox.json")


def _seed(cli_env, **kw) -> Credential:
    values = {"access_token": "acc-1", "expiry": NOW + 3600, "refresh_token": "ref-1",
              "scope": "accounts balance transactions offline_access"}
    values.update(kw)
    cred = Credential(**values)
    _store(cli_env).save(cred)
    return cred


def test_prints_json_response(cli_env):
    _seed(cli_env)
    transport = RoutingTransport({API_HOST: respond(200, {"results": [{"available": 12.5}]})})
    code, out, err = _run(["sandbox", "balance", "acc1"], transport)
    assert code == 0
    assert json.loads(out) == {"results": [{"available": 12.5}]}
    assert out.startswith("{\n  ")
    assert err == ""
    assert transport.calls(API_HOST)[0].headers["Authorization"] == "Bearer acc-1"


def test_expired_credential_refreshed_before_request(cli_env):
    _seed(cli_env, expiry=NOW - 1)
    transport = RoutingTransport(
        {
            AUTH_HOST: respond(200, {"access_token": "acc-2", "expires_in": 3600, "refresh_token": "ref-2",
                                     "scope": "accounts balance transactions offline_access"}),
            API_HOST: respond(200, {"results": []}),
        }
    )
    code, _, _ = _run(["sandbox", "transactions", "acc1", "2020-10-21"], transport)
    assert code == 0
    assert [r.url.host for r in transport.requests] == [AUTH_HOST, API_HOST]
    data_call = transport.calls(API_HOST)[0]
    assert data_call.headers["Authorization"] == "Bearer acc-2"
    assert data_call.url.params["to"] == "2020-12-01"
    assert _store(cli_env).load().access_token == "acc-2"


def test_unauthorized_command_never_hits_network(cli_env):
    _seed(cli_env, scope="accounts balance")
    transport = RoutingTransport({API_HOST: respond(200, {})})
    code, out, err = _run(["sandbox", "transactions", "acc1"], transport)
    assert code == 1
    assert out == ""
    assert "transactions not included in scope" in err
    assert transport.calls(API_HOST) == []


def test_expired_without_offline_access(cli_env):
    _seed(cli_env, expiry=NOW - 1, scope="accounts")
    transport = RoutingTransport()
    code, out, err = _run(["sandbox", "accounts"], transport)
    assert code == 1
    assert out == ""
    assert "setup" in err
    assert transport.requests == []


def test_missing_credential(cli_env):
    code, out, err = _run(["sandbox", "info"], RoutingTransport())
    assert code == 1
    assert "Run 'setup'" in err


def test_provider_error_printed_verbatim(cli_env):
    _seed(cli_env)
    body = '{"error":"provider_error","error_description":"bank unavailable"}'
    transport = RoutingTransport({API_HOST: respond(503, body)})
    code, out, err = _run(["sandbox", "accounts"], transport)
    assert code == 1
    assert out == ""
    assert body in err


@pytest.mark.parametrize(
    "argv",
    [
        [],
        ["sandbox"],
        ["staging", "accounts"],
        ["sandbox", "withdraw"],
        ["sandbox", "balance"],
        ["sandbox", "transactions", "acc1", "x", "y", "z"],
        ["sandbox", "setup", "a", "b"],
    ],
)
def test_usage_errors(cli_env, argv):
    transport = RoutingTransport()
    code, out, err = _run(argv, transport)
    assert code == 2
    assert out == ""
    assert "USAGE:" in err
    assert transport.requests == []


def test_usage_error_checked_before_config(tmp_path, monkeypatch):
    monkeypatch.setenv("TLOB_CONFIG_DIR", str(tmp_path))
    code, _, _ = _run(["sandbox", "balance"], RoutingTransport())
    assert code == 2


def test_config_error(tmp_path, monkeypatch):
    monkeypatch.setenv("TLOB_CONFIG_DIR", str(tmp_path))
    monkeypatch.setenv("TLOB_TOKENS_DIR", str(tmp_path))
    monkeypatch.delenv("TLOB_SANDBOX_CLIENT_ID", raising=False)
    monkeypatch.delenv("TLOB_SANDBOX_CLIENT_SECRET", raising=False)
    transport = RoutingTransport()
    code, _, err = _run(["sandbox", "accounts"], transport)
    assert code == 1
    assert "Populate" in err
    assert transport.requests == []


def test_setup_with_code(cli_env):
    transport = RoutingTransport(
        {AUTH_HOST: respond(200, {"access_token": "a", "expires_in": 3600, "scope": "info accounts"})}
    )
    code, out, _ = _run(["sandbox", "setup", "abc"], transport)
    assert code == 0
    assert "Scope: accounts info" in out
    assert _store(cli_env).load().scope == {"info", "accounts"}


def test_setup_prompts_for_code(cli_env):
    prompts = []

    def _prompt(text):
        prompts.append(text)
        return "  pasted  "

    transport = RoutingTransport(
        {AUTH_HOST: respond(200, {"access_token": "a", "expires_in": 60, "scope": "info"})}
    )
    code, _, _ = _run(["sandbox", "setup"], transport, prompt=_prompt)
    assert code == 0
    assert len(prompts) == 1
    sent = transport.calls(AUTH_HOST)[0].content.decode()
    assert "code=pasted" in sent


def test_setup_failure_keeps_prior_tokens(cli_env):
    prior = _seed(cli_env)
    transport = RoutingTransport({AUTH_HOST: respond(400, {"error": "invalid_grant"})})
    code, out, err = _run(["sandbox", "setup", "old-code"], transport)
    assert code == 1
    assert out == ""
    assert "invalid_grant" in err
    assert "time-expired code" in err
    assert _store(cli_env).load() == prior


def test_setup_prompt_closed_stdin(cli_env):
    def _prompt(text):
        raise EOFError

    transport = RoutingTransport()
    code, out, err = _run(["sandbox", "setup"], transport, prompt=_prompt)
    assert code == 2
    assert out == ""
    assert "no code provided" in err
    assert transport.requests == []


def test_unreadable_token_file(cli_env):
    (cli_env / ".tlob_tokens_sandbox.json").mkdir()
    code, out, err = _run(["sandbox", "accounts"], RoutingTransport())
    assert code == 1
    assert out == ""
    assert "cannot access token file" in err


def test_export_metrics_writes_textfile(cli_env, tmp_path, monkeypatch):
    from tlob.cli import export_metrics

    _seed(cli_env)
    transport = RoutingTransport({API_HOST: respond(200, {"results": []})})
    assert _run(["sandbox", "accounts"], transport)[0] == 0

    target = tmp_path / "tlob.prom"
    monkeypatch.setenv("TLOB_METRICS_FILE", str(target))
    export_metrics()
    text = target.read_text()
    assert "tlob_http_requests_total" in text
    assert 'command="accounts"' in text


def test_export_metrics_disabled_without_path(tmp_path, monkeypatch):
    from tlob.cli import export_metrics

    monkeypatch.delenv("TLOB_METRICS_FILE", raising=False)
    monkeypatch.chdir(tmp_path)
    export_metrics()
    assert list(tmp_path.iterdir()) == []
