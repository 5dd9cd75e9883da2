"""
End-to-end tests for the tacochild command line interface.
"""

import json
import os

import pytest
from click.testing import CliRunner

from tacochild.cli.main import cli
from tacochild.crypto import generate_address

STAKE = 50_000 * 10**18


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for key in list(os.environ):
        if key.startswith("TACO_"):
            monkeypatch.delenv(key)


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def invoke(runner, tmp_path):
    """Invoke the CLI against a registry stored under tmp_path."""
    data_dir = tmp_path / "data"

    def _invoke(*args):
        return runner.invoke(cli, ["--data-dir", str(data_dir), *args])

    return _invoke


@pytest.fixture
def batch_file(tmp_path):
    provider = generate_address()
    operator = generate_address()
    path = tmp_path / "batch.json"
    path.write_text(json.dumps({
        "operators": [{"staking_provider": provider, "operator": operator}],
        "authorizations": [{"staking_provider": provider, "authorized": STAKE}],
        "confirmations": [operator],
    }))
    return path, provider, operator


def json_payload(output: str) -> dict:
    return json.loads(output[output.index("{"):])


class TestDemo:

    def test_demo_runs(self, runner):
        result = runner.invoke(cli, ["demo"])

        assert result.exit_code == 0, result.output
        assert "Demo complete" in result.output
        assert "Total: 100" in result.output


class TestApply:

    def test_apply_batch(self, invoke, batch_file):
        path, provider, _ = batch_file

        result = invoke("apply", str(path))

        assert result.exit_code == 0, result.output
        assert result.output.count("✓") == 3

        result = invoke("providers", "--json")
        assert result.exit_code == 0, result.output
        export = json_payload(result.output)
        assert export["total"] == STAKE
        assert export["providers"] == [{"staking_provider": provider, "amount": STAKE}]

    def test_invalid_batch(self, invoke, tmp_path):
        path = tmp_path / "bad.json"
        path.write_text(json.dumps({"confirmations": ["0x1234"]}))

        result = invoke("apply", str(path))

        assert result.exit_code == 1
        assert "Invalid batch file" in result.output

    def test_rejected_updates(self, invoke, tmp_path):
        operator = generate_address()
        path = tmp_path / "batch.json"
        path.write_text(json.dumps({"confirmations": [operator]}))

        result = invoke("apply", str(path))

        assert result.exit_code == 1
        assert "Authorization must be greater than minimum" in result.output
        assert "1 update(s) rejected" in result.output


class TestForceUpdate:

    def test_owner_forces_updates(self, invoke):
        provider = generate_address()
        operator = generate_address()

        result = invoke(
            "force-update", provider, "--operator", operator, "--authorized", str(STAKE)
        )

        assert result.exit_code == 0, result.output
        assert result.output.count("✓") == 2

        result = invoke("eligible", provider, "--end-date", "0")
        assert f"Authorized: {STAKE}" in result.output
        assert "(unconfirmed)" in result.output

    def test_non_updater_rejected(self, invoke):
        result = invoke(
            "force-update", generate_address(), "--authorized", "1",
            "--caller", generate_address(),
        )

        assert result.exit_code == 1
        assert "Caller is not an updater" in result.output

    def test_nothing_to_update(self, invoke):
        result = invoke("force-update", generate_address())

        assert result.exit_code == 2


class TestQueries:

    def test_providers_empty(self, invoke):
        result = invoke("providers")

        assert result.exit_code == 0
        assert "No staking providers." in result.output

    def test_providers_bad_start(self, invoke, batch_file):
        invoke("apply", str(batch_file[0]))

        result = invoke("providers", "--start", "5")

        assert result.exit_code == 1
        assert "Wrong start index" in result.output

    def test_eligible(self, invoke, batch_file):
        path, provider, operator = batch_file
        invoke("apply", str(path))

        result = invoke("eligible", provider, "--end-date", "0")

        assert result.exit_code == 0, result.output
        assert f"Eligible at 0: {STAKE}" in result.output
        assert "(confirmed)" in result.output

    def test_events(self, invoke, batch_file):
        path, provider, _ = batch_file
        invoke("apply", str(path))

        result = invoke("events", "--provider", provider.lower())

        assert result.exit_code == 0, result.output
        lines = [json.loads(l) for l in result.output.splitlines() if l.startswith("{")]
        assert [e["event"] for e in lines] == [
            "OperatorUpdated", "AuthorizationUpdated", "OperatorConfirmed"
        ]

    def test_events_bad_provider(self, invoke):
        result = invoke("events", "--provider", "0x12")

        assert result.exit_code == 1

    @pytest.mark.parametrize("args", [
        ["providers"],
        ["eligible", "0x" + "11" * 20, "--end-date", "0"],
        ["events"],
        ["stats"],
    ])
    def test_read_commands_close_storage(self, invoke, monkeypatch, args):
        from tacochild.core.storage import StorageManager

        closed = []
        original = StorageManager.close

        def tracking_close(self):
            closed.append(self.db_path)
            original(self)

        monkeypatch.setattr(StorageManager, "close", tracking_close)

        result = invoke(*args)

        assert result.exit_code == 0, result.output
        assert len(closed) == 1

    def test_changed_minimum_rejected(self, invoke, batch_file, monkeypatch):
        invoke("apply", str(batch_file[0]))
        monkeypatch.setenv("TACO_MINIMUM_AUTHORIZATION", "1")

        result = invoke("stats")

        assert result.exit_code == 1
        assert "minimum_authorization" in result.output

    def test_stats(self, invoke, batch_file):
        invoke("apply", str(batch_file[0]))

        result = invoke("stats")

        assert result.exit_code == 0, result.output
        assert "staking_providers: 1" in result.output
        assert "confirmed_operators: 1" in result.output
