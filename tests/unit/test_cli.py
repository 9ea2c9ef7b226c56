import pytest
from click.testing import CliRunner

from cli import cli


@pytest.fixture
def runner(tmp_path, monkeypatch):
    monkeypatch.setenv("DATABASE__URL", f"sqlite+aiosqlite:///{tmp_path / 'cli.db'}")
    monkeypatch.setenv("LOGGING__LEVEL", "WARNING")
    monkeypatch.setenv("LOGGING__FILE_ENABLED", "false")
    return CliRunner()


def test_init_db(runner):
    result = runner.invoke(cli, ["init-db"])

    assert result.exit_code == 0, result.output
    assert "Database ready" in result.output


def test_account_lifecycle(runner):
    opened = runner.invoke(cli, ["open-account", "alice"])
    assert opened.exit_code == 0, opened.output
    assert "balance $10000.00" in opened.output

    shown = runner.invoke(cli, ["show-account", "alice"])
    assert shown.exit_code == 0, shown.output
    assert "Cash:     $10,000.00" in shown.output

    closed = runner.invoke(cli, ["close-account", "alice", "--yes"])
    assert closed.exit_code == 0, closed.output

    missing = runner.invoke(cli, ["show-account", "alice"])
    assert missing.exit_code != 0
    assert "No account for user alice" in missing.output


def test_open_account_with_balance(runner):
    result = runner.invoke(cli, ["open-account", "bob", "--balance", "250.5"])

    assert result.exit_code == 0, result.output
    assert "balance $250.50" in result.output


def test_duplicate_account(runner):
    runner.invoke(cli, ["open-account", "alice"])

    result = runner.invoke(cli, ["open-account", "alice"])

    assert result.exit_code != 0
    assert "already exists" in result.output


def test_close_unknown_account(runner):
    result = runner.invoke(cli, ["close-account", "ghost", "--yes"])

    assert result.exit_code != 0
    assert "No account for user ghost" in result.output
