"""Tests for the command-line interface."""

from __future__ import annotations

import pytest
from click.testing import CliRunner

from notifier.cli import cli


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def base_args(tmp_path):
    return ["--config", str(tmp_path / "missing.yaml"), "--db", str(tmp_path / "cli.db")]


def add_notification(runner, base_args, subject="Pedido urgente"):
    return runner.invoke(cli, base_args + [
        "add",
        "--name", "Ana",
        "--email", "ana@example.com",
        "--phone", "555-0100",
        "--subject", subject,
        "--body", "Cliente aguardando resposta",
    ])


class TestCLI:
    def test_commands_registered(self):
        assert {"serve", "trigger", "job", "digest", "status", "add", "vacuum"} <= set(cli.commands)

    def test_add_and_status(self, runner, base_args):
        result = add_notification(runner, base_args)
        assert result.exit_code == 0, result.output
        assert "Created notification 1" in result.output

        result = runner.invoke(cli, base_args + ["status"])
        assert result.exit_code == 0, result.output
        assert "Notifications: 1" in result.output
        assert "Unread: 1" in result.output

    def test_add_rejects_blank_field(self, runner, base_args):
        result = add_notification(runner, base_args, subject=" ")
        assert result.exit_code == 1
        assert "All fields are required" in result.output

    def test_digest_prints_without_marking(self, runner, base_args):
        add_notification(runner, base_args)

        result = runner.invoke(cli, base_args + ["digest", "--period", "daily"])
        assert result.exit_code == 0, result.output
        assert "[mock]" in result.output

        result = runner.invoke(cli, base_args + ["status"])
        assert "Unread: 1" in result.output

    def test_digest_mark_read(self, runner, base_args):
        add_notification(runner, base_args)

        result = runner.invoke(cli, base_args + ["digest", "--period", "weekly", "--mark-read"])
        assert result.exit_code == 0, result.output

        result = runner.invoke(cli, base_args + ["status"])
        assert "Unread: 0" in result.output

    def test_trigger_known_schedule(self, runner, base_args):
        add_notification(runner, base_args)
        result = runner.invoke(cli, base_args + ["trigger", "0 3 * * 1", "--time", "2026-10-19T03:00:00Z"])
        assert result.exit_code == 0, result.output

        # weekly job marks urgent notifications read
        result = runner.invoke(cli, base_args + ["status"])
        assert "Unread: 0" in result.output

    def test_trigger_unknown_schedule(self, runner, base_args):
        result = runner.invoke(cli, base_args + ["trigger", "*/5 * * * *"])
        assert result.exit_code == 2
        assert "Unrecognized schedule" in result.output

    def test_trigger_bad_time(self, runner, base_args):
        result = runner.invoke(cli, base_args + ["trigger", "0 3 * * *", "--time", "yesterday-ish"])
        assert result.exit_code != 0

    def test_job_daily(self, runner, base_args):
        add_notification(runner, base_args)
        result = runner.invoke(cli, base_args + ["job", "daily"])
        assert result.exit_code == 0, result.output
        assert "Daily digest job finished" in result.output

        # daily jobs leave notifications unread
        result = runner.invoke(cli, base_args + ["status"])
        assert "Unread: 1" in result.output

    def test_vacuum(self, runner, base_args):
        result = runner.invoke(cli, base_args + ["vacuum"])
        assert result.exit_code == 0, result.output
        assert "vacuumed" in result.output
