"""Tests for CLI command implementations."""

import pytest
from unittest.mock import AsyncMock, MagicMock, patch

import typer

from pvelxc.cli.commands import (
    FailurePolicy,
    build_provisioner,
    create_container,
    failure_policy,
    parse_settings,
    show_notes,
)
from pvelxc.models.container import ContainerSpec
from pvelxc.models.notes import NotesSpec
from pvelxc.provision.engine import Provisioner


def test_parse_settings():
    """Test KEY=VALUE parsing keeps '=' inside values."""
    assert parse_settings(["A=1", "TOKEN=abc=def", "EMPTY="]) == {
        "A": "1",
        "TOKEN": "abc=def",
        "EMPTY": "",
    }
    assert parse_settings(None) == {}


def test_parse_settings_rejects_bad_items():
    """Test items without '=' or a key are rejected."""
    for item in ["NOVALUE", "=x"]:
        with pytest.raises(typer.BadParameter):
            parse_settings([item])


class TestFailurePolicy:
    """Test --on-failure handling."""

    def test_keep(self):
        """Test keep never removes."""
        assert failure_policy(FailurePolicy.KEEP) is None

    def test_destroy(self):
        """Test destroy always removes."""
        handler = failure_policy(FailurePolicy.DESTROY)

        assert handler(ContainerSpec(hostname="x"), RuntimeError()) is True

    @patch("pvelxc.cli.commands.sys")
    def test_ask_unattended_keeps(self, mock_sys):
        """Test ask without a terminal keeps the container."""
        mock_sys.stdin.isatty.return_value = False

        assert failure_policy(FailurePolicy.ASK) is None

    @patch("pvelxc.cli.commands.typer.confirm", return_value=True)
    @patch("pvelxc.cli.commands.sys")
    def test_ask_interactive(self, mock_sys, mock_confirm):
        """Test ask prompts on a terminal."""
        mock_sys.stdin.isatty.return_value = True

        handler = failure_policy(FailurePolicy.ASK)

        assert handler(ContainerSpec(ctid=250, hostname="x"), RuntimeError("boom")) is True
        mock_confirm.assert_called_once_with("Remove container 250?", default=False)


@pytest.mark.asyncio
class TestCommands:
    """Test async command handlers."""

    async def test_create_dry_run_does_not_provision(self):
        """Test dry runs only plan."""
        provisioner = MagicMock()
        provisioner.provision = AsyncMock()

        with patch("pvelxc.cli.commands.show_plan") as mock_show:
            await create_container(provisioner, "mailpit", {}, {}, dry_run=True)

        mock_show.assert_called_once_with(provisioner, "mailpit", {}, {})
        provisioner.provision.assert_not_awaited()

    async def test_create_passes_failure_handler(self):
        """Test the failure policy reaches the provisioner."""
        provisioner = MagicMock()
        provisioner.provision = AsyncMock()

        with patch("pvelxc.cli.commands.show_report") as mock_report:
            await create_container(provisioner, "mailpit", {"CT_ID": 300}, {}, policy=FailurePolicy.KEEP)

        provisioner.provision.assert_awaited_once_with(
            "mailpit", overrides={"CT_ID": 300}, settings={}, on_failure=None
        )
        mock_report.assert_called_once_with(provisioner.provision.return_value)

    async def test_show_notes_empty(self):
        """Test containers without notes are reported."""
        provisioner = MagicMock()
        provisioner.describe = AsyncMock(return_value=NotesSpec(ctid=200))

        with patch("pvelxc.cli.commands.console") as mock_console:
            await show_notes(provisioner, 200)

        mock_console.print.assert_called_once_with("[yellow]Container 200 has no notes[/yellow]")

    async def test_build_provisioner(self, tmp_path):
        """Test configuration, logging and providers are wired together."""
        config_file = tmp_path / "config.yaml"
        config_file.write_text("logging:\n  level: WARNING\nhost:\n  boot_timeout: 90\n")

        with patch("pvelxc.cli.commands.setup_logging") as mock_logging:
            provisioner = await build_provisioner(config_file, None)

        assert isinstance(provisioner, Provisioner)
        mock_logging.assert_called_once_with("WARNING")
        assert provisioner.container_provider.boot_timeout == 90
        assert "mailpit" in provisioner.config_manager.recipes
