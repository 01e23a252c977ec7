"""Tests for CLI main module."""

import pytest
from unittest.mock import AsyncMock, MagicMock, patch

import typer
from typer.testing import CliRunner

from pvelxc.cli.main import _run_cli_command, app
from pvelxc.errors import PreflightError
from pvelxc.models.container import ContainerSpec
from pvelxc.models.recipe import RecipeSpec, StepSpec
from pvelxc.models.template import TemplateSpec
from pvelxc.provision.engine import ApplyResult, ProvisionPlan


runner = CliRunner()

RECIPE = RecipeSpec(
    name="mailpit",
    title="Mailpit",
    container={"hostname": "mailpit"},
    settings={"MAILPIT_WEB_PORT": 8025},
)


@pytest.fixture
def provisioner():
    """Provisioner stub returned by build_provisioner."""
    with patch("pvelxc.cli.main.build_provisioner", new_callable=AsyncMock) as mock_build:
        mock_build.return_value = MagicMock()
        yield mock_build.return_value


@patch("pvelxc.cli.main.build_provisioner", new_callable=AsyncMock)
@patch("pvelxc.cli.main.console")
def test_run_cli_command_success(mock_console, mock_build):
    """Test the CLI command runner on a successful execution."""
    mock_handler = AsyncMock()

    _run_cli_command(mock_handler, None, "DEBUG", arg1="value1")

    mock_build.assert_awaited_once_with(None, "DEBUG")
    mock_handler.assert_awaited_once_with(mock_build.return_value, arg1="value1")
    mock_console.print.assert_not_called()


@patch("pvelxc.cli.main.build_provisioner", new_callable=AsyncMock)
@patch("pvelxc.cli.main.console")
def test_run_cli_command_provision_error(mock_console, mock_build):
    """Test the CLI command runner prints errors with hints."""
    mock_handler = AsyncMock(side_effect=PreflightError(
        "Container ID 200 already exists",
        hints=["Please choose a different CT_ID or remove the existing container"],
    ))

    with pytest.raises(typer.Exit) as exc_info:
        _run_cli_command(mock_handler, None, None)

    assert exc_info.value.exit_code == 1
    mock_console.print.assert_any_call("[red]Error:[/red] Container ID 200 already exists")
    mock_console.print.assert_any_call(
        "  Please choose a different CT_ID or remove the existing container", markup=False
    )


def test_recipes_command(provisioner):
    """Test recipes are listed."""
    provisioner.list_recipes.return_value = [RECIPE]

    result = runner.invoke(app, ["recipes"])

    assert result.exit_code == 0
    assert "mailpit" in result.output


def test_create_dry_run(provisioner):
    """Test options and --set values reach the plan."""
    provisioner.plan.return_value = ProvisionPlan(
        recipe=RECIPE,
        spec=ContainerSpec(ctid=300, hostname="mailpit"),
        settings={"MAILPIT_WEB_PORT": "9000"},
        templates=[TemplateSpec()],
        create_command=["pct", "create", "300"],
        steps=[StepSpec(name="Installing Mailpit", run="true")],
        notes="Mailpit\nIP Address:      [DHCP - check after boot]\n",
    )

    result = runner.invoke(app, [
        "create", "mailpit", "--ctid", "300", "--ip", "dhcp",
        "--set", "MAILPIT_WEB_PORT=9000", "--dry-run",
    ])

    assert result.exit_code == 0
    provisioner.plan.assert_called_once_with(
        "mailpit",
        overrides={"CT_ID": 300, "CT_IP": "dhcp"},
        settings={"MAILPIT_WEB_PORT": "9000"},
    )
    provisioner.provision.assert_not_called()
    assert "pct create 300" in result.output
    assert "Installing Mailpit" in result.output
    assert "[DHCP - check after boot]" in result.output


def test_create_failure_exit_code(provisioner):
    """Test provisioning errors exit with status 1."""
    provisioner.provision = AsyncMock(side_effect=PreflightError("This command must be run as root"))

    result = runner.invoke(app, ["create", "mailpit", "--on-failure", "keep"])

    assert result.exit_code == 1
    assert "must be run as root" in result.output


def test_create_bad_setting(provisioner):
    """Test malformed --set values are usage errors."""
    result = runner.invoke(app, ["create", "mailpit", "--set", "NOVALUE"])

    assert result.exit_code == 2
    provisioner.plan.assert_not_called()


def test_apply_all_reports_failures(provisioner):
    """Test apply to all containers exits 1 when any failed."""
    provisioner.apply_all = AsyncMock(return_value=[
        ApplyResult(ctid=300, hostname="a"),
        ApplyResult(ctid=301, error="Container 301 uses alpine (not Debian/Ubuntu)"),
    ])

    result = runner.invoke(app, ["apply", "docker", "all"])

    assert result.exit_code == 1
    assert "Installed on 1/2 containers" in result.output


def test_apply_single(provisioner):
    """Test apply to one container ID."""
    provisioner.apply = AsyncMock(return_value=ApplyResult(ctid=300, hostname="box"))

    result = runner.invoke(app, ["apply", "docker", "300"])

    assert result.exit_code == 0
    provisioner.apply.assert_awaited_once_with("docker", 300, settings={})


def test_apply_invalid_target(provisioner):
    """Test non-numeric targets are rejected."""
    result = runner.invoke(app, ["apply", "docker", "mailpit"])

    assert result.exit_code == 1
    assert "Invalid container ID" in result.output


def test_destroy_requires_confirmation(provisioner):
    """Test destroy asks first and aborts on no."""
    provisioner.destroy = AsyncMock()

    result = runner.invoke(app, ["destroy", "300"], input="n\n")

    assert result.exit_code == 1
    provisioner.destroy.assert_not_awaited()


def test_destroy_force(provisioner):
    """Test --force skips the prompt."""
    provisioner.destroy = AsyncMock()

    result = runner.invoke(app, ["destroy", "300", "--force"])

    assert result.exit_code == 0
    provisioner.destroy.assert_awaited_once_with(300)
