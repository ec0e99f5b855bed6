"""Unit tests for the dashboard CLI command."""

from unittest.mock import patch

from typer.testing import CliRunner

from mesh_dashboard.cli import app
from mesh_dashboard.exceptions import (
    BrowserLaunchError,
    ClusterUnreachableError,
    ControlPlaneUnavailableError,
    HealthCheckTransportError,
    TunnelInitError,
)

runner = CliRunner()


def test_version():
    """Test that the version command prints the package version."""
    result = runner.invoke(app, ["version"])
    assert result.exit_code == 0
    assert "0.1.0" in result.output


def test_dashboard_help():
    """Test that dashboard command help works."""
    result = runner.invoke(app, ["dashboard", "--help"])
    assert result.exit_code == 0
    assert "Open the mesh dashboard" in result.output
    assert "--port" in result.output
    assert "--show" in result.output


def test_dashboard_rejects_positional_arguments():
    """Test that dashboard takes no arguments."""
    result = runner.invoke(app, ["dashboard", "extra"])
    assert result.exit_code != 0


@patch("mesh_dashboard.session.Tunnel.open")
def test_dashboard_negative_port(mock_open):
    """Test that a negative port fails before the proxy is created."""
    result = runner.invoke(app, ["dashboard", "--port", "-1"])

    assert result.exit_code == 1
    assert "port must be greater than or equal to zero, was -1" in result.output
    mock_open.assert_not_called()


@patch("mesh_dashboard.session.Tunnel.open")
def test_dashboard_unknown_show(mock_open):
    """Test that an unknown show value fails before the proxy is created."""
    result = runner.invoke(app, ["dashboard", "--show", "grafana"])

    assert result.exit_code == 1
    assert "unknown value for 'show' param, was: grafana" in result.output
    mock_open.assert_not_called()


@patch("mesh_dashboard.cli.DashboardSession")
def test_dashboard_passes_global_options(mock_session):
    """Test that global options reach the session."""
    result = runner.invoke(
        app,
        [
            "--namespace",
            "custom-mesh",
            "--api-addr",
            "localhost:8085",
            "--kubeconfig",
            "/tmp/kubeconfig",
            "dashboard",
            "--port",
            "8001",
            "--show",
            "print-only",
        ],
    )

    assert result.exit_code == 0
    kwargs = mock_session.from_options.call_args[1]
    assert kwargs["port"] == 8001
    assert kwargs["show"] == "print-only"
    assert kwargs["namespace"] == "custom-mesh"
    assert kwargs["api_addr"] == "localhost:8085"
    assert kwargs["kubeconfig"] == "/tmp/kubeconfig"
    assert kwargs["context"] is None
    mock_session.from_options.return_value.run.assert_called_once_with()


@patch("mesh_dashboard.cli.DashboardSession")
def test_dashboard_control_plane_unavailable(mock_session):
    """Test that an unhealthy control plane exits with a remediation hint."""
    mock_session.from_options.return_value.run.side_effect = ControlPlaneUnavailableError(
        "mesh-api", "not ready", "Wait for its pods to become ready"
    )

    result = runner.invoke(app, ["dashboard"])

    assert result.exit_code == 1
    assert "Control plane is not ready (mesh-api)" in result.output
    assert "not ready" in result.output
    assert "Wait for its pods" in result.output


@patch("mesh_dashboard.cli.DashboardSession")
def test_dashboard_control_plane_not_installed(mock_session):
    """Test that an unreachable control plane suggests installing it."""
    mock_session.from_options.return_value.run.side_effect = HealthCheckTransportError(
        "Failed to call the control plane API in namespace custom-mesh: 404 Not Found"
    )

    result = runner.invoke(app, ["--namespace", "custom-mesh", "dashboard"])

    assert result.exit_code == 1
    assert 'not running in the "custom-mesh" namespace' in result.output
    assert "meshctl install --namespace custom-mesh | kubectl apply -f -" in result.output


@patch("mesh_dashboard.cli.DashboardSession")
def test_dashboard_cluster_unreachable(mock_session):
    """Test that a cluster failure is reported as a Kubernetes connection error."""
    mock_session.from_options.return_value.run.side_effect = ClusterUnreachableError(
        "kubernetes-api", "Error calling the Kubernetes API: connection refused"
    )

    result = runner.invoke(app, ["dashboard"])

    assert result.exit_code == 1
    assert "Cannot connect to Kubernetes" in result.output
    assert "connection refused" in result.output


@patch("mesh_dashboard.cli.DashboardSession")
def test_dashboard_tunnel_and_browser_errors(mock_session):
    """Test that every dashboard error exits with status 1."""
    for error in (
        TunnelInitError("Failed to initialize proxy: port taken"),
        BrowserLaunchError("Failed to open http://127.0.0.1:1/ in the default browser"),
    ):
        mock_session.from_options.return_value.run.side_effect = error

        result = runner.invoke(app, ["dashboard"])

        assert result.exit_code == 1
        assert error.message in result.output


@patch("mesh_dashboard.cli.DashboardSession")
def test_dashboard_interrupted(mock_session):
    """Test that Ctrl-C stops the proxy with the interrupt exit code."""
    mock_session.from_options.return_value.run.side_effect = KeyboardInterrupt

    result = runner.invoke(app, ["dashboard"])

    assert result.exit_code == 130
    assert "Dashboard proxy stopped" in result.output
