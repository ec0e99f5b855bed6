"""Tests for the dashboard session."""

import json
import threading
from functools import partial
from unittest.mock import Mock, patch

import pytest

from mesh_dashboard.client import resolve_client
from mesh_dashboard.exceptions import (
    BrowserLaunchError,
    ClusterUnreachableError,
    ConfigurationError,
    ControlPlaneUnavailableError,
    ResolutionError,
    TunnelInitError,
)
from mesh_dashboard.models.dashboard import PresentationMode
from mesh_dashboard.models.health import SelfCheckResponse
from mesh_dashboard.session import DashboardSession, SessionState


class FakeTunnel:
    """Tunnel that resolves URLs like the real one but never listens."""

    def __init__(self, namespace, port):
        self.namespace = namespace
        self.port = port or 43210
        self.run_calls = []

    def resolve(self, selector):
        if ":" not in selector:
            raise ResolutionError(f"Failed to generate URL for service '{selector}'")
        return (
            f"http://127.0.0.1:{self.port}/api/v1/namespaces/{self.namespace}"
            f"/services/{selector}/proxy/"
        )

    def run(self, stop_event=None):
        # The real tunnel blocks here until cancelled
        self.run_calls.append(stop_event)


def _api_client(response):
    api_client = Mock()
    api_client.namespace = "mesh-system"
    api_client.self_check.return_value = response
    return api_client


def _session(output_console, show="print-only", port=0, response=None, **overrides):
    collaborators = {
        "tunnel_opener": Mock(side_effect=FakeTunnel),
        "client_resolver": Mock(return_value=_api_client(response or SelfCheckResponse())),
        "browser_opener": Mock(),
        "console": output_console,
    }
    collaborators.update(overrides)
    return DashboardSession.from_options(port=port, show=show, **collaborators)


def _output(session):
    return session.console.file.getvalue()


def test_print_only_end_to_end(output_console, make_result):
    """Test a full run through the Kubernetes API with healthy cluster and control plane."""
    kube_api = Mock()
    kube_api.context = None
    kube_api.self_check.return_value = [make_result("kubernetes-api")]
    controller_response = json.dumps(
        {"results": [{"subsystemName": "mesh-api", "status": "OK"}]}
    ).encode()
    browser = Mock()

    with patch("mesh_dashboard.client.client.CoreV1Api") as mock_core:
        mock_core.return_value.connect_post_namespaced_service_proxy_with_path.return_value = (
            Mock(data=controller_response)
        )
        session = _session(
            output_console,
            show="print-only",
            client_resolver=partial(resolve_client, kube_api_factory=Mock(return_value=kube_api)),
            browser_opener=browser,
        )
        stop = threading.Event()
        session.run(stop)

    output = _output(session)
    assert "Mesh dashboard available at:" in output
    assert session.addresses.primary in output
    assert "Grafana dashboard available at:" in output
    assert session.addresses.secondary in output
    assert session.addresses.primary.endswith("/services/web:http/proxy/")
    assert session.addresses.secondary.endswith("/services/grafana:http/proxy/")
    browser.assert_not_called()
    assert session.state == SessionState.SERVING
    assert session.tunnel.run_calls == [stop]


def test_unhealthy_control_plane_stops_before_presenting(output_console, make_result):
    """Test that a failing control plane hides the URLs and never opens a browser."""
    response = SelfCheckResponse(results=[make_result("mesh-api", ok=False, message="not ready")])
    session = _session(output_console, show="primary-view", port=8080, response=response)

    with pytest.raises(ControlPlaneUnavailableError) as exc_info:
        session.run()

    assert exc_info.value.subsystem == "mesh-api"
    assert exc_info.value.message == "not ready"
    assert _output(session) == ""
    session._open_browser.assert_not_called()
    assert session.tunnel.port == 8080
    assert session.tunnel.run_calls == []
    assert session.state == SessionState.CLIENT_RESOLVED


def test_primary_view_opens_primary_dashboard(output_console, healthy_response):
    """Test that primary-view opens the mesh dashboard."""
    session = _session(output_console, show="primary-view", response=healthy_response)

    session.run()

    session._open_browser.assert_called_once_with(session.addresses.primary)
    assert "Opening Mesh dashboard in the default browser" in _output(session)
    assert session.state == SessionState.SERVING


def test_secondary_view_opens_grafana(output_console, healthy_response):
    """Test that secondary-view opens Grafana."""
    session = _session(output_console, show="secondary-view", response=healthy_response)

    session.run()

    session._open_browser.assert_called_once_with(session.addresses.secondary)
    assert "Opening Grafana dashboard in the default browser" in _output(session)


def test_browser_failure_is_fatal_after_printing(output_console):
    """Test that a browser failure stops the session but the URLs stay printed."""
    browser = Mock(side_effect=BrowserLaunchError("Failed to open"))
    session = _session(output_console, show="primary-view", browser_opener=browser)

    with pytest.raises(BrowserLaunchError):
        session.run()

    assert session.addresses.primary in _output(session)
    assert session.tunnel.run_calls == []


@pytest.mark.parametrize("port", [-1, -8080])
def test_negative_port_touches_nothing(output_console, port):
    """Test that an invalid port fails before any collaborator is used."""
    opener, resolver = Mock(), Mock()

    with pytest.raises(ConfigurationError) as exc_info:
        _session(output_console, port=port, tunnel_opener=opener, client_resolver=resolver)

    assert f"was {port}" in exc_info.value.message
    opener.assert_not_called()
    resolver.assert_not_called()


def test_unknown_show_value_touches_nothing(output_console):
    """Test that an invalid presentation mode fails before tunnel creation."""
    opener = Mock()

    with pytest.raises(ConfigurationError) as exc_info:
        _session(output_console, show="linkerd", tunnel_opener=opener)

    assert "unknown value for 'show' param, was: linkerd" in exc_info.value.message
    opener.assert_not_called()


def test_tunnel_failure_stops_everything(output_console):
    """Test that a tunnel init error aborts before client resolution."""
    resolver = Mock()
    session = _session(
        output_console,
        tunnel_opener=Mock(side_effect=TunnelInitError("Failed to initialize proxy")),
        client_resolver=resolver,
    )

    with pytest.raises(TunnelInitError):
        session.run()

    resolver.assert_not_called()
    assert session.state == SessionState.INIT


def test_resolution_failure_stops_before_client(output_console):
    """Test that a failing address resolution aborts before client work."""
    tunnel = Mock()
    tunnel.resolve.side_effect = ResolutionError("Failed to generate URL")
    resolver = Mock()
    session = _session(
        output_console, tunnel_opener=Mock(return_value=tunnel), client_resolver=resolver
    )

    with pytest.raises(ResolutionError):
        session.run()

    resolver.assert_not_called()
    assert session.state == SessionState.TUNNEL_OPENED


def test_cluster_unreachable_propagates(output_console):
    """Test that a cluster self-check failure ends the session before verification."""
    verifier = Mock()
    session = _session(
        output_console,
        client_resolver=Mock(side_effect=ClusterUnreachableError("kubernetes-api", "refused")),
        verifier=verifier,
    )

    with pytest.raises(ClusterUnreachableError):
        session.run()

    verifier.assert_not_called()
    assert session.state == SessionState.ADDRESSES_RESOLVED


def test_from_options_builds_config(output_console):
    """Test that raw options end up in the session config."""
    session = DashboardSession.from_options(
        port=8001,
        show="secondary-view",
        namespace="custom-mesh",
        api_addr="localhost:8085",
        console=output_console,
    )

    assert session.config.port == 8001
    assert session.config.show == PresentationMode.SECONDARY_VIEW
    assert session.config.namespace == "custom-mesh"
    assert session.config.api_addr == "localhost:8085"
    assert session.state == SessionState.INIT
