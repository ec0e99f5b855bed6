"""Dashboard session: tunnel, control plane checks and presentation.

A session moves through its states strictly in order:

    INIT -> TUNNEL_OPENED -> ADDRESSES_RESOLVED -> CLIENT_RESOLVED
         -> HEALTH_VERIFIED -> PRESENTED -> SERVING

Every error is fatal and propagates to the caller unchanged. Dashboard URLs are
only shown once the control plane has reported itself healthy.
"""

import threading
from collections.abc import Callable
from enum import Enum

from pydantic import ValidationError
from rich.console import Console

from mesh_dashboard.browser import open_url
from mesh_dashboard.client import ApiClient, resolve_client
from mesh_dashboard.exceptions import ConfigurationError
from mesh_dashboard.health import verify_control_plane
from mesh_dashboard.logging_config import get_logger
from mesh_dashboard.models.dashboard import (
    DEFAULT_NAMESPACE,
    DashboardAddresses,
    DashboardConfig,
    PresentationMode,
)
from mesh_dashboard.tunnel import Tunnel

logger = get_logger(__name__)

PRIMARY_SELECTOR = "web:http"
SECONDARY_SELECTOR = "grafana:http"

PRIMARY_NAME = "Mesh"
SECONDARY_NAME = "Grafana"


class SessionState(str, Enum):
    """Progress of a dashboard session."""

    INIT = "init"
    TUNNEL_OPENED = "tunnel-opened"
    ADDRESSES_RESOLVED = "addresses-resolved"
    CLIENT_RESOLVED = "client-resolved"
    HEALTH_VERIFIED = "health-verified"
    PRESENTED = "presented"
    SERVING = "serving"


def config_from_options(**options) -> DashboardConfig:
    """Validate raw options into a DashboardConfig.

    Raises:
        ConfigurationError: If any option is invalid
    """
    try:
        return DashboardConfig(**options)
    except ValidationError as e:
        messages = [error["msg"].removeprefix("Value error, ") for error in e.errors()]
        raise ConfigurationError("; ".join(messages))


class DashboardSession:
    """One run of the dashboard command."""

    def __init__(
        self,
        config: DashboardConfig,
        tunnel_opener: Callable[[str, int], Tunnel] | None = None,
        client_resolver: Callable[[DashboardConfig], ApiClient] = resolve_client,
        verifier: Callable[[ApiClient], None] = verify_control_plane,
        browser_opener: Callable[[str], None] = open_url,
        console: Console | None = None,
    ):
        """Initialize the session.

        Args:
            config: Validated dashboard options
            tunnel_opener: Opens a tunnel for (namespace, port); defaults to Tunnel.open
            client_resolver: Resolves the control plane API client
            verifier: Verifies the control plane through the client
            browser_opener: Opens a URL in a browser
            console: Console the dashboard URLs are written to
        """
        self.config = config
        self._open_tunnel = tunnel_opener or self._open_default_tunnel
        self._resolve_client = client_resolver
        self._verify = verifier
        self._open_browser = browser_opener
        self.console = console or Console()

        self.state = SessionState.INIT
        self.tunnel: Tunnel | None = None
        self.addresses: DashboardAddresses | None = None

    @classmethod
    def from_options(
        cls,
        port: int = 0,
        show: str = PresentationMode.PRIMARY_VIEW.value,
        namespace: str = DEFAULT_NAMESPACE,
        kubeconfig: str | None = None,
        context: str | None = None,
        api_addr: str | None = None,
        **collaborators,
    ) -> "DashboardSession":
        """Build a session from raw options, validating them before any I/O."""
        config = config_from_options(
            port=port,
            show=show,
            namespace=namespace,
            kubeconfig=kubeconfig,
            context=context,
            api_addr=api_addr,
        )
        return cls(config, **collaborators)

    def run(self, stop_event: threading.Event | None = None) -> None:
        """Run the session, blocking while the tunnel serves.

        Args:
            stop_event: Event that stops the tunnel when set
        """
        self.tunnel = self._open_tunnel(self.config.namespace, self.config.port)
        self._advance(SessionState.TUNNEL_OPENED)

        self.addresses = DashboardAddresses(
            primary=self.tunnel.resolve(PRIMARY_SELECTOR),
            secondary=self.tunnel.resolve(SECONDARY_SELECTOR),
        )
        self._advance(SessionState.ADDRESSES_RESOLVED)

        api_client = self._resolve_client(self.config)
        self._advance(SessionState.CLIENT_RESOLVED)

        self._verify(api_client)
        self._advance(SessionState.HEALTH_VERIFIED)

        self._present(self.addresses)
        self._advance(SessionState.PRESENTED)

        self._advance(SessionState.SERVING)
        self.tunnel.run(stop_event)

    def _present(self, addresses: DashboardAddresses) -> None:
        self._print(f"{PRIMARY_NAME} dashboard available at:\n{addresses.primary}")
        self._print(f"{SECONDARY_NAME} dashboard available at:\n{addresses.secondary}")

        if self.config.show == PresentationMode.PRIMARY_VIEW:
            self._open(PRIMARY_NAME, addresses.primary)
        elif self.config.show == PresentationMode.SECONDARY_VIEW:
            self._open(SECONDARY_NAME, addresses.secondary)
        # print-only: nothing to open

    def _open(self, name: str, url: str) -> None:
        self._print(f"Opening {name} dashboard in the default browser")
        self._open_browser(url)

    def _print(self, text: str) -> None:
        self.console.print(text, highlight=False, markup=False, soft_wrap=True)

    def _advance(self, state: SessionState) -> None:
        logger.debug(f"Session state: {self.state.value} -> {state.value}")
        self.state = state

    def _open_default_tunnel(self, namespace: str, port: int) -> Tunnel:
        return Tunnel.open(
            namespace, port, kubeconfig=self.config.kubeconfig, context=self.config.context
        )
