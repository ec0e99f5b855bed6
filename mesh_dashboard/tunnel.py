"""Local tunnel to services inside the cluster.

The tunnel is a small HTTP server on localhost that forwards every request to
the Kubernetes API server, authenticated with the kubeconfig credentials. Any
service in the cluster is then reachable through the API server's service proxy
at ``/api/v1/namespaces/<namespace>/services/<service>:<port>/proxy/``.

Requests are only answered for localhost Host headers, so a page in the browser
cannot reach the cluster through the tunnel by rebinding its own domain.
"""

import re
import threading
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer

import urllib3
from kubernetes import client

from mesh_dashboard.exceptions import (
    ConfigurationError,
    KubernetesError,
    ProxyRunError,
    ResolutionError,
    TunnelInitError,
)
from mesh_dashboard.kube_api import load_configuration
from mesh_dashboard.logging_config import ACCESS_LOGGER, get_logger

logger = get_logger(__name__)
access_logger = get_logger(ACCESS_LOGGER)

LOCAL_HOST = "127.0.0.1"

# Host headers the proxy answers to, as kubectl proxy accepts by default
ALLOWED_HOSTS = {"localhost", "127.0.0.1", "::1"}

_MAX_LINE = 65537

# Selector of a service port: "<service-name>:<port-name>"
_SELECTOR_PATTERN = re.compile(r"^[a-z0-9]([-a-z0-9]*[a-z0-9])?:[a-z0-9]([-a-z0-9]*[a-z0-9])?$")
_NAMESPACE_PATTERN = re.compile(r"^[a-z0-9]([-a-z0-9]*[a-z0-9])?$")

# Headers that apply to a single connection and are not forwarded
HOP_BY_HOP_HEADERS = {
    "connection",
    "keep-alive",
    "proxy-authenticate",
    "proxy-authorization",
    "te",
    "trailers",
    "transfer-encoding",
    "upgrade",
    "host",
    "content-length",
}


def _host_name(host: str) -> str:
    """Strip the port from a Host header value."""
    host = host.strip().lower()
    if host.startswith("["):
        return host[1:].partition("]")[0]
    return host.partition(":")[0]


class _ProxyRequestHandler(BaseHTTPRequestHandler):
    """Forwards one local request to the Kubernetes API server."""

    protocol_version = "HTTP/1.1"

    def do_GET(self):
        self._forward()

    def do_HEAD(self):
        self._forward()

    def do_POST(self):
        self._forward()

    def do_PUT(self):
        self._forward()

    def do_PATCH(self):
        self._forward()

    def do_DELETE(self):
        self._forward()

    def do_OPTIONS(self):
        self._forward()

    def _forward(self) -> None:
        upstream: client.ApiClient = self.server.upstream
        configuration = upstream.configuration

        host = self.headers.get("Host", "")
        if _host_name(host) not in ALLOWED_HOSTS:
            logger.warning(f"Rejected proxy request {self.command} {self.path} for host '{host}'")
            self.send_error(403, "Forbidden", f"Host '{host}' is not allowed")
            return

        try:
            body = self._read_body()
        except ValueError:
            self.send_error(400, "Bad Request", "Malformed request body")
            return

        headers = {
            name: value
            for name, value in self.headers.items()
            if name.lower() not in HOP_BY_HOP_HEADERS and name.lower() != "authorization"
        }
        token = configuration.get_api_key_with_prefix("authorization")
        if token:
            headers["Authorization"] = token

        url = configuration.host.rstrip("/") + self.path
        try:
            response = upstream.rest_client.pool_manager.request(
                self.command,
                url,
                body=body,
                headers=headers,
                redirect=False,
                decode_content=False,
            )
        except urllib3.exceptions.HTTPError as e:
            logger.warning(f"Proxy request {self.command} {self.path} failed: {e}")
            self.send_error(502, "Bad Gateway", str(e))
            return

        data = response.data or b""
        if self.command == "HEAD":
            content_length = response.headers.get("Content-Length", str(len(data)))
        else:
            content_length = str(len(data))

        self.send_response(response.status)
        # iteritems keeps repeated headers such as Set-Cookie apart
        for name, value in response.headers.iteritems():
            if name.lower() not in HOP_BY_HOP_HEADERS:
                self.send_header(name, value)
        self.send_header("Content-Length", content_length)
        self.end_headers()
        if self.command != "HEAD":
            self.wfile.write(data)

    def _read_body(self) -> bytes | None:
        if "chunked" in self.headers.get("Transfer-Encoding", "").lower():
            return self._read_chunked_body()
        length = int(self.headers.get("Content-Length") or 0)
        return self.rfile.read(length) if length else None

    def _read_chunked_body(self) -> bytes:
        chunks = []
        while True:
            size_line = self.rfile.readline(_MAX_LINE)
            size = int(size_line.split(b";", 1)[0].strip(), 16)
            if size == 0:
                break
            chunks.append(self.rfile.read(size))
            self.rfile.readline(_MAX_LINE)

        # Trailers end with an empty line
        while self.rfile.readline(_MAX_LINE) not in (b"\r\n", b"\n", b""):
            pass
        return b"".join(chunks)

    def log_message(self, format, *args):
        access_logger.info(f"{self.address_string()} - {format % args}")


class _ProxyServer(ThreadingHTTPServer):
    daemon_threads = True

    def __init__(self, address: tuple[str, int], upstream: client.ApiClient):
        self.upstream = upstream
        super().__init__(address, _ProxyRequestHandler)


class Tunnel:
    """Local forwarding channel to services in one namespace of the cluster."""

    def __init__(self, namespace: str, server: _ProxyServer):
        """Initialize the tunnel around an already bound server.

        Use Tunnel.open() instead of calling this directly.
        """
        self.namespace = namespace
        self._server = server
        self._ran = False

    @classmethod
    def open(
        cls,
        namespace: str,
        port: int = 0,
        kubeconfig: str | None = None,
        context: str | None = None,
        configuration: client.Configuration | None = None,
    ) -> "Tunnel":
        """Create a tunnel listening on localhost.

        Args:
            namespace: Namespace whose services will be resolved
            port: Local port to listen on; 0 lets the OS pick a free port
            kubeconfig: Path to the kubeconfig file
            context: Kubeconfig context to use
            configuration: Client configuration to use instead of loading the kubeconfig

        Returns:
            A tunnel bound to its local port, not yet serving

        Raises:
            ConfigurationError: If the port is negative
            TunnelInitError: If the kubeconfig cannot be loaded or the port cannot be bound
        """
        if port < 0:
            raise ConfigurationError(f"port must be greater than or equal to zero, was {port}")
        if not _NAMESPACE_PATTERN.match(namespace or ""):
            raise ConfigurationError(f"invalid namespace '{namespace}'")

        if configuration is None:
            try:
                configuration = load_configuration(kubeconfig, context)
            except KubernetesError as e:
                raise TunnelInitError(f"Failed to initialize proxy: {e.message}", e.details)

        try:
            server = _ProxyServer((LOCAL_HOST, port), client.ApiClient(configuration))
        except (OSError, OverflowError) as e:
            raise TunnelInitError(
                f"Failed to initialize proxy: cannot listen on {LOCAL_HOST}:{port}: {e}",
                "Choose another port with --port, or use --port 0 for a random one",
            )

        tunnel = cls(namespace, server)
        logger.info(f"Proxy listening on {tunnel.address} for {configuration.host}")
        return tunnel

    @property
    def port(self) -> int:
        """Port the tunnel is bound to."""
        return self._server.server_address[1]

    @property
    def address(self) -> str:
        return f"{LOCAL_HOST}:{self.port}"

    @property
    def upstream(self) -> client.ApiClient:
        return self._server.upstream

    def resolve(self, selector: str) -> str:
        """Map a service selector to a local URL.

        Args:
            selector: Service and port name, e.g. "web:http"

        Returns:
            URL of the service proxy, valid while the tunnel is running

        Raises:
            ResolutionError: If the selector is not "<service>:<port>"
        """
        if not _SELECTOR_PATTERN.match(selector or ""):
            raise ResolutionError(
                f"Failed to generate URL for service '{selector}'",
                "Service selectors must have the form <service-name>:<port-name>",
            )
        return (
            f"http://{self.address}/api/v1/namespaces/{self.namespace}/services/{selector}/proxy/"
        )

    def run(self, stop_event: threading.Event | None = None) -> None:
        """Serve until stop_event is set or the process is interrupted.

        Args:
            stop_event: Event that stops the tunnel when set

        Raises:
            ProxyRunError: If the tunnel already ran or fails while serving
        """
        if self._ran:
            raise ProxyRunError("Error running proxy: the proxy can only be run once")
        self._ran = True

        if stop_event is not None:
            watcher = threading.Thread(
                target=self._stop_when_set, args=(stop_event,), name="tunnel-stop", daemon=True
            )
            watcher.start()

        logger.debug(f"Serving proxy on {self.address}")
        try:
            self._server.serve_forever()
        except OSError as e:
            raise ProxyRunError(f"Error running proxy: {e}")
        finally:
            self._server.server_close()
            self.upstream.close()
            logger.info("Proxy stopped")

    def _stop_when_set(self, stop_event: threading.Event) -> None:
        stop_event.wait()
        logger.debug("Stop requested, shutting down proxy")
        self._server.shutdown()
