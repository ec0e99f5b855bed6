"""Control plane API clients and the strategy that picks one of them."""

from abc import ABC, abstractmethod
from collections.abc import Callable

import requests
import urllib3
from kubernetes import client
from kubernetes.client.rest import ApiException
from pydantic import ValidationError

from mesh_dashboard.exceptions import ClusterUnreachableError, HealthCheckTransportError
from mesh_dashboard.health import first_failure
from mesh_dashboard.kube_api import KubernetesAPI
from mesh_dashboard.logging_config import get_logger
from mesh_dashboard.models.dashboard import DashboardConfig, DirectEndpoint, ProxiedEndpoint
from mesh_dashboard.models.health import SelfCheckResponse

logger = get_logger(__name__)

API_PREFIX = "api/v1/"
SELF_CHECK_METHOD = "SelfCheck"
CONTROLLER_API_SERVICE = "mesh-controller-api"
CONTROLLER_API_PORT = "http"


class ApiClient(ABC):
    """Client for the control plane API."""

    def __init__(self, namespace: str):
        self.namespace = namespace

    @property
    @abstractmethod
    def endpoint(self) -> DirectEndpoint | ProxiedEndpoint:
        """How this client reaches the control plane."""

    @abstractmethod
    def self_check(self) -> SelfCheckResponse:
        """Ask the control plane to check its own subsystems.

        Raises:
            HealthCheckTransportError: If the request cannot be completed
        """

    def _parse(self, payload: bytes | str) -> SelfCheckResponse:
        try:
            response = SelfCheckResponse.model_validate_json(payload)
        except ValidationError as e:
            raise HealthCheckTransportError(
                f"Invalid self-check response from the control plane ({self.endpoint})",
                str(e),
            )
        logger.debug(f"Control plane self-check returned {len(response.results)} results")
        return response


class DirectApiClient(ApiClient):
    """Calls the control plane API at a known address."""

    def __init__(self, namespace: str, address: str, session: requests.Session | None = None):
        """Initialize the client.

        Args:
            namespace: Control plane namespace
            address: host:port of the control plane API
            session: Optional requests session to reuse
        """
        super().__init__(namespace)
        self._endpoint = DirectEndpoint(address=address)
        self._session = session or requests.Session()

    @property
    def endpoint(self) -> DirectEndpoint:
        return self._endpoint

    @property
    def base_url(self) -> str:
        address = self._endpoint.address
        if "://" not in address:
            address = f"http://{address}"
        return f"{address.rstrip('/')}/{API_PREFIX}"

    def self_check(self) -> SelfCheckResponse:
        url = self.base_url + SELF_CHECK_METHOD
        logger.debug(f"POST {url}")
        try:
            response = self._session.post(url, json={})
            response.raise_for_status()
        except requests.RequestException as e:
            raise HealthCheckTransportError(
                f"Failed to call the control plane API at {self._endpoint.address}: {e}"
            )
        return self._parse(response.content)


class ProxiedApiClient(ApiClient):
    """Calls the control plane API through the Kubernetes API server's service proxy."""

    def __init__(self, namespace: str, kube_api: KubernetesAPI):
        """Initialize the client.

        Args:
            namespace: Control plane namespace
            kube_api: Kubernetes session that already passed its self-check
        """
        super().__init__(namespace)
        self._endpoint = ProxiedEndpoint(namespace=namespace, context=kube_api.context)
        self._core = client.CoreV1Api(kube_api.api_client)

    @property
    def endpoint(self) -> ProxiedEndpoint:
        return self._endpoint

    def self_check(self) -> SelfCheckResponse:
        service = f"{CONTROLLER_API_SERVICE}:{CONTROLLER_API_PORT}"
        logger.debug(f"POST {service} in {self.namespace}: {API_PREFIX}{SELF_CHECK_METHOD}")
        try:
            response = self._core.connect_post_namespaced_service_proxy_with_path(
                service,
                self.namespace,
                API_PREFIX + SELF_CHECK_METHOD,
                _preload_content=False,
            )
        except ApiException as e:
            raise HealthCheckTransportError(
                f"Failed to call the control plane API in namespace {self.namespace}: "
                f"{e.status} {e.reason}"
            )
        except urllib3.exceptions.HTTPError as e:
            raise HealthCheckTransportError(
                f"Failed to call the control plane API in namespace {self.namespace}: {e}"
            )
        return self._parse(response.data)


def resolve_client(
    config: DashboardConfig,
    kube_api_factory: Callable[..., KubernetesAPI] = KubernetesAPI,
) -> ApiClient:
    """Pick how to reach the control plane API.

    A configured api_addr always wins and skips the cluster entirely. Otherwise
    the cluster must pass its self-check before a proxied client is built.

    Args:
        config: Validated dashboard options
        kube_api_factory: Builds the Kubernetes session from kubeconfig and context

    Returns:
        A client for the control plane API

    Raises:
        ClusterUnreachableError: If the cluster self-check reports a failure
    """
    if config.api_addr:
        logger.info(f"Using control plane API at {config.api_addr}")
        return DirectApiClient(config.namespace, config.api_addr)

    kube_api = kube_api_factory(kubeconfig=config.kubeconfig, context=config.context)
    failed = first_failure(kube_api.self_check())
    if failed is not None:
        raise ClusterUnreachableError(
            failed.subsystem_name,
            failed.friendly_message_to_user,
            "Check that the cluster is running and that your kubeconfig points at it "
            "(kubectl cluster-info)",
        )

    logger.info(f"Using control plane API through the Kubernetes API in {config.namespace}")
    return ProxiedApiClient(config.namespace, kube_api)
