"""Kubernetes API access and cluster self-check.

The self-check runs a fixed sequence of checks against the cluster pointed at by
the kubeconfig. Each check depends on the previous one, so the sequence stops at
the first failure.
"""

import os
import re
from pathlib import Path

from kubernetes import client, config
from kubernetes.client.rest import ApiException

from mesh_dashboard.exceptions import KubernetesError
from mesh_dashboard.logging_config import get_logger
from mesh_dashboard.models.health import CheckResult, CheckStatus

logger = get_logger(__name__)

KUBERNETES_API_SUBSYSTEM = "kubernetes-api"
KUBERNETES_VERSION_SUBSYSTEM = "kubernetes-version"

CLIENT_CHECK_DESCRIPTION = "can initialize the client"
ACCESS_CHECK_DESCRIPTION = "can query the Kubernetes API"
AUTHORIZATION_CHECK_DESCRIPTION = "is authorized to access the cluster"
VERSION_CHECK_DESCRIPTION = "is running the minimum Kubernetes API version"

MIN_KUBERNETES_VERSION = (1, 8, 0)

_VERSION_PATTERN = re.compile(r"^v?(\d+)\.(\d+)\.(\d+)")


def default_kubeconfig_path() -> Path:
    """Return the kubeconfig path from KUBECONFIG, falling back to ~/.kube/config."""
    kubeconfig = os.environ.get("KUBECONFIG") or "~/.kube/config"
    # KUBECONFIG may hold a list of files; the first one is the primary config
    return Path(kubeconfig.split(os.pathsep)[0]).expanduser()


def load_configuration(
    kubeconfig: str | Path | None = None, context: str | None = None
) -> client.Configuration:
    """Load a kubeconfig into a fresh client configuration.

    Args:
        kubeconfig: Path to the kubeconfig file (defaults to KUBECONFIG or ~/.kube/config)
        context: Kubeconfig context to use (defaults to the current context)

    Returns:
        Configuration for the selected cluster

    Raises:
        KubernetesError: If the kubeconfig is missing or invalid
    """
    path = Path(kubeconfig).expanduser() if kubeconfig else default_kubeconfig_path()
    logger.debug(f"Loading kubeconfig from {path} (context: {context or 'current'})")

    if not path.exists():
        raise KubernetesError(
            f"Kubeconfig not found: {path}",
            "Pass --kubeconfig or set the KUBECONFIG environment variable",
        )

    configuration = client.Configuration()
    try:
        config.load_kube_config(
            config_file=str(path), context=context, client_configuration=configuration
        )
    except config.ConfigException as e:
        raise KubernetesError(f"Invalid kubeconfig {path}: {e}")
    except Exception as e:
        logger.error(f"Unexpected error loading kubeconfig: {e}", exc_info=True)
        raise KubernetesError(f"Failed to load kubeconfig {path}: {e}")

    logger.debug(f"Kubernetes API server: {configuration.host}")
    return configuration


def parse_version(git_version: str) -> tuple[int, int, int]:
    """Parse a Kubernetes git version such as 'v1.28.5+k3s1'.

    Raises:
        ValueError: If the version does not start with major.minor.patch
    """
    match = _VERSION_PATTERN.match(git_version or "")
    if not match:
        raise ValueError(f"unrecognized Kubernetes version '{git_version}'")
    return tuple(int(part) for part in match.groups())


class KubernetesAPI:
    """Session with the Kubernetes API server of the target cluster."""

    def __init__(self, kubeconfig: str | None = None, context: str | None = None):
        """Initialize the session; nothing is loaded until self_check runs.

        Args:
            kubeconfig: Path to the kubeconfig file
            context: Kubeconfig context to use
        """
        self.kubeconfig = kubeconfig
        self.context = context
        self._api_client: client.ApiClient | None = None
        self._server_version = ""

    @property
    def api_client(self) -> client.ApiClient:
        """The initialized Kubernetes API client."""
        if self._api_client is None:
            raise KubernetesError(
                "Kubernetes client is not initialized",
                "Run the cluster self-check before using the client",
            )
        return self._api_client

    def self_check(self) -> list[CheckResult]:
        """Check that the cluster can be reached and used.

        Returns:
            Ordered check results, ending at the first failure
        """
        results = []
        checks = [
            self._check_client,
            self._check_api_access,
            self._check_authorization,
            self._check_version,
        ]
        for check in checks:
            result = check()
            logger.debug(f"Cluster self-check: {result}")
            results.append(result)
            if not result.ok:
                break
        return results

    def _check_client(self) -> CheckResult:
        try:
            configuration = load_configuration(self.kubeconfig, self.context)
        except KubernetesError as e:
            return _result(KUBERNETES_API_SUBSYSTEM, CLIENT_CHECK_DESCRIPTION, e.message)

        self._api_client = client.ApiClient(configuration)
        return _result(KUBERNETES_API_SUBSYSTEM, CLIENT_CHECK_DESCRIPTION)

    def _check_api_access(self) -> CheckResult:
        try:
            version_info = client.VersionApi(self._api_client).get_code()
        except Exception as e:
            logger.debug(f"Kubernetes version request failed: {e}")
            return _result(
                KUBERNETES_API_SUBSYSTEM,
                ACCESS_CHECK_DESCRIPTION,
                f"Error calling the Kubernetes API: {e}",
            )
        self._server_version = version_info.git_version
        return _result(KUBERNETES_API_SUBSYSTEM, ACCESS_CHECK_DESCRIPTION)

    def _check_authorization(self) -> CheckResult:
        try:
            client.CoreV1Api(self._api_client).list_namespace(limit=1)
        except ApiException as e:
            if e.status in (401, 403):
                message = (
                    f"Not authorized to access the Kubernetes API ({e.status} {e.reason}); "
                    "check the credentials in your kubeconfig"
                )
            else:
                message = f"Error calling the Kubernetes API: {e.status} {e.reason}"
            return _result(KUBERNETES_API_SUBSYSTEM, AUTHORIZATION_CHECK_DESCRIPTION, message)
        except Exception as e:
            return _result(
                KUBERNETES_API_SUBSYSTEM,
                AUTHORIZATION_CHECK_DESCRIPTION,
                f"Error calling the Kubernetes API: {e}",
            )
        return _result(KUBERNETES_API_SUBSYSTEM, AUTHORIZATION_CHECK_DESCRIPTION)

    def _check_version(self) -> CheckResult:
        git_version = self._server_version
        minimum = ".".join(str(part) for part in MIN_KUBERNETES_VERSION)
        try:
            version = parse_version(git_version)
        except ValueError as e:
            return _result(KUBERNETES_VERSION_SUBSYSTEM, VERSION_CHECK_DESCRIPTION, str(e))

        if version < MIN_KUBERNETES_VERSION:
            return _result(
                KUBERNETES_VERSION_SUBSYSTEM,
                VERSION_CHECK_DESCRIPTION,
                f"Kubernetes is on version {git_version}, but version {minimum} or more "
                "recent is required",
            )
        return _result(KUBERNETES_VERSION_SUBSYSTEM, VERSION_CHECK_DESCRIPTION)


def _result(subsystem: str, description: str, failure: str | None = None) -> CheckResult:
    return CheckResult(
        subsystem_name=subsystem,
        check_description=description,
        status=CheckStatus.FAIL if failure else CheckStatus.OK,
        friendly_message_to_user=failure or "",
    )
