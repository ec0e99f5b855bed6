"""Health verification of the control plane."""

from collections.abc import Iterable
from typing import TYPE_CHECKING

from mesh_dashboard.exceptions import ControlPlaneUnavailableError
from mesh_dashboard.logging_config import get_logger
from mesh_dashboard.models.health import CheckResult

if TYPE_CHECKING:
    from mesh_dashboard.client import ApiClient

logger = get_logger(__name__)


def install_hint(namespace: str) -> str:
    """Command that installs the control plane into a namespace."""
    return f"meshctl install --namespace {namespace} | kubectl apply -f -"


def first_failure(results: Iterable[CheckResult]) -> CheckResult | None:
    """Return the first result that is not OK, in the order received.

    An empty sequence has no failure.
    """
    for result in results:
        if not result.ok:
            return result
    return None


def verify_control_plane(client: "ApiClient") -> None:
    """Check that the control plane reports every subsystem as OK.

    Only the first failing subsystem is reported.

    Args:
        client: Client for the control plane API

    Raises:
        HealthCheckTransportError: If the self-check request cannot be completed
        ControlPlaneUnavailableError: If a subsystem reports a failure
    """
    response = client.self_check()

    failed = first_failure(response.results)
    if failed is None:
        logger.info(f"Control plane in {client.namespace} is healthy")
        return

    remaining = response.results[response.results.index(failed) + 1 :]
    if remaining:
        logger.debug(f"Not reporting {len(remaining)} further self-check results")

    raise ControlPlaneUnavailableError(
        failed.subsystem_name,
        failed.friendly_message_to_user,
        f"The control plane in the \"{client.namespace}\" namespace is not ready. "
        "Wait for its pods to become ready and try again, or install it with: "
        f"{install_hint(client.namespace)}",
    )
