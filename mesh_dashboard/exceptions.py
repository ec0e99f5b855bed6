"""Custom exceptions for the mesh dashboard."""


class DashboardError(Exception):
    """Base exception for all dashboard errors."""

    def __init__(self, message: str, details: str = None):
        """Initialize the exception.

        Args:
            message: Main error message
            details: Additional details or suggestions
        """
        self.message = message
        self.details = details
        super().__init__(self.format_message())

    def format_message(self) -> str:
        """Format the complete error message.

        Returns:
            Formatted error message with details
        """
        if self.details:
            return f"{self.message}\n\nDetails: {self.details}"
        return self.message


class ConfigurationError(DashboardError):
    """Exception raised for invalid options, before any network activity."""

    pass


class KubernetesError(DashboardError):
    """Exception raised when the Kubernetes client cannot be configured."""

    pass


class TunnelInitError(DashboardError):
    """Exception raised when the local tunnel cannot be created."""

    pass


class ResolutionError(DashboardError):
    """Exception raised when a service selector cannot be mapped to a URL."""

    pass


class ProxyRunError(DashboardError):
    """Exception raised when the tunnel fails while serving."""

    pass


class BrowserLaunchError(DashboardError):
    """Exception raised when a dashboard cannot be opened in a browser."""

    pass


class HealthCheckError(DashboardError):
    """A self-check reported a subsystem that is not OK."""

    def __init__(self, subsystem: str, message: str, details: str = None):
        """Initialize the exception.

        Args:
            subsystem: Name of the first failing subsystem
            message: Friendly message reported by that subsystem
            details: Remediation hint
        """
        self.subsystem = subsystem
        super().__init__(message, details)


class ClusterUnreachableError(HealthCheckError):
    """Exception raised when the Kubernetes self-check fails."""

    pass


class ControlPlaneUnavailableError(HealthCheckError):
    """Exception raised when the control plane reports an unhealthy subsystem."""

    pass


class HealthCheckTransportError(DashboardError):
    """Exception raised when the control plane self-check cannot be completed."""

    pass
