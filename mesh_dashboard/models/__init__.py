"""Data models for dashboard configuration and health checks."""

from mesh_dashboard.models.dashboard import (
    DEFAULT_NAMESPACE,
    DashboardAddresses,
    DashboardConfig,
    DirectEndpoint,
    PresentationMode,
    ProxiedEndpoint,
)
from mesh_dashboard.models.health import CheckResult, CheckStatus, SelfCheckResponse

__all__ = [
    "DEFAULT_NAMESPACE",
    "CheckResult",
    "CheckStatus",
    "SelfCheckResponse",
    "DashboardAddresses",
    "DashboardConfig",
    "DirectEndpoint",
    "PresentationMode",
    "ProxiedEndpoint",
]
