"""Data models for dashboard options and control plane endpoints."""

import re
from enum import Enum

from pydantic import BaseModel, ConfigDict, field_validator

DEFAULT_NAMESPACE = "mesh-system"

_DNS_LABEL = re.compile(r"^[a-z0-9]([-a-z0-9]*[a-z0-9])?$")


class PresentationMode(str, Enum):
    """What to do with the dashboard URLs once the control plane is healthy."""

    PRIMARY_VIEW = "primary-view"
    SECONDARY_VIEW = "secondary-view"
    PRINT_ONLY = "print-only"


class DirectEndpoint(BaseModel):
    """Control plane API reached at a known address, bypassing the cluster."""

    model_config = ConfigDict(frozen=True)

    address: str

    def __str__(self) -> str:
        return f"direct {self.address}"


class ProxiedEndpoint(BaseModel):
    """Control plane API reached through the Kubernetes API server."""

    model_config = ConfigDict(frozen=True)

    namespace: str
    context: str | None = None

    def __str__(self) -> str:
        return f"proxied via {self.context or 'current context'} in {self.namespace}"


class DashboardAddresses(BaseModel):
    """Local URLs of the two dashboards exposed through the tunnel."""

    primary: str
    secondary: str


class DashboardConfig(BaseModel):
    """Validated options for a dashboard session."""

    model_config = ConfigDict(frozen=True)

    port: int = 0
    show: PresentationMode = PresentationMode.PRIMARY_VIEW
    namespace: str = DEFAULT_NAMESPACE
    kubeconfig: str | None = None
    context: str | None = None
    api_addr: str | None = None

    @field_validator("port")
    @classmethod
    def validate_port(cls, v: int) -> int:
        """Validate port is zero (random) or positive."""
        if v < 0:
            raise ValueError(f"port must be greater than or equal to zero, was {v}")
        if v > 65535:
            raise ValueError(f"port must be at most 65535, was {v}")
        return v

    @field_validator("show", mode="before")
    @classmethod
    def validate_show(cls, v):
        """Validate show is one of the presentation modes."""
        allowed = [m.value for m in PresentationMode]
        if isinstance(v, PresentationMode):
            return v
        if v not in allowed:
            raise ValueError(
                f"unknown value for 'show' param, was: {v}, must be one of: {', '.join(allowed)}"
            )
        return v

    @field_validator("namespace")
    @classmethod
    def validate_namespace(cls, v: str) -> str:
        """Validate namespace is a DNS-1123 label."""
        if not v:
            raise ValueError("namespace cannot be empty")
        if len(v) > 63 or not _DNS_LABEL.match(v):
            raise ValueError(
                f"namespace '{v}' must consist of lower case alphanumeric characters or '-', "
                "and must start and end with an alphanumeric character"
            )
        return v

    @field_validator("api_addr")
    @classmethod
    def validate_api_addr(cls, v: str | None) -> str | None:
        """Validate api_addr is not blank when given."""
        if v is not None and not v.strip():
            raise ValueError("api_addr cannot be empty")
        return v
