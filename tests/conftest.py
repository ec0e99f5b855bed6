"""Pytest configuration and shared fixtures."""

import io

import pytest
from hypothesis import Verbosity, settings
from rich.console import Console

from mesh_dashboard.models.health import CheckResult, CheckStatus, SelfCheckResponse

# Configure Hypothesis for property-based testing
settings.register_profile("default", max_examples=100, verbosity=Verbosity.normal)
settings.register_profile("ci", max_examples=1000, verbosity=Verbosity.verbose)
settings.register_profile("dev", max_examples=10, verbosity=Verbosity.verbose)

# Load the default profile
settings.load_profile("default")


def _make_result(subsystem: str, ok: bool = True, message: str = "") -> CheckResult:
    return CheckResult(
        subsystem_name=subsystem,
        check_description=f"{subsystem} check",
        status=CheckStatus.OK if ok else CheckStatus.FAIL,
        friendly_message_to_user=message,
    )


@pytest.fixture
def make_result():
    """Factory for self-check results."""
    return _make_result


@pytest.fixture
def healthy_response():
    """Control plane self-check where every subsystem is OK."""
    return SelfCheckResponse(results=[_make_result("mesh-api"), _make_result("mesh-prometheus")])


@pytest.fixture
def output_console():
    """Console writing to an in-memory buffer."""
    return Console(file=io.StringIO(), width=200)
