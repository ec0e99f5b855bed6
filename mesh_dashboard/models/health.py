"""Data models for the self-check contract."""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class CheckStatus(str, Enum):
    """Outcome of a single self-check."""

    OK = "OK"
    FAIL = "FAIL"


class CheckResult(BaseModel):
    """One subsystem entry of a self-check response."""

    model_config = ConfigDict(populate_by_name=True)

    subsystem_name: str = Field(alias="subsystemName")
    check_description: str = Field(default="", alias="checkDescription")
    status: CheckStatus
    friendly_message_to_user: str = Field(default="", alias="friendlyMessageToUser")

    @property
    def ok(self) -> bool:
        return self.status == CheckStatus.OK

    def __str__(self) -> str:
        """String representation of the check."""
        return f"{self.subsystem_name}: {self.check_description} [{self.status.value}]"


class SelfCheckResponse(BaseModel):
    """Ordered results returned by a self-check request."""

    results: list[CheckResult] = Field(default_factory=list)
