from __future__ import annotations

from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator


RemediationStepStatus = Literal["SUCCEEDED", "FAILED", "SKIPPED"]


class RemediationStage(str, Enum):
    START = "START"
    CLONED = "CLONED"
    FILE_STAGED = "FILE_STAGED"
    PUSHED = "PUSHED"
    PR_CREATED = "PR_CREATED"
    DONE = "DONE"


class RemediationError(str, Enum):
    """Failure messages attached to an outcome, one per terminal failing stage."""

    CLONE = "Failed to clone repository"
    WRITE_FILE = "Failed to write workflow file"
    PUSH = "Failed to push changes"
    CREATE_PR = "Failed to create PR"


class RemediationStepRecord(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    step: str
    status: RemediationStepStatus
    command: str | None = None
    return_code: int | None = None
    stderr_excerpt: str | None = None


class RemediationOutcome(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    repo: str
    branch: str
    success: bool
    pr_number: int | None = None
    error: str | None = None
    stage: RemediationStage = RemediationStage.START
    steps: list[RemediationStepRecord] = Field(default_factory=list)

    @model_validator(mode="after")
    def _check_consistency(self) -> RemediationOutcome:
        if not self.success and not self.error:
            raise ValueError("failed outcome requires an error message")
        if self.success and self.error:
            raise ValueError("successful outcome must not carry an error")
        return self
