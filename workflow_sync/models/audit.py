from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator


BranchCheckStatus = Literal["checking", "present", "missing", "not-found"]

TERMINAL_STATUSES: frozenset[str] = frozenset({"present", "missing", "not-found"})


class BranchCheck(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    branch: str = Field(min_length=1)
    status: BranchCheckStatus

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES


class RepositoryStatus(BaseModel):
    """Audit result for one repository; branches keep the caller's order."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    repo: str = Field(min_length=1)
    branches: list[BranchCheck] = Field(default_factory=list)
    last_commit_date: str | None = None

    @field_validator("branches")
    @classmethod
    def _unique_branch_names(cls, value: list[BranchCheck]) -> list[BranchCheck]:
        seen: set[str] = set()
        for check in value:
            if check.branch in seen:
                raise ValueError(f"duplicate branch: {check.branch}")
            seen.add(check.branch)
        return value

    @computed_field  # type: ignore[prop-decorator]
    @property
    def needs_action(self) -> bool:
        return any(check.status == "missing" for check in self.branches)

    def missing_branches(self) -> list[str]:
        return [check.branch for check in self.branches if check.status == "missing"]

    def count(self, status: BranchCheckStatus) -> int:
        return sum(1 for check in self.branches if check.status == status)
