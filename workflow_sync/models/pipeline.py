from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, computed_field

from workflow_sync.models.audit import RepositoryStatus
from workflow_sync.models.remediation import RemediationOutcome


class PipelineSummary(BaseModel):
    model_config = ConfigDict(extra="forbid")

    host: str
    dry_run: bool
    statuses: list[RepositoryStatus] = Field(default_factory=list)
    outcomes: list[RemediationOutcome] = Field(default_factory=list)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def failures(self) -> list[RemediationOutcome]:
        return [outcome for outcome in self.outcomes if not outcome.success]

    @computed_field  # type: ignore[prop-decorator]
    @property
    def repos_needing_action(self) -> list[str]:
        return [status.repo for status in self.statuses if status.needs_action]

    @property
    def exit_code(self) -> int:
        return 1 if self.failures else 0
