from __future__ import annotations

from pathlib import Path
from typing import Any, Sequence

from workflow_sync.core.config import DEFAULT_GH_HOST
from workflow_sync.core.errors import WorkflowSyncError
from workflow_sync.core.logging import get_logger
from workflow_sync.models.audit import RepositoryStatus
from workflow_sync.models.pipeline import PipelineSummary
from workflow_sync.models.remediation import RemediationOutcome
from workflow_sync.services.audit import AuditEngine, dedupe
from workflow_sync.services.ordering import sort_by_last_commit, unsorted_statuses
from workflow_sync.services.remediation import RemediationEngine
from workflow_sync.services.remote_query import RemoteQueryAdapter
from workflow_sync.services.rendering import BranchProgressTracker, ProgressRenderer


class WorkflowSyncPipeline:
    """Fleet run: resolve repositories, order, audit with live progress, remediate."""

    def __init__(
        self,
        *,
        adapter: RemoteQueryAdapter,
        auditor: AuditEngine,
        remediator: RemediationEngine,
        renderer: ProgressRenderer,
        host: str = DEFAULT_GH_HOST,
        logger: Any | None = None,
    ) -> None:
        self._adapter = adapter
        self._auditor = auditor
        self._remediator = remediator
        self._renderer = renderer
        self._host = host
        self._logger = logger or get_logger("workflow_sync.pipeline")

    @property
    def host(self) -> str:
        return self._host

    async def preflight(self) -> None:
        if not await self._adapter.gh_installed():
            raise WorkflowSyncError(
                "GH_NOT_FOUND",
                "GitHub CLI was not found on PATH.",
                fix=["Install GitHub CLI: https://cli.github.com/"],
            )
        if not await self._adapter.gh_authenticated(self._host):
            raise WorkflowSyncError(
                "GH_AUTH_REQUIRED",
                f"GitHub CLI is not authenticated for {self._host}.",
                fix=[f"gh auth login --hostname {self._host}"],
            )

    async def resolve_repositories(self, repos: Sequence[str], owners: Sequence[str] = ()) -> list[str]:
        resolved = list(repos)
        for owner in dedupe(owners):
            discovered = await self._adapter.list_repositories(owner, self._host)
            self._logger.info("repositories_discovered", owner=owner, count=len(discovered))
            resolved.extend(discovered)
        result = dedupe(resolved)
        if not result:
            raise WorkflowSyncError(
                "NO_REPOSITORIES",
                "No repositories to process.",
                fix=["Pass --repo owner/name or --owner <org>."],
            )
        return result

    async def order(self, repos: Sequence[str], *, sort: bool) -> list[RepositoryStatus]:
        if sort:
            return await sort_by_last_commit(repos, self._host, adapter=self._adapter, logger=self._logger)
        return unsorted_statuses(repos)

    async def audit(self, shells: Sequence[RepositoryStatus], branches: Sequence[str]) -> list[RepositoryStatus]:
        targets = dedupe(branches)
        statuses: list[RepositoryStatus] = []
        for shell in shells:
            self._renderer.repository_started(shell.repo)
            tracker = BranchProgressTracker(self._renderer)
            checked = await self._auditor.check_repository(shell.repo, self._host, targets, on_progress=tracker)
            status = checked.model_copy(update={"last_commit_date": shell.last_commit_date})
            self._renderer.repository_finished(status)
            statuses.append(status)
        return statuses

    async def remediate(
        self,
        statuses: Sequence[RepositoryStatus],
        workflow_file: str | Path,
        *,
        dry_run: bool,
    ) -> list[RemediationOutcome]:
        outcomes: list[RemediationOutcome] = []
        for status in statuses:
            for branch in status.missing_branches():
                outcome = await self._remediator.remediate(
                    status.repo,
                    branch,
                    workflow_file,
                    self._host,
                    dry_run,
                )
                if not outcome.success:
                    self._logger.warning(
                        "remediation_pair_failed",
                        repo=outcome.repo,
                        branch=outcome.branch,
                        error=outcome.error or "unknown error",
                    )
                outcomes.append(outcome)
        return outcomes

    async def run(
        self,
        *,
        repos: Sequence[str],
        branches: Sequence[str],
        owners: Sequence[str] = (),
        sort: bool = False,
        workflow_file: str | Path | None = None,
        dry_run: bool = True,
    ) -> PipelineSummary:
        resolved = await self.resolve_repositories(repos, owners)
        shells = await self.order(resolved, sort=sort)
        statuses = await self.audit(shells, branches)

        outcomes: list[RemediationOutcome] = []
        if workflow_file is not None:
            outcomes = await self.remediate(statuses, workflow_file, dry_run=dry_run)

        summary = PipelineSummary(host=self._host, dry_run=dry_run, statuses=statuses, outcomes=outcomes)
        self._logger.info(
            "pipeline_finished",
            repositories=len(statuses),
            needing_action=len(summary.repos_needing_action),
            remediations=len(outcomes),
            failures=len(summary.failures),
        )
        return summary
