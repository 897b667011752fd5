from __future__ import annotations

from typing import Any, Awaitable, Callable, Literal, Sequence

from workflow_sync.core.config import DEFAULT_GH_HOST, WORKFLOW_PATH
from workflow_sync.core.logging import get_logger
from workflow_sync.models.audit import BranchCheck, BranchCheckStatus, RepositoryStatus
from workflow_sync.models.query import QueryResult
from workflow_sync.services.remote_query import RemoteQueryAdapter

ProgressCallback = Callable[[str, BranchCheckStatus], None]
QueryErrorPolicy = Literal["absent", "retry"]


def dedupe(items: Sequence[str]) -> list[str]:
    seen: set[str] = set()
    ordered: list[str] = []
    for item in items:
        value = item.strip()
        if value and value not in seen:
            seen.add(value)
            ordered.append(value)
    return ordered


class AuditEngine:
    """Checks one repository's branches for the workflow file, strictly in caller order."""

    def __init__(
        self,
        adapter: RemoteQueryAdapter,
        *,
        workflow_path: str = WORKFLOW_PATH,
        query_error_policy: QueryErrorPolicy = "absent",
        query_retries: int = 0,
        logger: Any | None = None,
    ) -> None:
        self._adapter = adapter
        self._workflow_path = workflow_path
        self._query_error_policy = query_error_policy
        self._query_retries = max(0, query_retries)
        self._logger = logger or get_logger("workflow_sync.audit")

    async def check_repository(
        self,
        repo: str,
        host: str = DEFAULT_GH_HOST,
        branches: Sequence[str] = (),
        on_progress: ProgressCallback | None = None,
    ) -> RepositoryStatus:
        targets = dedupe(branches)
        self._logger.debug("repository_check_started", repo=repo, branches=targets)
        checks: list[BranchCheck] = []

        for branch in targets:
            self._emit(on_progress, branch, "checking")

            status: BranchCheckStatus
            if not await self._branch_exists(repo, branch, host):
                status = "not-found"
            elif await self._workflow_exists(repo, branch, host):
                status = "present"
            else:
                status = "missing"

            checks.append(BranchCheck(branch=branch, status=status))
            self._emit(on_progress, branch, status)
            self._logger.debug("branch_checked", repo=repo, branch=branch, status=status)

        result = RepositoryStatus(repo=repo, branches=checks)
        self._logger.info("repository_checked", repo=repo, needs_action=result.needs_action)
        return result

    async def _branch_exists(self, repo: str, branch: str, host: str) -> bool:
        if self._query_error_policy == "absent":
            return await self._adapter.branch_exists(repo, branch, host)
        return await self._retry(lambda: self._adapter.probe_branch(repo, branch, host))

    async def _workflow_exists(self, repo: str, branch: str, host: str) -> bool:
        if self._query_error_policy == "absent":
            return await self._adapter.workflow_exists(repo, branch, host, self._workflow_path)
        return await self._retry(lambda: self._adapter.probe_workflow(repo, branch, host, self._workflow_path))

    async def _retry(self, probe: Callable[[], Awaitable[QueryResult]]) -> bool:
        attempts = 1 + self._query_retries
        for attempt in range(1, attempts + 1):
            result = await probe()
            if not result.is_error:
                return result.found
            self._logger.debug("query_error", attempt=attempt, attempts=attempts, reason=result.reason)
        return False

    @staticmethod
    def _emit(on_progress: ProgressCallback | None, branch: str, status: BranchCheckStatus) -> None:
        if on_progress is not None:
            on_progress(branch, status)
