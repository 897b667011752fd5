from __future__ import annotations

from typing import Any
from urllib.parse import quote

from workflow_sync.core.config import DEFAULT_GH_HOST, WORKFLOW_PATH
from workflow_sync.core.logging import get_logger
from workflow_sync.models.query import QueryResult
from workflow_sync.services.executor import CommandExecutor, CommandResult


class RemoteQueryAdapter:
    """Read-only questions about remote repositories, answered through the gh CLI.

    Every public operation is failure-collapsing: a missing binary, a network
    error or a non-zero exit reads as "absent" (``False``, ``None`` or ``[]``).
    The ``probe_*`` variants keep the distinction for callers that care.
    """

    _NOT_FOUND_MARKERS = ("HTTP 404", "Not Found")

    def __init__(self, executor: CommandExecutor, *, logger: Any | None = None) -> None:
        self._executor = executor
        self._logger = logger or get_logger("workflow_sync.remote_query")

    async def gh_installed(self) -> bool:
        result = await self._gh(["--version"])
        return result is not None and result.exit_success

    async def gh_authenticated(self, host: str = DEFAULT_GH_HOST) -> bool:
        result = await self._gh(["auth", "status", "--hostname", host])
        return result is not None and result.exit_success

    async def probe_branch(self, repo: str, branch: str, host: str = DEFAULT_GH_HOST) -> QueryResult:
        return await self._probe(
            ["api", "--hostname", host, "--silent", f"repos/{repo}/branches/{quote(branch, safe='/')}"]
        )

    async def probe_workflow(
        self,
        repo: str,
        branch: str,
        host: str = DEFAULT_GH_HOST,
        path: str = WORKFLOW_PATH,
    ) -> QueryResult:
        return await self._probe(
            ["api", "--hostname", host, "--silent", f"repos/{repo}/contents/{path}?ref={quote(branch, safe='')}"]
        )

    async def branch_exists(self, repo: str, branch: str, host: str = DEFAULT_GH_HOST) -> bool:
        result = await self.probe_branch(repo, branch, host)
        self._logger.debug("branch_exists", repo=repo, branch=branch, kind=result.kind)
        return result.found

    async def workflow_exists(
        self,
        repo: str,
        branch: str,
        host: str = DEFAULT_GH_HOST,
        path: str = WORKFLOW_PATH,
    ) -> bool:
        result = await self.probe_workflow(repo, branch, host, path)
        self._logger.debug("workflow_exists", repo=repo, branch=branch, path=path, kind=result.kind)
        return result.found

    async def last_commit_date(self, repo: str, host: str = DEFAULT_GH_HOST) -> str | None:
        result = await self._gh(
            ["api", "--hostname", host, f"repos/{repo}/commits/HEAD", "--jq", ".commit.committer.date"]
        )
        if result is None or not result.exit_success:
            self._logger.debug("last_commit_date_unavailable", repo=repo)
            return None
        date = result.stdout_text.strip()
        self._logger.debug("last_commit_date", repo=repo, date=date or None)
        return date or None

    async def list_organizations(self, host: str = DEFAULT_GH_HOST) -> list[str]:
        result = await self._gh(["api", "--hostname", host, "--paginate", "user/orgs", "--jq", ".[].login"])
        return self._lines(result)

    async def list_repositories(self, owner: str, host: str = DEFAULT_GH_HOST) -> list[str]:
        for endpoint in (f"orgs/{owner}/repos?per_page=100", f"users/{owner}/repos?per_page=100"):
            result = await self._gh(["api", "--hostname", host, "--paginate", endpoint, "--jq", ".[].full_name"])
            if result is not None and result.exit_success:
                return self._lines(result)
        self._logger.debug("list_repositories_failed", owner=owner, host=host)
        return []

    async def _probe(self, args: list[str]) -> QueryResult:
        try:
            result = await self._executor.run("gh", args)
        except Exception as exc:
            return QueryResult.error(f"{type(exc).__name__}: {exc}")
        if result.exit_success:
            return QueryResult.ok()
        stderr = result.stderr_text.strip()
        if any(marker in stderr for marker in self._NOT_FOUND_MARKERS):
            return QueryResult.not_found(stderr or None)
        return QueryResult.error(stderr or f"gh exited with {result.return_code}")

    async def _gh(self, args: list[str]) -> CommandResult | None:
        try:
            return await self._executor.run("gh", args)
        except Exception as exc:
            self._logger.debug("gh_unavailable", error_type=type(exc).__name__, error_message=str(exc))
            return None

    @staticmethod
    def _lines(result: CommandResult | None) -> list[str]:
        if result is None or not result.exit_success:
            return []
        return [line.strip() for line in result.stdout_text.splitlines() if line.strip()]
