from __future__ import annotations

import re
import shutil
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from workflow_sync.core.config import (
    COMMIT_MESSAGE,
    DEFAULT_GH_HOST,
    HEAD_BRANCH_PREFIX,
    PR_TITLE,
    WORKFLOW_PATH,
)
from workflow_sync.core.logging import get_logger
from workflow_sync.models.remediation import (
    RemediationError,
    RemediationOutcome,
    RemediationStage,
    RemediationStepRecord,
    RemediationStepStatus,
)
from workflow_sync.services.executor import CommandExecutor, CommandResult, render_command

STEP_ORDER = ("clone", "write_workflow", "add", "commit", "push", "create_pr", "merge_pr")

_PR_NUMBER_RE = re.compile(r"/pull/(?P<number>\d+)\s*$", re.MULTILINE)
_EXCERPT_CHARS = 400


def head_branch_for(branch: str) -> str:
    return f"{HEAD_BRANCH_PREFIX}{branch}"


def pr_body_for(branch: str) -> str:
    return f"Adds pr-merged-notification workflow to {branch}."


def qualified_repo(repo: str, host: str) -> str:
    # gh pr subcommands have no --hostname flag; the host rides on the repo slug.
    if host == DEFAULT_GH_HOST:
        return repo
    return f"{host}/{repo}"


def parse_pr_number(output: str) -> int | None:
    match = _PR_NUMBER_RE.search(output)
    if not match:
        return None
    return int(match.group("number"))


@dataclass
class _Attempt:
    repo: str
    branch: str
    stage: RemediationStage = RemediationStage.START
    steps: list[RemediationStepRecord] = field(default_factory=list)

    def record(
        self,
        step: str,
        status: RemediationStepStatus,
        *,
        command: str | None = None,
        result: CommandResult | None = None,
        detail: str | None = None,
    ) -> None:
        stderr = detail
        if stderr is None and result is not None and not result.exit_success:
            stderr = result.stderr_text.strip() or None
        self.steps.append(
            RemediationStepRecord(
                step=step,
                status=status,
                command=command,
                return_code=result.return_code if result is not None else None,
                stderr_excerpt=stderr[:_EXCERPT_CHARS] if stderr else None,
            )
        )

    def advance(self, stage: RemediationStage) -> None:
        self.stage = stage

    def failed(self, error: str) -> RemediationOutcome:
        self._skip_remaining()
        return RemediationOutcome(
            repo=self.repo,
            branch=self.branch,
            success=False,
            error=error,
            stage=self.stage,
            steps=list(self.steps),
        )

    def succeeded(self, pr_number: int | None) -> RemediationOutcome:
        self._skip_remaining()
        return RemediationOutcome(
            repo=self.repo,
            branch=self.branch,
            success=True,
            pr_number=pr_number,
            stage=self.stage,
            steps=list(self.steps),
        )

    def _skip_remaining(self) -> None:
        done = {record.step for record in self.steps}
        for step in STEP_ORDER:
            if step not in done:
                self.record(step, "SKIPPED")


class RemediationEngine:
    """Opens (and best-effort merges) a PR adding the workflow file to one branch.

    Stages run linearly: clone, write file, add/commit/push, open PR, merge.
    The first failing stage ends the attempt with its error message; a merge
    failure only logs a warning. The scratch checkout is removed on every
    exit path.
    """

    def __init__(
        self,
        executor: CommandExecutor,
        *,
        workflow_path: str = WORKFLOW_PATH,
        temp_root: str | Path | None = None,
        logger: Any | None = None,
    ) -> None:
        self._executor = executor
        self._workflow_path = workflow_path
        self._temp_root = str(temp_root) if temp_root is not None else None
        self._logger = logger or get_logger("workflow_sync.remediation")

    async def remediate(
        self,
        repo: str,
        branch: str,
        workflow_file: str | Path,
        host: str = DEFAULT_GH_HOST,
        dry_run: bool = False,
    ) -> RemediationOutcome:
        attempt = _Attempt(repo=repo, branch=branch)
        if dry_run:
            self._logger.info("remediation_dry_run", repo=repo, branch=branch, head=head_branch_for(branch))
            attempt.advance(RemediationStage.DONE)
            return attempt.succeeded(None)

        self._logger.info("remediation_started", repo=repo, branch=branch)
        with tempfile.TemporaryDirectory(
            prefix="workflow-sync-",
            dir=self._temp_root,
            ignore_cleanup_errors=True,
        ) as workdir:
            try:
                outcome = await self._run_stages(attempt, Path(workdir), Path(workflow_file), host)
            except Exception as exc:
                self._logger.error(
                    "remediation_crashed",
                    repo=repo,
                    branch=branch,
                    stage=attempt.stage.value,
                    error_type=type(exc).__name__,
                    error_message=str(exc),
                )
                outcome = attempt.failed(str(exc) or type(exc).__name__)
        self._logger.debug("workdir_removed", workdir=workdir)

        if outcome.success:
            self._logger.info("remediation_succeeded", repo=repo, branch=branch, pr_number=outcome.pr_number)
        else:
            self._logger.warning("remediation_failed", repo=repo, branch=branch, error=outcome.error)
        return outcome

    async def _run_stages(
        self,
        attempt: _Attempt,
        workdir: Path,
        workflow_file: Path,
        host: str,
    ) -> RemediationOutcome:
        repo, branch = attempt.repo, attempt.branch
        head = head_branch_for(branch)

        clone = await self._step(
            attempt,
            "clone",
            "git",
            ["clone", "--depth", "1", "--branch", branch, f"git@{host}:{repo}.git", str(workdir)],
        )
        if not clone.exit_success:
            return attempt.failed(RemediationError.CLONE.value)
        attempt.advance(RemediationStage.CLONED)

        try:
            target = self._materialize(workflow_file, workdir)
        except OSError as exc:
            attempt.record("write_workflow", "FAILED", detail=f"{type(exc).__name__}: {exc}")
            return attempt.failed(RemediationError.WRITE_FILE.value)
        attempt.record("write_workflow", "SUCCEEDED", command=f"copy {workflow_file} -> {target}")
        attempt.advance(RemediationStage.FILE_STAGED)

        for step, args in (
            ("add", ["-C", str(workdir), "add", "."]),
            ("commit", ["-C", str(workdir), "commit", "-m", COMMIT_MESSAGE]),
            ("push", ["-C", str(workdir), "push", "origin", f"HEAD:{head}"]),
        ):
            result = await self._step(attempt, step, "git", args)
            if not result.exit_success:
                return attempt.failed(RemediationError.PUSH.value)
        attempt.advance(RemediationStage.PUSHED)

        target_repo = qualified_repo(repo, host)
        created = await self._step(
            attempt,
            "create_pr",
            "gh",
            [
                "pr",
                "create",
                "--repo",
                target_repo,
                "--base",
                branch,
                "--head",
                head,
                "--title",
                PR_TITLE,
                "--body",
                pr_body_for(branch),
            ],
        )
        pr_number = parse_pr_number(created.stdout_text) if created.exit_success else None
        if pr_number is None:
            return attempt.failed(RemediationError.CREATE_PR.value)
        attempt.advance(RemediationStage.PR_CREATED)
        self._logger.info("pr_created", repo=repo, branch=branch, pr_number=pr_number)

        # Best-effort: a failed merge leaves the outcome successful.
        try:
            merged = await self._step(
                attempt,
                "merge_pr",
                "gh",
                ["pr", "merge", str(pr_number), "--repo", target_repo, "--squash", "--delete-branch"],
            )
            merge_error = None if merged.exit_success else merged.stderr_text.strip()[:_EXCERPT_CHARS]
        except Exception as exc:
            merge_error = f"{type(exc).__name__}: {exc}"
        if merge_error is None:
            self._logger.info("pr_merged", repo=repo, branch=branch, pr_number=pr_number)
        else:
            self._logger.warning(
                "pr_merge_failed",
                repo=repo,
                branch=branch,
                pr_number=pr_number,
                error=merge_error or None,
            )
        attempt.advance(RemediationStage.DONE)
        return attempt.succeeded(pr_number)

    async def _step(self, attempt: _Attempt, step: str, command: str, args: list[str]) -> CommandResult:
        rendered = render_command(command, args)
        self._logger.debug("remediation_step", repo=attempt.repo, branch=attempt.branch, step=step, command=rendered)
        try:
            result = await self._executor.run(command, args)
        except Exception as exc:
            attempt.record(step, "FAILED", command=rendered, detail=f"{type(exc).__name__}: {exc}")
            raise
        attempt.record(step, "SUCCEEDED" if result.exit_success else "FAILED", command=rendered, result=result)
        return result

    def _materialize(self, workflow_file: Path, workdir: Path) -> Path:
        target = workdir / self._workflow_path
        target.parent.mkdir(parents=True, exist_ok=True)
        shutil.copyfile(workflow_file, target)
        return target
