from __future__ import annotations

import asyncio
from pathlib import Path

import pytest

from tests.helpers.fake_executor import NOT_FOUND, FakeExecutor, fail, ok
from tests.helpers.recording_renderer import RecordingRenderer
from workflow_sync.core.errors import WorkflowSyncError
from workflow_sync.services.audit import AuditEngine
from workflow_sync.services.pipeline import WorkflowSyncPipeline, dedupe
from workflow_sync.services.remediation import RemediationEngine
from workflow_sync.services.remote_query import RemoteQueryAdapter


def _pipeline(executor: FakeExecutor, renderer: RecordingRenderer, scratch: Path | None = None) -> WorkflowSyncPipeline:
    adapter = RemoteQueryAdapter(executor)
    return WorkflowSyncPipeline(
        adapter=adapter,
        auditor=AuditEngine(adapter),
        remediator=RemediationEngine(executor, temp_root=scratch),
        renderer=renderer,
    )


@pytest.fixture
def workflow_file(tmp_path: Path) -> Path:
    path = tmp_path / "pr-merged-notification.yml"
    path.write_text("name: notify\njobs:\n  notify:\n    runs-on: ubuntu-latest\n", encoding="utf-8")
    return path


def test_dedupe_keeps_first_occurrence_and_drops_blanks() -> None:
    assert dedupe(["org/a", " org/b", "org/a ", "", "org/c", "org/b"]) == ["org/a", "org/b", "org/c"]


def test_audit_only_run_renders_each_repository_block() -> None:
    executor = FakeExecutor()
    executor.when("gh", "repos/org/alpha/contents", "ref=dev", result=NOT_FOUND)
    renderer = RecordingRenderer()

    summary = asyncio.run(
        _pipeline(executor, renderer).run(repos=["org/alpha", "org/beta", "org/alpha"], branches=["dev", "main", "dev"])
    )

    assert [status.repo for status in summary.statuses] == ["org/alpha", "org/beta"]
    assert summary.repos_needing_action == ["org/alpha"]
    assert summary.outcomes == []
    assert summary.exit_code == 0
    assert renderer.kinds() == ["started", "append", "update", "append", "update", "finished"] * 2
    assert executor.matching("git") == []


def test_dry_run_sync_yields_outcome_per_missing_pair_without_side_effects(workflow_file: Path) -> None:
    executor = FakeExecutor()
    executor.when("gh", "contents", "ref=dev", result=NOT_FOUND)
    executor.when("gh", "branches/qa", result=NOT_FOUND)
    renderer = RecordingRenderer()

    summary = asyncio.run(
        _pipeline(executor, renderer).run(
            repos=["org/alpha", "org/beta"],
            branches=["dev", "qa", "main"],
            workflow_file=workflow_file,
            dry_run=True,
        )
    )

    assert [(outcome.repo, outcome.branch) for outcome in summary.outcomes] == [("org/alpha", "dev"), ("org/beta", "dev")]
    assert all(outcome.success and outcome.pr_number is None for outcome in summary.outcomes)
    assert executor.matching("git") == []
    assert executor.matching("gh", "pr") == []
    assert summary.dry_run is True


def test_one_failed_pair_does_not_stop_the_rest(tmp_path: Path, workflow_file: Path) -> None:
    scratch = tmp_path / "scratch"
    scratch.mkdir()
    executor = FakeExecutor()
    executor.when("gh", "contents", "ref=main", result=NOT_FOUND)
    executor.when("git", "clone", "org/alpha.git", result=fail("repository not found"))
    executor.when("gh", "pr create", result=ok("https://github.com/org/beta/pull/9\n"))

    summary = asyncio.run(
        _pipeline(executor, RecordingRenderer(), scratch).run(
            repos=["org/alpha", "org/beta"],
            branches=["main"],
            workflow_file=workflow_file,
            dry_run=False,
        )
    )

    assert [outcome.success for outcome in summary.outcomes] == [False, True]
    assert summary.failures[0].error == "Failed to clone repository"
    assert summary.outcomes[1].pr_number == 9
    assert summary.exit_code == 1
    assert list(scratch.iterdir()) == []


def test_sorted_run_orders_by_last_commit_and_keeps_dates() -> None:
    executor = FakeExecutor()
    executor.when("gh", "repos/org/alpha/commits/HEAD", result=ok("2024-02-01T00:00:00Z\n"))
    executor.when("gh", "repos/org/beta/commits/HEAD", result=ok("2020-02-01T00:00:00Z\n"))

    summary = asyncio.run(
        _pipeline(executor, RecordingRenderer()).run(
            repos=["org/gamma", "org/alpha", "org/beta"],
            branches=["main"],
            sort=True,
        )
    )

    assert [status.repo for status in summary.statuses] == ["org/beta", "org/alpha", "org/gamma"]
    assert summary.statuses[0].last_commit_date == "2020-02-01T00:00:00Z"
    assert summary.statuses[2].last_commit_date == "9999-12-31T23:59:59Z"
    assert [check.branch for check in summary.statuses[0].branches] == ["main"]


def test_owners_are_expanded_and_merged_with_explicit_repos() -> None:
    executor = FakeExecutor()
    executor.when("gh", "orgs/acme/repos", result=ok("acme/api\nacme/web\n"))
    pipeline = _pipeline(executor, RecordingRenderer())

    resolved = asyncio.run(pipeline.resolve_repositories(["acme/web", "other/tool"], ["acme", "acme"]))

    assert resolved == ["acme/web", "other/tool", "acme/api"]
    assert len(executor.matching("gh", "orgs/acme/repos")) == 1


def test_empty_fleet_is_rejected() -> None:
    executor = FakeExecutor(default=fail("HTTP 404"))
    pipeline = _pipeline(executor, RecordingRenderer())

    with pytest.raises(WorkflowSyncError) as excinfo:
        asyncio.run(pipeline.resolve_repositories([], ["ghost"]))

    assert excinfo.value.error_code == "NO_REPOSITORIES"


def test_preflight_reports_missing_gh_and_missing_auth() -> None:
    missing = FakeExecutor().when("gh", raises=FileNotFoundError("gh"))
    with pytest.raises(WorkflowSyncError) as excinfo:
        asyncio.run(_pipeline(missing, RecordingRenderer()).preflight())
    assert excinfo.value.error_code == "GH_NOT_FOUND"

    logged_out = FakeExecutor().when("gh", "auth status", result=fail("You are not logged into any GitHub hosts"))
    with pytest.raises(WorkflowSyncError) as excinfo:
        asyncio.run(_pipeline(logged_out, RecordingRenderer()).preflight())
    assert excinfo.value.error_code == "GH_AUTH_REQUIRED"
    assert excinfo.value.fix == ["gh auth login --hostname github.com"]
