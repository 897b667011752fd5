from __future__ import annotations

import asyncio

import pytest

from tests.helpers.fake_executor import NOT_FOUND, FakeExecutor, fail
from workflow_sync.models.query import QueryResult
from workflow_sync.services.audit import AuditEngine
from workflow_sync.services.remote_query import RemoteQueryAdapter


class StubAdapter:
    """Answers from dicts and counts calls per branch."""

    def __init__(self, *, branches: dict[str, bool], workflows: dict[str, bool]) -> None:
        self._branches = branches
        self._workflows = workflows
        self.branch_calls: list[str] = []
        self.workflow_calls: list[str] = []

    async def branch_exists(self, repo: str, branch: str, host: str = "github.com") -> bool:
        self.branch_calls.append(branch)
        return self._branches.get(branch, False)

    async def workflow_exists(self, repo: str, branch: str, host: str = "github.com", path: str = "") -> bool:
        self.workflow_calls.append(branch)
        return self._workflows.get(branch, False)


def _engine(executor: FakeExecutor, **kwargs) -> AuditEngine:  # noqa: ANN003
    return AuditEngine(RemoteQueryAdapter(executor), **kwargs)


def test_scenario_dev_missing_main_present() -> None:
    executor = FakeExecutor()
    executor.when("gh", "contents/", "ref=dev", result=NOT_FOUND)
    events: list[tuple[str, str]] = []

    status = asyncio.run(
        _engine(executor).check_repository("org/repo1", "github.com", ["dev", "main"], lambda b, s: events.append((b, s)))
    )

    assert [(check.branch, check.status) for check in status.branches] == [("dev", "missing"), ("main", "present")]
    assert status.needs_action is True
    assert events == [("dev", "checking"), ("dev", "missing"), ("main", "checking"), ("main", "present")]


def test_scenario_absent_branch_skips_workflow_query() -> None:
    executor = FakeExecutor()
    executor.when("gh", "branches/qa", result=NOT_FOUND)

    status = asyncio.run(_engine(executor).check_repository("org/repo1", "github.com", ["qa"]))

    assert [(check.branch, check.status) for check in status.branches] == [("qa", "not-found")]
    assert status.needs_action is False
    assert executor.matching("gh", "contents/") == []


def test_not_found_branch_never_reaches_workflow_query_on_adapter() -> None:
    adapter = StubAdapter(
        branches={"dev": True, "qa": False, "stage": True, "main": False},
        workflows={"dev": True, "stage": False},
    )
    engine = AuditEngine(adapter)  # type: ignore[arg-type]

    status = asyncio.run(engine.check_repository("org/repo1", "github.com", ["dev", "qa", "stage", "main"]))

    assert adapter.branch_calls == ["dev", "qa", "stage", "main"]
    assert adapter.workflow_calls == ["dev", "stage"]
    assert [check.status for check in status.branches] == ["present", "not-found", "missing", "not-found"]
    assert status.missing_branches() == ["stage"]


@pytest.mark.parametrize(
    "branches",
    [
        [],
        ["main"],
        ["stage", "dev"],
        ["main", "qa", "dev", "stage"],
    ],
)
def test_one_terminal_entry_per_branch_in_caller_order(branches: list[str]) -> None:
    executor = FakeExecutor()
    executor.when("gh", "branches/qa", result=NOT_FOUND)
    executor.when("gh", "contents/", "ref=stage", result=NOT_FOUND)

    status = asyncio.run(_engine(executor).check_repository("org/repo1", "github.com", branches))

    assert [check.branch for check in status.branches] == branches
    assert all(check.is_terminal for check in status.branches)
    assert status.needs_action is ("stage" in branches)


def test_failed_queries_read_as_absent_without_raising() -> None:
    executor = FakeExecutor()
    executor.when("gh", "branches/dev", raises=FileNotFoundError("gh"))
    executor.when("gh", "contents/", result=fail("HTTP 500"))

    status = asyncio.run(_engine(executor).check_repository("org/repo1", "github.com", ["dev", "main"]))

    assert [check.status for check in status.branches] == ["not-found", "missing"]


def test_retry_policy_reissues_errored_queries() -> None:
    class FlakyAdapter(StubAdapter):
        def __init__(self) -> None:
            super().__init__(branches={}, workflows={})
            self.probes = 0

        async def probe_branch(self, repo: str, branch: str, host: str = "github.com") -> QueryResult:
            self.probes += 1
            if self.probes < 3:
                return QueryResult.error("HTTP 502")
            return QueryResult.ok()

        async def probe_workflow(self, repo: str, branch: str, host: str = "github.com", path: str = "") -> QueryResult:
            return QueryResult.not_found()

    adapter = FlakyAdapter()
    engine = AuditEngine(adapter, query_error_policy="retry", query_retries=2)  # type: ignore[arg-type]

    status = asyncio.run(engine.check_repository("org/repo1", "github.com", ["dev"]))

    assert adapter.probes == 3
    assert status.branches[0].status == "missing"


def test_retry_policy_gives_up_after_last_retry() -> None:
    executor = FakeExecutor()
    executor.when("gh", "branches/dev", result=fail("HTTP 502"))

    status = asyncio.run(
        _engine(executor, query_error_policy="retry", query_retries=1).check_repository("org/repo1", "github.com", ["dev"])
    )

    assert status.branches[0].status == "not-found"
    assert len(executor.matching("gh", "branches/dev")) == 2


def test_retry_policy_does_not_retry_real_not_found() -> None:
    executor = FakeExecutor()
    executor.when("gh", "branches/dev", result=NOT_FOUND)

    asyncio.run(_engine(executor, query_error_policy="retry", query_retries=5).check_repository("org/repo1", "github.com", ["dev"]))

    assert len(executor.matching("gh", "branches/dev")) == 1


def test_repeated_branches_are_checked_once() -> None:
    executor = FakeExecutor()
    executor.when("gh", "contents/", "ref=dev", result=NOT_FOUND)
    events: list[tuple[str, str]] = []

    status = asyncio.run(
        _engine(executor).check_repository(
            "org/repo1", "github.com", ["dev", "main", "dev"], lambda b, s: events.append((b, s))
        )
    )

    assert [(check.branch, check.status) for check in status.branches] == [("dev", "missing"), ("main", "present")]
    assert len(executor.matching("gh", "branches/dev")) == 1
    assert len(executor.matching("gh", "contents/", "ref=dev")) == 1
    assert events.count(("dev", "checking")) == 1
