from __future__ import annotations

import asyncio
from typing import Any, Sequence

from workflow_sync.core.config import DEFAULT_GH_HOST, FAR_FUTURE_DATE
from workflow_sync.core.logging import get_logger
from workflow_sync.models.audit import RepositoryStatus
from workflow_sync.services.remote_query import RemoteQueryAdapter


async def sort_by_last_commit(
    repos: Sequence[str],
    host: str = DEFAULT_GH_HOST,
    *,
    adapter: RemoteQueryAdapter,
    logger: Any | None = None,
) -> list[RepositoryStatus]:
    """Order repositories oldest-first by the committer date of HEAD.

    Dates are fetched concurrently. Repositories without a date get a
    far-future sentinel so they sort last; ties keep their input order.
    """
    log = logger or get_logger("workflow_sync.ordering")
    dates = await asyncio.gather(*(adapter.last_commit_date(repo, host) for repo in repos))

    effective = [(repo, date or FAR_FUTURE_DATE) for repo, date in zip(repos, dates)]
    for repo, date in effective:
        log.debug("repository_last_commit", repo=repo, date=date)

    # ISO-8601 with a fixed width compares correctly as a string; sorted() is stable.
    ordered = sorted(effective, key=lambda item: item[1])
    log.info("repositories_ordered", count=len(ordered), order=[repo for repo, _ in ordered])
    return [RepositoryStatus(repo=repo, last_commit_date=date) for repo, date in ordered]


def unsorted_statuses(repos: Sequence[str]) -> list[RepositoryStatus]:
    return [RepositoryStatus(repo=repo) for repo in repos]
