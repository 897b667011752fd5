from __future__ import annotations

from typing import IO, Protocol

import orjson
from rich.console import Console
from rich.control import Control
from rich.segment import ControlType
from rich.text import Text

from workflow_sync.models.audit import BranchCheckStatus, RepositoryStatus

_STATUS_STYLES: dict[str, tuple[str, str, str]] = {
    "checking": ("◌", "checking...", "yellow"),
    "present": ("✓", "present", "green"),
    "missing": ("✗", "missing", "red"),
    "not-found": ("○", "no branch", "bright_black"),
}


def format_repo_header(repo: str) -> str:
    return f"[bold cyan]📁 {repo}[/bold cyan]"


def format_branch_status(branch: str, status: str) -> str:
    padded = branch.ljust(8)
    style = _STATUS_STYLES.get(status)
    if style is None:
        return f"  {padded}: {status}"
    icon, label, color = style
    return f"  [{color}]{icon}[/{color}] {padded}: [{color}]{label}[/{color}]"


def format_repo_summary(status: RepositoryStatus) -> str:
    if status.needs_action:
        return "  [yellow]→[/yellow] Would create PRs for missing workflows"
    return "  [green]→[/green] All workflows present"


def format_repo_status(status: RepositoryStatus) -> str:
    lines = [format_repo_header(status.repo)]
    lines.extend(format_branch_status(check.branch, check.status) for check in status.branches)
    lines.append(format_repo_summary(status))
    lines.append("")
    return "\n".join(lines)


class ProgressRenderer(Protocol):
    def repository_started(self, repo: str) -> None: ...

    def line_appended(self, text: str) -> None: ...

    def line_updated(self, index: int, text: str) -> None: ...

    def repository_finished(self, status: RepositoryStatus) -> None: ...


class TerminalRenderer:
    """Rewrites branch lines in place with cursor-movement control codes."""

    def __init__(self, console: Console | None = None) -> None:
        self._console = console or Console(highlight=False)
        self._line_count = 0

    @property
    def console(self) -> Console:
        return self._console

    def repository_started(self, repo: str) -> None:
        self._line_count = 0
        self._console.print(format_repo_header(repo), highlight=False)

    def line_appended(self, text: str) -> None:
        self._console.print(text, highlight=False)
        self._line_count += 1

    def line_updated(self, index: int, text: str) -> None:
        distance = self._line_count - index
        if distance <= 0:
            raise ValueError(f"line {index} has not been printed yet")
        self._console.control(
            Control.move(y=-distance),
            Control.move_to_column(0),
            Control((ControlType.ERASE_IN_LINE, 2)),
        )
        self._console.print(text, end="", highlight=False)
        self._console.control(Control.move(y=distance), Control.move_to_column(0))

    def repository_finished(self, status: RepositoryStatus) -> None:
        self._console.print(format_repo_summary(status), highlight=False)
        self._console.print("")


class JsonLinesRenderer:
    """One JSON object per progress call, for logs and non-interactive runs."""

    def __init__(self, stream: IO[str]) -> None:
        self._stream = stream
        self._repo: str | None = None

    def repository_started(self, repo: str) -> None:
        self._repo = repo
        self._write({"event": "repository_started", "repo": repo})

    def line_appended(self, text: str) -> None:
        self._write({"event": "line_appended", "repo": self._repo, "text": Text.from_markup(text).plain})

    def line_updated(self, index: int, text: str) -> None:
        self._write(
            {
                "event": "line_updated",
                "repo": self._repo,
                "index": index,
                "text": Text.from_markup(text).plain,
            }
        )

    def repository_finished(self, status: RepositoryStatus) -> None:
        self._write({"event": "repository_finished", **status.model_dump(mode="json")})

    def _write(self, payload: dict) -> None:
        self._stream.write(orjson.dumps(payload).decode("utf-8") + "\n")
        self._stream.flush()


class BranchProgressTracker:
    """Maps progress events for one repository onto renderer lines.

    The first ``checking`` event for a branch appends a line and remembers its
    index; every later event for that branch overwrites the same line. Use a
    fresh tracker per repository.
    """

    def __init__(self, renderer: ProgressRenderer) -> None:
        self._renderer = renderer
        self._branch_lines: dict[str, int] = {}
        self._lines_emitted = 0

    @property
    def lines_emitted(self) -> int:
        return self._lines_emitted

    def line_index(self, branch: str) -> int | None:
        return self._branch_lines.get(branch)

    def __call__(self, branch: str, state: BranchCheckStatus) -> None:
        text = format_branch_status(branch, state)
        index = self._branch_lines.get(branch)
        if index is None:
            self._branch_lines[branch] = self._lines_emitted
            self._renderer.line_appended(text)
            self._lines_emitted += 1
            return
        self._renderer.line_updated(index, text)
