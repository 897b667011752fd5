from __future__ import annotations

import re
from pathlib import Path

from workflow_sync.core.errors import WorkflowSyncError
from workflow_sync.core.logging import get_logger

logger = get_logger("workflow_sync.discovery")

_WORKFLOW_INDICATORS = [
    re.compile(r"^name:\s", re.MULTILINE),
    re.compile(r"on:\s*\n\s+(push|pull_request|workflow_dispatch|schedule):", re.MULTILINE),
    re.compile(r"jobs:\s*\n", re.MULTILINE),
    re.compile(r"runs-on:\s", re.MULTILINE),
    re.compile(r"steps:\s*\n", re.MULTILINE),
    re.compile(r"uses:\s+actions/", re.MULTILINE),
]


def is_workflow_file(content: str) -> bool:
    return any(pattern.search(content) for pattern in _WORKFLOW_INDICATORS)


def scan_for_workflows(directory: str | Path) -> list[Path]:
    root = Path(directory)
    if not root.is_dir():
        return []

    found: list[Path] = []
    for entry in sorted(root.iterdir()):
        if not entry.is_file() or entry.suffix not in {".yml", ".yaml"}:
            continue
        try:
            content = entry.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError):
            continue
        if is_workflow_file(content):
            found.append(entry)
    return found


def select_workflow(explicit: str | Path | None, search_dir: str | Path) -> Path:
    if explicit:
        path = Path(explicit)
        if path.is_file():
            return path
        raise WorkflowSyncError(
            "WORKFLOW_FILE_NOT_FOUND",
            f"Workflow file not found: {path}",
            fix=["Pass --workflow-file with an existing path."],
        )

    candidates = scan_for_workflows(search_dir)
    if not candidates:
        raise WorkflowSyncError(
            "WORKFLOW_FILE_NOT_FOUND",
            f"No workflow files found in: {search_dir}",
            fix=["Pass --workflow-file <path>.", "Or run from a directory containing the workflow YAML."],
        )
    if len(candidates) > 1:
        logger.warning("multiple_workflows_found", using=str(candidates[0]), candidates=[str(c) for c in candidates])
    return candidates[0]
