from __future__ import annotations

import argparse
import asyncio
import json
import sys
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from rich.console import Console

from workflow_sync.core.config import Settings
from workflow_sync.core.errors import WorkflowSyncError
from workflow_sync.core.logging import LoggingConfig, configure_logging, get_logger
from workflow_sync.models.pipeline import PipelineSummary
from workflow_sync.services.audit import AuditEngine
from workflow_sync.services.executor import CommandExecutor, SubprocessExecutor
from workflow_sync.services.pipeline import WorkflowSyncPipeline
from workflow_sync.services.remediation import RemediationEngine
from workflow_sync.services.remote_query import RemoteQueryAdapter
from workflow_sync.services.rendering import JsonLinesRenderer, ProgressRenderer, TerminalRenderer
from workflow_sync.services.workflow_discovery import select_workflow


@dataclass
class Runtime:
    settings: Settings
    adapter: RemoteQueryAdapter
    pipeline: WorkflowSyncPipeline
    logger: Any


def _create_executor(config: Settings) -> CommandExecutor:
    return SubprocessExecutor(timeout_seconds=config.command_timeout_seconds)


def _create_renderer(config: Settings, *, output_json: bool) -> ProgressRenderer:
    # With --output-json stdout carries the result document, so progress goes to stderr.
    stream = sys.stderr if output_json else sys.stdout
    if config.renderer == "jsonl":
        return JsonLinesRenderer(stream)
    console = Console(stderr=output_json, highlight=False)
    if config.renderer is None and not console.is_terminal:
        return JsonLinesRenderer(stream)
    return TerminalRenderer(console)


def _settings_from_args(args: argparse.Namespace) -> Settings:
    overrides: dict[str, Any] = {
        "gh_host": args.gh_host,
        "log_format": args.log_format,
        "renderer": getattr(args, "renderer", None),
        "repos": getattr(args, "repo", None),
        "owners": getattr(args, "owner", None),
        "branches": getattr(args, "branch", None),
        "workflow_file": getattr(args, "workflow_file", None),
    }
    if getattr(args, "sort", False):
        overrides["sort_by_last_commit"] = True
    if getattr(args, "retries", None) is not None:
        overrides["query_error_policy"] = "retry"
        overrides["query_retries"] = args.retries
    return Settings().model_copy(update={key: value for key, value in overrides.items() if value is not None})


def _create_runtime(args: argparse.Namespace) -> Runtime:
    config = _settings_from_args(args)
    configure_logging(LoggingConfig.from_settings(config, verbose=args.verbose))
    logger = get_logger("workflow_sync.cli")

    executor = _create_executor(config)
    adapter = RemoteQueryAdapter(executor)
    auditor = AuditEngine(
        adapter,
        workflow_path=config.workflow_path,
        query_error_policy=config.query_error_policy,
        query_retries=config.query_retries,
    )
    remediator = RemediationEngine(executor, workflow_path=config.workflow_path)
    pipeline = WorkflowSyncPipeline(
        adapter=adapter,
        auditor=auditor,
        remediator=remediator,
        renderer=_create_renderer(config, output_json=bool(getattr(args, "output_json", False))),
        host=config.gh_host,
    )
    return Runtime(settings=config, adapter=adapter, pipeline=pipeline, logger=logger)


def _emit(payload: dict[str, Any], *, as_json: bool) -> None:
    if as_json:
        print(json.dumps(payload, indent=2))
        return
    for key, value in payload.items():
        print(f"{key}: {value}")


def _summary_payload(summary: PipelineSummary) -> dict[str, Any]:
    payload = summary.model_dump(mode="json")
    payload["exit_code"] = summary.exit_code
    payload["generated_at"] = datetime.now(UTC).isoformat()
    return payload


def _run_preflight(args: argparse.Namespace, runtime: Runtime) -> int:
    host = runtime.settings.gh_host
    installed = asyncio.run(runtime.adapter.gh_installed())
    authenticated = installed and asyncio.run(runtime.adapter.gh_authenticated(host))
    _emit(
        {
            "status": "ok" if authenticated else "error",
            "gh_host": host,
            "gh_installed": installed,
            "gh_authenticated": authenticated,
        },
        as_json=args.output_json,
    )
    return 0 if authenticated else 2


def _run_orgs(args: argparse.Namespace, runtime: Runtime) -> int:
    host = runtime.settings.gh_host
    organizations = asyncio.run(runtime.adapter.list_organizations(host))
    if args.output_json:
        _emit({"gh_host": host, "organizations": organizations}, as_json=True)
    else:
        for name in organizations:
            print(name)
    return 0


def _run_repos(args: argparse.Namespace, runtime: Runtime) -> int:
    host = runtime.settings.gh_host
    repositories = asyncio.run(runtime.adapter.list_repositories(args.owner_name, host))
    if args.output_json:
        _emit({"gh_host": host, "owner": args.owner_name, "repositories": repositories}, as_json=True)
    else:
        for name in repositories:
            print(name)
    return 0


async def _audit_fleet(args: argparse.Namespace, runtime: Runtime, workflow_file: Path | None) -> PipelineSummary:
    config = runtime.settings
    if not args.skip_preflight:
        await runtime.pipeline.preflight()
    return await runtime.pipeline.run(
        repos=config.repos,
        owners=config.owners,
        branches=config.branches,
        sort=config.sort_by_last_commit,
        workflow_file=workflow_file,
        dry_run=bool(getattr(args, "dry_run", False)),
    )


def _run_audit(args: argparse.Namespace, runtime: Runtime) -> int:
    try:
        summary = asyncio.run(_audit_fleet(args, runtime, None))
    except WorkflowSyncError as exc:
        _emit(exc.to_payload(), as_json=args.output_json)
        return 2

    if args.output_json:
        _emit(_summary_payload(summary), as_json=True)
    else:
        print(f"{len(summary.repos_needing_action)} of {len(summary.statuses)} repositories need workflows")
        for status in summary.statuses:
            if status.needs_action:
                print(f"  - {status.repo} (branches: {', '.join(status.missing_branches())})")
    return 0


def _run_sync(args: argparse.Namespace, runtime: Runtime) -> int:
    try:
        workflow_file = select_workflow(runtime.settings.workflow_file, args.workflow_dir)
        runtime.logger.info("workflow_file_selected", path=str(workflow_file), dry_run=args.dry_run)
        summary = asyncio.run(_audit_fleet(args, runtime, workflow_file))
    except WorkflowSyncError as exc:
        _emit(exc.to_payload(), as_json=args.output_json)
        return 2

    if args.output_json:
        _emit(_summary_payload(summary), as_json=True)
        return summary.exit_code

    for outcome in summary.outcomes:
        if outcome.success and outcome.pr_number is not None:
            print(f"PR #{outcome.pr_number} opened for {outcome.repo}@{outcome.branch}")
        elif outcome.success:
            print(f"[DRY-RUN] Would create PR for {outcome.repo}@{outcome.branch}")
        else:
            print(f"Failed for {outcome.repo}@{outcome.branch}: {outcome.error}")
    if summary.failures:
        print(f"{len(summary.failures)} operation(s) failed.")
    elif not summary.outcomes:
        print("No repositories need workflows. Nothing to do.")
    else:
        print("Completed!")
    return summary.exit_code


def _add_fleet_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--repo", action="append", default=None, help="owner/name; repeatable")
    parser.add_argument("--owner", action="append", default=None, help="discover repositories of an org or user")
    parser.add_argument("--branch", action="append", default=None, help="target branch; repeatable")
    parser.add_argument("--sort", action="store_true", help="order repositories by last commit, oldest first")
    parser.add_argument("--retries", type=int, default=None, help="re-issue failed queries this many times")
    parser.add_argument("--renderer", choices=["terminal", "jsonl"], default=None)
    parser.add_argument("--skip-preflight", action="store_true")
    parser.add_argument("--output-json", action="store_true")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="gh-workflow-sync")
    parser.add_argument("--gh-host", default=None)
    parser.add_argument("-v", "--verbose", action="store_true")
    parser.add_argument("--log-format", choices=["console", "json"], default=None)
    subparsers = parser.add_subparsers(dest="command", required=True)

    preflight = subparsers.add_parser("preflight")
    preflight.add_argument("--output-json", action="store_true")
    preflight.set_defaults(handler=_run_preflight)

    orgs = subparsers.add_parser("orgs")
    orgs.add_argument("--output-json", action="store_true")
    orgs.set_defaults(handler=_run_orgs)

    repos = subparsers.add_parser("repos")
    repos.add_argument("owner_name")
    repos.add_argument("--output-json", action="store_true")
    repos.set_defaults(handler=_run_repos)

    audit = subparsers.add_parser("audit")
    _add_fleet_arguments(audit)
    audit.set_defaults(handler=_run_audit)

    sync = subparsers.add_parser("sync")
    _add_fleet_arguments(sync)
    sync.add_argument("--workflow-file", default=None)
    sync.add_argument("--workflow-dir", default=".", help="where to look when --workflow-file is omitted")
    sync.add_argument("--dry-run", action="store_true")
    sync.set_defaults(handler=_run_sync)

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    runtime = _create_runtime(args)
    return int(args.handler(args, runtime))


def run() -> None:
    raise SystemExit(main())


if __name__ == "__main__":
    raise SystemExit(main())
