from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_GH_HOST = "github.com"
DEFAULT_BRANCHES = ["dev", "qa", "stage", "main"]

WORKFLOW_PATH = ".github/workflows/pr-merged-notification.yml"
HEAD_BRANCH_PREFIX = "automation/pr-merged-notification/"
COMMIT_MESSAGE = "chore: add pr merged notification workflow"
PR_TITLE = COMMIT_MESSAGE

# Sorts after every real ISO-8601 commit timestamp.
FAR_FUTURE_DATE = "9999-12-31T23:59:59Z"


class Settings(BaseSettings):
    gh_host: str = DEFAULT_GH_HOST
    branches: list[str] = list(DEFAULT_BRANCHES)
    repos: list[str] = []
    owners: list[str] = []
    workflow_path: str = WORKFLOW_PATH
    workflow_file: str | None = None

    log_level: str = "WARNING"
    log_format: Literal["console", "json"] = "console"
    # None: terminal when the progress stream is a tty, JSON lines otherwise.
    renderer: Literal["terminal", "jsonl"] | None = None

    sort_by_last_commit: bool = False
    # "absent" keeps the collapsed contract: a failed query reads as "not there".
    query_error_policy: Literal["absent", "retry"] = "absent"
    query_retries: int = 0
    command_timeout_seconds: float = 120.0

    model_config = SettingsConfigDict(
        env_prefix="WORKFLOW_SYNC_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )
