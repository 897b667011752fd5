import logging
import sys
from dataclasses import dataclass
from typing import Any

import structlog

from workflow_sync.core.config import Settings


@dataclass(frozen=True)
class LoggingConfig:
    level: str = "WARNING"
    fmt: str = "console"

    @classmethod
    def from_settings(cls, config: Settings, *, verbose: bool = False) -> "LoggingConfig":
        level = "DEBUG" if verbose else config.log_level
        return cls(level=level, fmt=config.log_format)


def configure_logging(config: LoggingConfig) -> None:
    # stderr keeps log lines out of the in-place progress block on stdout.
    logging.basicConfig(
        level=getattr(logging, config.level.upper(), logging.WARNING),
        format="%(message)s",
        stream=sys.stderr,
        force=True,
    )

    renderer: Any
    if config.fmt == "json":
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.add_log_level,
            renderer,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


def get_logger(name: str = "workflow_sync") -> Any:
    return structlog.get_logger(name)
