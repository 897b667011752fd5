from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict


QueryKind = Literal["FOUND", "NOT_FOUND", "ERROR"]


class QueryResult(BaseModel):
    """Outcome of a remote existence probe, keeping "absent" apart from "could not tell"."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    kind: QueryKind
    reason: str | None = None

    @property
    def found(self) -> bool:
        return self.kind == "FOUND"

    @property
    def is_error(self) -> bool:
        return self.kind == "ERROR"

    @classmethod
    def ok(cls) -> QueryResult:
        return cls(kind="FOUND")

    @classmethod
    def not_found(cls, reason: str | None = None) -> QueryResult:
        return cls(kind="NOT_FOUND", reason=reason)

    @classmethod
    def error(cls, reason: str) -> QueryResult:
        return cls(kind="ERROR", reason=reason)
