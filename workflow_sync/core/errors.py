from __future__ import annotations


class WorkflowSyncError(RuntimeError):
    """Raised when a run cannot start: missing tooling, no workflow file, empty fleet."""

    def __init__(self, error_code: str, message: str, *, fix: list[str] | None = None) -> None:
        super().__init__(message)
        self.error_code = error_code
        self.message = message
        self.fix = fix or []

    def to_payload(self) -> dict[str, object]:
        return {
            "status": "error",
            "error_code": self.error_code,
            "message": self.message,
            "fix": self.fix,
        }
