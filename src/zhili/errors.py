from pathlib import Path
from typing import Any, Dict, Optional


class ZhiliError(Exception):
    pass


class ScanError(ZhiliError):
    pass


class HashError(ZhiliError):
    def __init__(self, path: Path, message: str) -> None:
        super().__init__(f"Cannot hash {path}: {message}")
        self.path = path


class PlanConflictError(ZhiliError):
    pass


class EngineFatalError(ZhiliError):
    pass


class OracleError(ZhiliError):
    pass


class StepError(ZhiliError):
    """A single filesystem step that failed and was skipped."""

    def __init__(self, kind: str, path: Path, message: str) -> None:
        super().__init__(f"{kind} failed for {path}: {message}")
        self.kind = kind
        self.path = path
        self.message = message

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": self.kind, "path": str(self.path), "message": self.message}

    @classmethod
    def from_exception(
        cls, kind: str, path: Path, exc: Optional[BaseException]
    ) -> "StepError":
        message = str(exc) if exc else "unknown error"
        if isinstance(exc, OSError) and exc.strerror:
            message = exc.strerror
        return cls(kind, path, message)


class ExecutionStepError(StepError):
    pass


class UndoStepError(StepError):
    pass
