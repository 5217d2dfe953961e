import threading
from collections import deque
from contextlib import contextmanager
from typing import Any, Deque, Dict, Iterator, List, Optional

from .errors import EngineFatalError
from .models import OperationLog

DEFAULT_HISTORY_SIZE = 10


class RunCoordinator:
    """Owns the run lock and the LIFO stack of operation logs.

    One coordinator is shared by an ExecutionEngine and an UndoEngine; only
    one of them may be running at a time. When ``max_history`` is set, the
    oldest logs are dropped first.
    """

    def __init__(self, max_history: Optional[int] = DEFAULT_HISTORY_SIZE) -> None:
        if max_history is not None and max_history < 1:
            raise ValueError("max_history must keep at least one log")
        self._lock = threading.Lock()
        self._stack: Deque[OperationLog] = deque(maxlen=max_history)
        self._stack_lock = threading.Lock()

    @contextmanager
    def run(self, label: str = "organize") -> Iterator[None]:
        if not self._lock.acquire(blocking=False):
            raise EngineFatalError(f"Cannot start {label}: another run is active.")
        try:
            yield
        finally:
            self._lock.release()

    @property
    def busy(self) -> bool:
        return self._lock.locked()

    def push(self, log: OperationLog) -> None:
        with self._stack_lock:
            self._stack.append(log)

    def pop(self, log_id: Optional[str] = None) -> Optional[OperationLog]:
        with self._stack_lock:
            if not self._stack:
                return None
            if log_id is None:
                return self._stack.pop()
            for log in reversed(self._stack):
                if log.id == log_id:
                    self._stack.remove(log)
                    return log
            return None

    def peek(self) -> Optional[OperationLog]:
        with self._stack_lock:
            return self._stack[-1] if self._stack else None

    def history(self) -> List[Dict[str, Any]]:
        with self._stack_lock:
            logs = list(reversed(self._stack))
        return [
            {
                "id": log.id,
                "root": str(log.root),
                "created_at": log.created_at.isoformat(),
                "operations": len(log.operations),
            }
            for log in logs
        ]

    def __len__(self) -> int:
        with self._stack_lock:
            return len(self._stack)
