import json
import logging
import os
import shutil
from pathlib import Path
from typing import Optional

from .coordinator import RunCoordinator
from .errors import UndoStepError, ZhiliError
from .models import Operation, OperationKind, OperationLog, UndoResult
from .util import ensure_dir

logger = logging.getLogger(__name__)


class UndoEngine:
    def __init__(self, coordinator: RunCoordinator) -> None:
        self.coordinator = coordinator

    def undo(self, log_id: Optional[str] = None) -> UndoResult:
        """Reverse the most recent run, or the run with ``log_id``.

        Returns an UndoResult with ``log_id=None`` when there is nothing to undo.
        """
        with self.coordinator.run("undo"):
            log = self.coordinator.pop(log_id)
            if log is None:
                return UndoResult(log_id=None)
            return self._reverse(log)

    def _reverse(self, log: OperationLog) -> UndoResult:
        result = UndoResult(log_id=log.id)
        for operation in reversed(log.operations):
            if operation.kind is OperationKind.CREATE_DIRECTORY:
                self._remove_directory(operation, result)
            elif operation.kind is OperationKind.MOVE_OR_RENAME:
                self._move_back(operation, result)
            elif operation.kind is OperationKind.RELOCATE_DUPLICATE:
                self._restore_duplicate(operation, result)
        if log.backup_dir:
            try:
                log.backup_dir.rmdir()
            except OSError:
                logger.debug("Backup area %s kept", log.backup_dir)
        logger.info(
            "Undo %s: %d restored, %d folder(s) removed, %d skipped, %d error(s)",
            log.id,
            result.restored,
            result.directories_removed,
            result.skipped,
            len(result.errors),
        )
        return result

    def _fail(self, result: UndoResult, operation: Operation, path: Path, message: object) -> None:
        if isinstance(message, BaseException):
            error = UndoStepError.from_exception(operation.kind.value, path, message)
        else:
            error = UndoStepError(operation.kind.value, path, str(message))
        logger.warning("%s", error)
        result.errors.append(error)
        result.skipped += 1

    def _remove_directory(self, operation: Operation, result: UndoResult) -> None:
        try:
            operation.source.rmdir()
        except OSError as exc:
            logger.debug("Leaving folder %s in place: %s", operation.source, exc)
            result.skipped += 1
            return
        result.directories_removed += 1

    def _move_back(self, operation: Operation, result: UndoResult) -> None:
        source = operation.source
        destination = operation.destination
        if destination is None or not os.path.lexists(destination):
            self._fail(result, operation, destination or source, "file is no longer there")
            return
        if os.path.lexists(source):
            self._fail(result, operation, source, "original path is occupied")
            return
        try:
            ensure_dir(source.parent)
            shutil.move(str(destination), str(source))
        except (OSError, shutil.Error) as exc:
            self._fail(result, operation, destination, exc)
            return
        result.restored += 1

    def _restore_duplicate(self, operation: Operation, result: UndoResult) -> None:
        source = operation.source
        backup = operation.backup_path
        if backup is None or not backup.exists():
            self._fail(result, operation, backup or source, "backup copy is missing")
            return
        if os.path.lexists(source):
            self._fail(result, operation, source, "original path is occupied")
            return
        try:
            ensure_dir(source.parent)
            shutil.copy2(str(backup), str(source))
        except OSError as exc:
            self._fail(result, operation, source, exc)
            return
        try:
            backup.unlink()
        except OSError as exc:
            logger.debug("Could not remove backup copy %s: %s", backup, exc)
        result.restored += 1


OPLOG_DIR_NAME = ".zhili"
OPLOG_PREFIX = "oplog-"
UNDONE_PREFIX = "undone-"


def oplog_dir(root: Path) -> Path:
    return Path(root) / OPLOG_DIR_NAME


def write_undo_log(log: OperationLog) -> Path:
    log_dir = oplog_dir(log.root)
    ensure_dir(log_dir)
    log_path = log_dir / f"{OPLOG_PREFIX}{log.id}.json"
    log_path.write_text(json.dumps(log.to_dict(), indent=2, ensure_ascii=False), encoding="utf-8")
    return log_path


def find_latest_log(root: Path) -> Optional[Path]:
    log_dir = oplog_dir(root)
    if not log_dir.exists():
        return None
    logs = sorted(log_dir.glob(f"{OPLOG_PREFIX}*.json"))
    return logs[-1] if logs else None


def load_undo_log(log_path: Path) -> OperationLog:
    try:
        payload = json.loads(Path(log_path).read_text(encoding="utf-8"))
        return OperationLog.from_dict(payload)
    except (OSError, json.JSONDecodeError, KeyError, TypeError, ValueError) as exc:
        raise ZhiliError(f"Cannot read operation log {log_path}: {exc}") from exc


def retire_undo_log(log_path: Path) -> Path:
    retired = log_path.with_name(UNDONE_PREFIX + log_path.name[len(OPLOG_PREFIX) :])
    log_path.replace(retired)
    return retired
