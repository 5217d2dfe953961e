import logging
import os
import shutil
import tempfile
from pathlib import Path
from typing import Optional, Set

from .coordinator import RunCoordinator
from .errors import EngineFatalError, ExecutionStepError
from .models import (
    ExecutionResult,
    Operation,
    OperationKind,
    OperationLog,
    OrganizePlan,
    PlannedFile,
)
from .util import new_id, unique_path

logger = logging.getLogger(__name__)

BACKUP_PREFIX = "zhili-backup-"


class ExecutionEngine:
    """Applies an OrganizePlan to disk and records an OperationLog.

    Per-file failures are collected in ``ExecutionResult.errors`` and never
    stop the run. Whatever was applied is pushed onto the coordinator's
    stack so it can be undone.
    """

    def __init__(self, coordinator: RunCoordinator, *, backup_root: Optional[Path] = None) -> None:
        self.coordinator = coordinator
        self.backup_root = Path(backup_root) if backup_root else None

    def execute(self, plan: OrganizePlan) -> ExecutionResult:
        with self.coordinator.run("execute"):
            return self._execute(plan)

    def _create_backup_area(self, log_id: str) -> Path:
        base = self.backup_root or Path(tempfile.gettempdir())
        backup_dir = base / f"{BACKUP_PREFIX}{log_id}"
        try:
            backup_dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise EngineFatalError(f"Cannot create backup area {backup_dir}: {exc}") from exc
        return backup_dir

    def _execute(self, plan: OrganizePlan) -> ExecutionResult:
        root = Path(plan.root)
        if not root.is_dir():
            raise EngineFatalError(f"Folder not found: {root}")
        log = OperationLog(id=new_id(), root=root)
        removals = plan.duplicates_to_remove()
        if removals:
            log.backup_dir = self._create_backup_area(log.id)
        result = ExecutionResult(log_id=log.id)
        try:
            self._create_directories(plan, log, result)
            self._move_files(plan, set(removals), log, result)
            if log.backup_dir is not None:
                for duplicate in removals:
                    self._relocate_duplicate(duplicate, log.backup_dir, log, result)
        finally:
            if log.operations:
                self.coordinator.push(log)
            elif log.backup_dir:
                _remove_empty_dir(log.backup_dir)
        logger.info(
            "Run %s: %d folder(s) created, %d moved, %d renamed, %d duplicate(s) removed, %d error(s)",
            log.id,
            result.directories_created,
            result.files_moved,
            result.files_renamed,
            result.duplicates_removed,
            len(result.errors),
        )
        return result

    def _fail(self, result: ExecutionResult, kind: OperationKind, path: Path, exc: BaseException) -> None:
        error = ExecutionStepError.from_exception(kind.value, path, exc)
        logger.warning("%s", error)
        result.errors.append(error)

    def _create_directories(self, plan: OrganizePlan, log: OperationLog, result: ExecutionResult) -> None:
        for category in plan.categories_needing_folders:
            folder = plan.root / category.value
            if folder.is_dir():
                continue
            try:
                folder.mkdir()
            except OSError as exc:
                self._fail(result, OperationKind.CREATE_DIRECTORY, folder, exc)
                continue
            log.append(Operation(kind=OperationKind.CREATE_DIRECTORY, source=folder))
            result.directories_created += 1
            result.created_folders.append(folder)

    def _target_for(self, plan: OrganizePlan, planned: PlannedFile) -> Path:
        if planned.needs_move:
            return plan.root / planned.category.value / planned.final_name
        return planned.path.parent / planned.final_name

    def _move_files(
        self,
        plan: OrganizePlan,
        removals: Set[Path],
        log: OperationLog,
        result: ExecutionResult,
    ) -> None:
        claimed: Set[Path] = set()

        def is_taken(candidate: Path) -> bool:
            return candidate in claimed or os.path.lexists(candidate)

        for planned in plan.files:
            if not planned.selected or not (planned.needs_move or planned.needs_rename):
                continue
            if planned.is_directory or planned.is_shortcut:
                continue
            if planned.path in removals:
                logger.debug("Not moving %s: relocated as a duplicate", planned.path)
                continue
            target = self._target_for(plan, planned)
            if target == planned.path:
                continue
            target = unique_path(target, is_taken)
            claimed.add(target)
            try:
                shutil.move(str(planned.path), str(target))
            except (OSError, shutil.Error) as exc:
                claimed.discard(target)
                self._fail(result, OperationKind.MOVE_OR_RENAME, planned.path, exc)
                continue
            log.append(
                Operation(
                    kind=OperationKind.MOVE_OR_RENAME,
                    source=planned.path,
                    destination=target,
                )
            )
            if planned.needs_move:
                result.files_moved += 1
            else:
                result.files_renamed += 1

    def _relocate_duplicate(
        self, path: Path, backup_dir: Path, log: OperationLog, result: ExecutionResult
    ) -> None:
        backup = unique_path(backup_dir / path.name, os.path.lexists)
        try:
            shutil.copy2(str(path), str(backup))
        except OSError as exc:
            self._fail(result, OperationKind.RELOCATE_DUPLICATE, path, exc)
            return
        try:
            path.unlink()
        except OSError as exc:
            self._fail(result, OperationKind.RELOCATE_DUPLICATE, path, exc)
            try:
                backup.unlink()
            except OSError:
                logger.debug("Could not discard backup copy %s", backup)
            return
        log.append(
            Operation(
                kind=OperationKind.RELOCATE_DUPLICATE,
                source=path,
                destination=backup,
            )
        )
        result.duplicates_removed += 1


def _remove_empty_dir(path: Path) -> bool:
    try:
        path.rmdir()
    except OSError:
        return False
    return True
