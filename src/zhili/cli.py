import argparse
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

from .config import config_path, load_config
from .coordinator import RunCoordinator
from .duplicates import detect_duplicates
from .errors import ZhiliError
from .execute import ExecutionEngine
from .models import ExecutionResult, OrganizePlan
from .oracle import build_oracle
from .plan import build_plan, load_plan_file, write_plan_file
from .rename import RenameAdvisor
from .scan import scan
from .undo import (
    UndoEngine,
    find_latest_log,
    load_undo_log,
    oplog_dir,
    retire_undo_log,
    write_undo_log,
)
from .util import utc_stamp


def _format_size(size: int) -> str:
    value = float(size)
    for unit in ("B", "KB", "MB", "GB"):
        if value < 1024 or unit == "GB":
            return f"{value:.0f} {unit}" if unit == "B" else f"{value:.1f} {unit}"
        value /= 1024
    return f"{size} B"


def _resolve_folder(raw: Optional[str]) -> Path:
    return Path(raw).expanduser().resolve() if raw else Path.cwd()


def _make_plan(root: Path, cfg: Dict[str, Any], args: argparse.Namespace) -> OrganizePlan:
    if args.oracle:
        cfg = dict(cfg, oracle=args.oracle)
    entries = scan(root)
    return build_plan(
        entries,
        root=root,
        oracle=build_oracle(cfg, root),
        advisor=RenameAdvisor(user_name=cfg.get("user_name")),
        threshold=cfg["folder_threshold"],
        oracle_batch_size=cfg["oracle_batch_size"],
        find_duplicates=not args.no_duplicates,
        hash_chunk_size=cfg["hash_chunk_size"],
        hash_workers=cfg["hash_workers"],
    )


def _plan_lines(plan: OrganizePlan) -> List[str]:
    stats = plan.stats()
    lines = [
        f"Folder: {plan.root}",
        f"Files: {stats.total_files}, folders: {stats.total_folders}, "
        f"size: {_format_size(stats.total_size)}",
    ]
    if plan.categories_needing_folders:
        names = ", ".join(category.value for category in plan.categories_needing_folders)
        lines.append(f"New folders: {names}")
    removals = set(plan.duplicates_to_remove())
    for planned in plan.files:
        if not planned.selected or not (planned.needs_move or planned.needs_rename):
            continue
        if planned.path in removals:
            continue
        target = planned.final_name
        if planned.needs_move:
            target = f"{planned.category.value}/{target}"
        lines.append(f"{planned.name} -> {target}")
    for group in plan.duplicates:
        lines.append(f"Duplicate set ({_format_size(group.keeper.size)}): keep {group.keeper.name}")
        for path in group.removal_targets():
            lines.append(f"  remove {path.name}")
    lines.append(
        f"Summary: {stats.moved_count} to move, {stats.renamed_count} to rename, "
        f"{stats.duplicate_count} duplicate(s) to remove"
    )
    return lines


def _run_plan(plan: OrganizePlan, cfg: Dict[str, Any]) -> ExecutionResult:
    coordinator = RunCoordinator(max_history=cfg["history_size"])
    backup_root = Path(cfg["backup_dir"]).expanduser() if cfg.get("backup_dir") else None
    engine = ExecutionEngine(coordinator, backup_root=backup_root)
    result = engine.execute(plan)
    log = coordinator.peek()
    if log is not None:
        log_path = write_undo_log(log)
        print(f"Undo log: {log_path}")
    return result


def _print_result(result: ExecutionResult) -> None:
    print(
        f"Created {result.directories_created} folder(s), moved {result.files_moved}, "
        f"renamed {result.files_renamed}, removed {result.duplicates_removed} duplicate(s)."
    )
    for error in result.errors:
        print(f"Failed: {error}")


def cmd_plan(args: argparse.Namespace) -> int:
    root = _resolve_folder(args.folder)
    cfg = load_config()
    plan = _make_plan(root, cfg, args)
    print("\n".join(_plan_lines(plan)))
    out_path = (
        Path(args.out).expanduser()
        if args.out
        else oplog_dir(root) / f"plan-{utc_stamp()}.json"
    )
    write_plan_file(plan, out_path)
    print(f"Plan written: {out_path}")
    return 0


def cmd_organize(args: argparse.Namespace) -> int:
    root = _resolve_folder(args.folder)
    cfg = load_config()
    plan = _make_plan(root, cfg, args)
    print("\n".join(_plan_lines(plan)))
    if not args.apply:
        print("Dry run. Use --apply to execute.")
        return 0
    result = _run_plan(plan, cfg)
    _print_result(result)
    return 0 if result.success else 2


def cmd_apply(args: argparse.Namespace) -> int:
    plan_path = Path(args.plan).expanduser()
    cfg = load_config()
    plan = load_plan_file(plan_path)
    result = _run_plan(plan, cfg)
    _print_result(result)
    return 0 if result.success else 2


def cmd_undo(args: argparse.Namespace) -> int:
    root = _resolve_folder(args.folder)
    if args.id:
        candidate = Path(args.id).expanduser()
        log_path: Optional[Path] = (
            candidate if candidate.exists() else oplog_dir(root) / f"oplog-{args.id}.json"
        )
    else:
        log_path = find_latest_log(root)
    if not log_path or not log_path.exists():
        print("Undo log not found.")
        return 1

    coordinator = RunCoordinator(max_history=None)
    coordinator.push(load_undo_log(log_path))
    result = UndoEngine(coordinator).undo()
    retire_undo_log(log_path)
    print(
        f"Undo complete. Restored: {result.restored}, "
        f"folders removed: {result.directories_removed}, skipped: {result.skipped}"
    )
    for error in result.errors:
        print(f"Failed: {error}")
    return 0


def cmd_duplicates(args: argparse.Namespace) -> int:
    root = _resolve_folder(args.folder)
    cfg = load_config()
    entries = [entry for entry in scan(root) if not entry.is_directory and not entry.is_symlink]
    groups = detect_duplicates(
        entries,
        chunk_size=cfg["hash_chunk_size"],
        workers=cfg["hash_workers"],
    )
    if not groups:
        print("No duplicates found.")
        return 0
    for group in groups:
        print(f"{group.hash} ({_format_size(group.keeper.size)})")
        for idx, member in enumerate(group.files):
            marker = "keep" if idx == group.keep_index else "dup "
            print(f"  [{marker}] {member.name}")
    return 0


def cmd_config(_: argparse.Namespace) -> int:
    cfg = load_config()
    print(f"Config: {config_path()}")
    for key, value in cfg.items():
        print(f"{key}: {value}")
    return 0


def _add_plan_options(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("folder", nargs="?", help="Folder to organize (default: current)")
    parser.add_argument(
        "--oracle",
        choices=["none", "ollama", "command"],
        help="Classification helper for unrecognized files",
    )
    parser.add_argument(
        "--no-duplicates", action="store_true", help="Skip duplicate detection"
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="zhili")
    parser.add_argument("-v", "--verbose", action="store_true", help="Verbose logging")
    sub = parser.add_subparsers(dest="command", required=True)

    plan = sub.add_parser("plan", help="Build an organize plan and save it as JSON")
    _add_plan_options(plan)
    plan.add_argument("--out", help="Plan file path (default: <folder>/.zhili/plan-*.json)")
    plan.set_defaults(func=cmd_plan)

    organize = sub.add_parser("organize", help="Plan and optionally apply in one step")
    _add_plan_options(organize)
    organize.add_argument("--apply", action="store_true", help="Apply changes (default is dry-run)")
    organize.set_defaults(func=cmd_organize)

    apply = sub.add_parser("apply", help="Apply an edited plan file")
    apply.add_argument("plan", help="Plan JSON written by 'zhili plan'")
    apply.set_defaults(func=cmd_apply)

    undo = sub.add_parser("undo", help="Undo the last organize run")
    undo.add_argument("folder", nargs="?", help="Organized folder (default: current)")
    undo.add_argument("--id", help="Run id or path to an operation log")
    undo.set_defaults(func=cmd_undo)

    duplicates = sub.add_parser("duplicates", help="List duplicate files")
    duplicates.add_argument("folder", nargs="?", help="Folder to check (default: current)")
    duplicates.set_defaults(func=cmd_duplicates)

    cfg = sub.add_parser("config", help="Show configuration")
    cfg.set_defaults(func=cmd_config)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    try:
        return args.func(args)
    except ZhiliError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
