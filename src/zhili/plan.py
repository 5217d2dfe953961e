import json
import logging
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional

from .classify import classify, is_shortcut_name
from .duplicates import detect_duplicates
from .errors import PlanConflictError
from .hashing import DEFAULT_CHUNK_SIZE
from .models import (
    UNFOLDERED_CATEGORIES,
    Category,
    DuplicateGroup,
    OrganizePlan,
    PlannedFile,
    ScannedEntry,
)
from .oracle import DEFAULT_BATCH_SIZE, ClassificationOracle, consult_oracle
from .rename import RenameAdvisor, normalize_target_name
from .util import ensure_dir

logger = logging.getLogger(__name__)

DEFAULT_FOLDER_THRESHOLD = 3
PLAN_FILE_VERSION = 1


def _tally(files: Iterable[PlannedFile]) -> Dict[Category, int]:
    counts: Dict[Category, int] = {}
    for planned in files:
        if planned.is_directory:
            continue
        counts[planned.category] = counts.get(planned.category, 0) + 1
    return counts


def _folder_categories(counts: Dict[Category, int], threshold: int) -> List[Category]:
    return [
        category
        for category in Category
        if category not in UNFOLDERED_CATEGORIES
        and category is not Category.FOLDER
        and counts.get(category, 0) >= threshold
    ]


def _is_movable(planned: PlannedFile) -> bool:
    return not planned.is_directory and not planned.is_shortcut


def build_plan(
    entries: Iterable[ScannedEntry],
    classifications: Optional[Dict[str, Category]] = None,
    *,
    root: Optional[Path] = None,
    oracle: Optional[ClassificationOracle] = None,
    advisor: Optional[RenameAdvisor] = None,
    threshold: int = DEFAULT_FOLDER_THRESHOLD,
    oracle_batch_size: int = DEFAULT_BATCH_SIZE,
    find_duplicates: bool = True,
    hash_chunk_size: int = DEFAULT_CHUNK_SIZE,
    hash_workers: int = 1,
    hasher: Optional[Callable[[Path], str]] = None,
) -> OrganizePlan:
    """Assemble an OrganizePlan from one folder's scanned entries.

    ``classifications`` maps exact file names to categories for entries the
    local rules leave as Other; oracle results are merged the same way and
    never replace a caller-supplied label. Both are applied before the
    per-category tally, so the folder threshold sees the final categories.
    """
    entries = list(entries)
    if root is None:
        if not entries:
            raise PlanConflictError("Cannot build a plan without a root folder.")
        root = entries[0].path.parent
    advisor = advisor or RenameAdvisor()

    # pass 1: local classification, then external labels for leftovers
    categories: Dict[Path, Category] = {}
    for entry in entries:
        categories[entry.path] = classify(entry.name, entry.is_directory, entry.is_symlink)

    def unresolved() -> List[ScannedEntry]:
        return [
            entry
            for entry in entries
            if not entry.is_directory and categories[entry.path] is Category.OTHER
        ]

    sources: Dict[Path, str] = {}
    for entry in unresolved():
        label = (classifications or {}).get(entry.name)
        if label is not None and label is not Category.OTHER:
            categories[entry.path] = label
            sources[entry.path] = "external"

    used_oracle = False
    pending = unresolved()
    if oracle is not None and pending:
        found = consult_oracle(
            oracle, [entry.name for entry in pending], batch_size=oracle_batch_size
        )
        for entry in pending:
            label = found.get(entry.name)
            if label is not None:
                categories[entry.path] = label
                sources[entry.path] = "oracle"
                used_oracle = True

    counts: Dict[Category, int] = {}
    for entry in entries:
        if not entry.is_directory:
            category = categories[entry.path]
            counts[category] = counts.get(category, 0) + 1
    folder_set = set(_folder_categories(counts, threshold))

    # pass 2: move and rename decisions
    files: List[PlannedFile] = []
    for entry in entries:
        category = categories[entry.path]
        is_shortcut = (
            category is Category.SHORTCUT or entry.is_symlink or is_shortcut_name(entry.name)
        )
        advice = advisor.advise(entry, category)
        planned = PlannedFile(
            entry=entry,
            category=category,
            needs_rename=advice.needs_rename and not entry.is_directory and not is_shortcut,
            suggested_name=advice.suggested_name,
            is_shortcut=is_shortcut,
            source=sources.get(entry.path, "rules"),
        )
        planned.needs_move = _is_movable(planned) and category in folder_set
        files.append(planned)

    duplicates: List[DuplicateGroup] = []
    if find_duplicates:
        duplicates = detect_duplicates(
            [entry for entry in entries if not entry.is_directory and not entry.is_symlink],
            chunk_size=hash_chunk_size,
            workers=hash_workers,
            hasher=hasher,
        )

    plan = OrganizePlan(
        root=Path(root),
        files=files,
        duplicates=duplicates,
        category_counts=counts,
        categories_needing_folders=_needing_folders(files),
        used_oracle=used_oracle,
    )
    logger.info(
        "Plan for %s: %d entries, %d folder(s), %d duplicate group(s)",
        plan.root,
        len(files),
        len(plan.categories_needing_folders),
        len(duplicates),
    )
    return plan


def _needing_folders(files: List[PlannedFile]) -> List[Category]:
    moving = {planned.category for planned in files if planned.needs_move}
    return [category for category in Category if category in moving]


def refresh_moves(plan: OrganizePlan, threshold: int = DEFAULT_FOLDER_THRESHOLD) -> None:
    """Recompute counts, move flags and folder categories after category edits."""
    plan.category_counts = _tally(plan.files)
    folder_set = set(_folder_categories(plan.category_counts, threshold))
    for planned in plan.files:
        planned.needs_move = _is_movable(planned) and planned.category in folder_set
    plan.categories_needing_folders = _needing_folders(plan.files)


def _require(plan: OrganizePlan, path: Path) -> PlannedFile:
    planned = plan.find(Path(path))
    if planned is None:
        raise PlanConflictError(f"Not part of this plan: {path}")
    return planned


def set_selected(plan: OrganizePlan, path: Path, selected: bool) -> PlannedFile:
    planned = _require(plan, path)
    planned.selected = selected
    return planned


def set_suggested_name(plan: OrganizePlan, path: Path, name: str) -> PlannedFile:
    planned = _require(plan, path)
    if planned.is_directory or planned.is_shortcut:
        raise PlanConflictError(f"Folders and shortcuts keep their names: {planned.name}")
    normalized = normalize_target_name(name, planned.name)
    if not normalized:
        raise PlanConflictError(f"Invalid file name: {name!r}")
    planned.suggested_name = normalized
    planned.needs_rename = normalized != planned.name
    return planned


def set_category(
    plan: OrganizePlan,
    path: Path,
    category: Category,
    *,
    threshold: int = DEFAULT_FOLDER_THRESHOLD,
) -> PlannedFile:
    planned = _require(plan, path)
    if planned.is_directory or planned.is_shortcut:
        raise PlanConflictError(f"Folders and shortcuts keep their category: {planned.name}")
    if category in (Category.FOLDER, Category.SHORTCUT):
        raise PlanConflictError(f"{category.value} cannot be assigned to a file")
    planned.category = category
    planned.source = "user"
    refresh_moves(plan, threshold)
    return planned


def _require_group(plan: OrganizePlan, group_index: int) -> DuplicateGroup:
    if not 0 <= group_index < len(plan.duplicates):
        raise PlanConflictError(f"No duplicate group at index {group_index}")
    return plan.duplicates[group_index]


def set_keeper(plan: OrganizePlan, group_index: int, keep_index: int) -> DuplicateGroup:
    group = _require_group(plan, group_index)
    if not 0 <= keep_index < len(group.files):
        raise PlanConflictError(f"Keeper index out of range: {keep_index}")
    group.keep_index = keep_index
    return group


def set_duplicate_selected(plan: OrganizePlan, path: Path, selected: bool) -> DuplicateGroup:
    target = Path(path)
    for group in plan.duplicates:
        for member in group.files:
            if member.path == target:
                member.selected = selected
                return group
    raise PlanConflictError(f"Not part of any duplicate group: {path}")


def write_plan_file(plan: OrganizePlan, path: Path) -> Path:
    payload = {"version": PLAN_FILE_VERSION}
    payload.update(plan.to_dict())
    ensure_dir(path.parent)
    path.write_text(json.dumps(payload, indent=2, ensure_ascii=False), encoding="utf-8")
    return path


def load_plan_file(path: Path) -> OrganizePlan:
    try:
        payload = json.loads(Path(path).read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        raise PlanConflictError(f"Cannot read plan file {path}: {exc}") from exc
    if not isinstance(payload, dict) or payload.get("version") != PLAN_FILE_VERSION:
        raise PlanConflictError(f"Unsupported plan file: {path}")
    try:
        plan = OrganizePlan.from_dict(payload)
    except (KeyError, TypeError, ValueError) as exc:
        raise PlanConflictError(f"Malformed plan file {path}: {exc}") from exc
    _check_loaded_plan(plan)
    return plan


def _is_bare_name(name: str) -> bool:
    return bool(name) and name not in {".", ".."} and "/" not in name and "\\" not in name


def _directly_in(path: Path, root: Path) -> bool:
    return path.parent == root and _is_bare_name(path.name)


def _check_loaded_plan(plan: OrganizePlan) -> None:
    """Keep an edited plan inside its root folder.

    Entries and new names must stay directly in the root. The folder set is
    derived again from the files that move.
    """
    root = Path(plan.root)
    for planned in plan.files:
        if not _directly_in(planned.path, root) or planned.path.name != planned.name:
            raise PlanConflictError(f"Plan entry outside {root}: {planned.path}")
        if not _is_movable(planned):
            planned.needs_move = False
            planned.needs_rename = False
            continue
        if planned.category in UNFOLDERED_CATEGORIES or planned.category is Category.FOLDER:
            planned.needs_move = False
        if not planned.needs_rename:
            continue
        if not _is_bare_name(planned.suggested_name):
            raise PlanConflictError(f"Invalid file name: {planned.suggested_name!r}")
        normalized = normalize_target_name(planned.suggested_name, planned.name)
        if not normalized:
            raise PlanConflictError(f"Invalid file name: {planned.suggested_name!r}")
        planned.suggested_name = normalized
        planned.needs_rename = normalized != planned.name
    for group in plan.duplicates:
        for member in group.files:
            if not _directly_in(member.path, root):
                raise PlanConflictError(f"Plan entry outside {root}: {member.path}")
    plan.categories_needing_folders = _needing_folders(plan.files)
