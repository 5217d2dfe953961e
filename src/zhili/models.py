from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional

from .util import parse_iso, to_iso


class Category(str, Enum):
    CONTRACT = "Contract"
    INVOICE = "Invoice"
    SCREENSHOT = "Screenshot"
    MANUAL = "Manual"
    IMAGE = "Image"
    VIDEO = "Video"
    AUDIO = "Audio"
    DOCUMENT = "Document"
    ARCHIVE = "Archive"
    CODE = "Code"
    PROGRAM = "Program"
    SHORTCUT = "Shortcut"
    FOLDER = "Folder"
    DOWNLOAD = "Download"
    BACKUP = "Backup"
    OTHER = "Other"

    @property
    def localized(self) -> str:
        return _LOCALIZED_LABELS[self]

    @classmethod
    def from_label(cls, label: object) -> Optional["Category"]:
        if not isinstance(label, str):
            return None
        text = label.strip()
        if not text:
            return None
        for category in cls:
            if category.value.lower() == text.lower() or category.localized == text:
                return category
        return None


_LOCALIZED_LABELS: Dict[Category, str] = {
    Category.CONTRACT: "合同",
    Category.INVOICE: "发票",
    Category.SCREENSHOT: "截图",
    Category.MANUAL: "说明书",
    Category.IMAGE: "图片",
    Category.VIDEO: "视频",
    Category.AUDIO: "音频",
    Category.DOCUMENT: "文档",
    Category.ARCHIVE: "压缩包",
    Category.CODE: "代码",
    Category.PROGRAM: "程序",
    Category.SHORTCUT: "快捷方式",
    Category.FOLDER: "文件夹",
    Category.DOWNLOAD: "下载",
    Category.BACKUP: "备份",
    Category.OTHER: "其他",
}

# Categories that never receive a subdirectory regardless of count.
UNFOLDERED_CATEGORIES = frozenset({Category.SHORTCUT, Category.OTHER})


@dataclass(frozen=True)
class ScannedEntry:
    name: str
    path: Path
    size: int
    modified: datetime
    extension: str
    is_directory: bool = False
    is_symlink: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "path": str(self.path),
            "size": self.size,
            "modified": to_iso(self.modified),
            "extension": self.extension,
            "is_directory": self.is_directory,
            "is_symlink": self.is_symlink,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ScannedEntry":
        return cls(
            name=str(data["name"]),
            path=Path(data["path"]),
            size=int(data.get("size", 0)),
            modified=parse_iso(data.get("modified")) or datetime.fromtimestamp(0),
            extension=str(data.get("extension", "")),
            is_directory=bool(data.get("is_directory", False)),
            is_symlink=bool(data.get("is_symlink", False)),
        )


@dataclass
class PlannedFile:
    entry: ScannedEntry
    category: Category
    needs_rename: bool = False
    needs_move: bool = False
    suggested_name: str = ""
    selected: bool = True
    is_shortcut: bool = False
    source: str = "rules"

    def __post_init__(self) -> None:
        if not self.suggested_name:
            self.suggested_name = self.entry.name

    @property
    def name(self) -> str:
        return self.entry.name

    @property
    def path(self) -> Path:
        return self.entry.path

    @property
    def is_directory(self) -> bool:
        return self.entry.is_directory

    @property
    def final_name(self) -> str:
        return self.suggested_name if self.needs_rename else self.entry.name

    def to_dict(self) -> Dict[str, Any]:
        data = self.entry.to_dict()
        data.update(
            {
                "category": self.category.value,
                "needs_rename": self.needs_rename,
                "needs_move": self.needs_move,
                "suggested_name": self.suggested_name,
                "selected": self.selected,
                "is_shortcut": self.is_shortcut,
                "source": self.source,
            }
        )
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PlannedFile":
        category = Category.from_label(data.get("category")) or Category.OTHER
        return cls(
            entry=ScannedEntry.from_dict(data),
            category=category,
            needs_rename=bool(data.get("needs_rename", False)),
            needs_move=bool(data.get("needs_move", False)),
            suggested_name=str(data.get("suggested_name") or data["name"]),
            selected=bool(data.get("selected", True)),
            is_shortcut=bool(data.get("is_shortcut", False)),
            source=str(data.get("source", "rules")),
        )


@dataclass
class DuplicateMember:
    path: Path
    name: str
    size: int
    selected: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "path": str(self.path),
            "name": self.name,
            "size": self.size,
            "selected": self.selected,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DuplicateMember":
        path = Path(data["path"])
        return cls(
            path=path,
            name=str(data.get("name") or path.name),
            size=int(data.get("size", 0)),
            selected=bool(data.get("selected", True)),
        )


@dataclass
class DuplicateGroup:
    """Content-identical files; ``keep_index`` marks the one that stays."""

    hash: str
    files: List[DuplicateMember]
    keep_index: int = 0

    def __post_init__(self) -> None:
        if len(self.files) < 2:
            raise ValueError("A duplicate group needs at least two files.")
        if not 0 <= self.keep_index < len(self.files):
            raise ValueError(f"Keeper index out of range: {self.keep_index}")

    @property
    def keeper(self) -> DuplicateMember:
        return self.files[self.keep_index]

    def removal_targets(self) -> List[Path]:
        return [
            member.path
            for idx, member in enumerate(self.files)
            if idx != self.keep_index and member.selected
        ]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "hash": self.hash,
            "keep_index": self.keep_index,
            "files": [member.to_dict() for member in self.files],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DuplicateGroup":
        return cls(
            hash=str(data.get("hash", "")),
            files=[DuplicateMember.from_dict(item) for item in data.get("files", [])],
            keep_index=int(data.get("keep_index", 0)),
        )


@dataclass
class PlanStats:
    total_files: int = 0
    total_folders: int = 0
    total_size: int = 0
    categorized_count: Dict[str, int] = field(default_factory=dict)
    duplicate_count: int = 0
    renamed_count: int = 0
    moved_count: int = 0
    shortcut_count: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_files": self.total_files,
            "total_folders": self.total_folders,
            "total_size": self.total_size,
            "categorized_count": dict(self.categorized_count),
            "duplicate_count": self.duplicate_count,
            "renamed_count": self.renamed_count,
            "moved_count": self.moved_count,
            "shortcut_count": self.shortcut_count,
        }


@dataclass
class OrganizePlan:
    root: Path
    files: List[PlannedFile]
    duplicates: List[DuplicateGroup]
    category_counts: Dict[Category, int]
    categories_needing_folders: List[Category]
    created_at: datetime = field(default_factory=datetime.now)
    used_oracle: bool = False

    def find(self, path: Path) -> Optional[PlannedFile]:
        for planned in self.files:
            if planned.path == path:
                return planned
        return None

    def duplicates_to_remove(self) -> List[Path]:
        targets: List[Path] = []
        for group in self.duplicates:
            targets.extend(group.removal_targets())
        return targets

    def stats(self) -> PlanStats:
        stats = PlanStats()
        removals = set(self.duplicates_to_remove())
        for planned in self.files:
            if planned.is_directory:
                stats.total_folders += 1
                continue
            stats.total_files += 1
            stats.total_size += planned.entry.size
            label = planned.category.value
            stats.categorized_count[label] = stats.categorized_count.get(label, 0) + 1
            if planned.is_shortcut:
                stats.shortcut_count += 1
            if not planned.selected or planned.path in removals:
                continue
            if planned.needs_rename:
                stats.renamed_count += 1
            if planned.needs_move:
                stats.moved_count += 1
        stats.duplicate_count = len(removals)
        return stats

    def to_dict(self) -> Dict[str, Any]:
        return {
            "root": str(self.root),
            "created_at": to_iso(self.created_at),
            "used_oracle": self.used_oracle,
            "files": [planned.to_dict() for planned in self.files],
            "duplicates": [group.to_dict() for group in self.duplicates],
            "category_counts": {
                category.value: count for category, count in self.category_counts.items()
            },
            "categories_needing_folders": [
                category.value for category in self.categories_needing_folders
            ],
            "stats": self.stats().to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "OrganizePlan":
        counts: Dict[Category, int] = {}
        for label, count in (data.get("category_counts") or {}).items():
            category = Category.from_label(label)
            if category:
                counts[category] = int(count)
        folders: List[Category] = []
        for label in data.get("categories_needing_folders") or []:
            category = Category.from_label(label)
            if category and category not in folders:
                folders.append(category)
        return cls(
            root=Path(data["root"]),
            files=[PlannedFile.from_dict(item) for item in data.get("files", [])],
            duplicates=[DuplicateGroup.from_dict(item) for item in data.get("duplicates", [])],
            category_counts=counts,
            categories_needing_folders=folders,
            created_at=parse_iso(data.get("created_at")) or datetime.now(),
            used_oracle=bool(data.get("used_oracle", False)),
        )


class OperationKind(str, Enum):
    CREATE_DIRECTORY = "create-directory"
    MOVE_OR_RENAME = "move-or-rename"
    RELOCATE_DUPLICATE = "relocate-duplicate"


@dataclass(frozen=True)
class Operation:
    kind: OperationKind
    source: Path
    destination: Optional[Path] = None
    timestamp: datetime = field(default_factory=datetime.now)

    @property
    def backup_path(self) -> Optional[Path]:
        if self.kind is OperationKind.RELOCATE_DUPLICATE:
            return self.destination
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind.value,
            "source": str(self.source),
            "destination": str(self.destination) if self.destination else None,
            "timestamp": to_iso(self.timestamp),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Operation":
        destination = data.get("destination")
        return cls(
            kind=OperationKind(data["kind"]),
            source=Path(data["source"]),
            destination=Path(destination) if destination else None,
            timestamp=parse_iso(data.get("timestamp")) or datetime.now(),
        )


@dataclass
class OperationLog:
    id: str
    root: Path
    created_at: datetime = field(default_factory=datetime.now)
    operations: List[Operation] = field(default_factory=list)
    backup_dir: Optional[Path] = None

    def append(self, operation: Operation) -> None:
        self.operations.append(operation)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "version": 1,
            "id": self.id,
            "root": str(self.root),
            "created_at": to_iso(self.created_at),
            "backup_dir": str(self.backup_dir) if self.backup_dir else None,
            "operations": [op.to_dict() for op in self.operations],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "OperationLog":
        backup_dir = data.get("backup_dir")
        return cls(
            id=str(data["id"]),
            root=Path(data["root"]),
            created_at=parse_iso(data.get("created_at")) or datetime.now(),
            operations=[Operation.from_dict(item) for item in data.get("operations", [])],
            backup_dir=Path(backup_dir) if backup_dir else None,
        )


@dataclass
class ExecutionResult:
    log_id: str
    directories_created: int = 0
    files_moved: int = 0
    files_renamed: int = 0
    duplicates_removed: int = 0
    created_folders: List[Path] = field(default_factory=list)
    errors: List[Any] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return not self.errors

    def to_dict(self) -> Dict[str, Any]:
        return {
            "log_id": self.log_id,
            "success": self.success,
            "directories_created": self.directories_created,
            "files_moved": self.files_moved,
            "files_renamed": self.files_renamed,
            "duplicates_removed": self.duplicates_removed,
            "created_folders": [str(path) for path in self.created_folders],
            "errors": [error.to_dict() for error in self.errors],
        }


@dataclass
class UndoResult:
    log_id: Optional[str]
    restored: int = 0
    directories_removed: int = 0
    skipped: int = 0
    errors: List[Any] = field(default_factory=list)

    @property
    def found(self) -> bool:
        return self.log_id is not None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "log_id": self.log_id,
            "restored": self.restored,
            "directories_removed": self.directories_removed,
            "skipped": self.skipped,
            "errors": [error.to_dict() for error in self.errors],
        }
