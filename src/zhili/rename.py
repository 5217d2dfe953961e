import getpass
import os
import re
from datetime import date, datetime
from pathlib import Path
from typing import Callable, Dict, List, NamedTuple, Optional, Pattern, Tuple

from .classify import is_shortcut_name
from .models import Category, ScannedEntry

MIN_MESSY_STEM_LENGTH = 4
MAX_CLEAN_NAME_LENGTH = 30

_I = re.IGNORECASE

MESSY_NAME_PATTERNS: List[Pattern[str]] = [
    # hashes and random strings
    re.compile(r"^[a-f0-9]{8,}$", _I),
    re.compile(r"^[a-z0-9]{24,}$", _I),
    re.compile(r"^[a-f0-9-]{32,}$", _I),
    # camera and phone captures
    re.compile(r"^IMG_\d{8}[-_]?\d{6}", _I),
    re.compile(r"^DSC_?\d{4,}", _I),
    re.compile(r"^DCIM_?\d+", _I),
    re.compile(r"^P_?\d{8}[-_]?\d{6}", _I),
    re.compile(r"^VID_\d{8}[-_]?\d{6}", _I),
    re.compile(r"^PHOTO[-_]?\d+", _I),
    re.compile(r"^VIDEO[-_]?\d+", _I),
    re.compile(r"^PXL_\d{8}[-_]?\d+", _I),
    # screenshot tools and chat/meeting apps
    re.compile(r"^Screenshot_\d+", _I),
    re.compile(r"^Snipaste_\d+", _I),
    re.compile(r"^Screen\s?Shot\s?\d+", _I),
    re.compile(r"^屏幕截图\s?\d+"),
    re.compile(r"^截屏\d+"),
    re.compile(r"^企业微信截图[-_]?\d+"),
    re.compile(r"^微信图片[-_]?\d+"),
    re.compile(r"^QQ截图\d+"),
    re.compile(r"^钉钉截图[-_]?\d+"),
    re.compile(r"^飞书截图[-_]?\d+"),
    re.compile(r"^腾讯会议截图[-_]?\d+"),
    re.compile(r"^Wechat[-_]?\d+", _I),
    # raw timestamps
    re.compile(r"^\d{13,}$"),
    re.compile(r"^\d{10}$"),
    re.compile(r"^\d{8}[-_]?\d{6}$"),
    # placeholders
    re.compile(r"^tmp[_-]?[a-z0-9]+$", _I),
    re.compile(r"^temp[_-]?[a-z0-9]+$", _I),
    re.compile(r"^download[_-]?\(?\d*\)?$", _I),
    re.compile(r"^untitled[-_]?\d*$", _I),
    re.compile(r"^unnamed[-_]?\d*$", _I),
    re.compile(r"^新建[文档文本表格幻灯片]*[-_]?\d*$"),
    re.compile(r"^未命名[-_]?\d*$"),
    re.compile(r"^副本[-_]?\d*$"),
    re.compile(r"^文档\d*$"),
    re.compile(r"^new[\s_-]?(document|file|folder)[\s_-]?\(?\d*\)?$", _I),
    re.compile(r"^copy(\s?of)?(\b|_)", _I),
    re.compile(r"^复制\s?"),
    re.compile(r"^\(\d+\)$"),
    # partial-UUID download artifacts
    re.compile(r"^[a-z0-9]{8}-[a-z0-9]{4}-[a-z0-9]{4}", _I),
]

DOCUMENT_NAMING_EXTS = {
    ".doc",
    ".docx",
    ".pdf",
    ".txt",
    ".rtf",
    ".odt",
    ".md",
    ".xls",
    ".xlsx",
    ".csv",
    ".ppt",
    ".pptx",
    ".key",
}

_YEAR_FIRST_DATE = re.compile(r"(\d{4})[-_]?(\d{2})[-_]?(\d{2})")
_YEAR_LAST_DATE = re.compile(r"(\d{2})[-_](\d{2})[-_](\d{4})")
_CAPTURE_PREFIX = re.compile(r"^(IMG_|DSC_?|VID_|PXL_|Screenshot_|Snipaste_|P_|DCIM_)", _I)
_LEADING_TIMESTAMPS = [
    re.compile(r"^\d{8}[-_]?\d{6}[-_]?"),
    re.compile(r"^\d{4}[-_]\d{2}[-_]\d{2}[-_]?"),
    re.compile(r"^\d{13,}[-_]?"),
]
_OUTSIDE_ALLOWED = re.compile(r"[^\u4e00-\u9fa5a-zA-Z0-9\-_]")

DEFAULT_DOCUMENT_LABEL = "Document"
DEFAULT_GENERIC_LABEL = "File"


class RenameAdvice(NamedTuple):
    needs_rename: bool
    suggested_name: str


def split_name(name: str) -> Tuple[str, str]:
    stem, ext = os.path.splitext(name)
    return stem, ext


def is_messy_name(name: str) -> bool:
    stem, _ = split_name(name)
    if len(stem) < MIN_MESSY_STEM_LENGTH:
        return False
    return any(pattern.search(stem) for pattern in MESSY_NAME_PATTERNS)


def _valid_date(year: int, month: int, day: int) -> Optional[date]:
    if not 1900 <= year <= 2100:
        return None
    try:
        return date(year, month, day)
    except ValueError:
        return None


def date_from_name(name: str) -> Optional[date]:
    stem, _ = split_name(name)
    for match in _YEAR_FIRST_DATE.finditer(stem):
        year, month, day = (int(part) for part in match.groups())
        found = _valid_date(year, month, day)
        if found:
            return found
    for match in _YEAR_LAST_DATE.finditer(stem):
        first, second, year = (int(part) for part in match.groups())
        found = _valid_date(year, second, first) or _valid_date(year, first, second)
        if found:
            return found
    return None


def date_token(
    name: str,
    modified: Optional[datetime],
    clock: Callable[[], date] = date.today,
) -> str:
    found = date_from_name(name)
    if found is None and modified is not None:
        found = modified.date()
    if found is None:
        found = clock()
    return found.strftime("%Y%m%d")


def clean_name(name: str) -> str:
    stem, _ = split_name(name)
    cleaned = _CAPTURE_PREFIX.sub("", stem)
    for pattern in _LEADING_TIMESTAMPS:
        cleaned = pattern.sub("", cleaned)
    cleaned = _OUTSIDE_ALLOWED.sub("", cleaned)
    cleaned = cleaned[:MAX_CLEAN_NAME_LENGTH]
    return cleaned.strip().strip("-_")


def _sanitize_filename(name: str) -> str:
    cleaned = re.sub(r"[\\/]+", "-", name)
    cleaned = re.sub(r"[\r\n\t]+", " ", cleaned)
    cleaned = re.sub(r"\s+", " ", cleaned).strip()
    cleaned = cleaned.strip(".")
    cleaned = re.sub(r"[^\w .,\-()&\[\]]", "", cleaned)
    if not cleaned or cleaned in {".", ".."}:
        return ""
    if len(cleaned) > 120:
        cleaned = cleaned[:120].rstrip()
    return cleaned


def normalize_target_name(proposed: str, original: str) -> Optional[str]:
    """Normalize a user-edited name so it stays a bare file name with the original extension."""
    if not proposed:
        return None
    base = _sanitize_filename(Path(str(proposed)).name)
    if not base:
        return None
    stem, suffix = split_name(base)
    stem = stem.strip()
    if not stem:
        return None
    _, original_suffix = split_name(original)
    if not suffix or suffix.lower() != original_suffix.lower():
        return f"{stem}{original_suffix}"
    return f"{stem}{suffix}"


def default_user_name() -> str:
    try:
        name = getpass.getuser()
    except (KeyError, OSError):
        return "user"
    return name or "user"


class RenameAdvisor:
    def __init__(
        self,
        *,
        user_name: Optional[str] = None,
        clock: Callable[[], date] = date.today,
        labels: Optional[Dict[str, str]] = None,
    ) -> None:
        raw_user = user_name or default_user_name()
        self.user_name = re.sub(r"[\\/\s]+", "-", raw_user).strip("-") or "user"
        self.clock = clock
        self.labels = {
            "document": DEFAULT_DOCUMENT_LABEL,
            "screenshot": Category.SCREENSHOT.value,
            "generic": DEFAULT_GENERIC_LABEL,
        }
        if labels:
            self.labels.update(labels)

    def advise(self, entry: ScannedEntry, category: Category) -> RenameAdvice:
        if entry.is_directory or entry.is_symlink or is_shortcut_name(entry.name):
            return RenameAdvice(False, entry.name)
        if category is Category.SHORTCUT or not is_messy_name(entry.name):
            return RenameAdvice(False, entry.name)
        return RenameAdvice(True, self.suggest_name(entry, category))

    def suggest_name(self, entry: ScannedEntry, category: Category) -> str:
        token = date_token(entry.name, entry.modified, self.clock)
        cleaned = clean_name(entry.name)
        ext = entry.extension
        if ext in DOCUMENT_NAMING_EXTS:
            return f"{token}_{self.user_name}_{cleaned or self.labels['document']}{ext}"
        if category is Category.SCREENSHOT:
            return f"{token}_{self.labels['screenshot']}{ext}"
        if cleaned:
            return f"{token}_{cleaned}{ext}"
        label = category.value if category is not Category.OTHER else self.labels["generic"]
        return f"{token}_{label}{ext}"


def advise_rename(
    entry: ScannedEntry,
    category: Category,
    *,
    user_name: Optional[str] = None,
    clock: Callable[[], date] = date.today,
) -> RenameAdvice:
    return RenameAdvisor(user_name=user_name, clock=clock).advise(entry, category)
