from typing import Dict, Iterable, List, Optional, Tuple

from .models import Category
from .util import file_extension

SHORTCUT_EXTS = {".lnk", ".desktop", ".url", ".webloc"}
IMAGE_EXTS = {
    ".jpg",
    ".jpeg",
    ".png",
    ".gif",
    ".bmp",
    ".webp",
    ".svg",
    ".ico",
    ".tiff",
    ".raw",
    ".heic",
    ".heif",
}
SCREENSHOT_IMAGE_EXTS = {".jpg", ".jpeg", ".png", ".gif", ".webp"}
VIDEO_EXTS = {
    ".mp4",
    ".avi",
    ".mov",
    ".wmv",
    ".flv",
    ".mkv",
    ".webm",
    ".m4v",
    ".rmvb",
    ".rm",
    ".3gp",
}
AUDIO_EXTS = {".mp3", ".wav", ".flac", ".aac", ".ogg", ".wma", ".m4a", ".ape"}
DOC_EXTS = {
    ".doc",
    ".docx",
    ".pdf",
    ".txt",
    ".rtf",
    ".odt",
    ".md",
    ".epub",
    ".xls",
    ".xlsx",
    ".csv",
    ".ppt",
    ".pptx",
    ".key",
}
ARCHIVE_EXTS = {".zip", ".rar", ".7z", ".tar", ".gz", ".bz2", ".xz"}
CODE_EXTS = {
    ".js",
    ".jsx",
    ".ts",
    ".tsx",
    ".py",
    ".java",
    ".c",
    ".cpp",
    ".h",
    ".hpp",
    ".css",
    ".scss",
    ".less",
    ".html",
    ".htm",
    ".vue",
    ".json",
    ".xml",
    ".sql",
    ".sh",
    ".bat",
    ".ps1",
    ".go",
    ".rs",
    ".rb",
    ".php",
    ".swift",
    ".kt",
    ".scala",
    ".r",
    ".m",
    ".lua",
    ".yml",
    ".yaml",
    ".toml",
    ".ini",
}
PROGRAM_EXTS = {".exe", ".msi", ".dmg", ".app", ".apk", ".deb", ".rpm", ".pkg"}


def _ext_table(groups: Iterable[Tuple[Iterable[str], Category]]) -> Dict[str, Category]:
    table: Dict[str, Category] = {}
    for exts, category in groups:
        for ext in exts:
            table[ext] = category
    return table


EXTENSION_CATEGORIES: Dict[str, Category] = _ext_table(
    [
        (IMAGE_EXTS, Category.IMAGE),
        (VIDEO_EXTS, Category.VIDEO),
        (AUDIO_EXTS, Category.AUDIO),
        (DOC_EXTS, Category.DOCUMENT),
        (ARCHIVE_EXTS, Category.ARCHIVE),
        (CODE_EXTS, Category.CODE),
        (PROGRAM_EXTS, Category.PROGRAM),
        (SHORTCUT_EXTS, Category.SHORTCUT),
    ]
)

# Dependency, build and VCS directory names that mark a code project.
PROJECT_MARKER_DIRS = {
    "node_modules",
    "src",
    "dist",
    "build",
    "lib",
    "bin",
    "out",
    "target",
    "test",
    "tests",
    "__tests__",
    "spec",
    "specs",
    "coverage",
    ".git",
    ".svn",
    ".hg",
    ".vscode",
    ".idea",
    "packages",
    "vendor",
    "venv",
    "env",
    ".env",
    "__pycache__",
}

# Order matters: the first rule with a matching keyword wins.
KEYWORD_RULES: List[Tuple[Tuple[str, ...], Category]] = [
    (("发票", "invoice", "receipt", "收据"), Category.INVOICE),
    (("合同", "contract", "协议", "agreement"), Category.CONTRACT),
    (("截图", "screenshot", "snip", "capture"), Category.SCREENSHOT),
    (("说明书", "manual", "guide", "指南", "教程"), Category.MANUAL),
    (("简历", "resume", "cv"), Category.DOCUMENT),
    (("报告", "report"), Category.DOCUMENT),
]

FOLDER_KEYWORD_RULES: List[Tuple[Tuple[str, ...], Category]] = [
    (("图片", "images", "photos", "pictures", "img", "pic", "照片", "相册"), Category.IMAGE),
    (("视频", "videos", "movies", "电影", "影片", "video"), Category.VIDEO),
    (("音乐", "music", "audio", "歌曲", "songs"), Category.AUDIO),
    (("文档", "documents", "docs", "资料"), Category.DOCUMENT),
    (("代码", "code", "source", "project", "projects", "项目", "开发"), Category.CODE),
    (("下载", "downloads"), Category.DOWNLOAD),
    (("备份", "backup", "backups"), Category.BACKUP),
    (("程序", "software", "apps", "applications", "软件"), Category.PROGRAM),
]

SCREENSHOT_TOKENS = ("screenshot", "截图", "screen")


def is_shortcut_name(name: str) -> bool:
    return file_extension(name) in SHORTCUT_EXTS


def _match_rules(
    text: str, rules: List[Tuple[Tuple[str, ...], Category]]
) -> Optional[Category]:
    for keywords, category in rules:
        if any(keyword in text for keyword in keywords):
            return category
    return None


def _classify_directory(name: str) -> Category:
    lowered = name.lower()
    if lowered in PROJECT_MARKER_DIRS:
        return Category.CODE
    return _match_rules(lowered, FOLDER_KEYWORD_RULES) or Category.FOLDER


def classify(name: str, is_directory: bool = False, is_symlink: bool = False) -> Category:
    if is_symlink:
        return Category.SHORTCUT
    if is_directory:
        return _classify_directory(name)
    ext = file_extension(name)
    if ext in SHORTCUT_EXTS:
        return Category.SHORTCUT
    stem = name[: len(name) - len(ext)] if ext else name
    lowered = stem.lower()
    matched = _match_rules(lowered, KEYWORD_RULES)
    if matched:
        return matched
    if ext in SCREENSHOT_IMAGE_EXTS:
        if any(token in lowered for token in SCREENSHOT_TOKENS) or lowered.startswith("snip"):
            return Category.SCREENSHOT
    return EXTENSION_CATEGORIES.get(ext, Category.OTHER)
