import json
import os
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Optional


def is_hidden_name(name: str) -> bool:
    return name.startswith(".") or name.startswith("$")


def extract_json_object(text: str) -> Optional[dict]:
    start = text.find("{")
    if start == -1:
        return None
    depth = 0
    for i in range(start, len(text)):
        if text[i] == "{":
            depth += 1
        elif text[i] == "}":
            depth -= 1
            if depth == 0:
                try:
                    parsed = json.loads(text[start : i + 1])
                except json.JSONDecodeError:
                    return None
                return parsed if isinstance(parsed, dict) else None
    return None


def file_extension(name: str) -> str:
    return os.path.splitext(name)[1].lower()


def ensure_dir(path: Path) -> None:
    os.makedirs(path, exist_ok=True)


def to_iso(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    return value.isoformat()


def parse_iso(value: object) -> Optional[datetime]:
    if not isinstance(value, str) or not value:
        return None
    text = value[:-1] + "+00:00" if value.endswith("Z") else value
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        return None


def utc_stamp() -> str:
    return datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%SZ")


def new_id() -> str:
    return f"{utc_stamp()}-{uuid.uuid4().hex[:9]}"


def unique_path(target: Path, is_taken: Callable[[Path], bool]) -> Path:
    """Return ``target`` or the first ``stem_N.ext`` sibling not taken."""
    if not is_taken(target):
        return target
    stem = target.stem
    suffix = target.suffix
    parent = target.parent
    counter = 1
    while True:
        candidate = parent / f"{stem}_{counter}{suffix}"
        if not is_taken(candidate):
            return candidate
        counter += 1
