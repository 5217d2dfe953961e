import logging
import os
import stat
from datetime import datetime
from pathlib import Path
from typing import List

from .errors import ScanError
from .models import ScannedEntry
from .util import file_extension, is_hidden_name

logger = logging.getLogger(__name__)

STATE_DIR_NAME = ".zhili"


def scan(path: Path, *, include_hidden: bool = False) -> List[ScannedEntry]:
    """List one directory level as ScannedEntry records sorted by name.

    Entries are stat'ed without following symlinks. Hidden (``.``) and
    system (``$``) names are skipped unless ``include_hidden`` is set; the
    zhili state directory is always skipped.
    """
    root = Path(path).expanduser()
    try:
        with os.scandir(root) as it:
            dir_entries = list(it)
    except OSError as exc:
        raise ScanError(f"Cannot read folder {root}: {exc.strerror or exc}") from exc

    entries: List[ScannedEntry] = []
    for item in dir_entries:
        if item.name == STATE_DIR_NAME:
            continue
        if not include_hidden and is_hidden_name(item.name):
            continue
        try:
            info = item.stat(follow_symlinks=False)
        except OSError as exc:
            logger.warning("Skipping inaccessible entry %s: %s", item.path, exc)
            continue
        is_symlink = stat.S_ISLNK(info.st_mode)
        is_directory = stat.S_ISDIR(info.st_mode)
        entries.append(
            ScannedEntry(
                name=item.name,
                path=root / item.name,
                size=0 if is_directory else info.st_size,
                modified=datetime.fromtimestamp(info.st_mtime),
                extension="" if is_directory else file_extension(item.name),
                is_directory=is_directory,
                is_symlink=is_symlink,
            )
        )
    entries.sort(key=lambda entry: entry.name)
    logger.debug("Scanned %s: %d entries", root, len(entries))
    return entries
