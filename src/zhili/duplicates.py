import logging
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional

from .errors import HashError
from .hashing import DEFAULT_ALGORITHM, DEFAULT_CHUNK_SIZE, hash_file
from .models import DuplicateGroup, DuplicateMember

logger = logging.getLogger(__name__)


def _as_member(item: object) -> DuplicateMember:
    if isinstance(item, DuplicateMember):
        return DuplicateMember(path=item.path, name=item.name, size=item.size)
    if isinstance(item, dict):
        return DuplicateMember.from_dict(item)
    path = Path(getattr(item, "path"))
    return DuplicateMember(
        path=path,
        name=str(getattr(item, "name", path.name)),
        size=int(getattr(item, "size", 0)),
    )


def _size_candidates(entries: Iterable[object]) -> List[DuplicateMember]:
    by_size: Dict[int, List[DuplicateMember]] = {}
    seen = set()
    for item in entries:
        member = _as_member(item)
        if member.size <= 0 or member.path in seen:
            continue
        seen.add(member.path)
        by_size.setdefault(member.size, []).append(member)
    candidates: List[DuplicateMember] = []
    for members in by_size.values():
        if len(members) > 1:
            candidates.extend(members)
    return candidates


def detect_duplicates(
    entries: Iterable[object],
    *,
    algorithm: str = DEFAULT_ALGORITHM,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    workers: int = 1,
    hasher: Optional[Callable[[Path], str]] = None,
) -> List[DuplicateGroup]:
    """Group files with identical content.

    Files are first partitioned by byte size; only partitions with two or
    more members are hashed. Zero-byte files never form a group. Unreadable
    files are dropped from their partition. The first member of each group
    in input order is the default keeper, independent of hashing order.
    """
    candidates = _size_candidates(entries)
    if not candidates:
        return []

    def digest(member: DuplicateMember) -> Optional[str]:
        try:
            if hasher is not None:
                return hasher(member.path)
            return hash_file(member.path, algorithm=algorithm, chunk_size=chunk_size)
        except HashError as exc:
            logger.warning("Skipping unreadable file in duplicate scan: %s", exc)
            return None

    if workers > 1:
        with ThreadPoolExecutor(max_workers=workers) as pool:
            digests = list(pool.map(digest, candidates))
    else:
        digests = [digest(member) for member in candidates]

    by_hash: Dict[tuple, List[DuplicateMember]] = {}
    for member, value in zip(candidates, digests):
        if value is None:
            continue
        by_hash.setdefault((member.size, value), []).append(member)

    groups: List[DuplicateGroup] = []
    for (_size, value), members in by_hash.items():
        if len(members) < 2:
            continue
        groups.append(DuplicateGroup(hash=value, files=members, keep_index=0))
    logger.debug("Duplicate scan: %d candidates, %d groups", len(candidates), len(groups))
    return groups
