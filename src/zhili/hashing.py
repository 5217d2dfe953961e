import hashlib
from pathlib import Path

from .errors import HashError

DEFAULT_ALGORITHM = "md5"
DEFAULT_CHUNK_SIZE = 1024 * 1024


def hash_file(
    path: Path,
    *,
    algorithm: str = DEFAULT_ALGORITHM,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
) -> str:
    if chunk_size <= 0:
        raise ValueError("chunk_size must be positive")
    try:
        hasher = hashlib.new(algorithm)
    except ValueError as exc:
        raise ValueError(f"Unsupported hash algorithm: {algorithm}") from exc
    try:
        with Path(path).open("rb") as handle:
            for chunk in iter(lambda: handle.read(chunk_size), b""):
                hasher.update(chunk)
    except OSError as exc:
        raise HashError(Path(path), exc.strerror or str(exc)) from exc
    return hasher.hexdigest()
