import http.client
import json
import logging
import shutil
import subprocess
import time
import urllib.error
import urllib.request
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

from .ai_log import append_ai_log, build_log_entry, resolve_log_path
from .errors import OracleError
from .models import Category
from .util import extract_json_object

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 30
DEFAULT_TIMEOUT_SECONDS = 60.0

# Labels an oracle may assign; Folder, Shortcut and Other are never taken from it.
ORACLE_CATEGORIES = [
    Category.CONTRACT,
    Category.INVOICE,
    Category.SCREENSHOT,
    Category.MANUAL,
    Category.IMAGE,
    Category.VIDEO,
    Category.AUDIO,
    Category.DOCUMENT,
    Category.ARCHIVE,
    Category.CODE,
    Category.PROGRAM,
    Category.DOWNLOAD,
    Category.BACKUP,
]


def build_prompt(names: List[str]) -> str:
    payload = {
        "task": "Classify each file by its name.",
        "files": names,
        "categories": [category.value for category in ORACLE_CATEGORIES]
        + [Category.OTHER.value],
        "output_format": {
            "files": [
                {
                    "name": "file name exactly as given",
                    "category": "one of categories",
                    "reason": "optional short reason",
                }
            ]
        },
        "rules": [
            "Return only JSON. Do not include markdown or explanations.",
            "Use only the provided file names.",
            "Use Other when unsure.",
        ],
    }
    return json.dumps(payload, ensure_ascii=False, indent=2)


def parse_response(text: str) -> Dict[str, str]:
    parsed = extract_json_object(text or "")
    if not parsed:
        raise OracleError("Oracle response did not contain a JSON object.")
    files = parsed.get("files")
    if not isinstance(files, list):
        raise OracleError("Oracle response is missing the 'files' list.")
    labels: Dict[str, str] = {}
    for item in files:
        if not isinstance(item, dict):
            continue
        name = item.get("name")
        label = item.get("category")
        if isinstance(name, str) and isinstance(label, str) and name and label:
            labels[name] = label.strip()
    return labels


class ClassificationOracle:
    """Classifies a small batch of file names, or raises OracleError."""

    backend = "none"

    def classify_batch(self, names: List[str]) -> Dict[str, str]:
        raise NotImplementedError


class NullOracle(ClassificationOracle):
    def classify_batch(self, names: List[str]) -> Dict[str, str]:
        return {}


class _LoggingOracle(ClassificationOracle):
    model: Optional[str] = None

    def __init__(self, log_path: Optional[Path] = None) -> None:
        self.log_path = log_path

    def _log(
        self,
        *,
        prompt: str,
        response_text: str,
        start: float,
        error_type: Optional[str],
        batch_size: int,
    ) -> None:
        if not self.log_path:
            return
        entry = build_log_entry(
            backend=self.backend,
            model=self.model,
            prompt_chars=len(prompt),
            response_chars=len(response_text),
            duration_ms=int((time.perf_counter() - start) * 1000),
            success=error_type is None,
            error_type=error_type,
            context={"operation": "classify", "batch_size": batch_size},
        )
        append_ai_log(self.log_path, entry)


class OllamaOracle(_LoggingOracle):
    backend = "ollama"

    def __init__(
        self,
        base_url: str,
        model: str,
        *,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        log_path: Optional[Path] = None,
    ) -> None:
        super().__init__(log_path)
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.timeout = timeout

    def classify_batch(self, names: List[str]) -> Dict[str, str]:
        prompt = build_prompt(names)
        payload: Dict[str, Any] = {
            "model": self.model,
            "prompt": prompt,
            "system": "You are a careful file classification assistant. Return only JSON.",
            "stream": False,
            "temperature": 0.2,
        }
        req = urllib.request.Request(
            f"{self.base_url}/api/generate",
            data=json.dumps(payload).encode("utf-8"),
            headers={"Content-Type": "application/json"},
            method="POST",
        )
        start = time.perf_counter()
        try:
            with urllib.request.urlopen(req, timeout=self.timeout) as resp:
                raw = resp.read().decode("utf-8", errors="replace")
        except (urllib.error.URLError, OSError, http.client.HTTPException) as exc:
            self._log(
                prompt=prompt,
                response_text="",
                start=start,
                error_type=type(exc).__name__,
                batch_size=len(names),
            )
            raise OracleError(f"Ollama request failed: {exc}") from exc
        try:
            parsed = json.loads(raw)
        except json.JSONDecodeError as exc:
            self._log(
                prompt=prompt,
                response_text="",
                start=start,
                error_type=type(exc).__name__,
                batch_size=len(names),
            )
            raise OracleError("Ollama returned invalid JSON") from exc
        if not isinstance(parsed, dict) or "response" not in parsed:
            self._log(
                prompt=prompt,
                response_text="",
                start=start,
                error_type="MissingResponseField",
                batch_size=len(names),
            )
            raise OracleError("Ollama response missing 'response' field")
        response_text = str(parsed["response"])
        self._log(
            prompt=prompt,
            response_text=response_text,
            start=start,
            error_type=None,
            batch_size=len(names),
        )
        return parse_response(response_text)


class CommandOracle(_LoggingOracle):
    """Asks an external AI command line tool (``<command> ask <prompt>``)."""

    backend = "command"

    def __init__(
        self,
        command: str,
        *,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        log_path: Optional[Path] = None,
    ) -> None:
        super().__init__(log_path)
        self.command = command
        self.timeout = timeout

    def is_available(self) -> bool:
        return shutil.which(self.command) is not None

    def classify_batch(self, names: List[str]) -> Dict[str, str]:
        prompt = build_prompt(names)
        start = time.perf_counter()
        try:
            result = subprocess.run(
                [self.command, "ask", prompt],
                capture_output=True,
                text=True,
                encoding="utf-8",
                errors="replace",
                check=False,
                timeout=self.timeout,
            )
        except subprocess.TimeoutExpired as exc:
            self._log(
                prompt=prompt,
                response_text="",
                start=start,
                error_type="TimeoutExpired",
                batch_size=len(names),
            )
            raise OracleError(f"{self.command} timed out after {self.timeout}s") from exc
        except (OSError, ValueError) as exc:
            self._log(
                prompt=prompt,
                response_text="",
                start=start,
                error_type=type(exc).__name__,
                batch_size=len(names),
            )
            raise OracleError(f"{self.command} could not be started: {exc}") from exc
        if result.returncode != 0 or not result.stdout.strip():
            self._log(
                prompt=prompt,
                response_text=result.stdout or "",
                start=start,
                error_type=f"ExitCode{result.returncode}",
                batch_size=len(names),
            )
            raise OracleError(
                f"{self.command} failed with code {result.returncode}: {result.stderr.strip()}"
            )
        self._log(
            prompt=prompt,
            response_text=result.stdout,
            start=start,
            error_type=None,
            batch_size=len(names),
        )
        return parse_response(result.stdout)


def consult_oracle(
    oracle: Optional[ClassificationOracle],
    names: Iterable[str],
    *,
    batch_size: int = DEFAULT_BATCH_SIZE,
) -> Dict[str, Category]:
    """Ask the oracle about names the local rules left as Other.

    Any failure yields an empty result. Only exact name matches with a known,
    non-Other label are returned.
    """
    if oracle is None or isinstance(oracle, NullOracle) or batch_size <= 0:
        return {}
    batch = list(dict.fromkeys(names))
    if not batch:
        return {}
    if len(batch) > batch_size:
        logger.info(
            "Skipping classification oracle: %d unresolved file(s) exceed batch size %d",
            len(batch),
            batch_size,
        )
        return {}
    try:
        labels = oracle.classify_batch(batch)
    except (OracleError, ValueError) as exc:
        logger.warning("Classification oracle unavailable, using local rules: %s", exc)
        return {}
    if not isinstance(labels, dict):
        logger.warning("Classification oracle returned %s, ignoring", type(labels).__name__)
        return {}
    allowed = set(batch)
    merged: Dict[str, Category] = {}
    for name, label in labels.items():
        if name not in allowed:
            continue
        category = Category.from_label(label)
        if category in ORACLE_CATEGORIES:
            merged[name] = category
    logger.info("Classification oracle resolved %d of %d file(s)", len(merged), len(batch))
    return merged


def build_oracle(cfg: Dict[str, Any], root: Optional[Path] = None) -> ClassificationOracle:
    kind = str(cfg.get("oracle") or "none").strip().lower()
    timeout = float(cfg.get("oracle_timeout_seconds") or DEFAULT_TIMEOUT_SECONDS)
    log_path = resolve_log_path(cfg.get("ai_log_path"), root)
    if kind == "ollama":
        return OllamaOracle(
            str(cfg.get("ollama_base_url") or "http://localhost:11434"),
            str(cfg.get("model") or ""),
            timeout=timeout,
            log_path=log_path,
        )
    if kind == "command":
        oracle = CommandOracle(
            str(cfg.get("oracle_command") or "opencode"),
            timeout=timeout,
            log_path=log_path,
        )
        if not oracle.is_available():
            logger.info("%s not found on PATH, using local rules only", oracle.command)
            return NullOracle()
        return oracle
    return NullOracle()
