import json
import os
from pathlib import Path
from typing import Any, Dict, Optional

CONFIG_DIR = Path.home() / ".config" / "zhili"
CONFIG_FILE = CONFIG_DIR / "config.json"

DEFAULT_CONFIG: Dict[str, Any] = {
    "user_name": None,
    "oracle": "none",
    "ollama_base_url": "http://localhost:11434",
    "model": "gpt-oss:20b",
    "oracle_command": "opencode",
    "oracle_timeout_seconds": 60,
    "oracle_batch_size": 30,
    "folder_threshold": 3,
    "backup_dir": None,
    "history_size": 10,
    "hash_chunk_size": 1024 * 1024,
    "hash_workers": 1,
    "ai_log_path": ".zhili/ai-interactions.jsonl",
}

ENV_OVERRIDES = {
    "ZHILI_USER_NAME": "user_name",
    "ZHILI_ORACLE": "oracle",
    "ZHILI_OLLAMA_BASE_URL": "ollama_base_url",
    "ZHILI_MODEL": "model",
    "ZHILI_ORACLE_COMMAND": "oracle_command",
    "ZHILI_BACKUP_DIR": "backup_dir",
    "ZHILI_AI_LOG_PATH": "ai_log_path",
}

_INT_KEYS = {
    "oracle_batch_size",
    "folder_threshold",
    "history_size",
    "hash_chunk_size",
    "hash_workers",
}


def _apply_env_overrides(cfg: Dict[str, Any]) -> Dict[str, Any]:
    updated = dict(cfg)
    for env_key, cfg_key in ENV_OVERRIDES.items():
        value = os.environ.get(env_key)
        if value:
            updated[cfg_key] = value
    return updated


def _coerce(cfg: Dict[str, Any]) -> Dict[str, Any]:
    coerced = dict(cfg)
    for key in _INT_KEYS:
        try:
            coerced[key] = int(coerced[key])
        except (TypeError, ValueError):
            coerced[key] = DEFAULT_CONFIG[key]
    try:
        coerced["oracle_timeout_seconds"] = float(coerced["oracle_timeout_seconds"])
    except (TypeError, ValueError):
        coerced["oracle_timeout_seconds"] = float(DEFAULT_CONFIG["oracle_timeout_seconds"])
    return coerced


def load_config(path: Optional[Path] = None) -> Dict[str, Any]:
    config_file = Path(path) if path else CONFIG_FILE
    if not config_file.exists():
        config_file.parent.mkdir(parents=True, exist_ok=True)
        config_file.write_text(json.dumps(DEFAULT_CONFIG, indent=2), encoding="utf-8")
    cfg = json.loads(config_file.read_text(encoding="utf-8"))
    if not isinstance(cfg, dict):
        cfg = {}
    merged = dict(DEFAULT_CONFIG)
    merged.update(cfg)
    if merged != cfg:
        config_file.write_text(json.dumps(merged, indent=2), encoding="utf-8")
    return _coerce(_apply_env_overrides(merged))


def config_path() -> Path:
    return CONFIG_FILE
