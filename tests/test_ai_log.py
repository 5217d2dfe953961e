import json
import sys
import tempfile
import unittest
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1] / "src"))

from zhili.ai_log import (  # noqa: E402
    append_ai_log,
    build_log_entry,
    resolve_log_path,
)


class AiLogTests(unittest.TestCase):
    def test_resolve_log_path_relative(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp)
            resolved = resolve_log_path(".zhili/ai-interactions.jsonl", root)
            self.assertEqual(resolved, root / ".zhili" / "ai-interactions.jsonl")

    def test_resolve_log_path_empty(self) -> None:
        self.assertIsNone(resolve_log_path("", Path("/tmp")))
        self.assertIsNone(resolve_log_path(None, Path("/tmp")))

    def test_build_log_entry_drops_file_names(self) -> None:
        entry = build_log_entry(
            backend="command",
            model=None,
            prompt_chars=10,
            response_chars=5,
            duration_ms=12,
            success=True,
            error_type=None,
            context={
                "operation": "classify",
                "batch_size": 3,
                "merged": 2,
                "names": ["secret.pdf"],
            },
        )
        self.assertEqual(entry["context"], {"operation": "classify", "batch_size": 3})
        self.assertNotIn("model", entry)

    def test_append_ai_log_writes_jsonl(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            log_path = Path(tmp) / ".zhili" / "ai-interactions.jsonl"
            for success in (True, False):
                entry = build_log_entry(
                    backend="ollama",
                    model="test",
                    prompt_chars=3,
                    response_chars=2,
                    duration_ms=7,
                    success=success,
                    error_type=None if success else "URLError",
                    context=None,
                )
                append_ai_log(log_path, entry)
            lines = log_path.read_text(encoding="utf-8").splitlines()
            self.assertEqual(len(lines), 2)
            parsed = json.loads(lines[1])
            self.assertEqual(parsed["event"], "oracle.classify")
            self.assertEqual(parsed["error_type"], "URLError")


if __name__ == "__main__":
    unittest.main()
