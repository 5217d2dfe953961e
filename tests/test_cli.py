import contextlib
import io
import os
import sys
import tempfile
import unittest
from pathlib import Path
from unittest import mock

sys.path.insert(0, str(Path(__file__).resolve().parents[1] / "src"))

from zhili import cli  # noqa: E402
from zhili.config import load_config  # noqa: E402


class CliTests(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self._tmp.cleanup)
        base = Path(self._tmp.name)
        self.root = base / "inbox"
        self.root.mkdir()
        with mock.patch.dict(os.environ, {}, clear=True):
            self.cfg = load_config(base / "config.json")
        self.cfg["backup_dir"] = str(base / "backups")
        self.cfg["user_name"] = "alice"
        patcher = mock.patch.object(cli, "load_config", return_value=self.cfg)
        patcher.start()
        self.addCleanup(patcher.stop)

    def run_cli(self, *argv: str) -> str:
        out = io.StringIO()
        with contextlib.redirect_stdout(out):
            code = cli.main(list(argv))
        self.assertEqual(code, 0, out.getvalue())
        return out.getvalue()

    def test_plan_apply_undo(self) -> None:
        for name in ("a.jpg", "b.jpg", "c.jpg"):
            (self.root / name).write_text(name, encoding="utf-8")
        plan_path = self.root / ".zhili" / "plan.json"

        output = self.run_cli("plan", str(self.root), "--out", str(plan_path))
        self.assertIn("a.jpg -> Image/a.jpg", output)
        self.assertTrue(plan_path.exists())

        self.run_cli("apply", str(plan_path))
        self.assertTrue((self.root / "Image" / "a.jpg").exists())

        output = self.run_cli("undo", str(self.root))
        self.assertIn("Restored: 3", output)
        self.assertFalse((self.root / "Image").exists())
        self.assertEqual(sorted(p.name for p in self.root.glob("*.jpg")), ["a.jpg", "b.jpg", "c.jpg"])

    def test_organize_is_dry_run_by_default(self) -> None:
        for name in ("a.jpg", "b.jpg", "c.jpg"):
            (self.root / name).write_text(name, encoding="utf-8")
        output = self.run_cli("organize", str(self.root))
        self.assertIn("Dry run", output)
        self.assertFalse((self.root / "Image").exists())

    def test_duplicates_listing(self) -> None:
        (self.root / "one.txt").write_text("same", encoding="utf-8")
        (self.root / "two.txt").write_text("same", encoding="utf-8")
        output = self.run_cli("duplicates", str(self.root))
        self.assertIn("[keep] one.txt", output)
        self.assertIn("[dup ] two.txt", output)

    def test_undo_without_log(self) -> None:
        out = io.StringIO()
        with contextlib.redirect_stdout(out):
            code = cli.main(["undo", str(self.root)])
        self.assertEqual(code, 1)
        self.assertIn("Undo log not found.", out.getvalue())

    def test_errors_exit_with_code_one(self) -> None:
        err = io.StringIO()
        with contextlib.redirect_stderr(err):
            code = cli.main(["organize", str(self.root / "missing")])
        self.assertEqual(code, 1)
        self.assertIn("Cannot read folder", err.getvalue())


if __name__ == "__main__":
    unittest.main()
