import sys
import unittest
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1] / "src"))

from zhili.classify import classify, is_shortcut_name  # noqa: E402
from zhili.models import Category  # noqa: E402


class ClassifyTests(unittest.TestCase):
    def test_keyword_overrides_extension(self) -> None:
        self.assertEqual(classify("合同-资料.jpg"), Category.CONTRACT)
        self.assertEqual(classify("invoice_march.png"), Category.INVOICE)

    def test_screenshot_name_beats_image_extension(self) -> None:
        self.assertEqual(classify("Screenshot_2024-01-08.png"), Category.SCREENSHOT)
        self.assertEqual(classify("screen-recording-still.jpg"), Category.SCREENSHOT)

    def test_keyword_table_order(self) -> None:
        self.assertEqual(classify("contract_invoice.pdf"), Category.INVOICE)
        self.assertEqual(classify("user-manual.pdf"), Category.MANUAL)
        self.assertEqual(classify("quarterly report.xlsx"), Category.DOCUMENT)

    def test_extension_table(self) -> None:
        self.assertEqual(classify("beach.jpg"), Category.IMAGE)
        self.assertEqual(classify("song.mp3"), Category.AUDIO)
        self.assertEqual(classify("movie.MKV"), Category.VIDEO)
        self.assertEqual(classify("backup.tar.gz"), Category.ARCHIVE)
        self.assertEqual(classify("main.py"), Category.CODE)
        self.assertEqual(classify("setup.exe"), Category.PROGRAM)
        self.assertEqual(classify("notes.md"), Category.DOCUMENT)

    def test_unknown_extension_is_other(self) -> None:
        self.assertEqual(classify("mystery.dat"), Category.OTHER)
        self.assertEqual(classify("Makefile"), Category.OTHER)

    def test_shortcuts_and_symlinks(self) -> None:
        self.assertEqual(classify("Chrome.lnk"), Category.SHORTCUT)
        self.assertEqual(classify("invoice.url"), Category.SHORTCUT)
        self.assertEqual(classify("photo.jpg", is_symlink=True), Category.SHORTCUT)
        self.assertTrue(is_shortcut_name("app.desktop"))
        self.assertFalse(is_shortcut_name("app.exe"))

    def test_directories(self) -> None:
        self.assertEqual(classify("node_modules", is_directory=True), Category.CODE)
        self.assertEqual(classify(".git", is_directory=True), Category.CODE)
        self.assertEqual(classify("照片2023", is_directory=True), Category.IMAGE)
        self.assertEqual(classify("Old Downloads", is_directory=True), Category.DOWNLOAD)
        self.assertEqual(classify("Misc", is_directory=True), Category.FOLDER)

    def test_symlink_wins_over_directory(self) -> None:
        self.assertEqual(classify("src", is_directory=True, is_symlink=True), Category.SHORTCUT)

    def test_classify_is_deterministic(self) -> None:
        names = ["a.jpg", "合同.pdf", "x", "", "IMG_0001.HEIC", "Snipaste_2024.png"]
        for name in names:
            first = classify(name)
            self.assertIsInstance(first, Category)
            self.assertEqual(first, classify(name))


if __name__ == "__main__":
    unittest.main()
