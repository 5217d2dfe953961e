import sys
import unittest
from datetime import date, datetime
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1] / "src"))

from zhili.models import Category, ScannedEntry  # noqa: E402
from zhili.rename import (  # noqa: E402
    RenameAdvisor,
    advise_rename,
    clean_name,
    date_from_name,
    date_token,
    is_messy_name,
    normalize_target_name,
)

FIXED_DAY = date(2024, 6, 1)


def _entry(name: str, *, modified: datetime = datetime(2024, 2, 3, 9, 30), **kwargs) -> ScannedEntry:
    ext = Path(name).suffix.lower() if not kwargs.get("is_directory") else ""
    return ScannedEntry(
        name=name,
        path=Path("/data/inbox") / name,
        size=10,
        modified=modified,
        extension=ext,
        **kwargs,
    )


class MessyNameTests(unittest.TestCase):
    def test_capture_names_are_messy(self) -> None:
        self.assertTrue(is_messy_name("IMG_20231215_143022.jpg"))
        self.assertTrue(is_messy_name("DSC01234.JPG"))
        self.assertTrue(is_messy_name("微信图片_20240101.png"))
        self.assertTrue(is_messy_name("Screenshot_20240108_101010.png"))

    def test_placeholders_are_messy(self) -> None:
        self.assertTrue(is_messy_name("untitled.txt"))
        self.assertTrue(is_messy_name("New Document (2).docx"))
        self.assertTrue(is_messy_name("Copy of invoice.pdf"))
        self.assertTrue(is_messy_name("1700000000000.png"))
        self.assertTrue(is_messy_name("3f2a9c1d8e7b.bin"))

    def test_meaningful_names_are_not_messy(self) -> None:
        self.assertFalse(is_messy_name("年度报告.docx"))
        self.assertFalse(is_messy_name("vacation-photos.jpg"))
        self.assertFalse(is_messy_name("copyright.txt"))

    def test_short_names_are_never_messy(self) -> None:
        self.assertFalse(is_messy_name("tmp.txt"))
        self.assertFalse(is_messy_name("(1).pdf"))


class DateTokenTests(unittest.TestCase):
    def test_year_first_date_in_name(self) -> None:
        self.assertEqual(date_from_name("IMG_20231215_143022.jpg"), date(2023, 12, 15))
        self.assertEqual(date_from_name("Screenshot_2024-01-08.png"), date(2024, 1, 8))

    def test_day_month_year_date_in_name(self) -> None:
        self.assertEqual(date_from_name("scan_15-03-2024.pdf"), date(2024, 3, 15))
        self.assertEqual(date_from_name("scan_03-25-2024.pdf"), date(2024, 3, 25))

    def test_invalid_dates_are_ignored(self) -> None:
        self.assertIsNone(date_from_name("build_99999999.log"))

    def test_falls_back_to_modified_then_clock(self) -> None:
        modified = datetime(2022, 7, 4, 12, 0)
        self.assertEqual(date_token("untitled.txt", modified), "20220704")
        self.assertEqual(date_token("untitled.txt", None, clock=lambda: FIXED_DAY), "20240601")


class CleanNameTests(unittest.TestCase):
    def test_strips_prefix_and_timestamp(self) -> None:
        self.assertEqual(clean_name("IMG_20231215_143022_beach.jpg"), "beach")

    def test_strips_disallowed_characters_and_truncates(self) -> None:
        self.assertEqual(clean_name("Copy of invoice!.pdf"), "Copyofinvoice")
        self.assertEqual(len(clean_name("x" * 80 + ".txt")), 30)


class RenameAdvisorTests(unittest.TestCase):
    def setUp(self) -> None:
        self.advisor = RenameAdvisor(user_name="alice", clock=lambda: FIXED_DAY)

    def test_capture_image_uses_category_label(self) -> None:
        advice = self.advisor.advise(_entry("IMG_20231215_143022.jpg"), Category.IMAGE)
        self.assertTrue(advice.needs_rename)
        self.assertEqual(advice.suggested_name, "20231215_Image.jpg")

    def test_screenshot_discards_stem(self) -> None:
        advice = self.advisor.advise(
            _entry("Screenshot_20240108_101010.png"), Category.SCREENSHOT
        )
        self.assertEqual(advice.suggested_name, "20240108_Screenshot.png")

    def test_document_includes_user_name(self) -> None:
        advice = self.advisor.advise(_entry("Copy of invoice.pdf"), Category.INVOICE)
        self.assertTrue(advice.needs_rename)
        self.assertEqual(advice.suggested_name, "20240203_alice_Copyofinvoice.pdf")

    def test_other_category_falls_back_to_generic_label(self) -> None:
        advice = self.advisor.advise(_entry("1700000000000.dat"), Category.OTHER)
        self.assertEqual(advice.suggested_name, "20240203_File.dat")

    def test_clean_names_are_kept(self) -> None:
        advice = self.advisor.advise(_entry("年度报告.docx"), Category.DOCUMENT)
        self.assertFalse(advice.needs_rename)
        self.assertEqual(advice.suggested_name, "年度报告.docx")

    def test_directories_and_shortcuts_are_never_renamed(self) -> None:
        folder = _entry("IMG_20231215_143022", is_directory=True)
        self.assertFalse(self.advisor.advise(folder, Category.FOLDER).needs_rename)
        link = _entry("IMG_20231215_143022.lnk")
        self.assertFalse(self.advisor.advise(link, Category.SHORTCUT).needs_rename)
        symlink = _entry("IMG_20231215_143022.jpg", is_symlink=True)
        self.assertFalse(self.advisor.advise(symlink, Category.SHORTCUT).needs_rename)

    def test_advice_is_reproducible(self) -> None:
        entry = _entry("untitled-3.txt")
        first = advise_rename(entry, Category.DOCUMENT, user_name="alice", clock=lambda: FIXED_DAY)
        second = advise_rename(entry, Category.DOCUMENT, user_name="alice", clock=lambda: FIXED_DAY)
        self.assertEqual(first, second)
        self.assertEqual(first.suggested_name, "20240203_alice_untitled-3.txt")


class NormalizeTargetNameTests(unittest.TestCase):
    def test_adds_missing_extension(self) -> None:
        self.assertEqual(normalize_target_name("2025 Q1 Report", "report.pdf"), "2025 Q1 Report.pdf")

    def test_forces_original_extension(self) -> None:
        self.assertEqual(normalize_target_name("Report.txt", "report.pdf"), "Report.pdf")

    def test_drops_directory_parts(self) -> None:
        self.assertEqual(normalize_target_name("../elsewhere/Beach.jpg", "photo.jpg"), "Beach.jpg")

    def test_rejects_empty_names(self) -> None:
        self.assertIsNone(normalize_target_name("", "photo.jpg"))
        self.assertIsNone(normalize_target_name("...", "photo.jpg"))


if __name__ == "__main__":
    unittest.main()
