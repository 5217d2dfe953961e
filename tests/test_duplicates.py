import hashlib
import sys
import tempfile
import unittest
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1] / "src"))

from zhili.duplicates import detect_duplicates  # noqa: E402
from zhili.errors import HashError  # noqa: E402
from zhili.hashing import hash_file  # noqa: E402
from zhili.models import DuplicateMember  # noqa: E402


def _write(root: Path, name: str, data: bytes) -> DuplicateMember:
    path = root / name
    path.write_bytes(data)
    return DuplicateMember(path=path, name=name, size=len(data))


class HashFileTests(unittest.TestCase):
    def test_streaming_matches_whole_file_digest(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            data = b"0123456789" * 1000
            member = _write(Path(tmp), "blob.bin", data)
            self.assertEqual(
                hash_file(member.path, chunk_size=7), hashlib.md5(data).hexdigest()
            )
            self.assertEqual(
                hash_file(member.path, algorithm="sha256"), hashlib.sha256(data).hexdigest()
            )

    def test_missing_file_raises_hash_error(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            missing = Path(tmp) / "gone.bin"
            with self.assertRaises(HashError) as ctx:
                hash_file(missing)
            self.assertEqual(ctx.exception.path, missing)


class DetectDuplicatesTests(unittest.TestCase):
    def test_same_size_different_content_is_not_grouped(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp)
            a = _write(root, "a.txt", b"hello")
            b = _write(root, "b.txt", b"hello")
            c = _write(root, "c.txt", b"world")
            groups = detect_duplicates([a, b, c])
            self.assertEqual(len(groups), 1)
            self.assertEqual([m.path for m in groups[0].files], [a.path, b.path])
            self.assertEqual(groups[0].keeper.path, a.path)
            self.assertEqual(groups[0].removal_targets(), [b.path])

    def test_zero_byte_files_are_never_duplicates(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp)
            entries = [_write(root, "e1", b""), _write(root, "e2", b"")]
            self.assertEqual(detect_duplicates(entries), [])

    def test_unique_sizes_are_not_hashed(self) -> None:
        hashed = []

        def hasher(path: Path) -> str:
            hashed.append(path)
            return "same"

        entries = [
            DuplicateMember(path=Path("/x/one"), name="one", size=1),
            DuplicateMember(path=Path("/x/two"), name="two", size=2),
        ]
        self.assertEqual(detect_duplicates(entries, hasher=hasher), [])
        self.assertEqual(hashed, [])

    def test_unreadable_files_are_excluded(self) -> None:
        def hasher(path: Path) -> str:
            if path.name == "locked":
                raise HashError(path, "Permission denied")
            return "digest"

        entries = [
            DuplicateMember(path=Path("/x/locked"), name="locked", size=4),
            DuplicateMember(path=Path("/x/first"), name="first", size=4),
            DuplicateMember(path=Path("/x/second"), name="second", size=4),
        ]
        groups = detect_duplicates(entries, hasher=hasher)
        self.assertEqual(len(groups), 1)
        self.assertEqual([m.name for m in groups[0].files], ["first", "second"])
        self.assertEqual(groups[0].keeper.name, "first")

    def test_unreadable_pair_forms_no_group(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp)
            present = _write(root, "present.txt", b"data")
            missing = DuplicateMember(path=root / "missing.txt", name="missing.txt", size=4)
            self.assertEqual(detect_duplicates([present, missing]), [])

    def test_keeper_follows_input_order_with_workers(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp)
            entries = [_write(root, f"copy{i}.bin", b"x" * 4096) for i in range(6)]
            entries.reverse()
            groups = detect_duplicates(entries, workers=4, chunk_size=512)
            self.assertEqual(len(groups), 1)
            self.assertEqual(groups[0].keeper.name, "copy5.bin")
            self.assertEqual([m.name for m in groups[0].files], [e.name for e in entries])

    def test_accepts_scanned_entry_like_objects(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp)
            a = _write(root, "a.bin", b"abc")
            b = _write(root, "b.bin", b"abc")
            groups = detect_duplicates(
                [{"path": str(a.path), "name": a.name, "size": 3}, b]
            )
            self.assertEqual(len(groups), 1)


if __name__ == "__main__":
    unittest.main()
