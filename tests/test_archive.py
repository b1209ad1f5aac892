"""Tests for zip archive extraction and ingestion."""

import os
import shutil
import tempfile
import unittest
import zipfile

from helpers import make_registry, make_zip, write_file

from ScanDepot.core import (
    CorruptArchiveError, FolderOrigin, NoRecognizedContentError,
    SizeExceededError, UnsupportedTypeError,
)
from ScanDepot.ingest import UploadedFile, extract_archive


STUDY_ENTRIES = {"a.dcm": 100, "notes.txt": 50, "b/c.dcm": 200}


class TestExtractArchive(unittest.TestCase):
    def setUp(self):
        self.tmpdir = tempfile.mkdtemp()
        self.dest = os.path.join(self.tmpdir, "out")
        os.makedirs(self.dest)

    def tearDown(self):
        shutil.rmtree(self.tmpdir, ignore_errors=True)

    def test_preserves_layout(self):
        zpath = make_zip(os.path.join(self.tmpdir, "s.zip"), STUDY_ENTRIES)
        self.assertEqual(extract_archive(zpath, self.dest), 3)
        self.assertEqual(os.path.getsize(os.path.join(self.dest, "b", "c.dcm")), 200)

    def test_traversal_entries_skipped(self):
        zpath = make_zip(os.path.join(self.tmpdir, "evil.zip"), {
            "../escape.dcm": 10,
            "/abs.dcm": 10,
            "ok.dcm": 10,
        })
        self.assertEqual(extract_archive(zpath, self.dest), 1)
        self.assertFalse(os.path.exists(os.path.join(self.tmpdir, "escape.dcm")))
        self.assertEqual(os.listdir(self.dest), ["ok.dcm"])

    def test_macos_metadata_skipped(self):
        zpath = make_zip(os.path.join(self.tmpdir, "mac.zip"), {
            "__MACOSX/._a.dcm": 4,
            "._b.dcm": 4,
            "a.dcm": 4,
        })
        self.assertEqual(extract_archive(zpath, self.dest), 1)

    def test_declared_size_limit(self):
        zpath = make_zip(os.path.join(self.tmpdir, "big.zip"), {"a.dcm": 1000})
        with self.assertRaises(SizeExceededError):
            extract_archive(zpath, self.dest, max_total_bytes=999)
        self.assertEqual(os.listdir(self.dest), [])


class TestStoreArchive(unittest.TestCase):
    def setUp(self):
        self.tmpdir = tempfile.mkdtemp()
        self.registry = make_registry(self.tmpdir)
        self.src = os.path.join(self.tmpdir, "incoming")

    def tearDown(self):
        shutil.rmtree(self.tmpdir, ignore_errors=True)

    def _upload(self, name, entries):
        return UploadedFile.from_path(make_zip(os.path.join(self.src, name), entries))

    def test_keeps_only_imaging_members(self):
        record = self.registry.store_archive(self._upload("study.zip", STUDY_ENTRIES))

        self.assertIs(record.origin, FolderOrigin.EXTRACTED)
        self.assertEqual(record.file_count, 2)
        self.assertEqual(record.size, 300)
        self.assertEqual(record.original_name, "study")
        self.assertEqual(record.members, ["a.dcm", "c.dcm"])
        self.assertNotIn("notes.txt", record.members)
        summary = record.summary()
        self.assertTrue(summary["fromZip"])
        self.assertTrue(summary["isFolder"])

        asset_dir = self.registry.root / record.id
        self.assertEqual(sorted(os.listdir(asset_dir)), ["a.dcm", "c.dcm"])
        self.assertEqual((asset_dir / "c.dcm").stat().st_size, 200)

    def test_non_imaging_subdirectories_pruned(self):
        record = self.registry.store_archive(self._upload("s.zip", {
            "a.dcm": 1, "docs/readme.txt": 1,
        }))
        self.assertFalse((self.registry.root / record.id / "docs").exists())

    def test_duplicate_leaf_names_renamed(self):
        record = self.registry.store_archive(self._upload("s.zip", {
            "a.dcm": 1, "s1/a.dcm": 2, "s2/A.dcm": 4,
        }))
        self.assertEqual(record.members, ["a.dcm", "a-1.dcm", "A-2.dcm"])
        self.assertEqual(record.size, 7)
        asset_dir = self.registry.root / record.id
        self.assertEqual(sorted(os.listdir(asset_dir)), sorted(record.members))
        self.assertEqual((asset_dir / "A-2.dcm").stat().st_size, 4)

    def test_leaf_name_shadowed_by_directory(self):
        record = self.registry.store_archive(self._upload("s.zip", {"x.dcm/x.dcm": 3}))
        self.assertEqual(record.members, ["x-1.dcm"])
        asset_dir = self.registry.root / record.id
        self.assertEqual(os.listdir(asset_dir), ["x-1.dcm"])
        self.assertEqual(
            [m.name for m in self.registry.folder_contents(record.id)], ["x-1.dcm"]
        )

    def test_file_and_directory_with_same_entry_name(self):
        for entries in ({"a.dcm": 1, "a.dcm/b.dcm": 1}, {"a.dcm/b.dcm": 1, "a.dcm": 1}):
            with self.assertRaises(CorruptArchiveError, msg=list(entries)):
                self.registry.store_archive(self._upload("clash.zip", entries))
            self.assertEqual(os.listdir(self.registry.root), [])

    def test_no_recognized_content(self):
        with self.assertRaises(NoRecognizedContentError):
            self.registry.store_archive(self._upload("docs.zip", {"readme.txt": 10}))
        self.assertEqual(os.listdir(self.registry.root), [])
        self.assertEqual(len(self.registry.list()), 0)

    def test_corrupt_archive(self):
        path = write_file(os.path.join(self.src, "broken.zip"), 64, fill=b"\x07")
        with self.assertRaises(CorruptArchiveError) as cm:
            self.registry.store_archive(UploadedFile.from_path(path))
        self.assertEqual(cm.exception.to_dict()["error"], "CorruptArchive")
        self.assertEqual(os.listdir(self.registry.root), [])

    def test_truncated_archive(self):
        good = make_zip(os.path.join(self.src, "good.zip"), {"a.dcm": 5000})
        with open(good, "rb") as f:
            data = f.read()
        path = os.path.join(self.src, "cut.zip")
        with open(path, "wb") as f:
            f.write(data[: len(data) // 2])
        with self.assertRaises(CorruptArchiveError):
            self.registry.store_archive(UploadedFile.from_path(path))
        self.assertEqual(os.listdir(self.registry.root), [])

    def test_same_archive_twice(self):
        upload = self._upload("study.zip", STUDY_ENTRIES)
        first = self.registry.store_archive(upload)
        second = self.registry.store_archive(upload)
        self.assertNotEqual(first.id, second.id)
        self.assertEqual(first.members, second.members)
        self.assertEqual(first.size, second.size)
        self.assertEqual(len(self.registry.list()), 2)

    def test_extraction_limit_rolls_back(self):
        registry = make_registry(self.tmpdir, max_extracted_bytes=100)
        with self.assertRaises(SizeExceededError):
            registry.store_archive(self._upload("big.zip", {"a.dcm": 101}))
        self.assertEqual(os.listdir(registry.root), [])

    def test_not_an_archive_name(self):
        path = write_file(os.path.join(self.src, "scan.dcm"), 4)
        with self.assertRaises(UnsupportedTypeError):
            self.registry.store_archive(UploadedFile.from_path(path))

    def test_owned_spool_discarded_after_extraction(self):
        zpath = make_zip(os.path.join(self.src, "s.zip"), {"a.dcm": 3})
        with open(zpath, "rb") as f:
            upload = UploadedFile.from_stream("s.zip", f, spool_dir=self.src)
        self.registry.store_archive(upload)
        self.assertFalse(os.path.exists(upload.path))
        self.assertTrue(os.path.exists(zpath))

    def test_deflate_and_stored_entries(self):
        path = os.path.join(self.src, "mixed.zip")
        os.makedirs(self.src, exist_ok=True)
        with zipfile.ZipFile(path, "w") as zf:
            zf.writestr(zipfile.ZipInfo("stored.dcm"), b"s" * 10)
            zf.writestr("deflated.dcm", b"d" * 10, compress_type=zipfile.ZIP_DEFLATED)
        record = self.registry.store_archive(UploadedFile.from_path(path))
        self.assertEqual(record.file_count, 2)
        self.assertEqual(record.size, 20)


if __name__ == "__main__":
    unittest.main(verbosity=2)
