"""Tests for tree scanning, classification, and path helpers."""

import os
import shutil
import tempfile
import unittest

from ScanDepot.config import RegistryConfig
from ScanDepot.core import (
    classify_tree, iter_files,
    check_storage_name, leaf_name, safe_member_path, sidecar_path,
)


def _touch(path, size=0):
    os.makedirs(os.path.dirname(path), exist_ok=True)
    with open(path, "wb") as f:
        f.write(b"\x00" * size)


class TestIterFiles(unittest.TestCase):
    def setUp(self):
        self.tmpdir = tempfile.mkdtemp()
        _touch(os.path.join(self.tmpdir, "b", "c.dcm"), 200)
        _touch(os.path.join(self.tmpdir, "a.dcm"), 100)
        _touch(os.path.join(self.tmpdir, "notes.txt"), 50)

    def tearDown(self):
        shutil.rmtree(self.tmpdir, ignore_errors=True)

    def test_relative_posix_paths_and_sizes(self):
        found = {f.relpath: f.size for f in iter_files(self.tmpdir)}
        self.assertEqual(found, {"a.dcm": 100, "notes.txt": 50, "b/c.dcm": 200})

    def test_name_is_leaf(self):
        names = sorted(f.name for f in iter_files(self.tmpdir))
        self.assertEqual(names, ["a.dcm", "c.dcm", "notes.txt"])

    @unittest.skipUnless(hasattr(os, "symlink"), "symlinks unavailable")
    def test_symlink_out_of_root_skipped(self):
        outside = tempfile.mkdtemp()
        try:
            target = os.path.join(outside, "secret.dcm")
            _touch(target, 10)
            try:
                os.symlink(target, os.path.join(self.tmpdir, "link.dcm"))
            except OSError:
                self.skipTest("cannot create symlinks here")
            rels = {f.relpath for f in iter_files(self.tmpdir)}
            self.assertNotIn("link.dcm", rels)
        finally:
            shutil.rmtree(outside, ignore_errors=True)


class TestClassifyTree(unittest.TestCase):
    def setUp(self):
        self.tmpdir = tempfile.mkdtemp()

    def tearDown(self):
        shutil.rmtree(self.tmpdir, ignore_errors=True)

    def test_splits_recognized_and_rejected(self):
        _touch(os.path.join(self.tmpdir, "a.dcm"), 100)
        _touch(os.path.join(self.tmpdir, "b", "c.dcm"), 200)
        _touch(os.path.join(self.tmpdir, "notes.txt"), 50)
        scan = classify_tree(self.tmpdir)
        self.assertEqual([f.relpath for f in scan.recognized], ["a.dcm", "b/c.dcm"])
        self.assertEqual([f.relpath for f in scan.rejected], ["notes.txt"])
        self.assertEqual(scan.total_size, 300)

    def test_uses_configured_allowlist(self):
        _touch(os.path.join(self.tmpdir, "v.mha"), 8)
        config = RegistryConfig()
        config.classifier.imaging_extensions = [".mha"]
        scan = classify_tree(self.tmpdir, config)
        self.assertEqual([f.relpath for f in scan.recognized], ["v.mha"])

    def test_empty_tree(self):
        scan = classify_tree(self.tmpdir)
        self.assertEqual(scan.recognized, [])
        self.assertEqual(scan.total_size, 0)


class TestPathHelpers(unittest.TestCase):
    def test_leaf_name(self):
        self.assertEqual(leaf_name("series1/IM0001.dcm"), "IM0001.dcm")
        self.assertEqual(leaf_name("C:\\scans\\a.dcm"), "a.dcm")
        self.assertEqual(leaf_name("a.dcm"), "a.dcm")
        with self.assertRaises(ValueError):
            leaf_name("../..")

    def test_check_storage_name(self):
        self.assertEqual(check_storage_name("scan-1-2.dcm"), "scan-1-2.dcm")
        for bad in ["", ".", "..", "a/b", "a\\b", ".hidden", "a\x00b"]:
            with self.assertRaises(ValueError, msg=bad):
                check_storage_name(bad)

    def test_sidecar_path(self):
        self.assertEqual(sidecar_path("/u", "scan-1-2.dcm").name, "scan-1-2.dcm.asset.json")

    def test_safe_member_path(self):
        tmpdir = tempfile.mkdtemp()
        try:
            self.assertEqual(
                safe_member_path(tmpdir, "b/c.dcm"),
                safe_member_path(tmpdir, "b\\c.dcm"),
            )
            for bad in ["../x.dcm", "/etc/passwd", ""]:
                with self.assertRaises(ValueError, msg=bad):
                    safe_member_path(tmpdir, bad)
        finally:
            shutil.rmtree(tmpdir, ignore_errors=True)


if __name__ == "__main__":
    unittest.main(verbosity=2)
