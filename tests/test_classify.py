"""Tests for upload classification."""

import unittest

from ScanDepot.config import RegistryConfig
from ScanDepot.core import is_acceptable_upload, is_archive_file, is_imaging_file


class TestImagingClassification(unittest.TestCase):
    def test_scan_slice_formats(self):
        self.assertTrue(is_imaging_file("scan.dcm"))
        self.assertTrue(is_imaging_file("IM0001.dicom"))
        self.assertTrue(is_imaging_file("brain.nii"))

    def test_compressed_volume(self):
        self.assertTrue(is_imaging_file("brain.nii.gz"))
        self.assertFalse(is_imaging_file("logs.tar.gz"))

    def test_case_insensitive(self):
        self.assertTrue(is_imaging_file("SCAN.DCM"))
        self.assertTrue(is_imaging_file("Brain.NII.GZ"))

    def test_path_prefix_ignored(self):
        self.assertTrue(is_imaging_file("series1/sub/a.dcm"))
        self.assertTrue(is_imaging_file("series1\\a.dcm"))
        self.assertFalse(is_imaging_file("a.dcm/readme.txt"))

    def test_non_imaging(self):
        self.assertFalse(is_imaging_file("notes.txt"))
        self.assertFalse(is_imaging_file("photo.png"))
        self.assertFalse(is_imaging_file("study.zip"))
        self.assertFalse(is_imaging_file("dcm"))
        self.assertFalse(is_imaging_file(""))

    def test_bare_extension_is_not_a_file(self):
        self.assertFalse(is_imaging_file(".dcm"))

    def test_custom_allowlist(self):
        config = RegistryConfig()
        config.classifier.imaging_extensions = [".mha"]
        self.assertTrue(is_imaging_file("volume.mha", config))
        self.assertFalse(is_imaging_file("scan.dcm", config))


class TestAcceptableUpload(unittest.TestCase):
    def test_extension_signal(self):
        for name in ["a.dcm", "b.nii.gz", "c.jpg", "d.JPEG", "e.png",
                     "f.tif", "g.tiff", "h.zip"]:
            self.assertTrue(is_acceptable_upload(name), name)

    def test_rejects_unknown_without_media_type(self):
        self.assertFalse(is_acceptable_upload("notes.txt"))
        self.assertFalse(is_acceptable_upload("script.exe", "application/x-msdownload"))

    def test_media_type_signal_alone_suffices(self):
        self.assertTrue(is_acceptable_upload("IM0001", "application/dicom"))
        self.assertTrue(is_acceptable_upload("blob.bin", "application/octet-stream"))

    def test_media_type_parameters_and_case(self):
        self.assertTrue(is_acceptable_upload("x", "Image/PNG; charset=binary"))

    def test_archive_predicate(self):
        self.assertTrue(is_archive_file("study.zip"))
        self.assertTrue(is_archive_file("STUDY.ZIP"))
        self.assertFalse(is_archive_file("study.dcm"))
        self.assertFalse(is_archive_file("zip"))


if __name__ == "__main__":
    unittest.main(verbosity=2)
