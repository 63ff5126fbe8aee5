"""Tests for FolderPath parsing and rendering."""

import unittest

from mailfiler.exceptions import ValidationError
from mailfiler.mail_provider.models import FolderPath


class TestFolderPath(unittest.TestCase):
    def test_parse_leading_root(self):
        path = FolderPath.parse("\\Inbox\\Project\\Archive")
        self.assertEqual(path.segments, ("Inbox", "Project", "Archive"))
        self.assertEqual(str(path), "\\Inbox\\Project\\Archive")

    def test_parse_without_leading_root(self):
        """A path without the leading backslash is still root-relative."""
        self.assertEqual(FolderPath.parse("Inbox\\Project"), FolderPath.parse("\\Inbox\\Project"))

    def test_root_only(self):
        path = FolderPath.parse("\\")
        self.assertTrue(path.is_root)
        self.assertEqual(str(path), "\\")

    def test_segments_keep_case_and_spaces(self):
        path = FolderPath.parse("\\Inbox\\Q3 Reports\\archive")
        self.assertEqual(path.segments, ("Inbox", "Q3 Reports", "archive"))

    def test_empty_path_rejected(self):
        for raw in ("", "   "):
            with self.assertRaises(ValidationError):
                FolderPath.parse(raw)

    def test_empty_segment_rejected(self):
        with self.assertRaises(ValidationError) as ctx:
            FolderPath.parse("\\Inbox\\\\Archive")
        self.assertIn("empty segment", str(ctx.exception))

    def test_child(self):
        path = FolderPath.parse("\\Inbox").child("Project")
        self.assertEqual(str(path), "\\Inbox\\Project")


if __name__ == "__main__":
    unittest.main()
