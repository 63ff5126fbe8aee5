"""Tests for audit sinks."""

import csv
import tempfile
import unittest
from pathlib import Path

from mailfiler.audit import CsvAuditSink, MultiAuditSink


class TestCsvAuditSink(unittest.TestCase):
    def test_header_written_once(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "nested" / "audit.csv"
            sink = CsvAuditSink(path)
            sink.write("mailfiler", "first")
            sink.write("mailfiler", "second, with comma")

            with path.open(newline="", encoding="utf-8") as f:
                rows = list(csv.DictReader(f))
            self.assertEqual([r["message"] for r in rows], ["first", "second, with comma"])
            self.assertEqual({r["source"] for r in rows}, {"mailfiler"})
            self.assertTrue(all(r["timestamp"].endswith("Z") for r in rows))
            self.assertEqual(path.read_text(encoding="utf-8").count("timestamp,source,message"), 1)


class TestMultiAuditSink(unittest.TestCase):
    def test_fans_out_in_order(self):
        seen = []

        class Sink:
            def __init__(self, name):
                self.name = name

            def write(self, source, message):
                seen.append((self.name, source, message))

        MultiAuditSink(Sink("a"), Sink("b")).write("src", "msg")
        self.assertEqual(seen, [("a", "src", "msg"), ("b", "src", "msg")])


if __name__ == "__main__":
    unittest.main()
