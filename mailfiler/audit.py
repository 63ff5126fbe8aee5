"""Audit trail sinks: write-only (source, message) entries for every mail sent."""

import csv
from datetime import datetime, timezone
from pathlib import Path
from typing import Protocol

from mailfiler.utils.logger import get_logger

logger = get_logger("mailfiler.audit")

CSV_FIELDS = ("timestamp", "source", "message")


class AuditSink(Protocol):
    def write(self, source: str, message: str) -> None:
        ...


class LoggerAuditSink:
    """Audit entries as structured log events."""

    def write(self, source: str, message: str) -> None:
        logger.info("audit.entry", source=source, message=message)


class CsvAuditSink:
    """Append-only CSV file (header written on first use)."""

    def __init__(self, path: Path):
        self.path = path

    def write(self, source: str, message: str) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        file_exists = self.path.exists()
        with self.path.open("a", newline="", encoding="utf-8") as f:
            writer = csv.DictWriter(f, fieldnames=CSV_FIELDS)
            if not file_exists:
                writer.writeheader()
            writer.writerow(
                {
                    "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
                    "source": source,
                    "message": message,
                }
            )
        logger.debug("audit.csv_row", path=str(self.path), headers=not file_exists)


class MultiAuditSink:
    """Fan out to several sinks in order."""

    def __init__(self, *sinks: AuditSink):
        self.sinks = sinks

    def write(self, source: str, message: str) -> None:
        for sink in self.sinks:
            sink.write(source, message)
