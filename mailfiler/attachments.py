"""Attachment staging: copy lock-prone files to a scoped temporary directory before attaching."""

import os
import shutil
import tempfile
from pathlib import Path
from typing import Callable, Iterable, Optional

from mailfiler.config import LOCKING_EXTENSIONS
from mailfiler.exceptions import AttachmentError
from mailfiler.utils.logger import get_logger

logger = get_logger("mailfiler.attachments")

CopyPredicate = Callable[[Path], bool]


def extension_predicate(extensions: Iterable[str] = LOCKING_EXTENSIONS) -> CopyPredicate:
    """Predicate matching files by (case-insensitive) extension."""
    normalized = {e.lower() if e.startswith(".") else f".{e.lower()}" for e in extensions}
    return lambda path: path.suffix.lower() in normalized


class AttachmentStager:
    """Context manager yielding the paths to attach.

    Files selected by ``should_copy`` are copied into a temporary directory
    created for this process; the directory is removed on exit whatever the
    outcome of the send.
    """

    def __init__(self, attachments: Iterable[Path], should_copy: Optional[CopyPredicate] = None):
        self._attachments = [Path(a) for a in attachments]
        self._should_copy = should_copy or extension_predicate()
        self.temp_dir: Optional[Path] = None
        self.paths: list[Path] = []

    def __enter__(self) -> list[Path]:
        return self.stage()

    def __exit__(self, *exc_info) -> None:
        self.cleanup()

    def stage(self) -> list[Path]:
        """Check every attachment and copy the lock-prone ones. Cleans up on failure."""
        try:
            self.paths = [self._stage(path) for path in self._attachments]
        except BaseException:
            self.cleanup()
            raise
        return self.paths

    def _ensure_temp_dir(self) -> Path:
        if self.temp_dir is None:
            self.temp_dir = Path(tempfile.mkdtemp(prefix=f"mailfiler-{os.getpid()}-"))
            logger.debug("attachments.temp_dir_created", path=str(self.temp_dir))
        return self.temp_dir

    def _stage(self, path: Path) -> Path:
        if not path.is_file():
            raise AttachmentError(f"Attachment '{path}' does not exist", path=str(path))
        if not os.access(path, os.R_OK):
            raise AttachmentError(f"Attachment '{path}' is not readable", path=str(path))
        if not self._should_copy(path):
            return path
        # One subdirectory per file keeps same-named attachments apart
        target_dir = Path(tempfile.mkdtemp(dir=self._ensure_temp_dir()))
        target = target_dir / path.name
        try:
            shutil.copy2(path, target)
        except OSError as e:
            raise AttachmentError(f"Could not copy attachment '{path}': {e}", path=str(path)) from e
        logger.debug("attachments.staged", source=str(path), copy=str(target))
        return target

    def cleanup(self) -> None:
        if self.temp_dir is None:
            return
        try:
            shutil.rmtree(self.temp_dir)
            logger.debug("attachments.temp_dir_removed", path=str(self.temp_dir))
        except OSError as e:
            logger.warning("attachments.cleanup_failed", path=str(self.temp_dir), error=str(e))
        self.temp_dir = None
