"""Pydantic models for folders, outgoing messages and send results."""

from enum import Enum
from pathlib import Path
from typing import Literal, Optional

from pydantic import BaseModel

from mailfiler.exceptions import ValidationError

PATH_DELIMITER = "\\"
ROOT_FOLDER = "msgfolderroot"
SENT_ITEMS_FOLDER = "sentitems"
DRAFTS_FOLDER = "drafts"


class FolderPath(BaseModel):
    """Root-relative folder route. ``segments`` excludes the root marker."""

    segments: tuple[str, ...] = ()

    @classmethod
    def parse(cls, raw: str) -> "FolderPath":
        """Parse ``\\Inbox\\Project``. The leading ``\\`` (mailbox root) is optional."""
        if raw is None or not raw.strip():
            raise ValidationError("Folder path is empty", path=raw)
        text = raw.strip()
        if text.startswith(PATH_DELIMITER):
            text = text[1:]
        if not text:
            return cls()
        segments = tuple(text.split(PATH_DELIMITER))
        if any(not segment for segment in segments):
            raise ValidationError(f"Folder path '{raw}' contains an empty segment", path=raw)
        return cls(segments=segments)

    @property
    def is_root(self) -> bool:
        return not self.segments

    def child(self, name: str) -> "FolderPath":
        return FolderPath(segments=self.segments + (name,))

    def __str__(self) -> str:
        return PATH_DELIMITER + PATH_DELIMITER.join(self.segments)


class MailFolder(BaseModel):
    """Mail folder as returned by the mail service (subset)."""

    id: str
    display_name: str = ""
    parent_id: Optional[str] = None
    well_known_name: Optional[str] = None


class Importance(str, Enum):
    LOW = "Low"
    NORMAL = "Normal"
    HIGH = "High"


class MailMessage(BaseModel):
    """Outgoing message. ``sender`` is also the mailbox the message is filed in."""

    subject: str
    body: str = ""
    body_type: Literal["text", "html"] = "text"
    sender: str
    to: list[str] = []
    cc: list[str] = []
    bcc: list[str] = []
    importance: Importance = Importance.NORMAL
    attachments: list[Path] = []


class SendResult(BaseModel):
    """Outcome of MailSender.send."""

    saved_before_send: bool
    send_mode: Literal["send_and_save", "save_then_send"]
    folder_id: Optional[str] = None
    folder_path: Optional[str] = None
    message_id: Optional[str] = None
    attachments: list[str] = []
