"""Mock mail service: folder tree and messages kept in memory, optionally persisted to a JSON file."""

import json
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterable, Optional

from mailfiler.exceptions import MailboxAccessError, SendError
from mailfiler.mail_provider.models import (
    DRAFTS_FOLDER,
    ROOT_FOLDER,
    SENT_ITEMS_FOLDER,
    MailFolder,
    MailMessage,
)
from mailfiler.utils.logger import get_logger

logger = get_logger("mailfiler.mail_provider.mock")

# Well-known folders created under the root of every provisioned mailbox
WELL_KNOWN_FOLDERS = (
    ("inbox", "Inbox"),
    (DRAFTS_FOLDER, "Drafts"),
    (SENT_ITEMS_FOLDER, "Sent Items"),
    ("deleteditems", "Deleted Items"),
)


def _new_id(prefix: str) -> str:
    return f"{prefix}_{uuid.uuid4().hex[:16]}"


def _now() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


class JsonMailboxService:
    """Mock MailServiceClient.

    Mailboxes must be provisioned (``mailboxes=`` or ``provision``) unless
    ``auto_provision`` is set; unknown or denied mailboxes raise MailboxAccessError
    like a real service would. Every call is appended to ``calls``.
    """

    def __init__(
        self,
        path: Optional[Path] = None,
        mailboxes: Iterable[str] = (),
        auto_provision: bool = False,
    ):
        self._path = path
        self._auto_provision = auto_provision
        self._mailboxes: dict[str, dict[str, Any]] = {}
        self._denied: set[str] = set()
        self.calls: list[str] = []
        self._load()
        for mailbox in mailboxes:
            self.provision(mailbox)
        logger.debug(
            "mail_provider.mock.init",
            path=str(path) if path else None,
            mailboxes=sorted(self._mailboxes),
        )

    def _load(self) -> None:
        if self._path is None or not self._path.exists():
            return
        with self._path.open("r", encoding="utf-8") as f:
            data = json.load(f)
        self._mailboxes = {k.lower(): v for k, v in (data.get("mailboxes") or {}).items()}
        self._denied = {m.lower() for m in data.get("denied") or []}
        logger.debug("mail_provider.mock.loaded", mailboxes=len(self._mailboxes))

    def _save(self) -> None:
        if self._path is None:
            return
        self._path.parent.mkdir(parents=True, exist_ok=True)
        with self._path.open("w", encoding="utf-8") as f:
            json.dump(
                {"mailboxes": self._mailboxes, "denied": sorted(self._denied)},
                f,
                indent=2,
                default=str,
            )

    def provision(self, mailbox: str) -> None:
        """Create an empty mailbox with the well-known folders (no-op if it exists)."""
        key = mailbox.lower()
        if key in self._mailboxes:
            return
        root_id = _new_id("root")
        folders = [{"id": root_id, "displayName": "", "parentFolderId": None, "wellKnownName": ROOT_FOLDER}]
        for well_known, display_name in WELL_KNOWN_FOLDERS:
            folders.append(
                {
                    "id": _new_id("folder"),
                    "displayName": display_name,
                    "parentFolderId": root_id,
                    "wellKnownName": well_known,
                }
            )
        self._mailboxes[key] = {"folders": folders, "messages": []}
        self._save()
        logger.info("mail_provider.mock.provisioned", mailbox=key)

    def deny_access(self, mailbox: str) -> None:
        self._denied.add(mailbox.lower())
        self._save()

    def _box(self, mailbox: str) -> dict[str, Any]:
        key = (mailbox or "").lower()
        if key in self._denied:
            raise MailboxAccessError(f"Access to mailbox {mailbox!r} is denied", mailbox=mailbox)
        if key not in self._mailboxes:
            if not self._auto_provision:
                raise MailboxAccessError(f"Mailbox {mailbox!r} does not exist", mailbox=mailbox)
            self.provision(key)
        return self._mailboxes[key]

    @staticmethod
    def _to_folder(raw: dict[str, Any]) -> MailFolder:
        return MailFolder(
            id=raw["id"],
            display_name=raw.get("displayName") or "",
            parent_id=raw.get("parentFolderId"),
            well_known_name=raw.get("wellKnownName"),
        )

    def _folder(self, box: dict[str, Any], folder_id: str) -> dict[str, Any]:
        for raw in box["folders"]:
            if raw["id"] == folder_id or raw.get("wellKnownName") == folder_id:
                return raw
        raise SendError(f"Folder {folder_id!r} does not exist", folder_id=folder_id)

    def _message(self, box: dict[str, Any], message_id: str) -> dict[str, Any]:
        for raw in box["messages"]:
            if raw["id"] == message_id:
                return raw
        raise SendError(f"Message {message_id!r} does not exist", message_id=message_id)

    # MailServiceClient

    def get_root_folder(self, mailbox: str) -> MailFolder:
        self.calls.append("get_root_folder")
        box = self._box(mailbox)
        return self._to_folder(self._folder(box, ROOT_FOLDER))

    def find_child_folders(self, mailbox: str, parent_id: str, display_name: str) -> list[MailFolder]:
        self.calls.append("find_child_folders")
        box = self._box(mailbox)
        parent = self._folder(box, parent_id)
        return [
            self._to_folder(raw)
            for raw in box["folders"]
            if raw.get("parentFolderId") == parent["id"] and raw.get("displayName") == display_name
        ]

    def create_folder(self, mailbox: str, parent_id: str, display_name: str) -> MailFolder:
        self.calls.append("create_folder")
        box = self._box(mailbox)
        parent = self._folder(box, parent_id)
        raw = {
            "id": _new_id("folder"),
            "displayName": display_name,
            "parentFolderId": parent["id"],
            "wellKnownName": None,
        }
        box["folders"].append(raw)
        self._save()
        logger.info("mail_provider.mock.folder_created", mailbox=mailbox, display_name=display_name)
        return self._to_folder(raw)

    def save_message(
        self,
        mailbox: str,
        message: MailMessage,
        attachments: list[Path],
        folder_id: Optional[str] = None,
    ) -> str:
        self.calls.append("save_message")
        box = self._box(mailbox)
        folder = self._folder(box, folder_id or DRAFTS_FOLDER)
        raw = self._message_record(message, folder["id"])
        for attachment in attachments:
            content = Path(attachment).read_bytes()
            raw["attachments"].append({"name": Path(attachment).name, "size": len(content)})
        box["messages"].append(raw)
        self._save()
        logger.info("mail_provider.mock.message_saved", mailbox=mailbox, message_id=raw["id"])
        return raw["id"]

    def send_saved_message(self, mailbox: str, message_id: str, copy_folder_id: Optional[str] = None) -> None:
        self.calls.append("send_saved_message")
        box = self._box(mailbox)
        raw = self._message(box, message_id)
        raw["folderId"] = self._folder(box, copy_folder_id or SENT_ITEMS_FOLDER)["id"]
        raw["isDraft"] = False
        raw["sentDateTime"] = _now()
        self._save()
        logger.info("mail_provider.mock.message_sent", mailbox=mailbox, message_id=message_id)

    def send_and_save_copy(self, mailbox: str, message: MailMessage, folder_id: Optional[str] = None) -> None:
        self.calls.append("send_and_save_copy")
        box = self._box(mailbox)
        folder = self._folder(box, folder_id or SENT_ITEMS_FOLDER)
        raw = self._message_record(message, folder["id"])
        raw["isDraft"] = False
        raw["sentDateTime"] = _now()
        box["messages"].append(raw)
        self._save()
        logger.info("mail_provider.mock.message_sent", mailbox=mailbox, message_id=raw["id"])

    @staticmethod
    def _message_record(message: MailMessage, folder_id: str) -> dict[str, Any]:
        message_id = _new_id("msg")
        return {
            "id": message_id,
            "internetMessageId": f"<{message_id}@mailfiler.local>",
            "folderId": folder_id,
            "subject": message.subject,
            "body": message.body,
            "bodyType": message.body_type,
            "sender": message.sender,
            "to": list(message.to),
            "cc": list(message.cc),
            "bcc": list(message.bcc),
            "importance": message.importance.value,
            "attachments": [],
            "isDraft": True,
            "sentDateTime": None,
        }

    # Inspection helpers (CLI output, tests)

    def folders(self, mailbox: str) -> list[MailFolder]:
        return [self._to_folder(raw) for raw in self._box(mailbox)["folders"]]

    def messages_in(self, mailbox: str, folder_id: str) -> list[dict[str, Any]]:
        box = self._box(mailbox)
        folder = self._folder(box, folder_id)
        return [raw for raw in box["messages"] if raw["folderId"] == folder["id"]]

    def folder_path(self, mailbox: str, folder_id: str) -> str:
        """Display-name route of folder_id from the root, e.g. ``\\Inbox\\Project``."""
        box = self._box(mailbox)
        names: list[str] = []
        current = self._folder(box, folder_id)
        while current.get("parentFolderId"):
            names.append(current.get("displayName") or "")
            current = self._folder(box, current["parentFolderId"])
        return "\\" + "\\".join(reversed(names))
