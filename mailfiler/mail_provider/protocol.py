"""Mail service protocol (Graph-like interface consumed by the resolver and sender)."""

from pathlib import Path
from typing import Optional, Protocol

from mailfiler.mail_provider.models import MailFolder, MailMessage


class MailServiceClient(Protocol):
    """Blocking mail service handle. Not thread-safe; one caller at a time."""

    def get_root_folder(self, mailbox: str) -> MailFolder:
        """Bind the mailbox message root. Raises MailboxAccessError when the mailbox is unreachable."""
        ...

    def find_child_folders(self, mailbox: str, parent_id: str, display_name: str) -> list[MailFolder]:
        """Immediate children of parent_id whose display name equals display_name exactly."""
        ...

    def create_folder(self, mailbox: str, parent_id: str, display_name: str) -> MailFolder:
        """Create a child folder under parent_id."""
        ...

    def save_message(
        self,
        mailbox: str,
        message: MailMessage,
        attachments: list[Path],
        folder_id: Optional[str] = None,
    ) -> str:
        """Save message (with attachments read from the given paths) into folder_id, or Drafts when None. Returns the message id."""
        ...

    def send_saved_message(self, mailbox: str, message_id: str, copy_folder_id: Optional[str] = None) -> None:
        """Send a saved message; its sent copy is filed in copy_folder_id, or Sent Items when None."""
        ...

    def send_and_save_copy(self, mailbox: str, message: MailMessage, folder_id: Optional[str] = None) -> None:
        """Send in one step and file the copy in folder_id, or Sent Items when None."""
        ...
