"""Folder path resolution: walk a ``\\``-delimited path from the mailbox root to a folder id."""

from typing import Optional, Union

from opentelemetry.trace import Status, StatusCode

from mailfiler.exceptions import (
    AmbiguousFolderError,
    FolderNotFoundError,
    MailboxAccessError,
    MailfilerError,
)
from mailfiler.mail_provider.models import FolderPath
from mailfiler.mail_provider.protocol import MailServiceClient
from mailfiler.utils.logger import get_logger
from mailfiler.utils.tracing import get_tracer

logger = get_logger("mailfiler.folders")


class FolderResolver:
    """Resolve folder paths against a mail service.

    In ``non_fatal`` mode a missing folder is logged as a warning and ``resolve``
    returns None instead of raising FolderNotFoundError. Folders created before a
    later segment fails are left in place.
    """

    def __init__(self, service: MailServiceClient, non_fatal: bool = False):
        self._service = service
        self._non_fatal = non_fatal

    def resolve(
        self,
        path: Union[FolderPath, str],
        mailbox: str,
        create_if_missing: bool = False,
    ) -> Optional[str]:
        folder_path = path if isinstance(path, FolderPath) else FolderPath.parse(path)
        log = logger.bind(mailbox=mailbox, path=str(folder_path))
        with get_tracer().start_as_current_span(
            "resolve_folder",
            attributes={"mail.mailbox": mailbox, "mail.folder_path": str(folder_path)},
        ) as span:
            try:
                folder_id = self._walk(folder_path, mailbox, create_if_missing, log)
            except MailfilerError as e:
                span.set_status(Status(StatusCode.ERROR, str(e)))
                raise
            span.set_attribute("mail.folder_found", folder_id is not None)
            return folder_id

    def _walk(self, folder_path: FolderPath, mailbox: str, create_if_missing: bool, log) -> Optional[str]:
        root = self._call(
            "get_root_folder",
            folder_path,
            mailbox,
            lambda: self._service.get_root_folder(mailbox),
        )
        current_id = root.id
        current_path = FolderPath()
        for segment in folder_path.segments:
            attempted = current_path.child(segment)
            matches = self._call(
                "find_child_folders",
                folder_path,
                mailbox,
                lambda: self._service.find_child_folders(mailbox, current_id, segment),
            )
            if len(matches) > 1:
                raise AmbiguousFolderError(
                    f"Folder '{attempted}' matches {len(matches)} folders in mailbox {mailbox!r}",
                    path=str(folder_path),
                    candidates=[m.id for m in matches],
                    mailbox=mailbox,
                )
            if matches:
                current_id = matches[0].id
            elif create_if_missing:
                created = self._call(
                    "create_folder",
                    folder_path,
                    mailbox,
                    lambda: self._service.create_folder(mailbox, current_id, segment),
                )
                log.info("folders.created", folder=str(attempted), folder_id=created.id)
                current_id = created.id
            elif self._non_fatal:
                log.warning("folders.not_found", missing=str(attempted))
                return None
            else:
                raise FolderNotFoundError(
                    f"Folder '{folder_path}' not found in mailbox {mailbox!r} (missing '{attempted}')",
                    path=str(folder_path),
                    mailbox=mailbox,
                )
            current_path = attempted
        log.debug("folders.resolved", folder_id=current_id)
        return current_id

    @staticmethod
    def _call(operation: str, folder_path: FolderPath, mailbox: str, fn):
        """Run a service call, wrapping foreign exceptions as MailboxAccessError."""
        try:
            return fn()
        except MailfilerError:
            raise
        except Exception as e:
            raise MailboxAccessError(
                f"{operation} failed for '{folder_path}' in mailbox {mailbox!r}: {e}",
                operation=operation,
                path=str(folder_path),
                mailbox=mailbox,
            ) from e
