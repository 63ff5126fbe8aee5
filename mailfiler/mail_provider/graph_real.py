"""Microsoft Graph mail service (async SDK driven from a private event loop)."""

import asyncio
import mimetypes
import time
from pathlib import Path
from typing import Any, Optional

from azure.core.credentials import TokenCredential
from kiota_abstractions.base_request_configuration import RequestConfiguration
from msgraph import GraphServiceClient
from msgraph.generated.models.body_type import BodyType
from msgraph.generated.models.email_address import EmailAddress as GraphSDKEmailAddress
from msgraph.generated.models.file_attachment import FileAttachment
from msgraph.generated.models.importance import Importance as GraphSDKImportance
from msgraph.generated.models.item_body import ItemBody as GraphSDKItemBody
from msgraph.generated.models.mail_folder import MailFolder as GraphSDKMailFolder
from msgraph.generated.models.message import Message as GraphSDKMessage
from msgraph.generated.models.o_data_errors.o_data_error import ODataError
from msgraph.generated.models.recipient import Recipient as GraphSDKRecipient
from msgraph.generated.users.item.mail_folders.item.child_folders.child_folders_request_builder import (
    ChildFoldersRequestBuilder,
)
from msgraph.generated.users.item.mail_folders.item.messages.messages_request_builder import (
    MessagesRequestBuilder,
)
from msgraph.generated.users.item.messages.item.move.move_post_request_body import (
    MovePostRequestBody,
)
from msgraph.generated.users.item.send_mail.send_mail_post_request_body import (
    SendMailPostRequestBody,
)

from mailfiler.config import SCOPES, SENT_LOOKUP_ATTEMPTS, SENT_LOOKUP_DELAY
from mailfiler.exceptions import AttachmentError, MailboxAccessError, SendError
from mailfiler.mail_provider.models import (
    DRAFTS_FOLDER,
    ROOT_FOLDER,
    SENT_ITEMS_FOLDER,
    Importance,
    MailFolder,
    MailMessage,
)
from mailfiler.utils.logger import get_logger

logger = get_logger("mailfiler.mail_provider.graph")

# sendMail / attachments POST limit; larger files need an upload session
MAX_INLINE_ATTACHMENT_BYTES = 3 * 1024 * 1024

_ACCESS_ERROR_CODES = {
    "ErrorAccessDenied",
    "ErrorInvalidUser",
    "MailboxNotEnabledForRESTAPI",
    "MailboxNotFound",
    "ResourceNotFound",
    "ErrorNonExistentMailbox",
}

_IMPORTANCE = {
    Importance.LOW: GraphSDKImportance.Low,
    Importance.NORMAL: GraphSDKImportance.Normal,
    Importance.HIGH: GraphSDKImportance.High,
}


def _odata_details(e: ODataError) -> tuple[Optional[int], str, str]:
    code = e.error.code if e.error and e.error.code else ""
    message = e.error.message if e.error and e.error.message else (str(e).strip() or repr(e))
    return getattr(e, "response_status_code", None), code, message


def _translate_error(e: ODataError, operation: str, mailbox: str, **context: Any) -> Exception:
    """Map a Graph ODataError to the mailfiler error taxonomy."""
    status, code, message = _odata_details(e)
    if status in (401, 403) or code in _ACCESS_ERROR_CODES or (operation == "get_root_folder" and status == 404):
        return MailboxAccessError(
            f"{operation} failed for mailbox {mailbox!r}: {message}",
            operation=operation,
            mailbox=mailbox,
            status=status,
            code=code or None,
            **context,
        )
    return SendError(
        f"{operation} failed for mailbox {mailbox!r}: {message}",
        operation=operation,
        mailbox=mailbox,
        status=status,
        code=code or None,
        **context,
    )


def _escape_odata(value: str) -> str:
    return value.replace("'", "''")


def _convert_sdk_folder(folder: GraphSDKMailFolder, well_known_name: Optional[str] = None) -> MailFolder:
    return MailFolder(
        id=folder.id or "",
        display_name=folder.display_name or "",
        parent_id=folder.parent_folder_id,
        well_known_name=well_known_name,
    )


def _recipients(addresses: list[str]) -> list[GraphSDKRecipient]:
    return [GraphSDKRecipient(email_address=GraphSDKEmailAddress(address=a)) for a in addresses]


def _build_sdk_message(message: MailMessage) -> GraphSDKMessage:
    return GraphSDKMessage(
        subject=message.subject,
        body=GraphSDKItemBody(
            content_type=BodyType.Html if message.body_type == "html" else BodyType.Text,
            content=message.body,
        ),
        from_=GraphSDKRecipient(email_address=GraphSDKEmailAddress(address=message.sender)),
        to_recipients=_recipients(message.to),
        cc_recipients=_recipients(message.cc),
        bcc_recipients=_recipients(message.bcc),
        importance=_IMPORTANCE[message.importance],
    )


def _build_file_attachment(path: Path) -> FileAttachment:
    size = path.stat().st_size
    if size > MAX_INLINE_ATTACHMENT_BYTES:
        raise AttachmentError(
            f"Attachment {path.name!r} is {size} bytes; Graph accepts at most "
            f"{MAX_INLINE_ATTACHMENT_BYTES} bytes per inline attachment",
            path=str(path),
        )
    content_type, _ = mimetypes.guess_type(path.name)
    return FileAttachment(
        odata_type="#microsoft.graph.fileAttachment",
        name=path.name,
        content_type=content_type or "application/octet-stream",
        content_bytes=path.read_bytes(),
    )


class GraphMailService:
    """Microsoft Graph implementation of MailServiceClient for /users/{mailbox}.

    The SDK is async; every call is run to completion on a loop owned by this
    instance, so the public methods block. Close the service when done.
    """

    def __init__(
        self,
        credential: TokenCredential,
        scopes: Optional[list[str]] = None,
        sent_lookup_attempts: int = SENT_LOOKUP_ATTEMPTS,
        sent_lookup_delay: float = SENT_LOOKUP_DELAY,
    ):
        self._client = GraphServiceClient(credentials=credential, scopes=scopes or SCOPES)
        self._loop = asyncio.new_event_loop()
        self._sent_lookup_attempts = max(1, sent_lookup_attempts)
        self._sent_lookup_delay = sent_lookup_delay
        logger.info("graph_service.init", scopes=scopes or SCOPES)

    def __enter__(self) -> "GraphMailService":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def close(self) -> None:
        if not self._loop.is_closed():
            self._loop.close()

    def _run(self, coro):
        return self._loop.run_until_complete(coro)

    def _user(self, mailbox: str):
        return self._client.users.by_user_id(mailbox)

    def get_root_folder(self, mailbox: str) -> MailFolder:
        try:
            folder = self._run(self._user(mailbox).mail_folders.by_mail_folder_id(ROOT_FOLDER).get())
        except ODataError as e:
            raise _translate_error(e, "get_root_folder", mailbox) from e
        if folder is None or not folder.id:
            raise MailboxAccessError(f"Mailbox {mailbox!r} returned no root folder", mailbox=mailbox)
        logger.debug("graph_service.root_folder", mailbox=mailbox, folder_id=folder.id)
        return _convert_sdk_folder(folder, well_known_name=ROOT_FOLDER)

    def find_child_folders(self, mailbox: str, parent_id: str, display_name: str) -> list[MailFolder]:
        # Graph compares displayName case-insensitively; keep only exact matches
        query = ChildFoldersRequestBuilder.ChildFoldersRequestBuilderGetQueryParameters(
            filter=f"displayName eq '{_escape_odata(display_name)}'",
            top=100,
        )
        config = RequestConfiguration(query_parameters=query)
        try:
            result = self._run(
                self._user(mailbox).mail_folders.by_mail_folder_id(parent_id).child_folders.get(
                    request_configuration=config
                )
            )
        except ODataError as e:
            raise _translate_error(e, "find_child_folders", mailbox, parent_id=parent_id) from e
        matches = [
            _convert_sdk_folder(f)
            for f in (result.value if result and result.value else [])
            if (f.display_name or "") == display_name
        ]
        logger.debug(
            "graph_service.find_child_folders",
            mailbox=mailbox,
            parent_id=parent_id,
            display_name=display_name,
            count=len(matches),
        )
        return matches

    def create_folder(self, mailbox: str, parent_id: str, display_name: str) -> MailFolder:
        body = GraphSDKMailFolder(display_name=display_name, is_hidden=False)
        try:
            folder = self._run(
                self._user(mailbox).mail_folders.by_mail_folder_id(parent_id).child_folders.post(body)
            )
        except ODataError as e:
            raise _translate_error(e, "create_folder", mailbox, parent_id=parent_id) from e
        if folder is None or not folder.id:
            raise SendError(f"Folder {display_name!r} was not created", mailbox=mailbox, parent_id=parent_id)
        logger.info("graph_service.folder_created", mailbox=mailbox, display_name=display_name, folder_id=folder.id)
        return _convert_sdk_folder(folder)

    def save_message(
        self,
        mailbox: str,
        message: MailMessage,
        attachments: list[Path],
        folder_id: Optional[str] = None,
    ) -> str:
        file_attachments = [_build_file_attachment(Path(p)) for p in attachments]
        target = folder_id or DRAFTS_FOLDER
        try:
            saved = self._run(
                self._user(mailbox).mail_folders.by_mail_folder_id(target).messages.post(
                    _build_sdk_message(message)
                )
            )
        except ODataError as e:
            raise _translate_error(e, "save_message", mailbox, folder_id=target) from e
        if saved is None or not saved.id:
            raise SendError("Graph returned no id for the saved message", mailbox=mailbox, folder_id=target)
        try:
            for attachment in file_attachments:
                self._run(self._user(mailbox).messages.by_message_id(saved.id).attachments.post(attachment))
        except ODataError as e:
            self._discard_draft(mailbox, saved.id)
            raise _translate_error(
                e, "add_attachment", mailbox, folder_id=target, message_id=saved.id
            ) from e
        logger.info(
            "graph_service.message_saved",
            mailbox=mailbox,
            folder_id=target,
            message_id=saved.id,
            attachments=len(file_attachments),
        )
        return saved.id

    def _discard_draft(self, mailbox: str, message_id: str) -> None:
        try:
            self._run(self._user(mailbox).messages.by_message_id(message_id).delete())
        except ODataError as e:
            # The attachment failure is what the caller needs to see
            logger.warning("graph_service.draft_discard_failed", mailbox=mailbox, message_id=message_id, error=str(e))
            return
        logger.info("graph_service.draft_discarded", mailbox=mailbox, message_id=message_id)

    def send_saved_message(self, mailbox: str, message_id: str, copy_folder_id: Optional[str] = None) -> None:
        internet_message_id = None
        try:
            if copy_folder_id:
                saved = self._run(self._user(mailbox).messages.by_message_id(message_id).get())
                internet_message_id = saved.internet_message_id if saved else None
            self._run(self._user(mailbox).messages.by_message_id(message_id).send.post())
        except ODataError as e:
            raise _translate_error(e, "send_message", mailbox, message_id=message_id) from e
        logger.info("graph_service.message_sent", mailbox=mailbox, message_id=message_id)
        if copy_folder_id:
            if not internet_message_id:
                raise SendError(
                    "Sent message has no internetMessageId; cannot file its copy",
                    mailbox=mailbox,
                    message_id=message_id,
                    delivered=True,
                )
            self._file_sent_copy(mailbox, internet_message_id, copy_folder_id)

    def send_and_save_copy(self, mailbox: str, message: MailMessage, folder_id: Optional[str] = None) -> None:
        if folder_id:
            # sendMail can only file into Sent Items
            message_id = self.save_message(mailbox, message, [], folder_id=folder_id)
            self.send_saved_message(mailbox, message_id, copy_folder_id=folder_id)
            return
        body = SendMailPostRequestBody(message=_build_sdk_message(message), save_to_sent_items=True)
        try:
            self._run(self._user(mailbox).send_mail.post(body=body))
        except ODataError as e:
            raise _translate_error(e, "send_mail", mailbox) from e
        logger.info("graph_service.mail_sent", mailbox=mailbox, subject=message.subject)

    def _file_sent_copy(self, mailbox: str, internet_message_id: str, folder_id: str) -> None:
        """Move the sent copy from Sent Items into folder_id once it shows up there."""
        query = MessagesRequestBuilder.MessagesRequestBuilderGetQueryParameters(
            filter=f"internetMessageId eq '{_escape_odata(internet_message_id)}'",
            select=["id", "internetMessageId"],
            top=1,
        )
        config = RequestConfiguration(query_parameters=query)
        for attempt in range(self._sent_lookup_attempts):
            try:
                result = self._run(
                    self._user(mailbox).mail_folders.by_mail_folder_id(SENT_ITEMS_FOLDER).messages.get(
                        request_configuration=config
                    )
                )
                if result and result.value:
                    sent_id = result.value[0].id
                    self._run(
                        self._user(mailbox).messages.by_message_id(sent_id).move.post(
                            MovePostRequestBody(destination_id=folder_id)
                        )
                    )
                    logger.info("graph_service.sent_copy_filed", mailbox=mailbox, folder_id=folder_id)
                    return
            except ODataError as e:
                raise _translate_error(e, "file_sent_copy", mailbox, folder_id=folder_id, delivered=True) from e
            logger.debug("graph_service.sent_copy_pending", mailbox=mailbox, attempt=attempt + 1)
            if attempt + 1 < self._sent_lookup_attempts:
                time.sleep(self._sent_lookup_delay)
        raise SendError(
            "Message was sent but its copy did not appear in Sent Items; it was not filed",
            mailbox=mailbox,
            folder_id=folder_id,
            internet_message_id=internet_message_id,
            delivered=True,
        )
