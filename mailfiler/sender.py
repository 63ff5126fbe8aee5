"""MailSender: refresh credentials, build, file and send a message, then audit it."""

import getpass
import os
import socket
import sys
from contextlib import contextmanager
from pathlib import Path
from typing import Iterable, Optional, Union

from email_validator import EmailNotValidError, validate_email
from opentelemetry.trace import SpanKind, Status, StatusCode

from mailfiler.attachments import AttachmentStager, CopyPredicate, extension_predicate
from mailfiler.audit import AuditSink, LoggerAuditSink
from mailfiler.auth.provider import AuthProvider, AuthSettings
from mailfiler.config import AUDIT_SOURCE, LOCKING_EXTENSIONS
from mailfiler.exceptions import MailfilerError, SendError, ValidationError
from mailfiler.folders import FolderResolver
from mailfiler.mail_provider.models import FolderPath, MailMessage, SendResult
from mailfiler.mail_provider.protocol import MailServiceClient
from mailfiler.utils.logger import get_logger
from mailfiler.utils.tracing import get_tracer

logger = get_logger("mailfiler.sender")

STAGE_VALIDATE = "validate"
STAGE_AUTHENTICATE = "authenticate"
STAGE_ATTACH = "attach"
STAGE_RESOLVE_FOLDER = "resolve_folder"
STAGE_DELIVER = "deliver"


def default_context() -> str:
    """``<script> as <user>@<host>`` for audit entries."""
    script = Path(sys.argv[0]).name if sys.argv and sys.argv[0] else "python"
    try:
        user = getpass.getuser()
    except (KeyError, OSError):
        user = os.getenv("USERNAME") or "unknown"
    return f"{script} as {user}@{socket.gethostname()}"


def _invalid_addresses(addresses: Iterable[str]) -> list[str]:
    invalid = []
    for address in addresses:
        try:
            validate_email(address or "", check_deliverability=False)
        except EmailNotValidError:
            invalid.append(address)
    return invalid


def validate_message(message: MailMessage) -> None:
    """Raise ValidationError for messages the service would reject."""
    if not message.to:
        raise ValidationError("Message needs at least one To recipient", stage=STAGE_VALIDATE)
    if not message.subject or not message.subject.strip():
        raise ValidationError("Message subject is empty", stage=STAGE_VALIDATE)

    invalid: dict[str, list[str]] = {}
    for field, addresses in (
        ("sender", [message.sender]),
        ("to", message.to),
        ("cc", message.cc),
        ("bcc", message.bcc),
    ):
        bad = _invalid_addresses(addresses)
        if bad:
            invalid[field] = bad
    if invalid:
        raise ValidationError(
            f"Invalid address in {', '.join(invalid)}: {', '.join(repr(a) for bad in invalid.values() for a in bad)}",
            stage=STAGE_VALIDATE,
            fields=list(invalid),
        )


def audit_message(message: MailMessage, folder: Optional[str], context: str) -> str:
    attachments = ", ".join(Path(a).name for a in message.attachments) or "(none)"
    return (
        f"Mail sent by {context}. "
        f"From: {message.sender}; "
        f"To: {'; '.join(message.to)}; "
        f"Cc: {'; '.join(message.cc)}; "
        f"Bcc: {'; '.join(message.bcc)}; "
        f"Subject: {message.subject}; "
        f"Importance: {message.importance.value}; "
        f"Attachments: {attachments}; "
        f"Filed in: {folder or 'Sent Items'}"
    )


class MailSender:
    """Send messages through a MailServiceClient.

    A silently renewed token is requested before every send. When
    ``sent_items_path`` is given the message is saved into that folder and
    then sent with its copy filed there; messages with attachments are also
    saved (to Drafts) before sending. Everything else goes out in one
    send-and-save-copy call. Temporary attachment copies are always removed.
    """

    def __init__(
        self,
        auth_provider: AuthProvider,
        auth_settings: AuthSettings,
        audit_sink: Optional[AuditSink] = None,
        locking_extensions: Iterable[str] = LOCKING_EXTENSIONS,
        copy_predicate: Optional[CopyPredicate] = None,
        create_missing_folders: bool = False,
        audit_source: str = AUDIT_SOURCE,
    ):
        self._auth_provider = auth_provider
        self._auth_settings = auth_settings
        self._audit_sink = audit_sink or LoggerAuditSink()
        self._copy_predicate = copy_predicate or extension_predicate(locking_extensions)
        self._create_missing_folders = create_missing_folders
        self._audit_source = audit_source

    def send(
        self,
        message: MailMessage,
        service: MailServiceClient,
        sent_items_path: Optional[Union[FolderPath, str]] = None,
        context: Optional[str] = None,
    ) -> SendResult:
        log = logger.bind(mailbox=message.sender, subject=message.subject)
        with get_tracer().start_as_current_span(
            "mail_send",
            kind=SpanKind.CLIENT,
            attributes={
                "mail.mailbox": message.sender,
                "mail.recipients": len(message.to) + len(message.cc) + len(message.bcc),
                "mail.attachments": len(message.attachments),
            },
        ) as span:
            try:
                result = self._send(message, service, sent_items_path, context or default_context(), log)
            except MailfilerError as e:
                span.set_status(Status(StatusCode.ERROR, str(e)))
                log.error("sender.failed", stage=e.stage, error=str(e))
                raise
            span.set_attribute("mail.send_mode", result.send_mode)
            return result

    def _send(
        self,
        message: MailMessage,
        service: MailServiceClient,
        sent_items_path: Optional[Union[FolderPath, str]],
        context: str,
        log,
    ) -> SendResult:
        with _stage(STAGE_VALIDATE):
            validate_message(message)
            folder_path = None
            if sent_items_path is not None:
                folder_path = (
                    sent_items_path
                    if isinstance(sent_items_path, FolderPath)
                    else FolderPath.parse(sent_items_path)
                )

        with _stage(STAGE_AUTHENTICATE):
            self._auth_provider.renew_token_silently(
                self._auth_settings.client_id,
                self._auth_settings.tenant_id,
                self._auth_settings.scopes,
            )
            log.debug("sender.token_renewed")

        stager = AttachmentStager(message.attachments, should_copy=self._copy_predicate)
        try:
            with _stage(STAGE_ATTACH):
                attachment_paths = stager.stage()
            try:
                result = self._deliver(message, service, folder_path, attachment_paths, log)
            except MailfilerError as e:
                # Sent but not filed: the copy stayed in Sent Items
                if e.context.get("delivered"):
                    self._audit(message, None, context, log)
                raise
        finally:
            stager.cleanup()

        self._audit(message, result.folder_path, context, log)
        log.info(
            "sender.sent",
            send_mode=result.send_mode,
            folder_path=result.folder_path,
            to=message.to,
            attachments=result.attachments,
        )
        return result

    def _deliver(
        self,
        message: MailMessage,
        service: MailServiceClient,
        folder_path: Optional[FolderPath],
        attachment_paths: list[Path],
        log,
    ) -> SendResult:
        mailbox = message.sender
        attachment_names = [p.name for p in attachment_paths]

        folder_id = None
        if folder_path is not None:
            with _stage(STAGE_RESOLVE_FOLDER, path=str(folder_path), mailbox=mailbox):
                folder_id = FolderResolver(service).resolve(
                    folder_path,
                    mailbox,
                    create_if_missing=self._create_missing_folders,
                )

        with _stage(STAGE_DELIVER, mailbox=mailbox, path=str(folder_path) if folder_path else None):
            if folder_id is None and not attachment_paths:
                service.send_and_save_copy(mailbox, message)
                return SendResult(saved_before_send=False, send_mode="send_and_save")

            # Attachments must be fully written to the saved item before it is sent
            message_id = service.save_message(mailbox, message, attachment_paths, folder_id=folder_id)
            log.debug("sender.saved", message_id=message_id, folder_id=folder_id)
            service.send_saved_message(mailbox, message_id, copy_folder_id=folder_id)
            return SendResult(
                saved_before_send=True,
                send_mode="save_then_send",
                folder_id=folder_id,
                folder_path=str(folder_path) if folder_path else None,
                message_id=message_id,
                attachments=attachment_names,
            )

    def _audit(self, message: MailMessage, folder: Optional[str], context: str, log) -> None:
        # The mail is already out; a failing sink must not turn that into an error
        try:
            self._audit_sink.write(self._audit_source, audit_message(message, folder, context))
        except Exception as e:
            log.warning("sender.audit_failed", error=str(e), error_type=type(e).__name__)


@contextmanager
def _stage(name: str, **context):
    """Tag MailfilerErrors raised inside with the stage; wrap anything else in SendError."""
    try:
        yield
    except MailfilerError as e:
        if e.stage is None:
            e.stage = name
        for key, value in context.items():
            if value is not None:
                e.context.setdefault(key, value)
        raise
    except Exception as e:
        raise SendError(
            f"{name} failed: {e}",
            stage=name,
            cause=type(e).__name__,
            **context,
        ) from e
