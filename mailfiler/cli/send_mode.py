"""Send mode: send a message and file its copy in a mailbox folder."""

from pathlib import Path
from typing import Optional

import typer

from mailfiler.config import LOCKING_EXTENSIONS
from mailfiler.exceptions import MailfilerError
from mailfiler.mail_provider.models import Importance, MailMessage
from mailfiler.sender import MailSender
from mailfiler.utils.logger import bind_context, clear_context

from .shared import (
    MOCK_HELP,
    console,
    fail,
    get_audit_sink,
    get_auth_provider,
    logger,
    open_service,
    require_settings,
)


def send(
    sender: str = typer.Option(..., "--from", "-f", help="Sending mailbox address"),
    to: list[str] = typer.Option(..., "--to", "-t", help="To recipient (repeatable)"),
    cc: list[str] = typer.Option([], "--cc", help="Cc recipient (repeatable)"),
    bcc: list[str] = typer.Option([], "--bcc", help="Bcc recipient (repeatable)"),
    subject: str = typer.Option(..., "--subject", "-s", help="Subject line"),
    body: str = typer.Option("", "--body", "-b", help="Message body"),
    body_file: Optional[Path] = typer.Option(None, "--body-file", help="Read the body from a file"),
    html: bool = typer.Option(False, "--html", help="Send the body as HTML"),
    importance: Importance = typer.Option(Importance.NORMAL, "--importance", "-p", help="Message importance"),
    attach: list[Path] = typer.Option([], "--attach", "-a", help="File to attach (repeatable)"),
    folder: Optional[str] = typer.Option(
        None, "--folder", help="File the sent copy in this folder, e.g. \\Inbox\\Project"
    ),
    create_folder: bool = typer.Option(False, "--create-folder", help="Create missing folders in --folder"),
    context: Optional[str] = typer.Option(None, "--context", help="Invoking context recorded in the audit entry"),
    mock: Optional[Path] = typer.Option(None, "--mock", help=MOCK_HELP),
) -> None:
    """Send a message (with attachments) and file its copy."""
    log = logger.bind(command="send", sender=sender, folder=folder)
    log.info("send.start")

    if body_file is not None:
        body = body_file.read_text(encoding="utf-8")

    settings = require_settings(mock)
    auth_provider = get_auth_provider(settings, mock)
    message = MailMessage(
        subject=subject,
        body=body,
        body_type="html" if html else "text",
        sender=sender,
        to=to,
        cc=cc,
        bcc=bcc,
        importance=importance,
        attachments=attach,
    )
    mail_sender = MailSender(
        auth_provider,
        settings,
        audit_sink=get_audit_sink(),
        locking_extensions=LOCKING_EXTENSIONS,
        create_missing_folders=create_folder,
    )
    bind_context(command="send", sender=sender)
    try:
        with open_service(auth_provider, settings, mock) as service:
            result = mail_sender.send(message, service, sent_items_path=folder, context=context)
    except MailfilerError as e:
        clear_context()
        fail(e, log)

    console.print(f"[green]Sent[/green] {subject!r} to {', '.join(to)}")
    console.print(f"  Filed in: {result.folder_path or 'Sent Items'} ({result.send_mode})")
    if result.attachments:
        console.print(f"  Attachments: {', '.join(result.attachments)}")
    log.info("send.complete", send_mode=result.send_mode, folder_id=result.folder_id)
    clear_context()
