"""Folder mode: resolve (and optionally create) a mailbox folder path."""

from pathlib import Path
from typing import Optional

import typer

from mailfiler.exceptions import MailfilerError
from mailfiler.folders import FolderResolver
from mailfiler.mail_provider.models import FolderPath

from .shared import MOCK_HELP, console, fail, get_auth_provider, logger, open_service, require_settings


def resolve_folder(
    path: str = typer.Argument(..., help="Folder path, e.g. \\Inbox\\Project\\Archive"),
    mailbox: str = typer.Option(..., "--mailbox", "-m", help="Mailbox address"),
    create: bool = typer.Option(False, "--create", "-c", help="Create missing folders"),
    non_fatal: bool = typer.Option(False, "--non-fatal", help="Warn instead of failing when the folder is missing"),
    mock: Optional[Path] = typer.Option(None, "--mock", help=MOCK_HELP),
) -> None:
    """Print the id of the folder at PATH."""
    log = logger.bind(command="resolve-folder", mailbox=mailbox, path=path)
    log.info("resolve_folder.start")
    settings = require_settings(mock)
    auth_provider = get_auth_provider(settings, mock)
    try:
        folder_path = FolderPath.parse(path)
        with open_service(auth_provider, settings, mock) as service:
            folder_id = FolderResolver(service, non_fatal=non_fatal).resolve(
                folder_path, mailbox, create_if_missing=create
            )
    except MailfilerError as e:
        fail(e, log)

    if folder_id is None:
        console.print(f"[yellow]Folder {folder_path} not found[/yellow]")
        log.info("resolve_folder.not_found")
        return
    console.print(f"{folder_path}\t{folder_id}")
    log.info("resolve_folder.complete", folder_id=folder_id)
