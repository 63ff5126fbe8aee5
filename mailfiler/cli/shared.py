"""Shared CLI helpers: console, logger, auth/service/audit wiring."""

from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

import typer
from rich.console import Console
from rich.markup import escape

from mailfiler.audit import AuditSink, CsvAuditSink, LoggerAuditSink, MultiAuditSink
from mailfiler.auth import AuthProvider, AuthSettings, LocalAuthProvider, MsalAuthProvider, ProviderCredential
from mailfiler.config import AUDIT_LOG_PATH
from mailfiler.exceptions import MailfilerError
from mailfiler.mail_provider.graph_mock import JsonMailboxService
from mailfiler.mail_provider.protocol import MailServiceClient
from mailfiler.utils.logger import get_logger

console = Console()
logger = get_logger("mailfiler.cli")

MOCK_HELP = "Use a local JSON mock mailbox file instead of Microsoft Graph"


def require_settings(mock: Optional[Path]) -> AuthSettings:
    """Auth settings from the environment; exits when Graph is targeted without an app registration."""
    settings = AuthSettings.from_env()
    if mock is None:
        missing = [
            name
            for name, value in (("AZURE_TENANT_ID", settings.tenant_id), ("AZURE_CLIENT_ID", settings.client_id))
            if not value
        ]
        if missing:
            console.print(f"[red]Missing environment variables: {', '.join(missing)}[/red]")
            logger.warning("cli.missing_env", missing=missing)
            raise typer.Exit(1)
    return settings


def get_auth_provider(settings: AuthSettings, mock: Optional[Path]) -> AuthProvider:
    if mock is not None:
        return LocalAuthProvider()
    return MsalAuthProvider.from_settings(settings, on_device_code=console.print)


@contextmanager
def open_service(
    auth_provider: AuthProvider,
    settings: AuthSettings,
    mock: Optional[Path],
) -> Iterator[MailServiceClient]:
    """Mock mailbox for ``--mock``, Microsoft Graph otherwise (closed on exit)."""
    if mock is not None:
        yield JsonMailboxService(path=mock, auto_provision=True)
        return
    from mailfiler.mail_provider.graph_real import GraphMailService

    with GraphMailService(ProviderCredential(auth_provider, settings), scopes=settings.scopes) as service:
        yield service


def get_audit_sink() -> AuditSink:
    if AUDIT_LOG_PATH is None:
        return LoggerAuditSink()
    return MultiAuditSink(LoggerAuditSink(), CsvAuditSink(AUDIT_LOG_PATH))


def fail(error: MailfilerError, log) -> None:
    """Print a MailfilerError and exit 1."""
    console.print(f"[red]{escape(str(error))}[/red]")
    log.warning("cli.failed", error=str(error), error_kind=error.error_type.value, stage=error.stage)
    raise typer.Exit(1)
