"""Mail provider: Graph-like service interface, mock and real implementations."""

from mailfiler.mail_provider.models import (
    FolderPath,
    Importance,
    MailFolder,
    MailMessage,
    SendResult,
)
from mailfiler.mail_provider.protocol import MailServiceClient
from mailfiler.mail_provider.graph_mock import JsonMailboxService

__all__ = [
    "FolderPath",
    "Importance",
    "MailFolder",
    "MailMessage",
    "SendResult",
    "MailServiceClient",
    "JsonMailboxService",
]
