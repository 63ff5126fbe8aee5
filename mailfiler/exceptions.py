"""Error taxonomy for folder resolution, authentication and sending."""

import enum
from typing import Any, Optional


class ErrorType(enum.Enum):
    MAILBOX_ACCESS = "mailbox_access"
    FOLDER_NOT_FOUND = "folder_not_found"
    AMBIGUOUS_FOLDER = "ambiguous_folder"
    AUTHENTICATION = "authentication"
    VALIDATION = "validation"
    ATTACHMENT = "attachment"
    SEND = "send"
    UNSPECIFIED = "unspecified"


class MailfilerError(Exception):
    """Base error. ``context`` holds operation, path, mailbox and similar details."""

    error_type: ErrorType = ErrorType.UNSPECIFIED
    context: dict[str, Any]

    def __init__(self, message: str, stage: Optional[str] = None, **context: Any) -> None:
        super().__init__(message)
        self.message = message
        self.stage = stage
        self.context = {k: v for k, v in context.items() if v is not None}

    def __str__(self) -> str:
        parts = [f"error: {self.error_type.value}"]
        if self.stage:
            parts.append(f"stage: {self.stage}")
        parts.append(f"description: {self.message}")
        return "; ".join(parts)


class MailboxAccessError(MailfilerError):
    error_type = ErrorType.MAILBOX_ACCESS


class FolderNotFoundError(MailfilerError):
    error_type = ErrorType.FOLDER_NOT_FOUND

    def __init__(self, message: str, path: str, stage: Optional[str] = None, **context: Any) -> None:
        super().__init__(message, stage=stage, path=path, **context)
        self.path = path


class AmbiguousFolderError(MailfilerError):
    error_type = ErrorType.AMBIGUOUS_FOLDER

    def __init__(
        self,
        message: str,
        path: str,
        candidates: list[str],
        stage: Optional[str] = None,
        **context: Any,
    ) -> None:
        super().__init__(message, stage=stage, path=path, candidates=candidates, **context)
        self.path = path
        self.candidates = candidates


class AuthenticationError(MailfilerError):
    error_type = ErrorType.AUTHENTICATION


class ValidationError(MailfilerError):
    error_type = ErrorType.VALIDATION


class AttachmentError(MailfilerError):
    error_type = ErrorType.ATTACHMENT

    def __init__(self, message: str, path: str, stage: Optional[str] = None, **context: Any) -> None:
        super().__init__(message, stage=stage, path=path, **context)
        self.path = path


class SendError(MailfilerError):
    error_type = ErrorType.SEND
