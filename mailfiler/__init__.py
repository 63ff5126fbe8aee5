"""Mailbox automation: folder path resolution and send-and-file for Microsoft Graph mailboxes."""

__version__ = "0.1.0"
