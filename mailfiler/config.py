"""Configuration and settings."""

import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()


def _split_list(raw: str) -> list[str]:
    return [item for item in raw.replace(",", " ").split() if item]


# Paths
MAILFILER_HOME = Path(os.getenv("MAILFILER_HOME", str(Path.home() / ".mailfiler"))).expanduser()
TOKEN_CACHE_PATH = Path(
    os.getenv("MAILFILER_TOKEN_CACHE", str(MAILFILER_HOME / "token_cache.json"))
).expanduser()

# Azure app registration
AZURE_TENANT_ID = os.getenv("AZURE_TENANT_ID", "")
AZURE_CLIENT_ID = os.getenv("AZURE_CLIENT_ID", "")
AZURE_CLIENT_SECRET = os.getenv("AZURE_CLIENT_SECRET", "")
AUTHORITY_HOST = os.getenv("AZURE_AUTHORITY_HOST", "https://login.microsoftonline.com").rstrip("/")
USE_BROKER = os.getenv("MAILFILER_USE_BROKER", "false").lower() == "true"

# Microsoft Graph scopes: delegated by default, .default for client credentials
DELEGATED_SCOPES = [
    "https://graph.microsoft.com/Mail.ReadWrite",
    "https://graph.microsoft.com/Mail.Send",
]
APPLICATION_SCOPES = ["https://graph.microsoft.com/.default"]
SCOPES = _split_list(os.getenv("MAILFILER_SCOPES", "")) or (
    APPLICATION_SCOPES if AZURE_CLIENT_SECRET else DELEGATED_SCOPES
)

# Logging
LOG_DIR = MAILFILER_HOME / "logs"
LOG_FILE = LOG_DIR / "mailfiler.jsonl"
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
VERBOSE_LOGGING = os.getenv("VERBOSE_LOGGING", "false").lower() == "true"

# Audit trail ("" disables the CSV sink; entries still go to the structured log)
_audit_raw = os.getenv("MAILFILER_AUDIT_LOG", str(MAILFILER_HOME / "audit.csv"))
AUDIT_LOG_PATH = Path(_audit_raw).expanduser() if _audit_raw else None
AUDIT_SOURCE = os.getenv("MAILFILER_AUDIT_SOURCE", "mailfiler")

# Attachments that are copied before attaching (files an office app may hold locked)
LOCKING_EXTENSIONS = frozenset(
    ext.lower() if ext.startswith(".") else f".{ext.lower()}"
    for ext in _split_list(os.getenv("MAILFILER_LOCKING_EXTENSIONS", ".xls,.xlsx,.xlsm,.xlsb,.csv"))
)

# Sent copy lookup after sending a draft filed in a custom folder (Graph eventual consistency)
SENT_LOOKUP_ATTEMPTS = int(os.getenv("MAILFILER_SENT_LOOKUP_ATTEMPTS", "5"))
SENT_LOOKUP_DELAY = float(os.getenv("MAILFILER_SENT_LOOKUP_DELAY", "1.0"))

# OpenTelemetry
TRACING_ENABLED = os.getenv("TRACING_ENABLED", "false").lower() == "true"
OTEL_EXPORTER_OTLP_ENDPOINT = os.getenv(
    "OTEL_EXPORTER_OTLP_ENDPOINT",
    "http://localhost:4318/v1/traces",
)
OTEL_SERVICE_NAME = os.getenv("OTEL_SERVICE_NAME", "mailfiler")
DEPLOYMENT_ENVIRONMENT = os.getenv("DEPLOYMENT_ENVIRONMENT", "development")
