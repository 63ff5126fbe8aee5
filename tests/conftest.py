"""Test environment: keep token cache, logs and audit trail out of the user's home."""

import os
import tempfile

os.environ["MAILFILER_HOME"] = tempfile.mkdtemp(prefix="mailfiler-tests-")
os.environ["MAILFILER_AUDIT_LOG"] = ""
os.environ["AZURE_TENANT_ID"] = ""
os.environ["AZURE_CLIENT_ID"] = ""
os.environ["AZURE_CLIENT_SECRET"] = ""
os.environ["TRACING_ENABLED"] = "false"
