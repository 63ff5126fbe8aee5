"""Validate config: print the effective settings and check the app registration ids."""

from rich.table import Table

from mailfiler import config

from .shared import console, logger


def validate_config() -> None:
    """Print effective settings; exit 1 when the tenant or client id is missing."""
    log = logger.bind(command="validate-config")
    log.info("validate_config.start")

    table = Table(title="mailfiler settings")
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="green")
    rows = [
        ("AZURE_TENANT_ID", config.AZURE_TENANT_ID[:8] + "..." if config.AZURE_TENANT_ID else "(missing)"),
        ("AZURE_CLIENT_ID", config.AZURE_CLIENT_ID[:8] + "..." if config.AZURE_CLIENT_ID else "(missing)"),
        ("Auth flow", "client credentials" if config.AZURE_CLIENT_SECRET else "delegated"),
        ("Scopes", " ".join(config.SCOPES)),
        ("Token cache", str(config.TOKEN_CACHE_PATH)),
        ("Audit log", str(config.AUDIT_LOG_PATH) if config.AUDIT_LOG_PATH else "(log only)"),
        ("Log file", str(config.LOG_FILE)),
        ("Copied attachment types", " ".join(sorted(config.LOCKING_EXTENSIONS))),
        ("Tracing", config.OTEL_EXPORTER_OTLP_ENDPOINT if config.TRACING_ENABLED else "disabled"),
    ]
    for name, value in rows:
        table.add_row(name, value)
    console.print(table)

    missing = [name for name in ("AZURE_TENANT_ID", "AZURE_CLIENT_ID") if not getattr(config, name)]
    if missing:
        console.print(f"[red]Config error: missing {', '.join(missing)}[/red]")
        log.error("validate_config.fail", missing=missing)
        raise SystemExit(1)
    console.print("[green]Config valid.[/green]")
    log.info("validate_config.ok")
