"""Login mode: interactive sign-in that fills the token cache for later silent renewal."""

import typer

from mailfiler.config import TOKEN_CACHE_PATH
from mailfiler.exceptions import MailfilerError

from .shared import console, fail, get_auth_provider, logger, require_settings


def login(
    integrated: bool = typer.Option(
        False, "--integrated", "-i", help="Interactive/integrated sign-in instead of device code"
    ),
) -> None:
    """Sign in once so that sends can renew tokens silently."""
    log = logger.bind(command="login", integrated=integrated)
    log.info("login.start")
    settings = require_settings(None)
    auth_provider = get_auth_provider(settings, None)
    if not settings.client_secret and not integrated:
        console.print(
            "[bold]Sign-in required[/bold]: open the URL below, enter the code, "
            "and complete sign-in within a few minutes.\n"
        )
    try:
        token = auth_provider.acquire_token(
            settings.client_id,
            settings.tenant_id,
            settings.scopes,
            integrated_auth=integrated,
        )
    except MailfilerError as e:
        fail(e, log)
    console.print(f"[green]Signed in.[/green] Token cache: {TOKEN_CACHE_PATH}")
    log.info("login.complete", expires_on=token.expires_on)
