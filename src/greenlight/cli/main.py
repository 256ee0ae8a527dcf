"""Greenlight CLI — run the API server, manage permissions.

Usage:
    greenlight serve                                 # Run the API on settings.host:port
    greenlight serve --port 4001 --reload            # Override and auto-reload
    greenlight grant alice@example.com movies:write  # Grant permission codes
"""

import asyncio
import concurrent.futures
import sys

import click

from greenlight.config import settings

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _run(coro):
    """Run an async coroutine from synchronous Click handler.

    Handles nested event loops (e.g. when invoked via Click CliRunner
    inside an existing async context like tests) by offloading to a thread.
    """
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return asyncio.run(coro)
    else:
        with concurrent.futures.ThreadPoolExecutor(max_workers=1) as pool:
            return pool.submit(asyncio.run, coro).result()


# ---------------------------------------------------------------------------
# CLI group
# ---------------------------------------------------------------------------


@click.group()
def cli():
    """Greenlight — movie catalogue JSON API."""


@cli.command()
@click.option("--host", default=None, help="Bind address (default: settings.host)")
@click.option("--port", default=None, type=int, help="Port (default: settings.port)")
@click.option("--reload", is_flag=True, help="Auto-reload on code changes")
def serve(host, port, reload):
    """Run the API server under uvicorn."""
    import uvicorn

    uvicorn.run(
        "greenlight.main:app",
        host=host or settings.host,
        port=port or settings.port,
        reload=reload,
        proxy_headers=True,
    )


async def _grant(email: str, codes: tuple[str, ...]) -> list[str]:
    from greenlight.db.engine import async_session_factory, engine
    from greenlight.services.permission_service import PermissionService
    from greenlight.services.user_service import UserService

    try:
        async with async_session_factory() as db:
            user = await UserService(db).get_by_email(email)
            if user is None:
                raise click.ClickException(f"no user with email {email}")
            perms = PermissionService(db)
            await perms.add_for_user(user.id, *codes)
            return sorted(await perms.get_all_for_user(user.id))
    finally:
        await engine.dispose()


@cli.command()
@click.argument("email")
@click.argument("codes", nargs=-1, required=True)
def grant(email, codes):
    """Grant permission CODES (e.g. movies:write) to the user with EMAIL."""
    held = _run(_grant(email, codes))

    missing = [code for code in codes if code not in held]
    if missing:
        click.secho(f"Unknown permission codes: {', '.join(missing)}", fg="red", err=True)
        sys.exit(1)

    click.secho(f"✓ {email} now holds: {', '.join(held)}", fg="green")


if __name__ == "__main__":
    cli()
