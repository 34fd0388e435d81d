"""Account management CLI commands."""

import asyncio

import typer
from rich.console import Console
from rich.table import Table
from sqlmodel import select

from linkauth.config import settings
from linkauth.database import get_session_context
from linkauth.models import Account
from linkauth.services.accounts import get_account_by_email, store_magic_link
from linkauth.services.errors import StoreConflict
from linkauth.services.tokens import build_magic_link, generate_token, token_expiry
from linkauth.utils.clock import utc_now

console = Console()
app = typer.Typer(help="Account management commands")


@app.command("list")
def list_accounts():
    """List all accounts."""

    async def _list():
        async with get_session_context() as session:
            stmt = select(Account).order_by(Account.email)
            result = await session.execute(stmt)
            accounts = result.scalars().all()

            table = Table(title="Accounts")
            table.add_column("ID", style="cyan")
            table.add_column("Email", style="green")
            table.add_column("Name")
            table.add_column("Verified", style="magenta")
            table.add_column("Pending Link", style="yellow")
            table.add_column("Created", style="dim")

            for account in accounts:
                verified_str = "[green]Yes[/green]" if account.verified else "No"
                pending = "Yes" if account.magic_link_token else "-"
                created = account.created_at.strftime("%Y-%m-%d") if account.created_at else "-"
                table.add_row(
                    account.id, account.email, account.name or "-", verified_str, pending, created
                )

            console.print(table)

    asyncio.run(_list())


@app.command("create")
def create_account(
    email: str = typer.Argument(..., help="Account email"),
    name: str | None = typer.Option(None, "--name", "-n", help="Display name"),
    verified: bool = typer.Option(False, "--verified", help="Mark the account verified"),
):
    """Create an account without sending a link."""

    async def _create():
        async with get_session_context() as session:
            if await get_account_by_email(session, email):
                console.print(f"[red]Error:[/red] Account {email} already exists")
                raise typer.Exit(1)

            session.add(Account(email=email, name=name, verified=verified))
            await session.commit()
            name_str = f" ({name})" if name else ""
            console.print(f"[green]Created account:[/green] {email}{name_str} (verified={verified})")

    asyncio.run(_create())


@app.command("login-url")
def login_url(email: str = typer.Argument(..., help="Account email")):
    """Issue a magic link for an account and print it instead of emailing it.

    Replaces any link previously sent to the account.
    """

    async def _generate():
        async with get_session_context() as session:
            account = await get_account_by_email(session, email)
            if not account:
                console.print(f"[red]Error:[/red] Account {email} not found")
                raise typer.Exit(1)

            token = generate_token()
            expires = token_expiry(utc_now(), settings.magic_link_expiration_minutes)
            try:
                stored = await store_magic_link(
                    session, account.id, token, expires, verified=account.verified
                )
            except StoreConflict:
                console.print("[red]Error:[/red] Token collision, try again")
                raise typer.Exit(1) from None
            if not stored:
                console.print(f"[red]Error:[/red] Account {email} changed, try again")
                raise typer.Exit(1)
            await session.commit()

            link = build_magic_link(settings.magic_link_base_url, token)
            console.print(f"[green]Login URL:[/green] {link}")
            console.print(f"[dim]Expires: {expires}[/dim]")

    asyncio.run(_generate())
