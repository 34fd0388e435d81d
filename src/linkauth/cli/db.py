"""Database management CLI commands."""

import subprocess
import sys

import typer
from rich.console import Console

console = Console()
app = typer.Typer(help="Database management commands")


def _alembic(*args: str) -> int:
    """Run an alembic command in a subprocess and return its exit code."""
    result = subprocess.run(
        [sys.executable, "-m", "alembic", *args],
        check=False,
        capture_output=False,
    )
    return result.returncode


@app.command("migrate")
def migrate(
    revision: str = typer.Argument("head", help="Target revision (default: head)"),
):
    """Apply migrations up to the given revision."""
    console.print(f"[dim]Upgrading accounts schema to {revision}...[/dim]")
    if _alembic("upgrade", revision) != 0:
        console.print("[red]Migration failed![/red]")
        raise typer.Exit(1)
    console.print("[green]Schema is up to date.[/green]")


@app.command("rollback")
def rollback(
    revision: str = typer.Argument("-1", help="Target revision (default: one step back)"),
):
    """Downgrade the schema."""
    console.print(f"[dim]Downgrading to {revision}...[/dim]")
    if _alembic("downgrade", revision) != 0:
        console.print("[red]Rollback failed![/red]")
        raise typer.Exit(1)
    console.print("[green]Rollback complete.[/green]")


@app.command("current")
def current():
    """Show the current schema revision."""
    _alembic("current")


@app.command("reset")
def reset(
    force: bool = typer.Option(False, "--force", "-f", help="Skip confirmation"),
):
    """Drop the accounts table and re-create it.

    Every account and outstanding magic link is lost.
    """
    if not force:
        console.print("[bold red]WARNING:[/bold red] this deletes every account!")
        if not typer.confirm("Continue?"):
            raise typer.Exit(0)

    for step, target in (("downgrade", "base"), ("upgrade", "head")):
        console.print(f"[dim]alembic {step} {target}[/dim]")
        if _alembic(step, target) != 0:
            console.print(f"[red]{step} failed![/red]")
            raise typer.Exit(1)
    console.print("[green]Database reset complete.[/green]")


@app.command("history")
def history(
    limit: int = typer.Option(10, "--limit", "-l", help="Number of revisions to show"),
):
    """Show migration history."""
    _alembic("history", f"-r-{limit}:")


@app.command("create-migration")
def create_migration(
    message: str = typer.Argument(..., help="Migration message"),
    autogenerate: bool = typer.Option(True, "--autogenerate/--no-autogenerate", help="Diff against the models"),
):
    """Create a new migration revision."""
    args = ["revision", "-m", message]
    if autogenerate:
        args.append("--autogenerate")
    if _alembic(*args) != 0:
        console.print("[red]Failed to create migration![/red]")
        raise typer.Exit(1)
    console.print("[green]Migration created.[/green]")
