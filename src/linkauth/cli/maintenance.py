"""Maintenance CLI commands."""

import asyncio

import typer
from rich.console import Console
from rich.table import Table

from linkauth.tasks import queue
from linkauth.tasks.maintenance import MAINTENANCE_TIMEOUT_SECONDS

console = Console()
app = typer.Typer(help="Maintenance and cleanup commands")


@app.command("sweep-tokens")
def sweep_tokens(
    dry_run: bool = typer.Option(False, "--dry-run/--execute", help="Only report, don't clear"),
    background: bool = typer.Option(False, "--background", "-b", help="Run in background worker"),
):
    """Clear expired magic link tokens.

    The worker already does this hourly; use this to run a sweep on demand.
    """

    async def _sweep():
        if background:
            job = await queue.enqueue(
                "sweep_expired_tokens",
                dry_run=dry_run,
                timeout=MAINTENANCE_TIMEOUT_SECONDS,
            )
            console.print(f"[green]Queued token sweep job:[/green] {job.id if job else 'unknown'}")
            return

        from linkauth.tasks.maintenance import sweep_expired_tokens

        console.print("[cyan]Scanning for expired magic links...[/cyan]")

        result = await sweep_expired_tokens(ctx={}, dry_run=dry_run)

        if not result.get("success"):
            console.print(f"[red]Error:[/red] {result.get('error')}")
            raise typer.Exit(1)

        table = Table(title="Token Sweep Results")
        table.add_column("Metric", style="cyan")
        table.add_column("Value", justify="right")

        table.add_row("Swept At", result["swept_at"])
        table.add_row("Expired Tokens", str(result.get("expired_count", 0)))
        if dry_run:
            table.add_row("Would Clear", str(result.get("expired_count", 0)))
        else:
            table.add_row("Cleared", str(result.get("cleared_count", 0)))

        console.print(table)

        if dry_run and result.get("expired_count", 0) > 0:
            console.print("\n[yellow]Dry run mode - no tokens were cleared.[/yellow]")

    asyncio.run(_sweep())
