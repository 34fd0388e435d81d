"""CLI commands using Typer."""

import typer

from linkauth.cli.accounts import app as accounts_app
from linkauth.cli.db import app as db_app
from linkauth.cli.maintenance import app as maintenance_app

app = typer.Typer(name="linkauth", help="linkauth CLI")

# Register sub-apps
app.add_typer(db_app, name="db")
app.add_typer(accounts_app, name="accounts")
app.add_typer(maintenance_app, name="maintenance")


@app.command()
def version():
    """Show version information."""
    from linkauth import __version__

    typer.echo(f"linkauth v{__version__}")


@app.command()
def serve(
    host: str = typer.Option("0.0.0.0", help="Host to bind to"),
    port: int = typer.Option(8000, help="Port to bind to"),
    reload: bool = typer.Option(False, help="Enable auto-reload"),
):
    """Run the API server."""
    import uvicorn

    from linkauth.logging import get_uvicorn_log_config

    uvicorn.run(
        "linkauth.main:app",
        host=host,
        port=port,
        reload=reload,
        log_config=get_uvicorn_log_config(),
    )


@app.command()
def worker(
    concurrency: int = typer.Option(2, help="Number of concurrent tasks"),
):
    """Run the background worker (hourly expired-token sweep)."""
    from linkauth.worker import main

    main(concurrency)


if __name__ == "__main__":
    app()
