"""Typer CLI for Paygent-Engine."""

import asyncio

import typer
from rich.console import Console
from rich.table import Table

app = typer.Typer(name="paygent", help="Paygent-Engine: usage-based billing for AI agents")
console = Console()


@app.command()
def serve(
    host: str = typer.Option("0.0.0.0", help="Bind host"),
    port: int = typer.Option(8080, help="Bind port"),
):
    """Start the Paygent-Engine API server."""
    import uvicorn
    from paygent_engine.app import create_app

    console.print(f"[bold green]Starting Paygent-Engine on {host}:{port}[/bold green]")
    uvicorn.run(create_app(), host=host, port=port)


@app.command("init-db")
def init_db():
    """Create all tables in the configured database."""
    from paygent_engine.deps import get_db

    async def _run():
        db = get_db()
        await db.init()
        try:
            await db.create_all()
        finally:
            await db.close()

    asyncio.run(_run())
    console.print("[bold green]Database initialized[/bold green]")


@app.command("renew-fees")
def renew_fees():
    """Run one platform-fee renewal sweep (point a daily scheduler at this)."""
    from paygent_engine.common.config import get_settings
    from paygent_engine.common.logging import setup_logging
    from paygent_engine.deps import get_db, get_fee_scheduler

    setup_logging(get_settings().log_level)

    async def _run():
        db = get_db()
        await db.init()
        try:
            async with db.get_session() as session:
                return await get_fee_scheduler().renew_due_fees(session)
        finally:
            await db.close()

    result = asyncio.run(_run())
    table = Table(title="Platform fee renewal")
    table.add_column("Renewed", justify="right")
    table.add_column("Skipped", justify="right")
    table.add_row(str(result.renewed_count), str(result.skipped_count))
    console.print(table)


@app.command()
def health(
    url: str = typer.Option("http://localhost:8080", help="Server URL"),
):
    """Check Paygent-Engine server health."""
    import httpx

    try:
        resp = httpx.get(f"{url}/health", timeout=5)
        data = resp.json()
        console.print(f"[bold green]{data['status']}[/bold green] — v{data['version']}")
    except (httpx.HTTPError, ValueError, KeyError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


if __name__ == "__main__":
    app()
