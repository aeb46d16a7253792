"""Contoso Sea fleet CLI: survey vessel simulation.

Commands:
  start      create tables and seed the demo fleet
  status     fleet table (position, energy, status)
  simulate   run ticks offline through the scheduler
  reset      restore every vessel to its initial state
  open       launch the API server
"""
from __future__ import annotations

import typer
from rich.console import Console
from rich.table import Table


app = typer.Typer(
    name="energyboat",
    help="Survey fleet navigation and energy simulation.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)
console = Console()


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


@app.command("start")
def start():
    """Create the database tables and seed the demo fleet."""
    try:
        from app.database import init_db, SessionLocal
        from app.modules.fleet_seed import seed_fleet

        with console.status("[bold]Creating database..."):
            init_db()

        db = SessionLocal()
        try:
            with console.status("[bold]Seeding fleet..."):
                result = seed_fleet(db)
        finally:
            db.close()
    except Exception as e:
        console.print(f"[red]Setup failed: {e}[/red]")
        raise typer.Exit(1)

    if result["skipped"]:
        console.print(
            "[yellow]Fleet already seeded.[/yellow]\n"
            "Run [cyan]energyboat reset[/cyan] to restore initial positions instead."
        )
        return
    console.print(
        f"[green]Setup complete![/green] {result['vessels']} vessels, "
        f"{result['waypoints']} waypoints."
    )


@app.command("status")
def status():
    """Show every vessel's position, energy and status."""
    from app.modules.errors import SimulationError

    try:
        rows = _make_store().get_all_with_states()
    except SimulationError as e:
        console.print(f"[red]Could not read fleet: {e}[/red]")
        raise typer.Exit(1)

    if not rows:
        console.print("[yellow]No vessels yet. Run [cyan]energyboat start[/cyan] to begin.[/yellow]")
        return
    console.print(_fleet_table(rows))


@app.command("simulate")
def simulate(
    ticks: int = typer.Option(10, "--ticks", min=1, help="Number of ticks to run"),
    speed: float = typer.Option(1.0, "--speed", help="Speed multiplier (0.1-10.0)"),
):
    """Run ticks through the scheduler without starting the server."""
    from app.modules.errors import InvalidSpeedError, SimulationError
    from app.modules.sim_clock import validate_speed_multiplier

    try:
        validate_speed_multiplier(speed)
    except InvalidSpeedError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(2)

    scheduler = _make_scheduler()
    try:
        scheduler.load()
        failed = 0
        with console.status(f"[bold]Running {ticks} ticks at {speed:.1f}x..."):
            for _ in range(ticks):
                report = scheduler.tick(speed)
                failed += len(report.failed)
        snapshot = scheduler.snapshot()
    except SimulationError as e:
        console.print(f"[red]Simulation failed: {e}[/red]")
        raise typer.Exit(1)
    finally:
        scheduler.shutdown()

    console.print(_fleet_table(snapshot.entries))
    if failed:
        console.print(f"[yellow]{failed} vessel updates were dropped (see log).[/yellow]")


@app.command("reset")
def reset():
    """Restore every vessel to its initial state (atomic).

    Writes the store directly; while the server is running use
    POST /api/boats/reset so the scheduler reloads its arena.
    """
    from app.modules.errors import SimulationError

    try:
        count = _make_store().reset_all()
    except SimulationError as e:
        console.print(f"[red]Reset failed, nothing changed: {e}[/red]")
        raise typer.Exit(1)
    console.print(f"[green]Reset {count} vessels to initial positions.[/green]")


@app.command("open")
def open_server(
    host: str = typer.Option("127.0.0.1", "--host"),
    port: int = typer.Option(8000, "--port"),
):
    """Launch the API server."""
    import uvicorn

    console.print(f"API running at [cyan]http://{host}:{port}/api/boats[/cyan], press Ctrl+C to stop")
    uvicorn.run("app.main:app", host=host, port=port)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _make_store():
    from app.database import SessionLocal
    from app.modules.state_store import VesselStateStore

    return VesselStateStore(SessionLocal)


def _make_scheduler():
    from app.config import settings
    from app.database import engine, max_concurrent_writers
    from app.modules.scheduler import FleetScheduler

    return FleetScheduler(
        _make_store(),
        write_workers=max_concurrent_writers(engine),
        io_timeout=settings.STORE_IO_TIMEOUT,
        lock_timeout=settings.RESET_LOCK_TIMEOUT,
    )


_STATUS_COLORS = {"Active": "green", "Charging": "yellow", "Maintenance": "dim"}


def _fleet_table(rows) -> Table:
    table = Table(title="Fleet")
    table.add_column("ID")
    table.add_column("Vessel")
    table.add_column("Status")
    table.add_column("Energy", justify="right")
    table.add_column("Position", justify="right")
    table.add_column("Heading", justify="right")
    table.add_column("Speed")
    table.add_column("Area", justify="right")
    for info, state in rows:
        color = _STATUS_COLORS.get(state.status.value, "white")
        table.add_row(
            info.id,
            info.vessel_name,
            f"[{color}]{state.status.value}[/{color}]",
            f"{state.energy_level:.1f}%",
            f"{state.latitude:.4f}, {state.longitude:.4f}",
            f"{state.heading:.0f}°",
            state.speed,
            f"{state.area_covered:.3f}",
        )
    return table
