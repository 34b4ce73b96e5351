#!/usr/bin/env python3
"""
Database and sync management script for the StackSave backend.
"""

import asyncio
import sys
from pathlib import Path

# Add project root to Python path
sys.path.insert(0, str(Path(__file__).parent.parent))

import typer
from rich.console import Console
from rich.table import Table

from stacksave.core.database import init_database, close_database, DatabaseManager
from stacksave.core.exceptions import StackSaveException
from stacksave.core.logging import setup_logging, get_logger
from stacksave.chain.client import get_chain_client, close_chain_client
from stacksave.mirror.store import SqlMirrorStore
from stacksave.sync.manual import ManualSyncService

console = Console()
logger = get_logger(__name__)
app = typer.Typer(help="Database and sync management commands")


async def _manual_sync_service() -> ManualSyncService:
    session_maker = await init_database()
    chain_client = await get_chain_client()
    return ManualSyncService(chain_client, SqlMirrorStore(session_maker))


async def _shutdown() -> None:
    await close_chain_client()
    await close_database()


def _goal_table(title: str, goals) -> Table:
    table = Table(title=title)
    table.add_column("Goal", style="cyan")
    table.add_column("Owner")
    table.add_column("Deposited", justify="right")
    table.add_column("Value", justify="right")
    table.add_column("Status", style="green")
    table.add_column("Streak", justify="right")
    for goal in goals:
        table.add_row(
            str(goal.id),
            goal.owner,
            str(int(goal.deposited_amount)),
            str(int(goal.current_value)),
            goal.status_text,
            f"{goal.current_streak} (best {goal.longest_streak})",
        )
    return table


@app.command()
def init():
    """Initialize database with tables."""
    async def _init():
        setup_logging()
        await init_database()
        await DatabaseManager.create_tables()
        await close_database()
        console.print("✅ Database initialized successfully!")

    asyncio.run(_init())


@app.command()
def drop():
    """Drop all tables."""
    confirm = typer.confirm("Are you sure you want to drop all tables?")
    if not confirm:
        console.print("❌ Operation cancelled")
        return

    async def _drop():
        setup_logging()
        await init_database()
        await DatabaseManager.drop_tables()
        await close_database()
        console.print("🗑️ All tables dropped!")

    asyncio.run(_drop())


@app.command("sync-goal")
def sync_goal(goal_id: int = typer.Argument(..., help="On-chain goal id")):
    """Overwrite one mirrored goal with its on-chain state."""
    async def _sync():
        setup_logging()
        try:
            service = await _manual_sync_service()
            goal = await service.sync_goal(goal_id)
            console.print(_goal_table("Synced goal", [goal]))
        except StackSaveException as e:
            console.print(f"❌ Sync failed: {e.message}")
            raise typer.Exit(code=1)
        finally:
            await _shutdown()

    asyncio.run(_sync())


@app.command("sync-user")
def sync_user(address: str = typer.Argument(..., help="Owner address")):
    """Resync every mirrored goal of an owner."""
    async def _sync():
        setup_logging()
        try:
            service = await _manual_sync_service()
            goals = await service.sync_user_goals(address)
            if not goals:
                console.print(f"No mirrored goals for {address.lower()}")
                return
            console.print(_goal_table(f"Synced goals for {address.lower()}", goals))
        except StackSaveException as e:
            console.print(f"❌ Sync aborted: {e.message}")
            raise typer.Exit(code=1)
        finally:
            await _shutdown()

    asyncio.run(_sync())


@app.command()
def status():
    """Show database status."""
    table = Table(title="Database Status")
    table.add_column("Component", style="cyan")
    table.add_column("Status", style="green")

    async def _status():
        setup_logging()
        await init_database()
        is_healthy = await DatabaseManager.health_check()
        await close_database()
        return is_healthy

    is_healthy = asyncio.run(_status())
    table.add_row("Database", "✅ Healthy" if is_healthy else "❌ Unhealthy")
    console.print(table)

    if not is_healthy:
        raise typer.Exit(code=1)


if __name__ == "__main__":
    app()
