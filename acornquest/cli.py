"""Command line helpers for AcornQuest."""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import sys
from random import Random

from rich.console import Console
from rich.table import Table

from .app import EngineApp
from .config import AcornQuestConfig
from .diagnostics.battle_simulator import BattleSimulator
from .validators import validate_config

console = Console()


def run_simulator() -> None:
    parser = argparse.ArgumentParser(description="AcornQuest battle balance simulator")
    parser.add_argument("levels", nargs="+", type=int, help="Levels to pit against each other")
    parser.add_argument("--battles", type=int, default=1000, help="Battles per pairing")
    parser.add_argument("--seed", type=int, default=None, help="RNG seed for reproducible runs")
    args = parser.parse_args()

    if any(level < 1 for level in args.levels):
        parser.error("levels start at 1")
    config = AcornQuestConfig.from_env()
    simulator = BattleSimulator(config.battle, rng=Random(args.seed))
    matrix = simulator.level_matrix(args.levels, battles=args.battles)

    table = Table(title=f"Attacker win rate ({args.battles} battles per cell)")
    table.add_column("attacker \\ defender")
    for defender in args.levels:
        table.add_column(f"L{defender}", justify="right")
    for attacker in args.levels:
        table.add_row(
            f"L{attacker}",
            *(f"{matrix[(attacker, defender)]:.0%}" for defender in args.levels),
        )
    console.print(table)


def run_validate() -> None:
    argparse.ArgumentParser(description="Validate ACORNQUEST_* configuration").parse_args()
    try:
        config = AcornQuestConfig.from_env()
    except ValueError as exc:
        console.print(f"[red]{exc}[/red]")
        sys.exit(1)
    errors = validate_config(config)
    if errors:
        console.print("[red]Configuration errors:[/red]")
        for err in errors:
            console.print(f"- {err}")
        sys.exit(1)
    console.print("Configuration is valid ✅")


def run_initdb() -> None:
    parser = argparse.ArgumentParser(description="Create AcornQuest tables")
    parser.add_argument("--dsn", default=None, help="SQLAlchemy DSN (defaults to ACORNQUEST_STORAGE_DSN)")
    args = parser.parse_args()

    config = AcornQuestConfig.from_env()
    config.storage.backend = "sqlalchemy"
    if args.dsn:
        config.storage.dsn = args.dsn

    async def _init() -> None:
        app = EngineApp(config)
        try:
            await app.init_backend()
        finally:
            await app.close()

    asyncio.run(_init())
    console.print(f"Tables created in {config.storage.resolve_dsn()}")


def run_bot() -> None:
    from .bot import SimpleBotConfig, run_bot_sync

    parser = argparse.ArgumentParser(description="Run the AcornQuest Telegram bot")
    parser.add_argument("--storage", default="memory", help='"memory" or path to a SQLite file')
    parser.add_argument("--demo-players", type=int, default=0, help="Seed this many demo rivals")
    args = parser.parse_args()

    token = os.getenv("ACORNQUEST_BOT_TOKEN", "")
    if not token:
        console.print("[red]ACORNQUEST_BOT_TOKEN is not set[/red]")
        sys.exit(1)
    logging.basicConfig(level=logging.INFO)
    run_bot_sync(SimpleBotConfig(bot_token=token, storage=args.storage, demo_players=args.demo_players))
