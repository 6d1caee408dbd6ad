"""High-level helper that runs an AcornQuest Telegram bot with sensible defaults."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path

from aiogram import Bot, Dispatcher
from rich.console import Console

from .app import EngineApp
from .config import AcornQuestConfig
from .telegram import build_router
from .seeding import seed_players

console = Console()
logger = logging.getLogger(__name__)


@dataclass(slots=True)
class SimpleBotConfig:
    """Minimal settings required to run an AcornQuest bot."""

    bot_token: str
    storage: str = "memory"  # "memory" or path to SQLite file
    demo_players: int = 0


async def run_bot(config: SimpleBotConfig) -> None:
    engine_config = AcornQuestConfig.from_env()
    engine_config.bot_token = config.bot_token
    if config.storage != "memory":
        db_path = Path(config.storage).expanduser().resolve()
        db_path.parent.mkdir(parents=True, exist_ok=True)
        engine_config.storage.backend = "sqlalchemy"
        engine_config.storage.dsn = f"sqlite+aiosqlite:///{db_path.as_posix()}"

    app = EngineApp(engine_config)
    await app.init_backend()
    if config.demo_players:
        seeded = await seed_players(app.player_store, config.demo_players)
        logger.info("Seeded %s demo players.", len(seeded))

    bot = Bot(app.config.bot_token)
    dp = Dispatcher()
    dp.include_router(build_router(app))

    console.print(
        f"[bold green]AcornQuest ready![/bold green]\n"
        f"Storage: {engine_config.storage.backend}, "
        f"battle cooldown: {engine_config.battle.cooldown_seconds // 3600}h"
    )
    try:
        await dp.start_polling(bot)
    finally:
        await app.close()


def run_bot_sync(config: SimpleBotConfig) -> None:
    """Synchronous wrapper for run_bot."""

    asyncio.run(run_bot(config))


__all__ = ["SimpleBotConfig", "run_bot", "run_bot_sync"]
