"""Example AcornQuest bot with course hooks and a level-up announcer."""

from __future__ import annotations

import asyncio
import logging

from acornquest import AcornQuestConfig, EngineApp
from acornquest.diagnostics import BattleSimulator
from acornquest.domain.events import LEVEL_UP, REWARD_CLAIMED
from acornquest.domain.providers import InMemoryCourseData

logger = logging.getLogger("acornquest.example")


async def announce_level_up(payload) -> None:
    logger.info("Player %s reached level %s!", payload["player_id"], payload["level"])


async def log_reward(payload) -> None:
    logger.info("Reward %s paid to %s.", payload["event_id"], payload["player_id"])


def register(app: EngineApp) -> None:
    """Subscribe listeners and preload a few submitted assignments."""
    app.event_bus.subscribe(LEVEL_UP, announce_level_up)
    app.event_bus.subscribe(REWARD_CLAIMED, log_reward)

    # Course data normally comes from the LMS; here two students already handed in hw1.
    if isinstance(app.course_data, InMemoryCourseData):
        app.course_data.complete("1001", "hw1")
        app.course_data.complete("1002", "hw1")

    # Lectures that are already over refuse attendance.
    app.attendance.close_event("lecture-0", "lecture already ended")


def simulate() -> None:
    config = AcornQuestConfig.from_env()
    simulator = BattleSimulator(config.battle)
    result = simulator.simulate(attacker_xp=100, defender_xp=300, battles=1000)
    print(f"Level 2 vs level 4 win rate: {result.win_rate:.1%}, avg acorns {result.average_acorns:+.2f}")


async def run_bot() -> None:
    from aiogram import Bot, Dispatcher
    from acornquest.telegram import build_router

    app = EngineApp(AcornQuestConfig.from_env())
    register(app)
    await app.init_backend()

    bot = Bot(app.config.bot_token)
    dp = Dispatcher()
    dp.include_router(build_router(app))
    try:
        await dp.start_polling(bot)
    finally:
        await app.close()


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    asyncio.run(run_bot())
