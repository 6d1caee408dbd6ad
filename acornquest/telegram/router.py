"""Factory helpers to wire AcornQuest services into aiogram."""

from __future__ import annotations

from datetime import timedelta
from typing import Iterable

from aiogram import Router
from aiogram.filters import Command
from aiogram.types import CallbackQuery, Message, User

from ..app import EngineApp
from ..domain.exceptions import (
    AssignmentIncomplete,
    AttendanceRejected,
    ClaimLocked,
    Conflict,
    NoOpponentAvailable,
    NotEligible,
    PlayerNotFound,
    StorageUnavailable,
)
from ..domain.player import BattleStatus, PlayerProfile
from ..domain.settlement import AttendanceReward, BattleSettlement, ClaimResult
from ..storage.base import JournalEntry
from .api_utils import safe_callback_answer, safe_message_answer
from .keyboards import battle_keyboard, welcome_keyboard


STORAGE_DOWN = "The acorn vault is unreachable. Try again in a moment."


def build_router(app: EngineApp) -> Router:
    router = Router()
    players = app.player_service
    settlement = app.settlement

    async def battle_text(user: User) -> str:
        try:
            result = await settlement.initiate_battle(str(user.id))
        except PlayerNotFound:
            return "You have no profile yet. Send /start first."
        except NotEligible as exc:
            return f"🐿️ Your squirrel is resting. Next battle in {format_duration(exc.remaining)}."
        except NoOpponentAvailable:
            return "Every rival is shielded right now. Try again later."
        except Conflict:
            return "Someone got there first. Try /battle again."
        except StorageUnavailable:
            return STORAGE_DOWN
        return format_battle_message(result)

    async def profile_text(user: User) -> str:
        try:
            profile = await players.fetch(str(user.id))
            status = await players.get_battle_status(str(user.id))
        except PlayerNotFound:
            return "You have no profile yet. Send /start first."
        except StorageUnavailable:
            return STORAGE_DOWN
        return format_profile_message(profile, status)

    @router.message(Command("start"))
    async def handle_start(message: Message) -> None:
        user = message.from_user
        if not user:
            return
        try:
            await players.register(str(user.id), user.first_name or user.username or "")
        except StorageUnavailable:
            await safe_message_answer(message, STORAGE_DOWN)
            return
        await safe_message_answer(message, render_help_message(), reply_markup=welcome_keyboard())

    @router.message(Command("help"))
    async def handle_help(message: Message) -> None:
        await safe_message_answer(message, render_help_message(), reply_markup=welcome_keyboard())

    @router.message(Command("profile"))
    async def handle_profile(message: Message) -> None:
        if message.from_user:
            await safe_message_answer(message, await profile_text(message.from_user))

    @router.callback_query(lambda c: c.data == "acornquest:profile")
    async def handle_profile_callback(callback: CallbackQuery) -> None:
        await safe_callback_answer(callback)
        await safe_message_answer(callback.message, await profile_text(callback.from_user))

    @router.message(Command("battle"))
    async def handle_battle(message: Message) -> None:
        if message.from_user:
            await safe_message_answer(
                message, await battle_text(message.from_user), reply_markup=battle_keyboard()
            )

    @router.callback_query(lambda c: c.data == "acornquest:battle")
    async def handle_battle_callback(callback: CallbackQuery) -> None:
        await safe_callback_answer(callback)
        await safe_message_answer(
            callback.message, await battle_text(callback.from_user), reply_markup=battle_keyboard()
        )

    @router.message(Command("status"))
    async def handle_status(message: Message) -> None:
        user = message.from_user
        if not user:
            return
        try:
            status = await players.get_battle_status(str(user.id))
        except PlayerNotFound:
            await safe_message_answer(message, "You have no profile yet. Send /start first.")
            return
        except StorageUnavailable:
            await safe_message_answer(message, STORAGE_DOWN)
            return
        await safe_message_answer(message, format_status_message(status))

    @router.callback_query(lambda c: c.data == "acornquest:status")
    async def handle_status_callback(callback: CallbackQuery) -> None:
        try:
            status = await players.get_battle_status(str(callback.from_user.id))
        except PlayerNotFound:
            await safe_callback_answer(callback, "Send /start first.", show_alert=True)
            return
        except StorageUnavailable:
            await safe_callback_answer(callback, STORAGE_DOWN, show_alert=True)
            return
        await safe_callback_answer(callback, format_status_message(status), show_alert=True)

    @router.message(Command("attend"))
    async def handle_attend(message: Message) -> None:
        user = message.from_user
        if not user:
            return
        event_id = extract_argument(message.text)
        if not event_id:
            await safe_message_answer(message, "Usage: /attend <class_event_id>")
            return
        today = app.clock().date()
        try:
            reward = await settlement.mark_attendance(str(user.id), event_id, today)
        except PlayerNotFound:
            await safe_message_answer(message, "You have no profile yet. Send /start first.")
            return
        except AttendanceRejected as exc:
            await safe_message_answer(message, f"Attendance not accepted: {exc.reason}.")
            return
        except (Conflict, StorageUnavailable):
            await safe_message_answer(message, "Could not record attendance right now. Try again.")
            return
        await safe_message_answer(message, format_attendance_message(reward))

    @router.message(Command("unattend"))
    async def handle_unattend(message: Message) -> None:
        user = message.from_user
        if not user:
            return
        try:
            result = await settlement.unclaim_attendance_reward(str(user.id), app.clock().date())
        except PlayerNotFound:
            await safe_message_answer(message, "You have no profile yet. Send /start first.")
            return
        except ClaimLocked:
            await safe_message_answer(message, "That attendance is already part of a longer streak.")
            return
        except (Conflict, StorageUnavailable):
            await safe_message_answer(message, "Could not undo attendance right now. Try again.")
            return
        if not result.reversed:
            await safe_message_answer(message, "No attendance recorded today.")
            return
        await safe_message_answer(
            message, f"Attendance undone: -{result.acorns_removed} 🌰, -{result.xp_removed} XP."
        )

    @router.message(Command("claim"))
    async def handle_claim(message: Message) -> None:
        user = message.from_user
        if not user:
            return
        assignment_id = extract_argument(message.text)
        if not assignment_id:
            await safe_message_answer(message, "Usage: /claim <assignment_id>")
            return
        try:
            result = await settlement.claim_assignment_reward(str(user.id), assignment_id)
        except PlayerNotFound:
            await safe_message_answer(message, "You have no profile yet. Send /start first.")
            return
        except AssignmentIncomplete:
            await safe_message_answer(message, "That assignment is not submitted yet.")
            return
        except (Conflict, StorageUnavailable):
            await safe_message_answer(message, "Could not claim the reward right now. Try again.")
            return
        await safe_message_answer(message, format_claim_message(assignment_id, result))

    @router.message(Command("journal"))
    async def handle_journal(message: Message) -> None:
        user = message.from_user
        if not user:
            return
        try:
            entries = await players.journal(str(user.id), limit=10)
        except StorageUnavailable:
            await safe_message_answer(message, STORAGE_DOWN)
            return
        await safe_message_answer(message, format_journal_message(entries))

    @router.message(Command("leaderboard"))
    async def handle_leaderboard(message: Message) -> None:
        try:
            board = await players.leaderboard()
        except StorageUnavailable:
            await safe_message_answer(message, STORAGE_DOWN)
            return
        await safe_message_answer(message, format_leaderboard_message(board))

    return router


def render_help_message() -> str:
    lines = [
        "Welcome to AcornQuest! 🐿️",
        "",
        "Commands:",
        "• /battle - attack a random rival (every 8 hours)",
        "• /status - cooldown and shield timers",
        "• /profile - level, XP, acorns and streak",
        "• /attend <class> - mark attendance for today's class",
        "• /unattend - undo today's attendance",
        "• /claim <assignment> - collect a finished assignment's reward",
        "• /journal - recent activity",
        "• /leaderboard - top players",
    ]
    return "\n".join(lines)


def extract_argument(text: str | None) -> str | None:
    if text and len(parts := text.strip().split()) > 1:
        return parts[1]
    return None


def format_duration(duration: timedelta) -> str:
    seconds = max(0, int(duration.total_seconds()))
    hours, remainder = divmod(seconds, 3600)
    minutes, seconds = divmod(remainder, 60)
    if hours:
        return f"{hours}h {minutes:02d}m"
    if minutes:
        return f"{minutes}m {seconds:02d}s"
    return f"{seconds}s"


def format_battle_message(result: BattleSettlement) -> str:
    record = result.record
    side = result.outcome.attacker
    opponent = record.defender.name or record.defender_id
    if result.attacker_won:
        lines = [f"🎉 Victory over {opponent}!", f"+{side.xp_gained} XP, +{side.acorns_change} 🌰"]
    else:
        lines = [
            f"💔 Defeated by {opponent}.",
            f"+{side.xp_gained} XP, {side.acorns_change} 🌰",
        ]
    lines.append(f"Power {record.attacker.power} vs {record.defender.power}")
    if side.level_up:
        lines.append(f"⬆️ Level up! You reached level {side.new_level}.")
    return "\n".join(lines)


def format_profile_message(profile: PlayerProfile, status: BattleStatus) -> str:
    lines = [
        f"👤 {profile.name or profile.player_id}",
        f"⭐ Level {profile.level} ({profile.xp_into_level}/{profile.xp_for_next_level} XP)",
        f"🌰 Acorns: {profile.acorns}",
        f"🔥 Streak: {profile.current_streak} day(s), {profile.total_days_attended} attended",
        "",
        format_status_message(status),
    ]
    return "\n".join(lines)


def format_status_message(status: BattleStatus) -> str:
    lines = [
        "⚔️ Ready to battle!" if status.can_battle else f"⏱️ Next battle in {format_duration(status.can_battle_in)}"
    ]
    if status.shielded:
        lines.append(f"🛡️ Shielded for {format_duration(status.shield_remaining)}")
    return "\n".join(lines)


def format_attendance_message(reward: AttendanceReward) -> str:
    if reward.already_claimed:
        return f"Attendance for {reward.day.isoformat()} already counted. Streak: {reward.streak}."
    lines = [f"✅ Attended class! +{reward.acorns} 🌰 +{reward.xp} XP"]
    if reward.multiplier > 1:
        lines.append(f"🔥 {reward.streak_label} ({reward.multiplier}x bonus, streak {reward.streak})")
    else:
        lines.append(f"Streak: {reward.streak}")
    if reward.level_up:
        lines.append(f"⬆️ Level up! Level {reward.new_level}!")
    return "\n".join(lines)


def format_claim_message(assignment_id: str, result: ClaimResult) -> str:
    if result.already_claimed:
        return f"The reward for {assignment_id} was already collected."
    text = f"📜 Quest {assignment_id} complete! +{result.acorns} 🌰 +{result.xp} XP"
    if result.level_up:
        text += f"\n⬆️ Level up! Level {result.new_level}!"
    return text


def format_journal_message(entries: Iterable[JournalEntry]) -> str:
    lines = [f"• {entry.timestamp:%Y-%m-%d %H:%M} {entry.message}" for entry in entries]
    if not lines:
        return "Your journal is empty."
    return "\n".join(["📖 Journal:", *lines])


def format_leaderboard_message(profiles: Iterable[PlayerProfile]) -> str:
    lines = [
        f"{rank}. {profile.name or profile.player_id} - level {profile.level}, {profile.xp} XP"
        for rank, profile in enumerate(profiles, start=1)
    ]
    if not lines:
        return "No players yet."
    return "\n".join(["🏆 Leaderboard:", *lines])
