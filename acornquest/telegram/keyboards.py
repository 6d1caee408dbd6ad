"""Keyboard helpers for AcornQuest bots."""

from __future__ import annotations

from aiogram.types import InlineKeyboardButton, InlineKeyboardMarkup


def battle_keyboard() -> InlineKeyboardMarkup:
    return InlineKeyboardMarkup(
        inline_keyboard=[
            [InlineKeyboardButton(text="👤 Profile", callback_data="acornquest:profile")],
            [InlineKeyboardButton(text="⏱️ Battle status", callback_data="acornquest:status")],
        ]
    )


def welcome_keyboard() -> InlineKeyboardMarkup:
    return InlineKeyboardMarkup(
        inline_keyboard=[
            [InlineKeyboardButton(text="⚔️ Battle", callback_data="acornquest:battle")],
            [InlineKeyboardButton(text="👤 Profile", callback_data="acornquest:profile")],
        ]
    )
