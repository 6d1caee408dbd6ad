"""Telegram integration helpers."""

from .keyboards import battle_keyboard, welcome_keyboard
from .router import build_router

__all__ = [
    "build_router",
    "battle_keyboard",
    "welcome_keyboard",
]
