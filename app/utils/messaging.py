"""Outbound Telegram messages.

Buttons and keyboards are passed as plain data so callers never build
telegram objects themselves:

* ``inline`` – rows of ``(label, callback_data)`` pairs
* ``keyboard`` – rows of reply-keyboard labels
"""

from __future__ import annotations

import logging
from typing import Optional, Sequence, Tuple

from telegram import Bot, InlineKeyboardButton, InlineKeyboardMarkup, ReplyKeyboardMarkup
from telegram.constants import ParseMode

from config import settings

_LOGGER = logging.getLogger(__name__)

InlineRows = Sequence[Sequence[Tuple[str, str]]]
KeyboardRows = Sequence[Sequence[str]]

_bot: Optional[Bot] = None


def get_bot() -> Optional[Bot]:
    global _bot
    if _bot is None and settings.TELEGRAM_TOKEN:
        _bot = Bot(settings.TELEGRAM_TOKEN)
    return _bot


async def startup() -> None:
    bot = get_bot()
    if bot is not None:
        await bot.initialize()


async def shutdown() -> None:
    global _bot
    if _bot is not None:
        await _bot.shutdown()
        _bot = None


def _reply_markup(inline: Optional[InlineRows], keyboard: Optional[KeyboardRows]):
    if inline:
        return InlineKeyboardMarkup(
            [[InlineKeyboardButton(label, callback_data=data) for label, data in row] for row in inline]
        )
    if keyboard:
        return ReplyKeyboardMarkup([list(row) for row in keyboard], resize_keyboard=True)
    return None


async def send_message(
    chat_id: str,
    text: str,
    *,
    markdown: bool = False,
    inline: Optional[InlineRows] = None,
    keyboard: Optional[KeyboardRows] = None,
) -> None:
    bot = get_bot()
    if bot is None:
        _LOGGER.info("[Telegram] DEV mode: would send to %s: %s", chat_id, text)
        return
    await bot.send_message(
        chat_id=chat_id,
        text=text,
        parse_mode=ParseMode.MARKDOWN if markdown else None,
        reply_markup=_reply_markup(inline, keyboard),
    )


async def answer_callback(callback_id: str, text: Optional[str] = None) -> None:
    bot = get_bot()
    if bot is None:
        _LOGGER.info("[Telegram] DEV mode: would answer callback %s: %s", callback_id, text)
        return
    await bot.answer_callback_query(callback_query_id=callback_id, text=text)
