from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import date
from typing import AsyncIterator, List, Optional, Sequence, Tuple, Union

from telegram import (
    InlineKeyboardButton,
    InlineKeyboardMarkup,
    KeyboardButton,
    ReplyKeyboardMarkup,
    Update,
)
from telegram.constants import ChatAction, ParseMode
from telegram.error import BadRequest
from telegram.ext import ContextTypes

from services.commands_registry import grouped_commands
from services.events import KEYBOARD_LAYOUT, ActionKind, CallbackAction, encode_callback
from services.preferences import Diet
from services.tg_format import tg_bold, tg_escape, tg_kv, tg_list, tg_render_answer, tg_to_plain

logger = logging.getLogger(__name__)

TELEGRAM_MESSAGE_LIMIT = 3500
TYPING_INTERVAL_SECONDS = 4.0
APP_VERSION = "2.0"

NOT_SET = "Not set"
RANDOM_FAILED = "⚠️ Failed to generate recipe"
FREEFORM_FAILED = "⚠️ Couldn't generate recipe"
CATEGORY_FAILED = "⚠️ Category recipe failed"
PREFERENCES_RESET = "Preferences reset!"

DIET_BUTTONS: Tuple[Tuple[str, CallbackAction], ...] = (
    ("Vegetarian", CallbackAction(ActionKind.SET_DIET, diet=Diet.VEGETARIAN)),
    ("Vegan", CallbackAction(ActionKind.SET_DIET, diet=Diet.VEGAN)),
    ("Non-Vegetarian", CallbackAction(ActionKind.SET_DIET, diet=Diet.NON_VEGETARIAN)),
    ("Reset", CallbackAction(ActionKind.RESET_DIET)),
)


@dataclass(frozen=True)
class ReplyKeyboard:
    rows: Tuple[Tuple[str, ...], ...]
    resize: bool = True

    @property
    def labels(self) -> List[str]:
        return [label for row in self.rows for label in row]


@dataclass(frozen=True)
class InlineKeyboard:
    # (label, callback payload) pairs
    rows: Tuple[Tuple[Tuple[str, str], ...], ...]

    @property
    def buttons(self) -> List[Tuple[str, str]]:
        return [button for row in self.rows for button in row]


Keyboard = Union[ReplyKeyboard, InlineKeyboard]


@dataclass(frozen=True)
class Reply:
    text: str
    parse_mode: Optional[str] = None
    keyboard: Optional[Keyboard] = None


def main_keyboard() -> ReplyKeyboard:
    return ReplyKeyboard(rows=tuple(tuple(button.value for button in row) for row in KEYBOARD_LAYOUT))


def welcome_reply(first_name: str) -> Reply:
    name = (first_name or "").strip() or "there"
    text = (
        f"👋 {tg_bold(f'Welcome to RecipeGenie, {name}!')} 🍽️\n"
        "Your AI-powered culinary assistant!"
    )
    return Reply(text=text, parse_mode=ParseMode.HTML, keyboard=main_keyboard())


def help_reply() -> Reply:
    lines = [
        tg_bold("Need help?"),
        "",
        "Here's what I can do:",
        tg_list(
            [
                "Type any ingredient/dish for recipes",
                "Use buttons for quick access",
            ]
        ),
        "",
        tg_bold("Commands:"),
    ]
    for specs in grouped_commands().values():
        for spec in specs:
            lines.append(f"{tg_escape(spec.usage)} - {tg_escape(spec.description)}")
    return Reply(text="\n".join(lines), parse_mode=ParseMode.HTML)


def about_reply(today: date) -> Reply:
    text = "\n".join(
        [
            tg_bold(f"🍽️ RecipeGenie v{APP_VERSION}"),
            "",
            "An AI-powered recipe assistant",
            "",
            f"✨ {tg_bold('Features:')}",
            tg_list(
                [
                    "Instant recipe generation",
                    "Dietary preference tracking",
                    "Recipe categories",
                ]
            ),
            "",
            f"🔧 {tg_kv('Developer', 'Raviteja')}",
            f"📆 {tg_kv('Today', today.isoformat())}",
        ]
    )
    return Reply(text=text, parse_mode=ParseMode.HTML)


def preferences_reply(diet: Diet) -> Reply:
    current = diet.value if diet.is_set else NOT_SET
    keyboard = InlineKeyboard(
        rows=tuple(((label, encode_callback(action)),) for label, action in DIET_BUTTONS)
    )
    return Reply(text=f"Your current preferences: {current}\n\nChange them with:", keyboard=keyboard)


def categories_reply(categories: Sequence[str]) -> Reply:
    keyboard = InlineKeyboard(
        rows=tuple(
            ((label, encode_callback(CallbackAction(ActionKind.PICK_CATEGORY, category=label))),)
            for label in categories
        )
    )
    return Reply(text="Choose a category:", keyboard=keyboard)


def recipe_reply(text: str) -> Reply:
    return Reply(text=tg_render_answer(text), parse_mode=ParseMode.HTML)


def failure_reply(message: str) -> Reply:
    return Reply(text=message)


def diet_set_notice(diet: Diet) -> str:
    return f"{diet.value} mode set!"


def to_markup(keyboard: Optional[Keyboard]) -> Union[ReplyKeyboardMarkup, InlineKeyboardMarkup, None]:
    if keyboard is None:
        return None
    if isinstance(keyboard, ReplyKeyboard):
        return ReplyKeyboardMarkup(
            [[KeyboardButton(label) for label in row] for row in keyboard.rows],
            resize_keyboard=keyboard.resize,
        )
    return InlineKeyboardMarkup(
        [[InlineKeyboardButton(label, callback_data=data) for label, data in row] for row in keyboard.rows]
    )


def split_for_telegram(text: str, limit: int = TELEGRAM_MESSAGE_LIMIT) -> List[str]:
    content = (text or "").strip()
    if not content:
        return []

    chunks: List[str] = []
    remaining = content

    while len(remaining) > limit:
        cut = remaining.rfind("\n", 0, limit)
        if cut < int(limit * 0.55):
            cut = remaining.rfind(" ", 0, limit)
        if cut < int(limit * 0.40):
            cut = limit

        piece = remaining[:cut].rstrip()
        if piece:
            chunks.append(piece)
        remaining = remaining[cut:].lstrip()

    if remaining:
        chunks.append(remaining)

    return chunks


class TelegramResponder:
    """Sends router decisions back through python-telegram-bot."""

    def __init__(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        self.update = update
        self.context = context

    @property
    def _chat_id(self) -> Optional[int]:
        chat = self.update.effective_chat
        return int(chat.id) if chat else None

    async def send(self, reply: Reply) -> None:
        chat_id = self._chat_id
        if chat_id is None:
            logger.warning("Dropping reply: update has no chat")
            return

        chunks = split_for_telegram(reply.text)
        if not chunks:
            logger.warning("Dropping reply: empty text")
            return
        markup = to_markup(reply.keyboard)
        for index, chunk in enumerate(chunks):
            # The keyboard rides on the last chunk so it sits under the full text.
            chunk_markup = markup if index == len(chunks) - 1 else None
            try:
                await self.context.bot.send_message(
                    chat_id=chat_id,
                    text=chunk,
                    parse_mode=reply.parse_mode,
                    reply_markup=chunk_markup,
                )
            except BadRequest as exc:
                if reply.parse_mode is None:
                    raise
                logger.warning("Failed to send formatted reply, falling back to plain text: %s", exc)
                await self.context.bot.send_message(
                    chat_id=chat_id,
                    text=tg_to_plain(chunk),
                    reply_markup=chunk_markup,
                )

    async def toast(self, text: Optional[str] = None) -> None:
        query = self.update.callback_query
        if query is None:
            return
        await query.answer(text=text)

    async def _typing_loop(self, chat_id: int, stop_event: asyncio.Event) -> None:
        while not stop_event.is_set():
            try:
                await self.context.bot.send_chat_action(chat_id=chat_id, action=ChatAction.TYPING)
            except Exception as exc:
                logger.debug("Typing indicator failed: %s", exc)
            try:
                await asyncio.wait_for(stop_event.wait(), timeout=TYPING_INTERVAL_SECONDS)
            except asyncio.TimeoutError:
                continue

    @asynccontextmanager
    async def typing(self) -> AsyncIterator[None]:
        chat_id = self._chat_id
        if chat_id is None:
            yield
            return
        stop_event = asyncio.Event()
        typing_task = asyncio.create_task(self._typing_loop(chat_id, stop_event))
        try:
            yield
        finally:
            stop_event.set()
            await typing_task
