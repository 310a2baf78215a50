import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from telegram.ext import CallbackQueryHandler, CommandHandler, MessageHandler

from recipe_genie.config import DEFAULT_CATEGORIES
from services import bot
from services.preferences import Diet, PreferenceStore
from services.router import CommandRouter


def _router(result=None):
    gateway = MagicMock()
    gateway.generate = AsyncMock(return_value=result)
    return CommandRouter(PreferenceStore(), gateway, DEFAULT_CATEGORIES)


def _context(router):
    context = MagicMock()
    context.bot_data = {bot.ROUTER_KEY: router}
    context.bot.send_message = AsyncMock()
    context.bot.send_chat_action = AsyncMock()
    return context


def _text_update(text, user_id=42, first_name="Ana"):
    update = MagicMock()
    update.update_id = 1001
    update.message.text = text
    update.effective_user.id = user_id
    update.effective_user.first_name = first_name
    update.effective_chat.id = user_id
    update.callback_query = None
    return update


def _callback_update(data, user_id=42):
    update = MagicMock()
    update.update_id = 1002
    update.message = None
    update.effective_user.id = user_id
    update.effective_chat.id = user_id
    update.callback_query.data = data
    update.callback_query.answer = AsyncMock()
    return update


def test_start_command_end_to_end():
    router = _router()
    context = _context(router)
    asyncio.run(bot.handle_command(_text_update("/start"), context))

    kwargs = context.bot.send_message.await_args.kwargs
    assert "Ana" in kwargs["text"]
    labels = [button.text for row in kwargs["reply_markup"].keyboard for button in row]
    assert labels == ["🍳 Random Recipe", "⭐ My Preferences", "📖 Recipe Categories", "ℹ️ About"]


def test_preferences_button_end_to_end():
    router = _router()
    context = _context(router)
    asyncio.run(bot.handle_text(_text_update("⭐ My Preferences"), context))

    kwargs = context.bot.send_message.await_args.kwargs
    assert "Not set" in kwargs["text"]
    buttons = [row[0] for row in kwargs["reply_markup"].inline_keyboard]
    assert {button.text for button in buttons} == {"Vegetarian", "Vegan", "Non-Vegetarian", "Reset"}
    assert all(button.callback_data for button in buttons)


def test_set_vegan_callback_end_to_end():
    router = _router()
    context = _context(router)
    update = _callback_update("set_vegan", user_id=42)
    asyncio.run(bot.handle_callback(update, context))

    assert router.store.get(42) is Diet.VEGAN
    toast = update.callback_query.answer.await_args.kwargs["text"]
    assert "vegan" in toast
    context.bot.send_message.assert_not_called()


def test_free_text_failure_end_to_end():
    router = _router(result=None)
    context = _context(router)
    asyncio.run(bot.handle_text(_text_update("chicken curry"), context))

    assert "chicken curry" in router.gateway.generate.await_args.args[0]
    assert context.bot.send_message.await_args.kwargs["text"] == "⚠️ Couldn't generate recipe"


def test_unregistered_slash_text_gets_no_reply():
    router = _router(result="never used")
    context = _context(router)
    asyncio.run(bot.handle_text(_text_update("/saved"), context))

    context.bot.send_message.assert_not_called()
    router.gateway.generate.assert_not_called()


def test_unknown_callback_is_answered_without_reply():
    router = _router()
    context = _context(router)
    update = _callback_update("category_brunch")
    asyncio.run(bot.handle_callback(update, context))

    update.callback_query.answer.assert_awaited_once()
    context.bot.send_message.assert_not_called()


def test_build_application_registers_handlers():
    router = _router()
    app = bot.build_application({"telegram": {}}, token="123456:TEST-TOKEN", router=router)

    assert app.bot_data[bot.ROUTER_KEY] is router
    handlers = app.handlers[0]
    assert any(isinstance(h, CallbackQueryHandler) for h in handlers)
    commands = set()
    for handler in handlers:
        if isinstance(handler, CommandHandler):
            commands |= set(handler.commands)
    assert {"start", "help", "random"} <= commands
    assert isinstance(handlers[-1], MessageHandler)


@patch("services.bot.get_secret", return_value="")
def test_build_application_requires_token(_mock_secret):
    with pytest.raises(RuntimeError, match="TELEGRAM_BOT_API_TOKEN"):
        bot.build_application({"telegram": {}}, router=_router())
