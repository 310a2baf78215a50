import logging
from typing import Any, Dict, Optional

from telegram import LinkPreviewOptions, Update
from telegram.ext import (
    Application,
    CallbackQueryHandler,
    CommandHandler,
    ContextTypes,
    Defaults,
    MessageHandler,
    filters,
)
from telegram.request import HTTPXRequest

from recipe_genie.config import get_categories, get_secret, load_config
from recipe_genie.logging import log_event, update_scope
from services import metrics
from services.commands_registry import known_roots, validate_registry
from services.events import Callback, Event, decode_callback, decode_message
from services.generation import GenerationGateway, build_gateway
from services.preferences import PreferenceStore
from services.presenter import TelegramResponder
from services.router import CommandRouter

logger = logging.getLogger(__name__)

ROUTER_KEY = "router"


def _router(context: ContextTypes.DEFAULT_TYPE) -> CommandRouter:
    return context.bot_data[ROUTER_KEY]


def _user_id(update: Update) -> Optional[int]:
    user = update.effective_user
    return int(user.id) if user else None


async def _dispatch(update: Update, context: ContextTypes.DEFAULT_TYPE, event: Event) -> None:
    kind = type(event).__name__
    user_id = _user_id(update)
    with update_scope(update.update_id, user_id=user_id, kind=kind), metrics.metrics.timer(
        "update", labels={"kind": kind}
    ):
        log_event(logger, logging.INFO, "Routing event", kind=kind)
        await _router(context).route(event, TelegramResponder(update, context), user_id=user_id)


def _decode_text_update(update: Update) -> Optional[Event]:
    if not update.message or not update.message.text:
        return None
    user = update.effective_user
    first_name = (user.first_name or "") if user else ""
    return decode_message(update.message.text, first_name=first_name)


async def handle_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    event = _decode_text_update(update)
    if event is None:
        return
    await _dispatch(update, context, event)


async def handle_text(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    event = _decode_text_update(update)
    if event is None:
        logger.debug("Dropping unmatched text message")
        return
    await _dispatch(update, context, event)


async def handle_callback(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    query = update.callback_query
    if not query:
        return
    action = decode_callback(str(query.data or ""), _router(context).categories)
    if action is None:
        logger.warning("Unknown callback payload: %r", query.data)
    await _dispatch(update, context, Callback(action))


async def handle_error(update: object, context: ContextTypes.DEFAULT_TYPE) -> None:
    logger.error("Unhandled error while processing update", exc_info=context.error)


async def _app_post_shutdown(_: Application) -> None:
    metrics.log_summary()


def build_router(config: Optional[Dict[str, Any]] = None, *, gateway: Optional[GenerationGateway] = None) -> CommandRouter:
    cfg = config or load_config()
    recipes_cfg = cfg.get("recipes", {}) if isinstance(cfg.get("recipes"), dict) else {}
    return CommandRouter(
        PreferenceStore(),
        gateway or build_gateway(cfg),
        get_categories(cfg),
        apply_diet=bool(recipes_cfg.get("apply_diet", True)),
    )


def build_application(
    config: Optional[Dict[str, Any]] = None,
    *,
    token: Optional[str] = None,
    router: Optional[CommandRouter] = None,
) -> Application:
    cfg = config or load_config()
    telegram_cfg = cfg.get("telegram", {}) if isinstance(cfg.get("telegram"), dict) else {}

    for issue in validate_registry():
        logger.error("Command registry issue: %s", issue)

    if token is None:
        env_var_name = str(telegram_cfg.get("bot_token_env_var") or "TELEGRAM_BOT_API_TOKEN")
        token = get_secret(env_var_name)
        if not token:
            raise RuntimeError(f"{env_var_name} is not set. Put it in your .env file.")

    request = HTTPXRequest(
        connect_timeout=30,
        read_timeout=120,
        write_timeout=120,
        pool_timeout=30,
    )

    defaults = Defaults(link_preview_options=LinkPreviewOptions(is_disabled=True))
    app = (
        Application.builder()
        .token(token)
        .request(request)
        .defaults(defaults)
        .post_shutdown(_app_post_shutdown)
        .build()
    )
    app.bot_data[ROUTER_KEY] = router or build_router(cfg)

    app.add_handler(CallbackQueryHandler(handle_callback))
    for root in sorted(known_roots()):
        app.add_handler(CommandHandler(root, handle_command))
    # Unregistered slash commands fall through every handler and are dropped.
    app.add_handler(MessageHandler(filters.TEXT & ~filters.COMMAND, handle_text))
    app.add_error_handler(handle_error)
    return app


def run_bot(config: Optional[Dict[str, Any]] = None) -> None:
    app = build_application(config)
    logger.info("🚀 Bot is running...")
    app.run_polling(allowed_updates=Update.ALL_TYPES, close_loop=False)
