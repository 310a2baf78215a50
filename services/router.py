from __future__ import annotations

import logging
from datetime import date
from typing import AsyncContextManager, Callable, Hashable, Optional, Protocol, Sequence

from recipe_genie.llm import prompts
from services import metrics
from services import presenter
from services.events import (
    ActionKind,
    Button,
    ButtonPress,
    Callback,
    Event,
    FreeText,
    Help,
    Start,
)
from services.generation import GenerationGateway
from services.preferences import Diet, PreferenceStore

logger = logging.getLogger(__name__)


class Responder(Protocol):
    async def send(self, reply: presenter.Reply) -> None:
        ...

    async def toast(self, text: Optional[str] = None) -> None:
        ...

    def typing(self) -> AsyncContextManager[None]:
        ...


class CommandRouter:
    """Matches decoded events to handlers.

    The router keeps no per-conversation state; everything it remembers
    lives in the injected ``PreferenceStore``.
    """

    def __init__(
        self,
        store: PreferenceStore,
        gateway: GenerationGateway,
        categories: Sequence[str],
        *,
        apply_diet: bool = True,
        clock: Callable[[], date] = date.today,
    ):
        self.store = store
        self.gateway = gateway
        self.categories = tuple(categories)
        self.apply_diet = apply_diet
        self.clock = clock

    async def route(self, event: Event, responder: Responder, *, user_id: Optional[Hashable] = None) -> None:
        metrics.record_event(type(event).__name__)

        if isinstance(event, Start):
            await responder.send(presenter.welcome_reply(event.first_name))
        elif isinstance(event, Help):
            await responder.send(presenter.help_reply())
        elif isinstance(event, ButtonPress):
            await self._on_button(event.button, responder, user_id)
        elif isinstance(event, Callback):
            await self._on_callback(event, responder, user_id)
        elif isinstance(event, FreeText):
            prompt = self._prompt(prompts.RecipeIntent(prompts.FREEFORM, event.text), user_id)
            await self._generate_and_reply(prompt, presenter.FREEFORM_FAILED, responder)
        else:
            raise TypeError(f"Unhandled event type: {type(event).__name__}")

    async def _on_button(self, button: Button, responder: Responder, user_id: Optional[Hashable]) -> None:
        if button is Button.ABOUT:
            await responder.send(presenter.about_reply(self.clock()))
        elif button is Button.PREFERENCES:
            diet = self.store.get(user_id) if user_id is not None else Diet.UNSET
            await responder.send(presenter.preferences_reply(diet))
        elif button is Button.CATEGORIES:
            await responder.send(presenter.categories_reply(self.categories))
        elif button is Button.RANDOM:
            prompt = self._prompt(prompts.RecipeIntent(prompts.RANDOM), user_id)
            await self._generate_and_reply(prompt, presenter.RANDOM_FAILED, responder)

    async def _on_callback(self, event: Callback, responder: Responder, user_id: Optional[Hashable]) -> None:
        action = event.action
        if action is None:
            await responder.toast()
            return

        if action.kind is ActionKind.PICK_CATEGORY:
            await responder.toast()
            prompt = self._prompt(prompts.RecipeIntent(prompts.CATEGORY, str(action.category)), user_id)
            await self._generate_and_reply(prompt, presenter.CATEGORY_FAILED, responder)
            return

        if user_id is None:
            logger.warning("Preference callback without a user; ignoring")
            await responder.toast()
            return

        if action.kind is ActionKind.RESET_DIET:
            self.store.reset(user_id)
            await responder.toast(presenter.PREFERENCES_RESET)
            return

        diet = self.store.set(user_id, action.diet)
        await responder.toast(presenter.diet_set_notice(diet))

    def _diet_hint(self, user_id: Optional[Hashable]) -> Optional[str]:
        if not self.apply_diet or user_id is None:
            return None
        diet = self.store.get(user_id)
        return diet.value if diet.is_set else None

    def _prompt(self, intent: prompts.RecipeIntent, user_id: Optional[Hashable]) -> str:
        return prompts.build_prompt(intent, diet=self._diet_hint(user_id))

    async def _generate_and_reply(self, prompt: str, failure_message: str, responder: Responder) -> None:
        async with responder.typing():
            text = await self.gateway.generate(prompt)
        reply = presenter.recipe_reply(text) if text else None
        if reply is None or not reply.text:
            # Markup-only output renders to nothing and Telegram refuses empty text.
            if text:
                logger.warning("Generated text was empty after rendering: %r", text[:80])
            reply = presenter.failure_reply(failure_message)
        await responder.send(reply)
