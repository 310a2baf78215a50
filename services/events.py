"""Inbound events, classified once at the Telegram boundary.

Handlers downstream only ever see one of ``Start``, ``Help``,
``ButtonPress``, ``Callback`` or ``FreeText``.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Optional, Union

from recipe_genie.config import CATEGORY_PAYLOAD_PREFIX
from services.commands_registry import resolve_command
from services.preferences import Diet


class Button(str, Enum):
    RANDOM = "🍳 Random Recipe"
    PREFERENCES = "⭐ My Preferences"
    CATEGORIES = "📖 Recipe Categories"
    ABOUT = "ℹ️ About"


KEYBOARD_LAYOUT = (
    (Button.RANDOM, Button.PREFERENCES),
    (Button.CATEGORIES, Button.ABOUT),
)

BUTTON_LABELS = tuple(button.value for button in Button)


class ActionKind(str, Enum):
    SET_DIET = "set_diet"
    RESET_DIET = "reset_diet"
    PICK_CATEGORY = "pick_category"


@dataclass(frozen=True)
class CallbackAction:
    kind: ActionKind
    diet: Optional[Diet] = None
    category: Optional[str] = None


@dataclass(frozen=True)
class Start:
    first_name: str = ""


@dataclass(frozen=True)
class Help:
    pass


@dataclass(frozen=True)
class ButtonPress:
    button: Button


@dataclass(frozen=True)
class Callback:
    action: Optional[CallbackAction]


@dataclass(frozen=True)
class FreeText:
    text: str


Event = Union[Start, Help, ButtonPress, Callback, FreeText]


# Callback payloads stay compatible with the buttons already sitting in chats.
DIET_PAYLOADS = {
    Diet.VEGETARIAN: "set_vegetarian",
    Diet.VEGAN: "set_vegan",
    Diet.NON_VEGETARIAN: "set_nonveg",
}
RESET_PAYLOAD = "reset_prefs"
CATEGORY_PREFIX = CATEGORY_PAYLOAD_PREFIX

COMMAND_EVENTS = {
    "start": None,
    "help": Help(),
    "random": ButtonPress(Button.RANDOM),
    "preferences": ButtonPress(Button.PREFERENCES),
    "categories": ButtonPress(Button.CATEGORIES),
    "about": ButtonPress(Button.ABOUT),
}


def encode_callback(action: CallbackAction) -> str:
    if action.kind is ActionKind.SET_DIET:
        if action.diet not in DIET_PAYLOADS:
            raise ValueError(f"No payload for diet {action.diet!r}")
        return DIET_PAYLOADS[action.diet]
    if action.kind is ActionKind.RESET_DIET:
        return RESET_PAYLOAD
    if not action.category:
        raise ValueError("Category action without a category")
    return f"{CATEGORY_PREFIX}{action.category.lower()}"


def decode_callback(data: str, categories: Iterable[str]) -> Optional[CallbackAction]:
    payload = (data or "").strip()
    if payload == RESET_PAYLOAD:
        return CallbackAction(ActionKind.RESET_DIET)
    for diet, diet_payload in DIET_PAYLOADS.items():
        if payload == diet_payload:
            return CallbackAction(ActionKind.SET_DIET, diet=diet)
    if payload.startswith(CATEGORY_PREFIX):
        wanted = payload[len(CATEGORY_PREFIX):]
        for label in categories:
            if label.lower() == wanted:
                return CallbackAction(ActionKind.PICK_CATEGORY, category=label)
    return None


def decode_message(text: str, *, first_name: str = "") -> Optional[Event]:
    """Classify a text message; ``None`` means the message is dropped."""
    stripped = (text or "").strip()
    if stripped in BUTTON_LABELS:
        return ButtonPress(Button(stripped))

    if stripped.startswith("/"):
        name = resolve_command(stripped)
        if name is None:
            return None
        if name == "start":
            return Start(first_name=first_name)
        return COMMAND_EVENTS[name]

    if not stripped:
        return None
    return FreeText(stripped)
