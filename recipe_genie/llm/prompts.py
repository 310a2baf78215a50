"""Prompt text sent to the generation backend.

Length hints ("max 500 chars") are instructions for the model only; the
reply is never truncated afterwards.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

RANDOM = "random"
CATEGORY = "category"
FREEFORM = "freeform"

INTENT_KINDS = (RANDOM, CATEGORY, FREEFORM)

RANDOM_RECIPE_PROMPT = (
    "Generate a random recipe with:\n"
    "- Creative name\n"
    "- Ingredients list\n"
    "- Simple steps\n"
    "- Cooking time\n"
    "- Difficulty level\n"
    "Add food emojis (max 500 chars)"
)

CATEGORY_RECIPE_TEMPLATE = "Generate a {category} recipe with ingredients and steps"

FREEFORM_RECIPE_TEMPLATE = (
    "Create a recipe for: {text}\n"
    "Include:\n"
    "1. Ingredients\n"
    "2. Steps\n"
    "3. Time\n"
    "Format with emojis (max 400 chars)"
)

DIET_LINE_TEMPLATE = "The recipe must be {diet}."


@dataclass(frozen=True)
class RecipeIntent:
    kind: str
    value: str = ""

    def __post_init__(self) -> None:
        if self.kind not in INTENT_KINDS:
            raise ValueError(f"Unknown intent kind: {self.kind!r}")

    @classmethod
    def parse(cls, raw: str) -> "RecipeIntent":
        """Parse the ``random`` / ``category:<name>`` / ``freeform:<text>`` notation."""
        kind, _, value = (raw or "").partition(":")
        return cls(kind=kind.strip().lower(), value=value)


def _with_diet(prompt: str, diet: Optional[str]) -> str:
    if not diet:
        return prompt
    return f"{prompt}\n{DIET_LINE_TEMPLATE.format(diet=diet)}"


def random_recipe_prompt(*, diet: Optional[str] = None) -> str:
    return _with_diet(RANDOM_RECIPE_PROMPT, diet)


def category_recipe_prompt(category: str, *, diet: Optional[str] = None) -> str:
    return _with_diet(CATEGORY_RECIPE_TEMPLATE.format(category=category), diet)


def freeform_recipe_prompt(text: str, *, diet: Optional[str] = None) -> str:
    return _with_diet(FREEFORM_RECIPE_TEMPLATE.format(text=text), diet)


def build_prompt(intent: RecipeIntent, *, diet: Optional[str] = None) -> str:
    if intent.kind == RANDOM:
        return random_recipe_prompt(diet=diet)
    if intent.kind == CATEGORY:
        return category_recipe_prompt(intent.value, diet=diet)
    return freeform_recipe_prompt(intent.value, diet=diet)
