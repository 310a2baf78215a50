from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Optional, Set

GROUP_ORDER: List[str] = [
    "Recipes",
    "Settings",
    "Info",
]


@dataclass
class CommandSpec:
    name: str
    usage: str
    description: str
    group: str
    default_help: bool = True


COMMAND_ALIASES: Dict[str, str] = {
    "prefs": "preferences",
    "category": "categories",
}


def _c(
    name: str,
    description: str,
    group: str,
    *,
    usage: str = "",
    default_help: bool = True,
) -> CommandSpec:
    return CommandSpec(
        name=name,
        usage=usage or f"/{name}",
        description=description,
        group=group,
        default_help=default_help,
    )


COMMANDS: Dict[str, CommandSpec] = {
    "random": _c("random", "a surprise recipe", "Recipes"),
    "categories": _c("categories", "pick a recipe category", "Recipes"),
    "preferences": _c("preferences", "set dietary needs", "Settings"),
    "start": _c("start", "show the main keyboard", "Info"),
    "help": _c("help", "this message", "Info"),
    "about": _c("about", "about RecipeGenie", "Info", default_help=False),
}


def resolve_root(command_name: str) -> str:
    key = str(command_name or "").strip().lower()
    if not key:
        return ""
    return COMMAND_ALIASES.get(key, key)


def resolve_command(text: str) -> Optional[str]:
    """Map ``/name[@bot] [args]`` to a registered command name, else ``None``."""
    raw = str(text or "").strip()
    if not raw.startswith("/"):
        return None
    head = raw[1:].split(maxsplit=1)[0] if len(raw) > 1 else ""
    # Telegram allows command aliases with @bot_name suffix.
    root = resolve_root(head.split("@", 1)[0])
    return root if root in COMMANDS else None


def command_specs() -> List[CommandSpec]:
    return list(COMMANDS.values())


def known_roots() -> Set[str]:
    return set(COMMANDS) | set(COMMAND_ALIASES)


def grouped_commands(*, include_non_default: bool = False) -> Dict[str, List[CommandSpec]]:
    groups: Dict[str, List[CommandSpec]] = {name: [] for name in GROUP_ORDER}
    for spec in command_specs():
        if not include_non_default and not spec.default_help:
            continue
        groups.setdefault(spec.group, []).append(spec)
    return {k: v for k, v in groups.items() if v}


def validate_registry() -> List[str]:
    issues: List[str] = []
    for spec in command_specs():
        if not spec.usage.startswith("/"):
            issues.append(f"Command usage must start with '/': {spec.name}")
        if spec.group not in GROUP_ORDER:
            issues.append(f"Unknown command group '{spec.group}' on {spec.name}")
    for alias, target in COMMAND_ALIASES.items():
        if target not in COMMANDS:
            issues.append(f"Alias '{alias}' points at unknown command '{target}'")
    return issues
