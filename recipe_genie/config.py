from __future__ import annotations

import logging
import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import yaml
from dotenv import load_dotenv

BASE_DIR = Path(__file__).resolve().parent.parent
DEFAULT_CONFIG_PATH = BASE_DIR / "config.yaml"

logger = logging.getLogger(__name__)

# Telegram caps inline button callback_data at 64 bytes.
CALLBACK_DATA_LIMIT = 64
CATEGORY_PAYLOAD_PREFIX = "category_"

DEFAULT_CATEGORIES: Tuple[str, ...] = (
    "Breakfast",
    "Lunch",
    "Dinner",
    "Vegetarian",
    "Vegan",
    "Desserts",
    "Quick Meals",
    "Healthy",
    "Comfort Food",
)


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def _env_overrides() -> Dict[str, Any]:
    overrides: Dict[str, Any] = {}

    backend = os.getenv("RECIPE_GENIE_BACKEND", "").strip().lower()
    if backend:
        overrides.setdefault("generation", {})["backend"] = backend

    model = os.getenv("RECIPE_GENIE_MODEL", "").strip()
    if model:
        overrides.setdefault("generation", {})["model"] = model

    ollama_url = os.getenv("OLLAMA_URL")
    if ollama_url:
        overrides.setdefault("generation", {}).setdefault("ollama", {})["base_url"] = ollama_url

    log_level = os.getenv("RECIPE_GENIE_LOG_LEVEL", "").strip()
    if log_level:
        overrides.setdefault("logging", {})["level"] = log_level

    return overrides


def resolve_path(path_value: str, *, base_dir: Optional[Path] = None) -> Path:
    candidate = Path(path_value)
    if not candidate.is_absolute():
        candidate = (base_dir or BASE_DIR) / candidate
    return candidate.resolve()


@lru_cache(maxsize=1)
def load_config() -> Dict[str, Any]:
    # Load .env once through a single interface.
    load_dotenv(dotenv_path=BASE_DIR / ".env")

    config_path = os.getenv("RECIPE_GENIE_CONFIG")
    path = resolve_path(config_path, base_dir=Path.cwd()) if config_path else DEFAULT_CONFIG_PATH

    data: Dict[str, Any] = {}
    if path.exists():
        loaded = yaml.safe_load(path.read_text(encoding="utf-8"))
        if isinstance(loaded, dict):
            data = loaded

    return _deep_merge(data, _env_overrides())


def reload_config() -> Dict[str, Any]:
    load_config.cache_clear()
    return load_config()


def get_log_path(config: Optional[Dict[str, Any]] = None) -> Path:
    cfg = config or load_config()
    log_path = str(cfg.get("paths", {}).get("log_file", "logs/recipe-genie.log"))
    return resolve_path(log_path)


def get_categories(config: Optional[Dict[str, Any]] = None) -> Tuple[str, ...]:
    cfg = config or load_config()
    raw = cfg.get("recipes", {}).get("categories") if isinstance(cfg.get("recipes"), dict) else None
    if not raw:
        return DEFAULT_CATEGORIES
    labels = []
    for item in raw:
        label = str(item or "").strip()
        if not label or label in labels:
            continue
        payload = f"{CATEGORY_PAYLOAD_PREFIX}{label.lower()}"
        if len(payload.encode("utf-8")) > CALLBACK_DATA_LIMIT:
            logger.warning("Skipping category %r: callback payload exceeds %d bytes", label, CALLBACK_DATA_LIMIT)
            continue
        labels.append(label)
    return tuple(labels) or DEFAULT_CATEGORIES


def get_secret(env_var_name: str) -> str:
    load_config()
    return os.getenv(env_var_name, "").strip()
