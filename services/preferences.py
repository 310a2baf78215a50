from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Hashable, Optional, Union

logger = logging.getLogger(__name__)


class Diet(str, Enum):
    UNSET = "unset"
    VEGETARIAN = "vegetarian"
    VEGAN = "vegan"
    NON_VEGETARIAN = "non-vegetarian"

    @property
    def is_set(self) -> bool:
        return self is not Diet.UNSET


SETTABLE_DIETS = (Diet.VEGETARIAN, Diet.VEGAN, Diet.NON_VEGETARIAN)


@dataclass
class UserPreference:
    user_id: Hashable
    diet: Optional[Diet] = None


class PreferenceStore:
    """In-memory diet preferences keyed by Telegram user id.

    Nothing is persisted; the store lives as long as the process.
    """

    def __init__(self) -> None:
        self._records: Dict[Hashable, UserPreference] = {}

    def __len__(self) -> int:
        return len(self._records)

    def record(self, user_id: Hashable) -> Optional[UserPreference]:
        return self._records.get(user_id)

    def get(self, user_id: Hashable) -> Diet:
        record = self._records.get(user_id)
        if record is None or record.diet is None:
            return Diet.UNSET
        return record.diet

    def set(self, user_id: Hashable, diet: Union[Diet, str]) -> Diet:
        try:
            value = Diet(diet)
        except ValueError:
            raise ValueError(f"Unknown diet: {diet!r}") from None
        if value not in SETTABLE_DIETS:
            raise ValueError(f"Diet must be one of {[d.value for d in SETTABLE_DIETS]}, got {value.value!r}")

        record = self._records.get(user_id)
        if record is None:
            record = UserPreference(user_id=user_id)
            self._records[user_id] = record
        record.diet = value
        logger.debug("Diet for user %s set to %s", user_id, value.value)
        return value

    def reset(self, user_id: Hashable) -> None:
        record = self._records.get(user_id)
        if record is None:
            # A reset still counts as a preference interaction.
            self._records[user_id] = UserPreference(user_id=user_id)
            return
        record.diet = None
        logger.debug("Diet for user %s reset", user_id)
