"""
Player identity: a stable player_id plus a display name.
The id is generated the first time a name is chosen and kept across renames.
"""

from __future__ import annotations

import re
from secrets import choice, randbelow
from time import time
from typing import Callable, Optional

import structlog
from pydantic import ValidationError

from .persistence import IDENTITY_KEY, DocumentStore
from .schemas import Identity
from .session import random_token

logger = structlog.get_logger()

MIN_NAME_LENGTH = 3
# letters (accented included), digits, space, dash, underscore
_NAME_PATTERN = re.compile(r"^[a-zA-Z0-9À-ÿ _-]+$")

ADJECTIVES = ("Super", "Mega", "Ultra", "Hyper", "Fantastic", "Incredible", "Brilliant")
NOUNS = ("Player", "Champion", "Expert", "Master", "Pro", "Ace", "Guru")


class InvalidDisplayName(ValueError):
    pass


def validate_display_name(name: str) -> str:
    name = name.strip()
    if len(name) < MIN_NAME_LENGTH:
        raise InvalidDisplayName(f"Display name must be at least {MIN_NAME_LENGTH} characters.")
    if not _NAME_PATTERN.match(name):
        raise InvalidDisplayName("Allowed characters: letters, digits, spaces, '-' and '_'.")
    return name


def anonymous_name() -> str:
    """e.g. MegaChampion427"""
    return f"{choice(ADJECTIVES)}{choice(NOUNS)}{100 + randbelow(900)}"


class IdentityStore:
    def __init__(self, documents: DocumentStore, clock: Callable[[], float] = time):
        self._documents = documents
        self._clock = clock

    def resolve(self) -> Optional[Identity]:
        data = self._documents.load(IDENTITY_KEY)
        if data is None:
            return None
        try:
            return Identity.model_validate(data)
        except ValidationError:
            logger.warning("storage_corruption", key=IDENTITY_KEY)
            return None

    def set_display_name(self, name: str) -> Identity:
        return self._save(validate_display_name(name))

    def use_anonymous(self) -> Identity:
        return self._save(anonymous_name())

    def _save(self, display_name: str) -> Identity:
        current = self.resolve()
        if current is not None:
            player_id = current.player_id
        else:
            player_id = f"player_{int(self._clock() * 1000)}_{random_token()}"
        identity = Identity(player_id=player_id, display_name=display_name)
        self._documents.save(IDENTITY_KEY, identity.model_dump(mode="json"))
        logger.info("identity_saved", player_id=player_id, display_name=display_name)
        return identity
