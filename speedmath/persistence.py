"""
Persistence layer for the Speed Math trainer.

This module provides a small key-value store abstraction and the
PersistenceManager that the game engine talks to. It handles:
- User profile (name, avatar, level, XP, streaks)
- Game history (best results per mode)
- Game settings (sound, haptics, dark mode)

Each logical key holds one JSON document. Stores raise on I/O or decode
problems; the PersistenceManager turns every such failure into "absent"
on load and into a logged, ignored error on save, so persistence can
never break a running game.

Two stores are provided: InMemoryStore for tests and local play, and
DynamoDbStore which keeps all documents of one player in a single
DynamoDB item keyed by the player id.
"""

import json
import logging
from typing import Any, Protocol

from botocore.exceptions import BotoCoreError, ClientError

from speedmath.models import GameResult, GameSettings, UserProfile

logger = logging.getLogger(__name__)


# Keys in the persistent store
ATTR_USER_PROFILE = "user_profile"
ATTR_GAME_HISTORY = "game_history"
ATTR_GAME_SETTINGS = "game_settings"

# DynamoDB partition key attribute
PARTITION_KEY = "id"

# Failures a store may raise that must never reach the engine
STORE_ERRORS = (BotoCoreError, ClientError, OSError, ValueError, TypeError, KeyError)


class KeyValueStore(Protocol):
    """Document store keyed by logical name."""

    def load(self, key: str) -> Any | None: ...

    def save(self, key: str, document: Any) -> None: ...

    def delete(self, key: str) -> None: ...


class InMemoryStore:
    """
    Process-local store.

    Documents are kept as JSON text so that values which could not be
    written to a real store fail here too.
    """

    def __init__(self, initial: dict[str, str] | None = None):
        self._data: dict[str, str] = dict(initial or {})

    def load(self, key: str) -> Any | None:
        raw = self._data.get(key)
        if raw is None:
            return None
        return json.loads(raw)

    def save(self, key: str, document: Any) -> None:
        self._data[key] = json.dumps(document)

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def raw(self, key: str) -> str | None:
        """Stored JSON text for a key."""
        return self._data.get(key)


class DynamoDbStore:
    """
    DynamoDB-backed store.

    Uses a single-table design with the player id as partition key.
    Every logical key is one attribute of the player's item holding the
    JSON-encoded document, so each key is read and written atomically.
    """

    def __init__(self, table, player_id: str):
        """
        Initialize the store.

        Args:
            table: A boto3 DynamoDB Table resource.
            player_id: Partition key value for this player.
        """
        self._table = table
        self._player_id = player_id

    @property
    def player_id(self) -> str:
        return self._player_id

    def load(self, key: str) -> Any | None:
        response = self._table.get_item(
            Key={PARTITION_KEY: self._player_id},
            ProjectionExpression="#k",
            ExpressionAttributeNames={"#k": key},
        )
        raw = response.get("Item", {}).get(key)
        if raw is None:
            return None
        return json.loads(raw)

    def save(self, key: str, document: Any) -> None:
        self._table.update_item(
            Key={PARTITION_KEY: self._player_id},
            UpdateExpression="SET #k = :v",
            ExpressionAttributeNames={"#k": key},
            ExpressionAttributeValues={":v": json.dumps(document)},
        )

    def delete(self, key: str) -> None:
        self._table.update_item(
            Key={PARTITION_KEY: self._player_id},
            UpdateExpression="REMOVE #k",
            ExpressionAttributeNames={"#k": key},
        )


class PersistenceManager:
    """
    Loads and saves game data through a KeyValueStore.

    Loading never fails: absent or malformed documents yield defaults.
    Saving never raises: failures are logged and reported as False.
    """

    def __init__(self, store: KeyValueStore):
        self._store = store

    @property
    def store(self) -> KeyValueStore:
        return self._store

    def _load(self, key: str) -> Any | None:
        try:
            return self._store.load(key)
        except STORE_ERRORS as e:
            logger.warning(f"Could not load '{key}', using defaults: {e}")
            return None

    def _save(self, key: str, document: Any) -> bool:
        try:
            self._store.save(key, document)
        except STORE_ERRORS:
            logger.exception(f"Could not save '{key}'")
            return False
        return True

    def _delete(self, key: str) -> bool:
        try:
            self._store.delete(key)
        except STORE_ERRORS:
            logger.exception(f"Could not delete '{key}'")
            return False
        return True

    def is_first_time_user(self) -> bool:
        """
        Check if this is a first-time user.

        Returns:
            True if no profile document is stored.
        """
        return self._load(ATTR_USER_PROFILE) is None

    def get_user_profile(self) -> UserProfile:
        """
        Load the user profile, or a default one.

        Returns:
            The stored UserProfile, or a new default profile when none is
            stored or the stored document cannot be decoded.
        """
        document = self._load(ATTR_USER_PROFILE)
        if document is None:
            return UserProfile()

        try:
            return UserProfile.from_dict(document)
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            logger.warning(f"Stored profile is malformed, using defaults: {e}")
            return UserProfile()

    def save_user_profile(self, profile: UserProfile) -> bool:
        return self._save(ATTR_USER_PROFILE, profile.to_dict())

    def get_game_history(self) -> list[GameResult]:
        """
        Load the game history.

        A history with any undecodable entry is treated as absent.
        """
        document = self._load(ATTR_GAME_HISTORY)
        if document is None:
            return []
        if not isinstance(document, list):
            logger.warning("Stored game history is not a list, using empty history")
            return []

        try:
            return [GameResult.from_dict(entry) for entry in document]
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            logger.warning(f"Stored game history is malformed, using empty history: {e}")
            return []

    def save_game_history(self, history: list[GameResult]) -> bool:
        return self._save(ATTR_GAME_HISTORY, [result.to_dict() for result in history])

    def get_settings(self) -> GameSettings:
        """Load the game settings, or the defaults."""
        document = self._load(ATTR_GAME_SETTINGS)
        if document is None:
            return GameSettings()

        try:
            return GameSettings.from_dict(document)
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            logger.warning(f"Stored settings are malformed, using defaults: {e}")
            return GameSettings()

    def save_settings(self, settings: GameSettings) -> bool:
        return self._save(ATTR_GAME_SETTINGS, settings.to_dict())

    def reset(self) -> UserProfile:
        """
        Replace the stored profile with a default one and delete the history.

        Settings are kept.

        Returns:
            The new default profile.
        """
        profile = UserProfile()
        self.save_user_profile(profile)
        self._delete(ATTR_GAME_HISTORY)
        return profile


def get_persistence_manager(store: KeyValueStore | None = None) -> PersistenceManager:
    """
    Factory function to get a PersistenceManager.

    Args:
        store: The backing store. A fresh InMemoryStore when omitted.

    Returns:
        A PersistenceManager instance.
    """
    return PersistenceManager(store if store is not None else InMemoryStore())
