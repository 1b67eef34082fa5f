"""
Tests for the persistence manager and the in-memory store.
"""

import json
import logging
from datetime import datetime
from unittest.mock import MagicMock

import pytest
from botocore.exceptions import ClientError

from speedmath.models import GameMode, GameResult, GameSettings, UserProfile
from speedmath.persistence import (
    ATTR_GAME_HISTORY,
    ATTR_GAME_SETTINGS,
    ATTR_USER_PROFILE,
    InMemoryStore,
    PersistenceManager,
    get_persistence_manager,
)


def _client_error(operation: str) -> ClientError:
    return ClientError(
        {"Error": {"Code": "ProvisionedThroughputExceededException", "Message": "slow down"}},
        operation,
    )


def _result(score: int, mode: GameMode = GameMode.TIME_ATTACK) -> GameResult:
    return GameResult(
        mode=mode,
        score=score,
        time=30.0,
        date=datetime(2025, 6, 1, 12, 0),
        level=2,
        problems_solved=score // 12,
        accuracy=1.0,
    )


@pytest.fixture
def store():
    return InMemoryStore()


@pytest.fixture
def pm(store):
    return PersistenceManager(store)


class TestInMemoryStore:
    """Tests for InMemoryStore."""

    def test_missing_key_loads_none(self, store):
        assert store.load(ATTR_USER_PROFILE) is None

    def test_documents_are_kept_as_json(self, store):
        store.save("doc", {"a": [1, 2]})

        assert json.loads(store.raw("doc")) == {"a": [1, 2]}
        assert store.load("doc") == {"a": [1, 2]}

    def test_non_serialisable_document_raises(self, store):
        with pytest.raises(TypeError):
            store.save("doc", {"when": datetime.now()})

    def test_delete(self, store):
        store.save("doc", 1)
        store.delete("doc")
        store.delete("never-stored")

        assert store.load("doc") is None


class TestPersistenceManagerNewUser:
    """Tests for first-time users with no stored data."""

    def test_is_first_time_user_returns_true(self, pm):
        assert pm.is_first_time_user() is True

    def test_get_user_profile_creates_default_profile(self, pm):
        assert pm.get_user_profile() == UserProfile()

    def test_get_game_history_returns_empty_list(self, pm):
        assert pm.get_game_history() == []

    def test_get_settings_returns_defaults(self, pm):
        assert pm.get_settings() == GameSettings()


class TestPersistenceManagerSaving:
    """Tests for saving and reloading data."""

    def test_profile_persists(self, pm, store):
        profile = UserProfile(name="Max", current_level=9, total_xp=450)

        assert pm.save_user_profile(profile) is True

        assert pm.is_first_time_user() is False
        assert PersistenceManager(store).get_user_profile() == profile

    def test_history_persists_in_order(self, pm, store):
        history = [_result(40), _result(90, GameMode.DAILY_STREAK), _result(10)]

        pm.save_game_history(history)

        assert PersistenceManager(store).get_game_history() == history
        assert store.load(ATTR_GAME_HISTORY)[1]["mode"] == "Daily Streak"

    def test_settings_persist(self, pm, store):
        pm.save_settings(GameSettings(sound_enabled=False, dark_mode_enabled=True))

        assert store.load(ATTR_GAME_SETTINGS) == {
            "sound_enabled": False,
            "haptic_enabled": True,
            "dark_mode_enabled": True,
        }

    def test_reset_restores_defaults_and_keeps_settings(self, pm):
        pm.save_user_profile(UserProfile(name="Max", current_level=30))
        pm.save_game_history([_result(100)])
        pm.save_settings(GameSettings(haptic_enabled=False))

        profile = pm.reset()

        assert profile == UserProfile()
        assert pm.get_user_profile() == UserProfile()
        assert pm.get_game_history() == []
        assert pm.get_settings().haptic_enabled is False

    def test_reset_deletes_stored_history(self, pm, store):
        pm.save_game_history([_result(100)])

        pm.reset()

        assert store.raw(ATTR_GAME_HISTORY) is None
        assert store.raw(ATTR_USER_PROFILE) is not None

    def test_factory_defaults_to_memory_store(self):
        pm = get_persistence_manager()
        assert isinstance(pm.store, InMemoryStore)


class TestMalformedDocuments:
    """Malformed stored data is treated as absent."""

    def test_corrupt_json_profile(self):
        pm = PersistenceManager(InMemoryStore({ATTR_USER_PROFILE: "{not json"}))
        assert pm.get_user_profile() == UserProfile()

    def test_profile_with_wrong_types(self):
        store = InMemoryStore()
        store.save(ATTR_USER_PROFILE, {"current_level": "high"})

        assert PersistenceManager(store).get_user_profile() == UserProfile()

    def test_profile_not_an_object(self):
        store = InMemoryStore()
        store.save(ATTR_USER_PROFILE, [1, 2, 3])

        assert PersistenceManager(store).get_user_profile() == UserProfile()

    def test_history_not_a_list(self):
        store = InMemoryStore()
        store.save(ATTR_GAME_HISTORY, {"score": 3})

        assert PersistenceManager(store).get_game_history() == []

    def test_history_with_unknown_mode(self):
        store = InMemoryStore()
        good = _result(30).to_dict()
        bad = dict(good, mode="Marathon")
        store.save(ATTR_GAME_HISTORY, [good, bad])

        assert PersistenceManager(store).get_game_history() == []

    def test_profile_with_coercible_values(self):
        """Values that would only convert by coercion are rejected, not guessed."""
        store = InMemoryStore()
        store.save(ATTR_USER_PROFILE, {"name": None, "current_level": 2.9})

        assert PersistenceManager(store).get_user_profile() == UserProfile()

    def test_profile_with_boolean_counter(self):
        store = InMemoryStore()
        store.save(ATTR_USER_PROFILE, {"total_xp": True})

        assert PersistenceManager(store).get_user_profile() == UserProfile()

    def test_settings_with_string_and_integer_flags(self):
        """A string "false" must not enable dark mode, and 0 is not a boolean."""
        store = InMemoryStore()
        store.save(ATTR_GAME_SETTINGS, {"dark_mode_enabled": "false", "sound_enabled": 0})

        assert PersistenceManager(store).get_settings() == GameSettings()

    def test_settings_not_an_object(self):
        store = InMemoryStore()
        store.save(ATTR_GAME_SETTINGS, "loud")

        assert PersistenceManager(store).get_settings() == GameSettings()

    def test_malformed_data_logs_warning(self, caplog):
        pm = PersistenceManager(InMemoryStore({ATTR_USER_PROFILE: "]"}))

        with caplog.at_level(logging.WARNING, logger="speedmath.persistence"):
            pm.get_user_profile()

        assert "using defaults" in caplog.text


class TestStoreFailures:
    """Store errors never escape the manager."""

    def test_load_failure_uses_defaults(self):
        store = MagicMock()
        store.load.side_effect = _client_error("GetItem")
        pm = PersistenceManager(store)

        assert pm.get_user_profile() == UserProfile()
        assert pm.get_game_history() == []
        assert pm.get_settings() == GameSettings()

    def test_save_failure_returns_false(self, caplog):
        store = MagicMock()
        store.save.side_effect = _client_error("UpdateItem")
        pm = PersistenceManager(store)

        with caplog.at_level(logging.ERROR, logger="speedmath.persistence"):
            assert pm.save_user_profile(UserProfile()) is False

        assert "Could not save 'user_profile'" in caplog.text

    def test_encode_failure_returns_false(self):
        store = MagicMock()
        store.save.side_effect = TypeError("not serialisable")

        assert PersistenceManager(store).save_game_history([_result(5)]) is False

    def test_reset_survives_delete_failure(self, caplog):
        store = MagicMock()
        store.delete.side_effect = _client_error("UpdateItem")
        pm = PersistenceManager(store)

        with caplog.at_level(logging.ERROR, logger="speedmath.persistence"):
            assert pm.reset() == UserProfile()

        store.delete.assert_called_once_with(ATTR_GAME_HISTORY)
        assert "Could not delete 'game_history'" in caplog.text
