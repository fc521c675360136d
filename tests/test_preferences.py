"""
tests/test_preferences.py — Notification preference merge and validation
=========================================================================
"""

from __future__ import annotations

import pytest

from hazardnet.constants import CATEGORIES
from hazardnet.errors import NotFoundError, ValidationError
from hazardnet.services import preferences_service
from hazardnet.services.preferences_service import accepts_alert, effective_settings


class TestAcceptsAlert:
    def test_unset_means_included(self):
        assert accepts_alert(None, "fire")
        assert accepts_alert({}, "fire")

    def test_category_explicitly_false(self):
        assert not accepts_alert({"fire": False}, "fire")
        assert accepts_alert({"fire": False}, "flood")

    def test_globally_disabled(self):
        assert not accepts_alert({"enabled": False, "fire": True}, "fire")

    def test_only_literal_false_excludes(self):
        assert accepts_alert({"fire": None, "enabled": 0}, "fire")


class TestEffectiveSettings:
    def test_defaults(self):
        settings = effective_settings(None)
        assert all(settings[c] is True for c in CATEGORIES)
        assert settings["method"] == "push"
        assert settings["enabled"] is True

    def test_stored_values_win(self):
        settings = effective_settings({"crime": False, "method": "sms"})
        assert settings["crime"] is False
        assert settings["method"] == "sms"
        assert settings["fire"] is True


class TestPersistence:
    def test_update_merges_and_persists(self, db_engine, make_user):
        uid = make_user("ana")
        preferences_service.update_preferences(db_engine, uid, {"fire": False})
        merged = preferences_service.update_preferences(db_engine, uid, {"method": "email"})

        assert merged["fire"] is False
        assert merged["method"] == "email"
        assert preferences_service.get_preferences(db_engine, uid) == merged

    @pytest.mark.parametrize("changes", [
        {"volcano": True},
        {"method": "pigeon"},
        {"fire": "yes"},
        {"enabled": 1},
    ])
    def test_invalid_changes(self, db_engine, make_user, changes):
        uid = make_user("ben")
        with pytest.raises(ValidationError):
            preferences_service.update_preferences(db_engine, uid, changes)
        assert preferences_service.get_preferences(db_engine, uid) == effective_settings(None)

    def test_unknown_user(self, db_engine):
        with pytest.raises(NotFoundError):
            preferences_service.get_preferences(db_engine, 31337)
