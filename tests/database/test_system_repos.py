"""System settings repository tests.

Tests for:
- SettingsRepository.get / set (upsert) / delete
- Salary defaults merged over the configured defaults
"""
from database.system_repos import SALARY_DEFAULTS_KEY


class TestSettingsRepository:
    """Key/value settings storage."""

    def test_get_missing_returns_default(self, temp_db):
        assert temp_db.settings_repo.get("missing") is None
        assert temp_db.settings_repo.get("missing", 42) == 42

    def test_set_then_get(self, temp_db):
        temp_db.settings_repo.set("theme", {"dark": True})
        assert temp_db.settings_repo.get("theme") == {"dark": True}

    def test_set_overwrites(self, temp_db):
        temp_db.settings_repo.set("counter", 1)
        temp_db.settings_repo.set("counter", 2)
        assert temp_db.settings_repo.get("counter") == 2

    def test_delete(self, temp_db):
        temp_db.settings_repo.set("temp", "x")
        assert temp_db.settings_repo.delete("temp") is True
        assert temp_db.settings_repo.get("temp") is None


class TestSalaryDefaults:
    """Persisted salary defaults."""

    def test_unsaved_returns_configured_defaults(self, temp_db):
        defaults = temp_db.settings_repo.get_salary_defaults()
        assert defaults["base_salary"] == 2100000
        assert defaults["incentive_rate"] == 50
        assert defaults["tax_enabled"] is False

    def test_saved_values_override(self, temp_db):
        temp_db.save_salary_defaults({"base_salary": 2500000, "tax_enabled": True})
        defaults = temp_db.get_salary_defaults()
        assert defaults["base_salary"] == 2500000
        assert defaults["tax_enabled"] is True
        # unsaved keys keep the configured value
        assert defaults["incentive_rate"] == 50

    def test_saved_under_known_key(self, temp_db):
        temp_db.save_salary_defaults({"incentive_rate": 40})
        assert temp_db.settings_repo.get(SALARY_DEFAULTS_KEY) == {"incentive_rate": 40}
