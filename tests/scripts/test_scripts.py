"""Maintenance script tests: database init, demo seed, link migration, .env wizard."""
import os
import shutil
import tempfile

import pytest

from database import DatabaseManager
from database.models import ClassSession
from scripts.init_db import DEMO_MEMBERS, init_database
from scripts.migrate_completion_links import migrate
from scripts.setup_env import CONFIG_ITEMS, build_env_content


@pytest.fixture
def database_url():
    temp_dir = tempfile.mkdtemp(prefix="scripts-tests-")
    try:
        yield f"sqlite:///{os.path.join(temp_dir, 'fitdesk.db')}"
    finally:
        shutil.rmtree(temp_dir, ignore_errors=True)


@pytest.fixture
def open_db(database_url):
    managers = []

    def _open():
        manager = DatabaseManager(database_url)
        managers.append(manager)
        return manager

    yield _open
    for manager in managers:
        manager.close()


class TestInitDatabase:
    """scripts/init_db.py"""

    def test_without_demo(self, database_url, open_db):
        init_database(database_url=database_url)
        db = open_db()
        assert db.members.list_all() == []
        assert db.get_salary_defaults()["base_salary"] == 2100000

    def test_demo_data(self, database_url, open_db):
        init_database(demo=True, database_url=database_url)
        db = open_db()
        snapshot = db.fetch_all_data()

        assert len(snapshot.members) == len(DEMO_MEMBERS)
        assert len(snapshot.weekly_schedules) == len(DEMO_MEMBERS)
        assert all(w.status == "confirmed" for w in snapshot.weekly_schedules)
        # every demo session is linked to its synthesized event
        assert snapshot.sessions
        assert all(s.completion_source_id == f"schedule-{s.id}" for s in snapshot.sessions)


class TestMigrateCompletionLinks:
    """scripts/migrate_completion_links.py"""

    def test_backfills_unlinked_sessions(self, database_url, open_db):
        init_database(demo=True, database_url=database_url)
        db = open_db()
        with db.get_session() as session:
            session.query(ClassSession).update({ClassSession.completion_source_id: None})
            session.commit()
        expected = len(db.sessions.list_all())

        assert migrate(database_url) == expected
        assert migrate(database_url) == 0


class TestSetupEnv:
    """scripts/setup_env.py"""

    def test_defaults(self):
        content = build_env_content({})
        assert "DATABASE_URL=sqlite:///data/fitdesk.db" in content
        assert "# === 会员预测 ===" in content
        assert len([line for line in content.splitlines() if "=" in line
                    and not line.startswith("#")]) == len(CONFIG_ITEMS)

    def test_overrides(self):
        content = build_env_content({"REMINDER_HOUR": "8", "CACHE_PATH": ""})
        assert "REMINDER_HOUR=8" in content
        assert "CACHE_PATH=data/cache.json" in content
