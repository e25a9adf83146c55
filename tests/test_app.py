"""Command line overview output tests."""
import os
import shutil
import tempfile

import pytest

from app import print_overview
from business.store import FrontDeskStore
from database import DatabaseManager


@pytest.fixture
def app_store():
    temp_dir = tempfile.mkdtemp(prefix="app-tests-")
    db = DatabaseManager(f"sqlite:///{os.path.join(temp_dir, 'app.db')}")
    db.create_tables()
    store = FrontDeskStore(db)
    try:
        yield store
    finally:
        db.close()
        shutil.rmtree(temp_dir, ignore_errors=True)


def test_overview_empty(app_store, capsys):
    app_store.refresh()
    print_overview(app_store)
    out = capsys.readouterr().out
    assert "Members: 0" in out
    assert "Re-registration needed (0)" in out


def test_overview_lists_reregistration(app_store, capsys):
    app_store.add_member("Lee Jun", 2, 50000)
    print_overview(app_store)
    out = capsys.readouterr().out
    assert "Members: 1" in out
    assert "- Lee Jun: 2 session(s) left" in out
    assert "Sales this month: 1 (100,000)" in out
