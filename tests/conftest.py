import os

import pytest

from src.adapters.sqlite.migrator import SQLiteMigrator
from src.adapters.sqlite.repos import SQLiteRuleStore
from src.components.redirects import RedirectRule


@pytest.fixture
def test_data_dir(tmp_path):
    return str(tmp_path)


@pytest.fixture
def db_path(test_data_dir):
    """Migrated SQLite database in a temp directory."""
    path = os.path.join(test_data_dir, "redirects.db")
    SQLiteMigrator(path).run_migrations()
    return path


@pytest.fixture
def sqlite_store(db_path):
    return SQLiteRuleStore(db_path)


@pytest.fixture
def sample_rules():
    return [
        RedirectRule(source="/old", target="/new", status_code=301),
        RedirectRule(source="/old/*", target="/new/$1", status_code=302),
        RedirectRule(source="/x/*/y/*", target="/z/$1/$2", status_code=308),
    ]
