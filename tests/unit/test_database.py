"""Unit tests for the migration runner with a mocked asyncpg pool."""

from unittest.mock import patch

import pytest

from src.database import DEFAULT_MIGRATIONS_DIR, get_pool, run_migrations


@pytest.fixture
def patched_pool(mock_pool):
    pool, conn = mock_pool
    with patch("src.database._pool", pool):
        yield conn


@pytest.fixture
def migrations_dir(tmp_path):
    (tmp_path / "001_first.sql").write_text("CREATE TABLE a (id INT);")
    (tmp_path / "002_second.sql").write_text("CREATE TABLE b (id INT);")
    return tmp_path


def _executed_sql(conn):
    return [c.args[0] for c in conn.execute.await_args_list]


class TestRunMigrations:

    async def test_applies_pending_in_order(self, patched_pool, migrations_dir):
        patched_pool.fetch.return_value = []

        applied = await run_migrations(migrations_dir)

        assert applied == ["001_first.sql", "002_second.sql"]
        executed = _executed_sql(patched_pool)
        assert "CREATE TABLE IF NOT EXISTS schema_migrations" in executed[0]
        assert executed[1] == "CREATE TABLE a (id INT);"
        assert executed[3] == "CREATE TABLE b (id INT);"
        recorded = [
            c.args[1] for c in patched_pool.execute.await_args_list
            if "INSERT INTO schema_migrations" in c.args[0]
        ]
        assert recorded == ["001_first.sql", "002_second.sql"]

    async def test_skips_already_applied(self, patched_pool, migrations_dir):
        patched_pool.fetch.return_value = [{"filename": "001_first.sql"}]

        applied = await run_migrations(migrations_dir)

        assert applied == ["002_second.sql"]
        assert "CREATE TABLE a (id INT);" not in _executed_sql(patched_pool)

    async def test_failure_propagates(self, patched_pool, migrations_dir):
        patched_pool.fetch.return_value = []
        patched_pool.execute.side_effect = [None, RuntimeError("syntax error")]

        with pytest.raises(RuntimeError):
            await run_migrations(migrations_dir)

    async def test_missing_directory(self, patched_pool, tmp_path):
        assert await run_migrations(tmp_path / "nope") == []
        patched_pool.execute.assert_not_awaited()

    async def test_bundled_migrations_exist(self):
        names = sorted(p.name for p in DEFAULT_MIGRATIONS_DIR.glob("*.sql"))
        assert names == ["001_create_users.sql", "002_create_todos.sql"]


class TestGetPool:

    async def test_uninitialized(self):
        with patch("src.database._pool", None):
            with pytest.raises(RuntimeError):
                await get_pool()
