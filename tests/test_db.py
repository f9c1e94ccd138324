import sqlite3

import pytest

from filmwise.db import execute, query, query_one, transaction
from filmwise.errors import QueryTimeout, StoreError

ENDLESS_SQL = """
WITH RECURSIVE counter(x) AS (SELECT 1 UNION ALL SELECT x + 1 FROM counter)
SELECT MAX(x) FROM counter
"""


def test_query_returns_rows(ctx):
    rows = query("SELECT id FROM genres ORDER BY id")
    assert [r["id"] for r in rows] == [1, 2, 3]
    assert query_one("SELECT id FROM genres WHERE id = ?", (99,)) is None


def test_statement_past_deadline_raises_query_timeout(ctx):
    ctx.config["QUERY_TIMEOUT"] = 0.05
    with pytest.raises(QueryTimeout):
        query(ENDLESS_SQL)


def test_query_timeout_is_a_store_error():
    assert issubclass(QueryTimeout, StoreError)
    assert QueryTimeout().status_code == 500


def test_bad_sql_is_wrapped_as_store_error(ctx):
    with pytest.raises(StoreError) as info:
        query("SELECT nope FROM nowhere")
    assert "nowhere" not in info.value.message


def test_integrity_errors_pass_through(ctx):
    with pytest.raises(sqlite3.IntegrityError):
        execute("INSERT INTO genres (genre_name) VALUES (?)", ("Drama",))
    # connection is still usable after the rollback
    assert query_one("SELECT COUNT(*) AS cnt FROM genres")["cnt"] == 3


def test_transaction_rolls_back_on_error(ctx):
    with pytest.raises(RuntimeError):
        with transaction() as tx:
            tx.execute("INSERT INTO genres (genre_name) VALUES (?)", ("Western",))
            raise RuntimeError("boom")
    assert query_one("SELECT 1 FROM genres WHERE genre_name = 'Western'") is None


def test_transaction_commits(ctx):
    with transaction() as tx:
        tx.execute("INSERT INTO genres (genre_name) VALUES (?)", ("Western",))
    assert query_one("SELECT 1 FROM genres WHERE genre_name = 'Western'") is not None
