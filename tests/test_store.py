"""
tests/test_store.py
"""
from __future__ import annotations

import sqlite3

import pytest

from tutorblog.store import ensure_post_columns


def _legacy_db() -> sqlite3.Connection:
    """A post table from before slugs and images existed."""
    db = sqlite3.connect(":memory:")
    db.row_factory = sqlite3.Row
    db.executescript(
        """
        CREATE TABLE post (
            id         INTEGER PRIMARY KEY AUTOINCREMENT,
            account_id INTEGER NOT NULL,
            title      TEXT NOT NULL,
            content    TEXT NOT NULL
        );
        INSERT INTO post (account_id, title, content) VALUES
            (1, 'Hello World', 'a'),
            (1, 'Hello World', 'b'),
            (1, '???', 'c');
        """
    )
    return db


def test_upgrade_adds_columns_and_backfills_slugs():
    db = _legacy_db()
    ensure_post_columns(db)

    cols = {r["name"] for r in db.execute("PRAGMA table_info(post)")}
    assert {"slug", "images"} <= cols

    slugs = [r["slug"] for r in db.execute("SELECT slug FROM post ORDER BY id")]
    assert slugs == ["hello-world", "hello-world-2", "post-3"]


def test_upgrade_is_a_no_op_on_current_schema():
    db = _legacy_db()
    ensure_post_columns(db)
    ensure_post_columns(db)
    assert db.execute("SELECT COUNT(*) FROM post").fetchone()[0] == 3


def test_unique_index_added():
    db = _legacy_db()
    ensure_post_columns(db)
    with pytest.raises(sqlite3.IntegrityError):
        db.execute("UPDATE post SET slug='hello-world' WHERE id=2")
