"""
SQLite connection handling, schema and the upgrade path for older files.
"""

import sqlite3
from datetime import datetime, timezone

from flask import current_app, g

from tutorblog.slugs import slugify_title, unique_slug


def get_db():
    if "db" not in g:
        g.db = sqlite3.connect(current_app.config["DATABASE"])
        g.db.execute("PRAGMA foreign_keys = ON;")
        g.db.row_factory = sqlite3.Row
        ensure_post_columns(g.db)
    return g.db


def close_db(error=None):
    db = g.pop("db", None)
    if db is not None:
        db.close()


def init_db():
    db = get_db()
    db.executescript(
        """
        ------------------------------------------------------------
        -- 1.  Accounts
        ------------------------------------------------------------
        CREATE TABLE IF NOT EXISTS account (
            id             INTEGER PRIMARY KEY AUTOINCREMENT,
            email          TEXT UNIQUE NOT NULL COLLATE NOCASE,
            password_hash  TEXT NOT NULL,
            admin          INTEGER NOT NULL DEFAULT 0,
            created_at     TEXT NOT NULL,
            updated_at     TEXT NOT NULL
        );

        ------------------------------------------------------------
        -- 2.  Posts  (images = JSON array, not a child table)
        ------------------------------------------------------------
        CREATE TABLE IF NOT EXISTS post (
            id            INTEGER PRIMARY KEY AUTOINCREMENT,
            account_id    INTEGER NOT NULL,
            title         TEXT NOT NULL,
            content       TEXT NOT NULL,
            excerpt       TEXT,
            slug          TEXT UNIQUE NOT NULL,
            published     INTEGER NOT NULL DEFAULT 0,
            published_at  TEXT,
            images        TEXT,
            created_at    TEXT NOT NULL,
            updated_at    TEXT NOT NULL,
            FOREIGN KEY (account_id) REFERENCES account(id) ON DELETE CASCADE
        );

        CREATE INDEX IF NOT EXISTS idx_post_account   ON post(account_id);
        CREATE INDEX IF NOT EXISTS idx_post_published ON post(published, published_at);
        """
    )
    db.commit()


def ensure_post_columns(db) -> None:
    """
    Bring a pre-slug / pre-images database up to date.

    Older files have neither ``post.slug`` nor ``post.images``; add them
    and give every slug-less row one derived from its title.
    """
    cols = {row["name"] for row in db.execute("PRAGMA table_info(post)")}
    if not cols or {"slug", "images"} <= cols:
        return

    if "images" not in cols:
        db.execute("ALTER TABLE post ADD COLUMN images TEXT")
    if "slug" not in cols:
        db.execute("ALTER TABLE post ADD COLUMN slug TEXT")
        db.execute("CREATE UNIQUE INDEX IF NOT EXISTS idx_post_slug ON post(slug)")

    def taken(slug: str, exclude_id: int | None) -> bool:
        return (
            db.execute(
                "SELECT 1 FROM post WHERE slug=? AND id IS NOT ?", (slug, exclude_id)
            ).fetchone()
            is not None
        )

    rows = db.execute(
        "SELECT id, title FROM post WHERE slug IS NULL OR slug='' ORDER BY id"
    ).fetchall()
    for row in rows:
        base = slugify_title(row["title"]) or f"post-{row['id']}"
        db.execute(
            "UPDATE post SET slug=? WHERE id=?",
            (unique_slug(base, taken, exclude_id=row["id"]), row["id"]),
        )
    db.commit()


# -------------------------------------------------------------------------
# Time helpers
# -------------------------------------------------------------------------
def utc_now() -> datetime:
    """Return an *aware* datetime in UTC."""
    return datetime.now(timezone.utc)


def now_iso() -> str:
    return utc_now().isoformat(timespec="seconds")
