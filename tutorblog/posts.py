"""
Posts: lookups, the owner-only write path, publishing and images.

Every function that changes a post takes the caller's ``Principal`` and
only ever sees posts owned by that account.  Somebody else's post is
reported exactly like a missing one (``PostNotFound``).
"""

import logging
import sqlite3
from collections.abc import Mapping

from tutorblog import store
from tutorblog.accounts import Principal
from tutorblog.errors import PostNotFound, ValidationError
from tutorblog.images import ImageDescriptor, PostImages, encode_images
from tutorblog.slugs import is_valid_slug, slugify_title, unique_slug

log = logging.getLogger(__name__)

TITLE_MAX = 200
EXCERPT_MAX = 500
EXCERPT_DEFAULT = 150
SLUG_RETRY_LIMIT = 5
WRITABLE_FIELDS = ("title", "content", "excerpt", "published", "slug", "images")
TRUTHY = {"1", "true", "on", "yes"}


###############################################################################
# Lookups
###############################################################################
def slug_exists(slug: str, exclude_id: int | None = None, *, db) -> bool:
    row = db.execute(
        "SELECT 1 FROM post WHERE slug=? AND id IS NOT ?", (slug, exclude_id)
    ).fetchone()
    return row is not None


def _lookup(ref, *, db, where: str = "1", params: tuple = ()):
    """
    Resolve *ref* as a slug first, then as a numeric id (old links).
    """
    ref = str(ref or "").strip()
    if not ref:
        return None
    row = db.execute(
        f"SELECT * FROM post WHERE slug=? AND {where}", (ref, *params)
    ).fetchone()
    if row is None and ref.isdigit():
        row = db.execute(
            f"SELECT * FROM post WHERE id=? AND {where}", (int(ref), *params)
        ).fetchone()
    return row


def owned_post(principal: Principal, ref, *, db):
    """The post *ref* if *principal* owns it, else ``PostNotFound``."""
    if not principal.is_authenticated:
        raise PostNotFound(ref)
    row = _lookup(ref, db=db, where="account_id=?", params=(principal.account_id,))
    if row is None:
        raise PostNotFound(ref)
    return row


def published_post(ref, *, db):
    row = _lookup(ref, db=db, where="published=1")
    if row is None:
        raise PostNotFound(ref)
    return row


def list_owned(principal: Principal, *, db) -> list:
    if not principal.is_authenticated:
        return []
    return db.execute(
        "SELECT * FROM post WHERE account_id=? ORDER BY created_at DESC, id DESC",
        (principal.account_id,),
    ).fetchall()


def list_published(*, db, limit: int | None = None) -> list:
    sql = """SELECT p.*, a.email AS author_email
               FROM post p LEFT JOIN account a ON a.id = p.account_id
              WHERE p.published = 1
              ORDER BY p.created_at DESC, p.id DESC"""
    if limit is not None:
        return db.execute(sql + " LIMIT ?", (limit,)).fetchall()
    return db.execute(sql).fetchall()


def search_posts(term: str | None, *, db) -> list:
    """Published posts whose title or content contains *term* (any case)."""
    term = (term or "").strip()
    if not term:
        return []
    like = f"%{term}%"
    return db.execute(
        """SELECT p.*, a.email AS author_email
             FROM post p LEFT JOIN account a ON a.id = p.account_id
            WHERE p.published = 1
              AND (p.title LIKE ? OR p.content LIKE ?)
            ORDER BY p.created_at DESC, p.id DESC""",
        (like, like),
    ).fetchall()


def owner_stats(principal: Principal, *, db) -> dict[str, int]:
    row = db.execute(
        """SELECT COUNT(*)                              AS total,
                  COALESCE(SUM(published), 0)           AS published
             FROM post WHERE account_id=?""",
        (principal.account_id,),
    ).fetchone()
    return {
        "total": row["total"],
        "published": row["published"],
        "drafts": row["total"] - row["published"],
    }


###############################################################################
# Presentation helpers
###############################################################################
def post_images(row) -> PostImages:
    return PostImages.from_text(row["images"] if row is not None else None)


def truncate(text: str | None, limit: int, omission: str = "...") -> str:
    text = text or ""
    if len(text) <= limit:
        return text
    return text[: max(limit - len(omission), 0)] + omission


def excerpt_or_content(row, limit: int = EXCERPT_DEFAULT) -> str:
    if row["excerpt"] and row["excerpt"].strip():
        return row["excerpt"]
    return truncate(row["content"], limit)


###############################################################################
# Write path
###############################################################################
def _as_bool(value) -> bool:
    if isinstance(value, bool):
        return value
    return str(value or "").strip().lower() in TRUTHY


def _take(data: Mapping) -> dict:
    """
    Keep only the writable fields.  ``id``, owner and timestamps are never
    read from the caller, whatever the form says.
    """
    out = {}
    for key in WRITABLE_FIELDS:
        if key in data:
            out[key] = data[key]
    return out


def _check_fields(fields: dict, errors: dict[str, str]) -> None:
    title = fields["title"]
    if not title:
        errors["title"] = "can't be blank"
    elif len(title) > TITLE_MAX:
        errors["title"] = f"is too long (maximum is {TITLE_MAX} characters)"
    if not fields["content"]:
        errors["content"] = "can't be blank"
    if fields["excerpt"] and len(fields["excerpt"]) > EXCERPT_MAX:
        errors["excerpt"] = f"is too long (maximum is {EXCERPT_MAX} characters)"


def _check_explicit_slug(slug: str, exclude_id, errors: dict[str, str], *, db):
    if not is_valid_slug(slug):
        errors["slug"] = "must contain only lowercase letters, numbers, and hyphens"
    elif slug_exists(slug, exclude_id, db=db):
        errors["slug"] = "has already been taken"


def _is_slug_conflict(exc: sqlite3.IntegrityError) -> bool:
    return "post.slug" in str(exc)


def _write_with_slug(write, *, base: str, explicit: bool, exclude_id, db):
    """
    Run ``write(slug)`` and absorb slug races.

    A derived slug that loses a race (someone inserted it between our
    check and our write) is re-derived and retried; an explicitly chosen
    slug is not changed behind the caller's back.
    """
    for attempt in range(1, SLUG_RETRY_LIMIT + 1):
        if explicit:
            slug = base
        else:
            slug = unique_slug(
                base,
                lambda s, x: slug_exists(s, x, db=db),
                exclude_id=exclude_id,
            )
        try:
            result = write(slug)
        except sqlite3.IntegrityError as exc:
            db.rollback()
            if not _is_slug_conflict(exc):
                raise
            if explicit:
                raise ValidationError({"slug": "has already been taken"}) from None
            log.warning("Slug %r collided on write (attempt %d)", slug, attempt)
            continue
        db.commit()
        return result
    raise ValidationError({"slug": "could not be made unique, please choose one"})


def create_post(principal: Principal, data: Mapping, *, db):
    """
    Create a post owned by *principal* and return the stored row.

    *data* looks like ``{title, content, excerpt?, published?, slug?, images?}``.
    """
    if not principal.is_authenticated:
        raise PermissionError("anonymous principal cannot create posts")

    given = _take(data)
    fields = {
        "title": (given.get("title") or "").strip(),
        "content": (given.get("content") or "").strip(),
        "excerpt": (given.get("excerpt") or "").strip() or None,
        "published": _as_bool(given.get("published")),
        "images": encode_images(given.get("images")),
    }
    explicit_slug = (given.get("slug") or "").strip()

    errors: dict[str, str] = {}
    _check_fields(fields, errors)
    if explicit_slug:
        _check_explicit_slug(explicit_slug, None, errors, db=db)
        base = explicit_slug
    else:
        base = slugify_title(fields["title"])
        if fields["title"] and not base:
            errors["slug"] = "can't be derived from the title, please choose one"
    if errors:
        raise ValidationError(errors)

    now = store.now_iso()

    def insert(slug: str) -> int:
        cur = db.execute(
            """INSERT INTO post
                    (account_id, title, content, excerpt, slug, published,
                     published_at, images, created_at, updated_at)
                 VALUES (?,?,?,?,?,?,?,?,?,?)""",
            (
                principal.account_id,
                fields["title"],
                fields["content"],
                fields["excerpt"],
                slug,
                int(fields["published"]),
                now if fields["published"] else None,
                fields["images"],
                now,
                now,
            ),
        )
        return cur.lastrowid

    post_id = _write_with_slug(
        insert, base=base, explicit=bool(explicit_slug), exclude_id=None, db=db
    )
    log.info("Post %d created by account %d", post_id, principal.account_id)
    return db.execute("SELECT * FROM post WHERE id=?", (post_id,)).fetchone()


def update_post(principal: Principal, ref, data: Mapping, *, db):
    """
    Change the writable fields present in *data*.  Missing keys keep
    their stored value; a blank slug keeps the current one.
    """
    row = owned_post(principal, ref, db=db)
    given = _take(data)

    def pick(key: str) -> str:
        if key in given:
            return (given[key] or "").strip()
        return row[key] or ""

    fields = {
        "title": pick("title"),
        "content": pick("content"),
        "excerpt": pick("excerpt") or None,
        "published": (
            _as_bool(given["published"]) if "published" in given else bool(row["published"])
        ),
        "images": (
            encode_images(given["images"]) if "images" in given else row["images"]
        ),
    }
    new_slug = (given.get("slug") or "").strip() or row["slug"]

    errors: dict[str, str] = {}
    _check_fields(fields, errors)
    if new_slug != row["slug"]:
        _check_explicit_slug(new_slug, row["id"], errors, db=db)
    if errors:
        raise ValidationError(errors)

    published_at = row["published_at"]
    if fields["published"] and not published_at:
        published_at = store.now_iso()

    def update(slug: str) -> None:
        db.execute(
            """UPDATE post
                  SET title=?, content=?, excerpt=?, slug=?, published=?,
                      published_at=?, images=?, updated_at=?
                WHERE id=?""",
            (
                fields["title"],
                fields["content"],
                fields["excerpt"],
                slug,
                int(fields["published"]),
                published_at,
                fields["images"],
                store.now_iso(),
                row["id"],
            ),
        )

    _write_with_slug(update, base=new_slug, explicit=True, exclude_id=row["id"], db=db)
    return db.execute("SELECT * FROM post WHERE id=?", (row["id"],)).fetchone()


def delete_post(principal: Principal, ref, *, db) -> None:
    row = owned_post(principal, ref, db=db)
    db.execute("DELETE FROM post WHERE id=?", (row["id"],))
    db.commit()
    log.info("Post %d deleted by account %d", row["id"], principal.account_id)


def publish_post(principal: Principal, ref, *, db):
    """
    Mark published.  ``published_at`` is stamped on the first publish
    only and survives later unpublish / republish cycles.
    """
    row = owned_post(principal, ref, db=db)
    now = store.now_iso()
    db.execute(
        """UPDATE post
              SET published=1, published_at=COALESCE(published_at, ?), updated_at=?
            WHERE id=?""",
        (now, now, row["id"]),
    )
    db.commit()
    return db.execute("SELECT * FROM post WHERE id=?", (row["id"],)).fetchone()


def unpublish_post(principal: Principal, ref, *, db):
    row = owned_post(principal, ref, db=db)
    db.execute(
        "UPDATE post SET published=0, updated_at=? WHERE id=?",
        (store.now_iso(), row["id"]),
    )
    db.commit()
    return db.execute("SELECT * FROM post WHERE id=?", (row["id"],)).fetchone()


# -------------------------------------------------------------------------
# Images (always a full read-modify-write of the column)
# -------------------------------------------------------------------------
def _store_images(row, images: PostImages, *, db):
    db.execute(
        "UPDATE post SET images=?, updated_at=? WHERE id=?",
        (images.encode(), store.now_iso(), row["id"]),
    )
    db.commit()
    return db.execute("SELECT * FROM post WHERE id=?", (row["id"],)).fetchone()


def add_image(principal: Principal, ref, image: ImageDescriptor, *, db):
    row = owned_post(principal, ref, db=db)
    return _store_images(row, post_images(row).added(image), db=db)


def remove_image(principal: Principal, ref, index: int, *, db):
    row = owned_post(principal, ref, db=db)
    return _store_images(row, post_images(row).removed(index), db=db)


def clear_images(principal: Principal, ref, *, db):
    row = owned_post(principal, ref, db=db)
    return _store_images(row, post_images(row).cleared(), db=db)
