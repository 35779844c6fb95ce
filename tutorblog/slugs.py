"""
URL slugs for posts: title → slug, and slug → a slug nobody else owns.
"""

import re
from typing import Callable

SLUG_RE = re.compile(r"^[a-z0-9-]+$")

_STRIP_RE = re.compile(r"[^a-z0-9\s-]")
_SPACE_RE = re.compile(r"\s+")
_DASH_RE = re.compile(r"-+")


def slugify_title(title: str | None) -> str:
    """
    “My First Blog Post!” → “my-first-blog-post”.

    A blank title gives "" – the caller has to reject that, a post
    never gets saved with an empty slug.
    """
    if not title:
        return ""
    slug = _STRIP_RE.sub("", title.lower())
    slug = _SPACE_RE.sub("-", slug)
    slug = _DASH_RE.sub("-", slug)
    return slug.strip("-")


def is_valid_slug(slug: str | None) -> bool:
    return bool(slug) and SLUG_RE.fullmatch(slug) is not None


def unique_slug(
    base: str,
    exists: Callable[[str, int | None], bool],
    *,
    exclude_id: int | None = None,
) -> str:
    """
    Return *base* if it is free, otherwise base-2, base-3, …

    The unmodified base counts as attempt 1, so the first collision
    yields “-2”.  *exists* is asked with *exclude_id* so a post being
    edited never collides with itself.
    """
    counter = 1
    candidate = base
    while exists(candidate, exclude_id):
        counter += 1
        candidate = f"{base}-{counter}"
    return candidate
