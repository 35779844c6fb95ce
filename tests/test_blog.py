"""
tests/test_blog.py
"""
from __future__ import annotations

import pytest

from tutorblog.accounts import Principal, create_account
from tutorblog.images import encode_images
from tutorblog.posts import create_post


@pytest.fixture
def author(make_account) -> Principal:
    return Principal(make_account())


def test_published_post_by_slug(client, db, author):
    row = create_post(author, {
        "title": "Public Reading",
        "content": "Some *markdown* here",
        "published": True,
    }, db=db)
    rv = client.get(f"/blog/{row['slug']}")
    assert rv.status_code == 200
    assert b"Public Reading" in rv.data
    assert b"<em>markdown</em>" in rv.data


def test_numeric_id_fallback(client, db, author):
    row = create_post(author, {"title": "Old Link", "content": "c", "published": True}, db=db)
    rv = client.get(f"/blog/{row['id']}")
    assert rv.status_code == 200
    assert b"Old Link" in rv.data


def test_draft_redirects_to_index_with_notice(client, db, author):
    row = create_post(author, {"title": "Still A Draft", "content": "c"}, db=db)
    rv = client.get(f"/blog/{row['slug']}", follow_redirects=True)
    assert rv.status_code == 200
    assert b"Blog post not found or no longer available." in rv.data


def test_unknown_slug_redirects(client):
    rv = client.get("/blog/there-is-no-such-post")
    assert rv.status_code == 302
    assert rv.headers["Location"].endswith("/blog")


def test_images_rendered_by_position(client, db, author):
    images = [
        {"src": "/two.png", "alt": "two", "position": "index-2"},
        {"src": "/hero.png", "alt": "lead", "caption": "Lead image", "position": "hero"},
        {"src": "/zero.png", "alt": "zero", "position": "index-0"},
    ]
    row = create_post(author, {
        "title": "With Pictures",
        "content": "text",
        "published": True,
        "images": encode_images(images),
    }, db=db)
    html = client.get(f"/blog/{row['slug']}").data.decode()
    assert "Lead image" in html
    hero_at = html.index("/hero.png")
    content_at = html.index("text</p>")
    zero_at = html.index("/zero.png")
    two_at = html.index("/two.png")
    assert hero_at < content_at < zero_at < two_at


def test_blog_index_lists_only_published(client, db, author):
    create_post(author, {"title": "Listed Post", "content": "c", "published": True}, db=db)
    create_post(author, {"title": "Unlisted Draft", "content": "c"}, db=db)
    rv = client.get("/blog")
    assert b"Listed Post" in rv.data
    assert b"Unlisted Draft" not in rv.data


def test_blog_search(client, db, author):
    create_post(author, {"title": "Quokka Facts", "content": "c", "published": True}, db=db)
    create_post(author, {"title": "Other", "content": "about a quokka", "published": True}, db=db)
    rv = client.get("/blog?q=QUOKKA")
    assert b"Quokka Facts" in rv.data
    assert b"2 results" in rv.data


def test_author_name_shown(client, db):
    account_id = create_account("writer.person@example.org", "long-enough", admin=True, db=db)
    row = create_post(Principal(account_id), {
        "title": "By Line", "content": "c", "published": True,
    }, db=db)
    rv = client.get(f"/blog/{row['slug']}")
    assert b"Writer.person" in rv.data
