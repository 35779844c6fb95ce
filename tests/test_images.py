"""
tests/test_images.py
"""
import json

import pytest

from tutorblog.images import PostImages, decode_images, encode_images, make_descriptor

HERO = {"src": "/h.jpg", "alt": "Hero", "caption": "Top", "position": "hero"}
IDX0 = {"src": "/0.jpg", "alt": "zero", "caption": "", "position": "index-0"}
IDX1 = {"src": "/1.jpg", "alt": "one", "caption": "", "position": "index-1"}
IDX2 = {"src": "/2.jpg", "alt": "two", "caption": "", "position": "index-2"}


# ──────────────────────────────────────────────────────────────
# codec
# ──────────────────────────────────────────────────────────────
def test_round_trip_keeps_order():
    images = [IDX2, HERO, IDX0]
    assert decode_images(encode_images(images)) == images


def test_encode_decode_encode_is_stable():
    text = encode_images([HERO, IDX1])
    assert encode_images(decode_images(text)) == text


@pytest.mark.parametrize("text", [None, "", "   ", "{not json", "[1, 2", "null", '{"a": 1}', "42"])
def test_decode_degrades_to_empty(text):
    assert decode_images(text) == []


def test_decode_drops_non_object_entries():
    assert decode_images(json.dumps([HERO, "junk", 3, None])) == [HERO]


@pytest.mark.parametrize("value, expected", [
    ([HERO], json.dumps([HERO])),
    ("[]", "[]"),
    (json.dumps([IDX0]), json.dumps([IDX0])),
    ("{not json", "[]"),
    ('{"src": "x"}', "[]"),
    (None, "[]"),
    (42, "[]"),
    ({"src": "x"}, "[]"),
])
def test_encode_accepts_every_input_shape(value, expected):
    assert encode_images(value) == expected


def test_make_descriptor_drops_blank_fields():
    assert make_descriptor(src=" /a.png ", alt="", position="hero") == {
        "src": "/a.png",
        "position": "hero",
    }


# ──────────────────────────────────────────────────────────────
# position index
# ──────────────────────────────────────────────────────────────
def test_empty_string_has_no_hero_then_added_hero_is_found():
    imgs = PostImages.from_text(encode_images("[]"))
    assert imgs.has_hero() is False
    assert imgs.count() == 0

    imgs = imgs.added(HERO)
    assert imgs.has_hero() is True
    assert imgs.hero() == HERO


def test_hero_is_first_match():
    second = {**HERO, "src": "/other.jpg"}
    assert PostImages([IDX0, HERO, second]).hero() == HERO


def test_by_index():
    imgs = PostImages([IDX1, IDX0])
    assert imgs.by_index(0) == IDX0
    assert imgs.by_index(1) == IDX1
    assert imgs.by_index(7) is None


def test_indexed_sorts_numerically_and_skips_others():
    imgs = PostImages([IDX2, HERO, IDX0, IDX1])
    assert imgs.indexed() == [IDX0, IDX1, IDX2]


def test_indexed_tolerates_gaps_and_bad_suffixes():
    ten = {"src": "/10.jpg", "position": "index-10"}
    bad = {"src": "/bad.jpg", "position": "index-abc"}
    no_pos = {"src": "/none.jpg"}
    imgs = PostImages([ten, IDX2, bad, no_pos])
    # "index-abc" sorts as 0, ahead of 2 and 10; descriptors without a position are ignored
    assert imgs.indexed() == [bad, IDX2, ten]


def test_queries_do_not_mutate():
    imgs = PostImages([IDX1, IDX0])
    imgs.indexed()
    imgs.hero()
    assert list(imgs) == [IDX1, IDX0]


def test_added_removed_cleared_return_new_lists():
    base = PostImages([IDX0, IDX1])
    assert base.added(IDX2) == [IDX0, IDX1, IDX2]
    assert base.removed(0) == [IDX1]
    assert base.removed(5) == [IDX0, IDX1]
    assert base.removed(-1) == [IDX0, IDX1]
    assert base.cleared() == []
    assert base == [IDX0, IDX1]


def test_encode_method_matches_codec():
    imgs = PostImages([HERO])
    assert imgs.encode() == encode_images([HERO])


@pytest.mark.parametrize("value", [
    [{"src": 1.5, "tags": {1, 2}}],
    [float("nan")],
    "[NaN]",
    [object()],
])
def test_encode_never_raises_on_values_json_cannot_hold(value):
    assert encode_images(value) == "[]"
