"""
Image attachments of a post.

The list lives in a single TEXT column as a JSON array of
``{"src", "alt", "caption", "position"}`` objects.  Position tags:

    hero       – the lead image, shown above the post
    index-N    – the N-th image referenced from the content (gaps allowed)

Reading is forgiving on purpose: bad JSON in the column must never make
the rest of the post unreadable, it simply reads back as “no images”.
"""

import json
import logging
from typing import Union

log = logging.getLogger(__name__)

IMAGE_KEYS = ("src", "alt", "caption", "position")
HERO = "hero"
INDEX_PREFIX = "index-"

ImageDescriptor = dict[str, str]

# Anything a caller may hand to ``encode_images``:
#   list – descriptors, encoded as-is
#   str  – JSON text (e.g. straight from a form field), re-encoded
#   None – nothing, encoded as an empty list
# Any other shape is treated like None.
ImageInput = Union[list, str, None]


def decode_images(text: str | None) -> list[ImageDescriptor]:
    """Column text → list of descriptors.  Never raises."""
    if not text or not text.strip():
        return []
    try:
        data = json.loads(text)
    except (TypeError, ValueError):
        log.warning("Discarding malformed image JSON (%d chars)", len(text))
        return []
    if not isinstance(data, list):
        return []
    return [img for img in data if isinstance(img, dict)]


def encode_images(value: ImageInput) -> str:
    """
    Normalise *value* to the canonical column text.

    Never raises: text that is not a JSON array, and values of any other
    shape, are stored as ``[]``.
    """
    if isinstance(value, str):
        try:
            value = json.loads(value)
        except ValueError:
            return "[]"
    if not isinstance(value, list):
        return "[]"
    try:
        return json.dumps(value, allow_nan=False)
    except (TypeError, ValueError):
        log.warning("Refusing to store images that are not plain JSON")
        return "[]"


def make_descriptor(
    src: str = "", alt: str = "", caption: str = "", position: str = ""
) -> ImageDescriptor:
    """Build a descriptor with string values, dropping blank fields."""
    raw = {"src": src, "alt": alt, "caption": caption, "position": position}
    return {k: str(v).strip() for k, v in raw.items() if v and str(v).strip()}


def _index_of(img: ImageDescriptor) -> int:
    tail = str(img.get("position", "")).rsplit("-", 1)[-1]
    try:
        return int(tail)
    except ValueError:
        return 0


class PostImages:
    """
    A decoded image list plus position lookups.

    Lookups never touch the database and never mutate; ``added`` /
    ``removed`` / ``cleared`` hand back a *new* PostImages for the caller
    to encode and store.
    """

    def __init__(self, images: list[ImageDescriptor] | None = None):
        self.images = list(images or [])

    @classmethod
    def from_text(cls, text: str | None) -> "PostImages":
        return cls(decode_images(text))

    def __iter__(self):
        return iter(self.images)

    def __len__(self) -> int:
        return len(self.images)

    def __eq__(self, other) -> bool:
        if isinstance(other, PostImages):
            return self.images == other.images
        return self.images == other

    def __repr__(self) -> str:
        return f"PostImages({self.images!r})"

    def hero(self) -> ImageDescriptor | None:
        return next((img for img in self.images if img.get("position") == HERO), None)

    def has_hero(self) -> bool:
        return self.hero() is not None

    def by_index(self, n: int) -> ImageDescriptor | None:
        want = f"{INDEX_PREFIX}{n}"
        return next((img for img in self.images if img.get("position") == want), None)

    def indexed(self) -> list[ImageDescriptor]:
        """All ``index-*`` images, ordered by their number (bad numbers sort as 0)."""
        hits = [
            img
            for img in self.images
            if str(img.get("position") or "").startswith(INDEX_PREFIX)
        ]
        return sorted(hits, key=_index_of)

    def count(self) -> int:
        return len(self.images)

    def added(self, image: ImageDescriptor) -> "PostImages":
        return PostImages([*self.images, {str(k): v for k, v in image.items()}])

    def removed(self, index: int) -> "PostImages":
        if 0 <= index < len(self.images):
            return PostImages(self.images[:index] + self.images[index + 1 :])
        return PostImages(self.images)

    def cleared(self) -> "PostImages":
        return PostImages()

    def encode(self) -> str:
        return encode_images(self.images)
