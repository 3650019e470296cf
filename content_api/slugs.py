"""Post slugs: lowercased, hyphenated ASCII transliteration of the title."""
from slugify import slugify

MAX_SLUG_LENGTH = 300


def slugify_title(title: str) -> str:
    """
    Derive a URL-safe slug from a post title.

    "Hello, Wörld!" → "hello-world". Slugs are not made unique here; two posts
    with the same title share a slug.
    """
    return slugify(title, max_length=MAX_SLUG_LENGTH, word_boundary=True)
