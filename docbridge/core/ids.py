"""
Identity generation.

Short, collision-resistant identifiers for collections and documents when the
backend does not supply its own. Uniqueness is probabilistic only; callers that
need hard uniqueness rely on the backend-native reference instead.
"""

import re
import secrets

from ..constants import COLLECTION_ID_SUFFIX_LENGTH, ID_ALPHABET, SHORT_ID_LENGTH

_SLUG_SEPARATORS = re.compile(r"[^a-z0-9]+")


def normalize_name(name: str) -> str:
    """Trim and lower-case a collection name."""
    return (name or "").strip().lower()


def slugify(name: str) -> str:
    """
    Build a URL-safe slug from a collection name.

    Example:
        slugify("  Blog Posts ") -> "blog-posts"
    """
    return _SLUG_SEPARATORS.sub("-", normalize_name(name)).strip("-")


def random_suffix(length: int = SHORT_ID_LENGTH) -> str:
    """Return ``length`` random base-36 characters."""
    return "".join(secrets.choice(ID_ALPHABET) for _ in range(length))


def new_id(seed: str | None = None) -> str:
    """
    Generate a short identifier.

    Args:
        seed: Optional name to derive the identifier from (collection ids)

    Returns:
        ``normalized(seed) + "_" + suffix`` when seeded, otherwise a random
        base-36 string of SHORT_ID_LENGTH characters
    """
    if seed is not None:
        return f"{normalize_name(seed)}_{random_suffix(COLLECTION_ID_SUFFIX_LENGTH)}"
    return random_suffix()
