import re
import secrets
import string
from typing import Callable, Optional

SLUG_PATTERN = re.compile(r"[A-Za-z0-9_-]+")
SLUG_ALPHABET = string.ascii_lowercase + string.digits


def is_valid_slug(slug: Optional[str], max_length: int = 64) -> bool:
    if not slug or len(slug) > max_length:
        return False
    return SLUG_PATTERN.fullmatch(slug) is not None


def random_slug(length: int = 6) -> str:
    return "".join(secrets.choice(SLUG_ALPHABET) for _ in range(length))


def reserve_slug(
    custom_slug: Optional[str],
    is_taken: Callable[[str], bool],
    *,
    length: int = 6,
    max_length: int = 64,
) -> str:
    """
    Pick the slug for a new share.

    A valid custom slug that no live share owns is used verbatim. An invalid or
    taken custom slug falls back to a generated one; an existing share is never
    overwritten. The caller must hold the store lock so that the check and the
    insert that follows cannot interleave with another reservation.
    """
    if custom_slug and is_valid_slug(custom_slug, max_length) and not is_taken(custom_slug):
        return custom_slug

    slug = random_slug(length)
    while is_taken(slug):
        slug = random_slug(length)
    return slug
