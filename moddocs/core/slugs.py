"""
URL slug helpers shared by mods and pages.
"""
import re
import unicodedata
from typing import AbstractSet, Awaitable, Callable

DEFAULT_SLUG = "untitled"
MAX_SLUG_LENGTH = 255

_NON_ALPHANUMERIC = re.compile(r"[^a-z0-9]+")


def slugify(value: str, separator: str = "-") -> str:
    """
    Turn free text into a URL slug.

    Accents are folded to ASCII, everything is lower-cased and each run of
    characters outside ``[a-z0-9]`` becomes a single separator.

    >>> slugify("My Mod!")
    'my-mod'
    >>> slugify("  Crème   Brûlée ")
    'creme-brulee'
    """
    value = unicodedata.normalize("NFKD", value or "")
    value = value.encode("ascii", "ignore").decode("ascii").lower()
    value = _NON_ALPHANUMERIC.sub(separator, value).strip(separator)
    return value or DEFAULT_SLUG


async def unique_slug(
    base: str,
    exists: Callable[[str], Awaitable[bool]],
    reserved: AbstractSet[str] = frozenset(),
    max_length: int = MAX_SLUG_LENGTH,
) -> str:
    """
    Return ``base`` or the first free ``base-N`` candidate.

    Candidates never exceed ``max_length``; the base is cut back to make
    room for the suffix.

    Args:
        base: Already slugified base value
        exists: Coroutine reporting whether a candidate is taken in the
            relevant scope (globally for mods, per mod for pages)
        reserved: Candidates that collide with fixed route segments
        max_length: Width of the slug column
    """

    def fit(suffix: str) -> str:
        trimmed = base[: max_length - len(suffix)].rstrip("-") or DEFAULT_SLUG
        return f"{trimmed}{suffix}"

    candidate = fit("")
    counter = 1
    while candidate in reserved or await exists(candidate):
        candidate = fit(f"-{counter}")
        counter += 1
    return candidate
