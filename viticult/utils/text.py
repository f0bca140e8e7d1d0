"""Text helpers for slugs, read time and display labels."""
import math
import re
from typing import Tuple

WORDS_PER_MINUTE = 200


def slugify(text: str) -> str:
    """Build a URL slug from free text.

    Lowercases, replaces every run of non-alphanumeric characters with a
    single hyphen and trims hyphens from both ends.

    Examples:
        >>> slugify("Why Invest in Whisky Casks? (2024 Guide)")
        'why-invest-in-whisky-casks-2024-guide'
        >>> slugify("  --  ")
        ''
    """
    if text is None:
        return ""
    slug = re.sub(r"[^a-z0-9]+", "-", str(text).lower())
    return slug.strip("-")


def read_time_minutes(content: str) -> int:
    """Estimated reading time at 200 words per minute, never below one."""
    words = len((content or "").split())
    return max(1, math.ceil(words / WORDS_PER_MINUTE))


def display_name(value: str) -> str:
    """Title-case a hyphenated key.

    Examples:
        >>> display_name("market-insights")
        'Market Insights'
    """
    return " ".join(part[:1].upper() + part[1:] for part in (value or "").split("-") if part)


def split_full_name(name: str) -> Tuple[str, str]:
    """Split a full name into first name and the remainder."""
    parts = (name or "").split()
    if not parts:
        return "", ""
    return parts[0], " ".join(parts[1:])
