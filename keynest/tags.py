"""
Tag helpers. Tags are stored as a list in insertion order but behave like a
set of normalised lowercase labels.
"""

import re
from typing import Iterable, List

_WHITESPACE = re.compile(r"\s+")


def normalise_tag(tag: str) -> str:
    """Trim, collapse inner whitespace and lowercase a tag."""
    return _WHITESPACE.sub(" ", tag.strip()).lower()


def has_tag(tags: Iterable[str], tag: str) -> bool:
    wanted = normalise_tag(tag)
    return any(normalise_tag(existing) == wanted for existing in tags)


def add_tag(tags: List[str], raw: str) -> List[str]:
    """Return a new list with ``raw`` added, unless it is blank or already present."""
    tag = normalise_tag(raw)
    if not tag or has_tag(tags, tag):
        return list(tags)
    return list(tags) + [tag]


def remove_tag(tags: List[str], tag: str) -> List[str]:
    wanted = normalise_tag(tag)
    return [t for t in tags if normalise_tag(t) != wanted]


def add_tags_from_input(tags: List[str], text: str) -> List[str]:
    """Add every tag from a comma-separated input string."""
    result = list(tags)
    for part in text.split(","):
        result = add_tag(result, part)
    return result


def normalise_tags(raw: Iterable[str]) -> List[str]:
    """Normalise a list of tags, dropping blanks and duplicates."""
    result: List[str] = []
    for tag in raw:
        result = add_tag(result, tag)
    return result
