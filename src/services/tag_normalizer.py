"""
Normalization of AI-suggested tags into the user's tag vocabulary.

Language models return tags in whatever shape they like ('Machine Learning',
'machine_learning', 'MachineLearning!'). Everything here reduces those to the
lowercase hyphenated slugs accepted by schemas.validators, and folds them onto
tags the user already has so the tag cloud does not fragment.
"""
import re
from collections.abc import Iterable

from schemas.validators import BANNED_TAGS, MAX_TAG_LENGTH

_SEPARATOR_RUN = re.compile(r"[\s_]+")
_DISALLOWED_CHARS = re.compile(r"[^a-z0-9-]")
_HYPHEN_RUN = re.compile(r"-{2,}")


def normalize_tag(raw: str) -> str | None:
    """
    Reduce a free-form tag to a lowercase hyphenated slug.

    Returns None when nothing usable is left, the slug is longer than
    MAX_TAG_LENGTH, or it is one of the banned generic terms.
    """
    tag = raw.strip().lower()
    tag = _SEPARATOR_RUN.sub("-", tag)
    tag = _DISALLOWED_CHARS.sub("", tag)
    tag = _HYPHEN_RUN.sub("-", tag).strip("-")

    if not tag or len(tag) > MAX_TAG_LENGTH or tag in BANNED_TAGS:
        return None
    return tag


def fold_key(tag: str) -> str:
    """Key under which two normalized tags are considered the same tag."""
    return tag.replace("-", "")


def normalize_tags(
    candidates: Iterable[object],
    vocabulary: Iterable[str] = (),
    max_tags: int | None = None,
) -> list[str]:
    """
    Normalize a set of candidate tags against an existing vocabulary.

    Args:
        candidates:
            Raw tags, typically parsed from a model response. Non-string items
            are ignored.
        vocabulary:
            Tag names the user already has. A candidate whose fold key matches
            an existing tag is replaced by that tag (e.g. 'webdev' becomes
            'web-dev' if the user already uses 'web-dev').
        max_tags:
            Keep at most this many tags (after deduplication).

    Returns:
        Distinct normalized tags in first-seen order.
    """
    known = {fold_key(name): name for name in vocabulary}

    result: list[str] = []
    seen: set[str] = set()
    for candidate in candidates:
        if not isinstance(candidate, str):
            continue
        tag = normalize_tag(candidate)
        if tag is None:
            continue
        key = fold_key(tag)
        if key in seen:
            continue
        seen.add(key)
        result.append(known.get(key, tag))
        if max_tags is not None and len(result) >= max_tags:
            break
    return result
