"""
Field validators shared by the request schemas.

User-entered tags are checked strictly here and rejected when malformed. Tags
suggested by the AI analyzer are repaired by services.tag_normalizer instead,
which only produces names these checks accept.
"""
import re

from core.config import get_settings

# Lowercase slug: 'machine-learning', 'web3', 'c-plus-plus'
TAG_PATTERN = re.compile(r"^[a-z0-9]+(-[a-z0-9]+)*$")

MAX_TAG_LENGTH = 50

# Too generic to help anyone find a bookmark again
BANNED_TAGS = frozenset({"other", "miscellaneous", "general", "misc", "various"})


def validate_and_normalize_tag(tag: str) -> str:
    """
    Lowercase and trim a tag, then check it is a usable slug.

    Raises:
        ValueError: If the tag is empty, longer than MAX_TAG_LENGTH, not a
            lowercase slug, or one of BANNED_TAGS.
    """
    name = tag.strip().lower()
    if not name:
        raise ValueError("Tag name cannot be empty")
    if len(name) > MAX_TAG_LENGTH:
        raise ValueError(f"Tag '{name}' exceeds maximum length of {MAX_TAG_LENGTH} characters.")
    if TAG_PATTERN.fullmatch(name) is None:
        raise ValueError(
            f"Invalid tag format: '{name}'. "
            "Use lowercase letters, numbers, and hyphens only (e.g., 'machine-learning').",
        )
    if name in BANNED_TAGS:
        raise ValueError(f"Tag '{name}' is too generic. Use a more specific tag.")
    return name


def validate_and_normalize_tags(tags: list[str]) -> list[str]:
    """
    Validate a list of tags.

    Blank entries are skipped and repeats dropped; the first occurrence keeps
    its position.

    Raises:
        ValueError: On the first invalid tag.
    """
    return list(dict.fromkeys(validate_and_normalize_tag(tag) for tag in tags if tag.strip()))


def _check_length(value: str | None, limit: int, label: str) -> str | None:
    if value is not None and len(value) > limit:
        raise ValueError(
            f"{label} exceeds maximum length of {limit:,} characters "
            f"(got {len(value):,} characters).",
        )
    return value


def validate_title_length(title: str | None) -> str | None:
    return _check_length(title, get_settings().max_title_length, "Title")


def validate_description_length(description: str | None) -> str | None:
    return _check_length(description, get_settings().max_description_length, "Description")
