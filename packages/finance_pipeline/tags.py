"""Tag vocabulary and name validation.

Tags are the user-facing labels attached to transactions. Three of them are
"flow" tags that the aggregator treats specially (money moved rather than
earned or spent); the rest are ordinary spending labels.
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass

FLOW_TAGS: tuple[str, ...] = ("Investments", "Savings", "Transfers")

DEFAULT_TAGS: tuple[str, ...] = (
    "Groceries",
    "Utilities",
    "Dining",
    "Transport",
    "Health",
    "Entertainment",
    "Subscriptions",
    "Housing",
    "Other",
    *FLOW_TAGS,
)

_ALLOWED_RE = re.compile(r"^[A-Za-z0-9 &\-/']+$")
_FLOW_BY_LOWER = {t.lower(): t for t in FLOW_TAGS}


def normalize_tag_name(name: str) -> str:
    """Return a trimmed, single-spaced ``name``; a leading ``#`` is dropped.

    Case is preserved.
    """

    s = " ".join(name.strip().split())
    if s.startswith("#"):
        s = s[1:].strip()
    return s


def flow_tag(tag: str | None) -> str | None:
    """Return the capitalized flow tag when ``tag`` names one, else ``None``."""

    if not tag:
        return None
    return _FLOW_BY_LOWER.get(tag.strip().lower())


@dataclass(frozen=True, slots=True)
class NameValidation:
    ok: bool
    reason: str | None = None


def validate_tag_name(name: str, *, min_len: int = 1, max_len: int = 64) -> NameValidation:
    """Validate a tag name typed by a user.

    Rules
    -----
    - Trim whitespace; enforce length bounds 1..64.
    - Allowed characters: letters, numbers, spaces, and ``& - / '``.
    """

    n = normalize_tag_name(name)
    if len(n) < min_len:
        return NameValidation(False, "Tag cannot be empty")
    if len(n) > max_len:
        return NameValidation(False, f"Tag must be at most {max_len} characters")
    if not _ALLOWED_RE.match(n):
        return NameValidation(False, "Only letters, numbers, spaces, and & - / ' are allowed")
    return NameValidation(True, None)


def merge_vocabulary(*groups: Iterable[str | None]) -> list[str]:
    """Union of tag names, first spelling wins, compared case-insensitively."""

    seen: dict[str, str] = {}
    for group in groups:
        for t in group:
            if not t:
                continue
            seen.setdefault(t.lower(), t)
    return list(seen.values())


__all__ = [
    "FLOW_TAGS",
    "DEFAULT_TAGS",
    "NameValidation",
    "normalize_tag_name",
    "flow_tag",
    "validate_tag_name",
    "merge_vocabulary",
]
