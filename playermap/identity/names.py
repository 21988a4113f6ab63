"""
Player name normalization and variation generation.

Every comparison in the matcher runs over normalized names. A name is
expanded into a handful of variations (last-name-first, first initial,
nickname swap, de-dotted initials) so that "Pat Mahomes", "Mahomes, Patrick"
and "P. Mahomes" can meet on a common string.

Usage:
    from playermap.identity.names import normalize_name, create_name_variations

    normalize_name("Patrick Mahomes II")      # 'patrick mahomes'
    create_name_variations("D.J. Moore").variations
    # ('dj moore', 'moore dj', 'd moore', 'd j moore')
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional

# Generational suffixes removed as whole words
SUFFIXES = ("jr", "sr", "ii", "iii", "iv", "v")

NICKNAME_PAIRS = [
    ("patrick", "pat"),
    ("william", "will"),
    ("robert", "rob"),
    ("anthony", "tony"),
    ("christopher", "chris"),
    ("michael", "mike"),
    ("alexander", "alex"),
    ("andrew", "andy"),
    ("daniel", "dan"),
    ("joseph", "joe"),
    ("david", "dave"),
    ("matthew", "matt"),
    ("nicholas", "nick"),
    ("benjamin", "ben"),
    ("jonathan", "jon"),
    ("nathaniel", "nate"),
]

# Bidirectional lookup: full name -> nickname and nickname -> full name
NICKNAME_MAP: dict[str, str] = {
    **{full: short for full, short in NICKNAME_PAIRS},
    **{short: full for full, short in NICKNAME_PAIRS},
}

_PUNCTUATION_RE = re.compile(r"[.,'`’\-]")
_SUFFIX_RE = re.compile(r"\b(?:" + "|".join(SUFFIXES) + r")\b")
_WHITESPACE_RE = re.compile(r"\s+")


@dataclass(frozen=True)
class NameVariation:
    """Derived name forms used for matching. Never persisted."""
    normalized: str
    last_name_first: str
    first_initial_last: str
    variations: tuple[str, ...]


def normalize_name(name: Optional[str]) -> str:
    """
    Normalize a player name for matching purposes.

    Transformations:
    - Convert to lowercase
    - Remove periods, commas, apostrophes, backticks and hyphens
    - Remove generational suffixes (Jr, Sr, II, III, IV, V) as whole words
    - Collapse whitespace and strip

    Args:
        name: The raw name string

    Returns:
        Normalized name string ("" for empty input)

    Examples:
        >>> normalize_name("Patrick Mahomes II")
        'patrick mahomes'
        >>> normalize_name("D.J. Moore")
        'dj moore'
        >>> normalize_name("Amon-Ra St. Brown")
        'amonra st brown'
    """
    if not name:
        return ""

    result = str(name).lower()
    result = _PUNCTUATION_RE.sub("", result)
    result = _SUFFIX_RE.sub("", result)
    result = _WHITESPACE_RE.sub(" ", result)

    return result.strip()


def extract_first_name(name: Optional[str]) -> str:
    """First token of the normalized name."""
    parts = normalize_name(name).split()
    return parts[0] if parts else ""


def extract_last_name(name: Optional[str]) -> str:
    """Last token of the normalized name (the bucket key used by the index)."""
    parts = normalize_name(name).split()
    return parts[-1] if parts else ""


def _initials_variations(raw_name: str, parts: list[str]) -> list[str]:
    """
    Spaced and compact initials forms for names like "D.J. Moore".

    Only applies when the raw first token carries a period. Returns the
    variations in (spaced, compact) order; callers de-duplicate.
    """
    raw_tokens = str(raw_name).split()
    if not raw_tokens or "." not in raw_tokens[0]:
        return []

    rest = parts[1:]
    first = parts[0]

    if len(first) > 1:
        # "D.J." normalized to "dj" -> spaced "d j"
        initials = list(first)
    else:
        # "D. J." normalized to "d j" -> collect the single-letter run
        initials = []
        for token in parts[:-1]:
            if len(token) != 1:
                break
            initials.append(token)
        rest = parts[len(initials):]

    if len(initials) < 2:
        return []

    spaced = " ".join([*initials, *rest])
    compact = " ".join(["".join(initials), *rest])
    return [spaced, compact]


def create_name_variations(full_name: Optional[str]) -> NameVariation:
    """
    Build the variation set for a name.

    For single-token (or empty) names every field equals the normalized
    form. For multi-token names the variation tuple is ordered: normalized,
    last-name-first, first-initial-last, nickname swap, initials forms.

    Args:
        full_name: Raw display name

    Returns:
        NameVariation with an ordered, de-duplicated variations tuple
    """
    normalized = normalize_name(full_name)
    parts = normalized.split()

    if len(parts) < 2:
        return NameVariation(
            normalized=normalized,
            last_name_first=normalized,
            first_initial_last=normalized,
            variations=(normalized,),
        )

    first, last = parts[0], parts[-1]
    middle = parts[1:-1]

    last_name_first = " ".join([last, first, *middle])
    first_initial_last = f"{first[0]} {last}"

    candidates = [normalized, last_name_first, first_initial_last]

    nickname = NICKNAME_MAP.get(first)
    if nickname:
        candidates.append(" ".join([nickname, *middle, last]))

    candidates.extend(_initials_variations(full_name, parts))

    variations: list[str] = []
    for value in candidates:
        if value and value not in variations:
            variations.append(value)

    return NameVariation(
        normalized=normalized,
        last_name_first=last_name_first,
        first_initial_last=first_initial_last,
        variations=tuple(variations),
    )
