"""Static curatorial vocabulary for the book catalog.

# ─── PURPOSE ──────────────────────────────────────────────────────────
#
# The curated catalog has a recognizable identity: character-driven,
# emotionally resonant fiction and memoir, often centred on women, family
# and belonging.  This module holds the hand-maintained word lists that let
# the deterministic stages (pre-filter, entity validation, query
# classification, catalog path) reason about that identity without a
# network call:
#
#   - the closed theme-filter menu offered by the UI,
#   - the wider theme vocabulary the entity extractor may emit,
#   - mood words that map onto catalog theme tags,
#   - genre names and their aliases,
#   - routing keyword lists for the pre-filter,
#   - taste-alignment signal words.
#
# Everything here is pure data plus pure helpers.  Structures are built once
# at import and read-only afterwards.
# ──────────────────────────────────────────────────────────────────────
"""

from __future__ import annotations

import re
from datetime import date


# ═════════════════════════════════════════════════════════════════════════
# 1. THEMES
# ═════════════════════════════════════════════════════════════════════════

# Closed set offered as theme filters in the UI.  A filter outside this set
# is ignored by the pre-filter.
CURATED_THEMES: tuple[str, ...] = (
    "women",
    "beach",
    "emotional",
    "identity",
    "justice",
    "spiritual",
)

# Vocabulary the entity extractor may return.  Used when the catalog index
# has no theme tags of its own.
EXTRACTION_THEMES: tuple[str, ...] = (
    "women",
    "emotional",
    "identity",
    "justice",
    "spiritual",
    "family",
    "belonging",
    "resilience",
    "historical",
    "contemporary",
    "mystery",
    "thriller",
    "literary",
    "memoir",
)

# Mood words (lowercase) -> catalog theme tag.
MOOD_TO_THEME: dict[str, str] = {
    "sad": "emotional",
    "cry": "emotional",
    "heartbreaking": "emotional",
    "heartwarming": "emotional",
    "moving": "emotional",
    "tearjerker": "emotional",
    "grief": "emotional",
    "uplifting": "spiritual",
    "hopeful": "spiritual",
    "faith": "spiritual",
    "healing": "spiritual",
    "inspiring": "spiritual",
    "self-discovery": "identity",
    "coming of age": "identity",
    "belonging": "identity",
    "immigrant": "identity",
    "racism": "justice",
    "civil rights": "justice",
    "injustice": "justice",
    "feminist": "women",
    "sisterhood": "women",
    "motherhood": "women",
    "summer": "beach",
    "vacation": "beach",
    "light": "beach",
    "fun": "beach",
    "easy read": "beach",
}


# ═════════════════════════════════════════════════════════════════════════
# 2. GENRES
# ═════════════════════════════════════════════════════════════════════════

# Alias (lowercase) -> canonical genre name used by the catalog.
GENRE_ALIASES: dict[str, str] = {
    "literary fiction": "literary fiction",
    "literary": "literary fiction",
    "historical fiction": "historical fiction",
    "historical": "historical fiction",
    "mystery": "mystery",
    "mysteries": "mystery",
    "thriller": "thriller",
    "thrillers": "thriller",
    "suspense": "thriller",
    "memoir": "memoir",
    "memoirs": "memoir",
    "romance": "romance",
    "science fiction": "science fiction",
    "sci-fi": "science fiction",
    "scifi": "science fiction",
    "fantasy": "fantasy",
    "horror": "horror",
    "nonfiction": "nonfiction",
    "non-fiction": "nonfiction",
    "poetry": "poetry",
    "young adult": "young adult",
    "ya": "young adult",
    "short stories": "short stories",
    "essays": "essays",
    "biography": "biography",
}

_GENRES_BY_LENGTH: list[str] = sorted(GENRE_ALIASES, key=len, reverse=True)


def extract_query_genres(query: str) -> list[str]:
    """Return canonical genres mentioned in *query*, in order of appearance.

    Longest alias first, so "historical fiction" is consumed before
    "historical" can match on its own.
    """
    query_lower = query.lower()
    found: list[tuple[int, str]] = []
    consumed: set[int] = set()

    for alias in _GENRES_BY_LENGTH:
        for match in re.finditer(r"(?<![\w-])" + re.escape(alias) + r"(?![\w-])", query_lower):
            positions = set(range(match.start(), match.end()))
            if positions & consumed:
                continue
            consumed.update(positions)
            found.append((match.start(), GENRE_ALIASES[alias]))

    ordered: list[str] = []
    for _, genre in sorted(found):
        if genre not in ordered:
            ordered.append(genre)
    return ordered


def extract_query_moods(query: str) -> list[str]:
    """Return mood words from ``MOOD_TO_THEME`` present in *query*."""
    query_lower = query.lower()
    return [
        mood
        for mood in MOOD_TO_THEME
        if re.search(r"\b" + re.escape(mood) + r"\b", query_lower)
    ]


# ═════════════════════════════════════════════════════════════════════════
# 3. PRE-FILTER KEYWORDS
# ═════════════════════════════════════════════════════════════════════════

TEMPORAL_KEYWORDS: tuple[str, ...] = (
    "new book",
    "new books",
    "new novel",
    "new release",
    "new releases",
    "latest book",
    "latest novel",
    "latest release",
    "latest from",
    "newest book",
    "newest from",
    "just released",
    "just came out",
    "coming out",
    "upcoming",
    "pre-order",
    "preorder",
    "new from",
    "new by",
)

WORLD_KEYWORDS: tuple[str, ...] = (
    "surprise me",
    "anything",
    "not in your collection",
    "outside your collection",
    "beyond your collection",
    "outside your list",
    "beyond your",
    "outside your",
    "bestsellers",
    "best sellers",
    "award winners",
    "trending",
    "booktok",
)

CATALOG_KEYWORDS: tuple[str, ...] = (
    "in your collection",
    "from your collection",
    "your collection",
    "from your list",
    "your favorites",
    "your picks",
    "do you have",
    "you recommend from",
)

# "new Brit Bennett", "new Ann Patchett novel": 2-3 capitalised words.
NEW_AUTHOR_PATTERN = re.compile(
    r"^\s*new\s+((?:[A-Z][\w'.-]+\s*){2,3})(?:book|novel|release)?\s*\??\s*$"
)

_YEAR_RE = re.compile(r"\b((?:19|20)\d{2})\b")


def find_recent_year(query: str, today: date | None = None) -> int | None:
    """Return the first 4-digit year in *query* that is >= current year - 1."""
    current_year = (today or date.today()).year
    for match in _YEAR_RE.finditer(query):
        year = int(match.group(1))
        if year >= current_year - 1:
            return year
    return None


def detect_timeframe(query: str, today: date | None = None) -> str | None:
    """Describe the time window a query asks about, for search phrasing."""
    year = find_recent_year(query, today)
    if year is not None:
        return str(year)
    query_lower = query.lower()
    if any(word in query_lower for word in ("upcoming", "coming out", "pre-order", "preorder")):
        return "upcoming"
    if any(word in query_lower for word in ("new", "latest", "newest", "just released", "recent")):
        return str((today or date.today()).year)
    return None


# ═════════════════════════════════════════════════════════════════════════
# 4. TASTE-ALIGNMENT SIGNALS
# ═════════════════════════════════════════════════════════════════════════
# Weighted words for the deterministic taste-alignment estimate.  Strong
# signals move the score by 0.5 / -0.4, weak ones by 0.3 / -0.3.

STRONG_ALIGNED: tuple[str, ...] = (
    "women", "emotional", "identity", "justice", "spiritual", "family",
    "belonging", "literary", "book club", "character-driven", "memoir",
)
WEAK_ALIGNED: tuple[str, ...] = (
    "beautiful", "moving", "heartfelt", "thoughtful", "beach read",
    "historical fiction", "mother", "daughter", "sister", "friendship",
)
STRONG_DIVERGENT: tuple[str, ...] = (
    "military", "space opera", "hard sci-fi", "sci-fi", "science fiction",
    "zombie", "cyberpunk", "litrpg", "naval battles",
)
WEAK_DIVERGENT: tuple[str, ...] = (
    "action", "gore", "horror", "epic fantasy", "dragons", "spy",
    "true crime", "self-help", "business",
)
