"""Text normalization utilities for book titles and author names.

Three concerns live here:

1. **Key normalization** -- ``normalize_text`` case-folds, strips
   punctuation and collapses whitespace.  Every comparison the pipeline
   makes between titles (exclusion set, entity validation, formatter
   validation) goes through it, so "The Vanishing Half!" and
   "the vanishing half" are the same key.

2. **Fuzzy matching** -- rapidfuzz ``token_sort_ratio`` for comparing an
   author name from a metadata lookup with the author the user asked about
   ("Brit Bennett" vs "Bennett, Brit").

3. **Literal presence** -- ``contains_phrase`` checks that a title really
   occurs in a body of web-search text, token-bounded, after normalization.
"""

import re

from rapidfuzz import fuzz, process

_NON_WORD_RE = re.compile(r"[^\w\s]")
_WHITESPACE_RE = re.compile(r"\s+")
_LEADING_ARTICLE_RE = re.compile(r"^(the|a|an)\s+")


def normalize_text(value: str | None) -> str:
    """Lowercase, strip punctuation and collapse whitespace.

    Args:
        value: Raw title or name.  ``None`` normalizes to ``""``.

    Returns:
        The normalized key.
    """
    if not value:
        return ""
    normalized = value.lower().strip()
    # Apostrophes vanish rather than splitting a word ("Don't" -> "dont").
    normalized = normalized.replace("'", "").replace("’", "")
    normalized = _NON_WORD_RE.sub(" ", normalized)
    normalized = _WHITESPACE_RE.sub(" ", normalized)
    return normalized.strip()


def normalize_title(title: str | None) -> str:
    """Normalize a book title for set membership (exclusion, dedup)."""
    return normalize_text(title)


def strip_leading_article(value: str) -> str:
    """Drop a leading "the"/"a"/"an" from an already-normalized string."""
    return _LEADING_ARTICLE_RE.sub("", value)


def fuzzy_match(
    query: str,
    candidates: list[str],
    threshold: float = 0.8,
) -> tuple[str, float] | None:
    """Find the best fuzzy match for a query among candidates.

    Uses rapidfuzz ``token_sort_ratio`` so word-order differences
    ("Bennett Brit" vs "Brit Bennett") still match.

    Args:
        query: The string to match.
        candidates: List of candidate strings to match against.
        threshold: Minimum similarity score (0.0--1.0) to accept a match.

    Returns:
        A (best_match, score) tuple if a match meets the threshold, else None.
    """
    if not candidates:
        return None

    result = process.extractOne(
        query,
        candidates,
        scorer=fuzz.token_sort_ratio,
        processor=normalize_text,
        score_cutoff=threshold * 100,
    )

    if result is None:
        return None

    match_str, score, _ = result
    return (match_str, score / 100.0)


def names_match(left: str | None, right: str | None, threshold: float = 0.85) -> bool:
    """Return True when two person names refer to the same author."""
    if not left or not right:
        return False
    score = fuzz.token_sort_ratio(normalize_text(left), normalize_text(right))
    return score >= threshold * 100


def titles_match(left: str | None, right: str | None) -> bool:
    """Return True when two titles are the same book title.

    Exact after normalization, or equal once a leading article and any
    subtitle after a colon are removed.
    """
    if not left or not right:
        return False
    a, b = normalize_text(left), normalize_text(right)
    if a == b:
        return True
    short_a = strip_leading_article(normalize_text(left.split(":", 1)[0]))
    short_b = strip_leading_article(normalize_text(right.split(":", 1)[0]))
    return bool(short_a) and short_a == short_b


def contains_phrase(haystack: str, phrase: str) -> bool:
    """Return True if *phrase* occurs in *haystack* on token boundaries.

    Both sides are normalized first, so punctuation and case never matter.
    An empty phrase is never considered present.
    """
    needle = normalize_text(phrase)
    if not needle:
        return False
    body = f" {normalize_text(haystack)} "
    return f" {needle} " in body
