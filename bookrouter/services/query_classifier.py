"""Deterministic query classification.

Combines the validated extraction with keyword heuristics into the
:class:`Classification` the path executors consume: intent, specificity,
temporal intent, taste alignment and the entity bundle (authors, titles,
genres, moods, timeframe).  No generative call is made here.

A UI theme-filter selection overrides whatever the extractor inferred: the
intent becomes ``theme_search`` and the themes are exactly the selection.
"""

from __future__ import annotations

import re
from datetime import date

from bookrouter.config.themes import (
    CURATED_THEMES,
    MOOD_TO_THEME,
    STRONG_ALIGNED,
    STRONG_DIVERGENT,
    WEAK_ALIGNED,
    WEAK_DIVERGENT,
    detect_timeframe,
    extract_query_genres,
    extract_query_moods,
    find_recent_year,
)
from bookrouter.models.query import (
    Classification,
    QueryEntities,
    SearchIntent,
    Specificity,
    TasteAlignment,
    TemporalIntent,
    ValidatedExtraction,
)

_UPCOMING_RE = re.compile(r"\b(upcoming|coming out|coming soon|forthcoming|pre-?order)\b", re.IGNORECASE)
_RECENT_RE = re.compile(r"\b(new|newest|latest|just released|recent|recently|this year)\b", re.IGNORECASE)
_CLASSIC_RE = re.compile(r"\b(classic|classics|timeless|backlist|older|old)\b", re.IGNORECASE)


def _contains(text: str, phrase: str) -> bool:
    return re.search(r"(?<![\w-])" + re.escape(phrase) + r"(?![\w-])", text) is not None


def score_taste_alignment(query: str) -> TasteAlignment:
    """Score how well *query* matches the catalog's identity, clamped to [-1, 1]."""
    text = query.lower()
    score = 0.0
    signals: list[str] = []
    for words, weight in (
        (STRONG_ALIGNED, 0.5),
        (WEAK_ALIGNED, 0.3),
        (STRONG_DIVERGENT, -0.4),
        (WEAK_DIVERGENT, -0.3),
    ):
        for word in words:
            if _contains(text, word):
                score += weight
                signals.append(f"{'+' if weight > 0 else '-'}{word}")
    return TasteAlignment(score=max(-1.0, min(1.0, score)), signals=signals)


def detect_temporal_intent(query: str, today: date | None = None) -> TemporalIntent:
    if _UPCOMING_RE.search(query):
        return TemporalIntent.UPCOMING
    if _RECENT_RE.search(query) or find_recent_year(query, today) is not None:
        return TemporalIntent.RECENT
    if _CLASSIC_RE.search(query):
        return TemporalIntent.CLASSIC
    return TemporalIntent.ANY_TIME


class QueryClassifier:
    """Builds a :class:`Classification` from a validated extraction."""

    def __init__(self, today: date | None = None) -> None:
        self._today = today

    def classify(
        self,
        raw_query: str,
        validated: ValidatedExtraction,
        theme_filters: list[str] | None = None,
        allowed_themes: frozenset[str] | None = None,
    ) -> Classification:
        selected = [t.strip().lower() for t in (theme_filters or []) if t.strip().lower() in CURATED_THEMES]
        moods = extract_query_moods(raw_query)

        if selected:
            intent = SearchIntent.THEME_SEARCH
            themes = list(dict.fromkeys(selected))
        else:
            intent = validated.intent
            themes = list(validated.themes)
            allowed = allowed_themes or frozenset(CURATED_THEMES)
            for mood in moods:
                mapped = MOOD_TO_THEME[mood]
                if mapped in allowed and mapped not in themes:
                    themes.append(mapped)

        genres = extract_query_genres(raw_query)
        authors = [validated.author] if validated.author else []
        titles = [validated.title] if validated.title else []

        if authors:
            specificity = Specificity.AUTHOR_SPECIFIC
        elif titles:
            specificity = Specificity.BOOK_SPECIFIC
        elif genres:
            specificity = Specificity.GENRE_SPECIFIC
        else:
            specificity = Specificity.VAGUE_MOOD

        return Classification(
            intent=intent,
            taste_alignment=score_taste_alignment(raw_query),
            specificity=specificity,
            temporal_intent=detect_temporal_intent(raw_query, self._today),
            entities=QueryEntities(
                authors=authors,
                mentioned_authors=[validated.mentioned_author] if validated.mentioned_author else [],
                titles=titles,
                genres=genres,
                moods=moods,
                timeframe=detect_timeframe(raw_query, self._today),
            ),
            themes=themes,
            search_query=validated.search_query or raw_query,
        )
