"""Deterministic validation of extracted entities against the catalog.

The generative extractor can produce a plausible but non-existent author or
title.  This module makes sure such a mention cannot steer retrieval:

- each author/title is normalized (case-folded, punctuation stripped) and
  matched against the catalog's author/title index, exact match first and
  then substring in either direction;
- a match is replaced by the catalog's canonical spelling, a miss becomes
  ``None``;
- ``similar_author`` without a valid author, or ``similar_book`` without a
  valid title, is downgraded to ``theme_search``;
- themes outside the catalog's vocabulary are dropped.

No network calls, no randomness: the index is an in-memory snapshot built
once from :meth:`ICatalogStore.list_entries`, and validating the same
extraction twice yields the same result.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from bookrouter.config.themes import EXTRACTION_THEMES
from bookrouter.models.book import CatalogEntry
from bookrouter.models.query import (
    QueryExtraction,
    SearchIntent,
    ValidatedExtraction,
    ValidationReport,
)
from bookrouter.utils.logging import get_logger
from bookrouter.utils.text_normalizer import normalize_text

# Substring matches shorter than this are ignored ("an", "jo").
_MIN_SUBSTRING_LEN = 4


@dataclass(frozen=True)
class CatalogIndex:
    """Normalized author/title/theme lookup tables for the catalog."""

    authors: dict[str, str] = field(default_factory=dict)
    titles: dict[str, str] = field(default_factory=dict)
    themes: frozenset[str] = frozenset()

    @classmethod
    def from_entries(cls, entries: list[CatalogEntry]) -> CatalogIndex:
        authors: dict[str, str] = {}
        titles: dict[str, str] = {}
        themes: set[str] = set()
        for entry in entries:
            authors.setdefault(normalize_text(entry.author), entry.author)
            titles.setdefault(normalize_text(entry.title), entry.title)
            themes.update(entry.themes)
        # Sorted keys keep substring matching order-independent of ingestion.
        return cls(
            authors=dict(sorted(authors.items())),
            titles=dict(sorted(titles.items())),
            themes=frozenset(themes),
        )

    @property
    def allowed_themes(self) -> frozenset[str]:
        return self.themes or frozenset(EXTRACTION_THEMES)


def match_in_index(value: str | None, index: dict[str, str]) -> str | None:
    """Return the canonical index value matching *value*, or ``None``."""
    key = normalize_text(value)
    if not key:
        return None
    if key in index:
        return index[key]
    if len(key) < _MIN_SUBSTRING_LEN:
        return None
    for candidate_key, canonical in index.items():
        if len(candidate_key) < _MIN_SUBSTRING_LEN:
            continue
        if key in candidate_key or candidate_key in key:
            return canonical
    return None


class EntityValidator:
    """Checks an extraction against a :class:`CatalogIndex`."""

    def __init__(self, index: CatalogIndex) -> None:
        self._index = index
        self._logger = get_logger(__name__)

    @property
    def index(self) -> CatalogIndex:
        return self._index

    def validate_author(self, author: str | None) -> str | None:
        return match_in_index(author, self._index.authors)

    def validate_title(self, title: str | None) -> str | None:
        return match_in_index(title, self._index.titles)

    def validate_themes(self, themes: list[str]) -> tuple[list[str], list[str]]:
        """Split *themes* into (kept, rejected), preserving order."""
        allowed = self._index.allowed_themes
        kept: list[str] = []
        rejected: list[str] = []
        for theme in themes:
            key = theme.strip().lower()
            if key in allowed:
                if key not in kept:
                    kept.append(key)
            elif key:
                rejected.append(key)
        return kept, rejected

    def validate(self, extraction: QueryExtraction) -> ValidatedExtraction:
        author, rejected_authors = self._first_valid(extraction.authors, self.validate_author)
        title, rejected_titles = self._first_valid(extraction.titles, self.validate_title)
        themes, rejected_themes = self.validate_themes(extraction.themes)

        intent = extraction.intent
        if intent == SearchIntent.SIMILAR_AUTHOR and author is None:
            intent = SearchIntent.THEME_SEARCH
        elif intent == SearchIntent.SIMILAR_BOOK and title is None:
            intent = SearchIntent.THEME_SEARCH

        report = ValidationReport(
            author_valid=author is not None,
            book_valid=title is not None,
            intent_changed=intent != extraction.intent,
            original_intent=extraction.intent,
            rejected_authors=rejected_authors,
            rejected_titles=rejected_titles,
            rejected_themes=rejected_themes,
        )
        if report.intent_changed or rejected_authors or rejected_titles:
            self._logger.info(
                "entities_rejected",
                rejected_authors=len(rejected_authors),
                rejected_titles=len(rejected_titles),
                original_intent=extraction.intent.value,
                intent=intent.value,
            )

        return ValidatedExtraction(
            search_query=extraction.search_query,
            intent=intent,
            author=author,
            title=title,
            mentioned_author=extraction.authors[0] if extraction.authors else None,
            themes=themes,
            extraction_success=extraction.extraction_success,
            validation=report,
        )

    @staticmethod
    def _first_valid(values: list[str], check) -> tuple[str | None, list[str]]:
        valid: str | None = None
        rejected: list[str] = []
        for value in values:
            canonical = check(value)
            if canonical is None:
                rejected.append(value)
            elif valid is None:
                valid = canonical
        return valid, rejected
