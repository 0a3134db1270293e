"""Query-side models: the incoming request and what the pipeline learns about it.

Flow of the query through these models::

    RecommendationQuery                      (immutable caller input)
        -> QueryExtraction                   (generative, schema-constrained)
        -> ValidatedExtraction               (deterministic, catalog-checked)
        -> Classification                    (deterministic heuristics)

Only ``ValidatedExtraction`` and ``Classification`` may steer retrieval; a
raw ``QueryExtraction`` is never trusted on its own.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class SearchIntent(str, Enum):  # noqa: UP042 -- StrEnum requires Python 3.11+
    SIMILAR_AUTHOR = "similar_author"
    SIMILAR_BOOK = "similar_book"
    THEME_SEARCH = "theme_search"
    MOOD_SEARCH = "mood_search"
    NEW_RELEASES = "new_releases"
    BROWSE = "browse"


class Specificity(str, Enum):  # noqa: UP042 -- StrEnum requires Python 3.11+
    VAGUE_MOOD = "vague_mood"
    GENRE_SPECIFIC = "genre_specific"
    BOOK_SPECIFIC = "book_specific"
    AUTHOR_SPECIFIC = "author_specific"


class TemporalIntent(str, Enum):  # noqa: UP042 -- StrEnum requires Python 3.11+
    ANY_TIME = "any_time"
    RECENT = "recent"
    UPCOMING = "upcoming"
    CLASSIC = "classic"


# ---------------------------------------------------------------------------
# Caller input
# ---------------------------------------------------------------------------

class ReadingHistoryItem(BaseModel):
    """A book the user has read, queued or dismissed."""

    model_config = ConfigDict(frozen=True)

    title: str
    author: str | None = None
    status: str = "read"


class RecommendationQuery(BaseModel):
    """Immutable pipeline input."""

    model_config = ConfigDict(frozen=True)

    raw_text: str
    theme_filters: list[str] = Field(default_factory=list)
    user_id: str | None = None
    reading_history: list[ReadingHistoryItem] = Field(default_factory=list)
    session_shown_titles: list[str] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Extraction / validation
# ---------------------------------------------------------------------------

class QueryExtraction(BaseModel):
    """Structured intent pulled out of the raw query by the extractor."""

    model_config = ConfigDict(frozen=True)

    search_query: str
    intent: SearchIntent = SearchIntent.THEME_SEARCH
    authors: list[str] = Field(default_factory=list)
    titles: list[str] = Field(default_factory=list)
    themes: list[str] = Field(default_factory=list)
    extraction_success: bool = True

    @classmethod
    def fallback(cls, raw_query: str) -> QueryExtraction:
        """Deterministic default used when the generative call fails."""
        return cls(
            search_query=raw_query,
            intent=SearchIntent.THEME_SEARCH,
            authors=[],
            titles=[],
            themes=[],
            extraction_success=False,
        )


class ValidationReport(BaseModel):
    """What the entity validator changed, for diagnostics."""

    model_config = ConfigDict(frozen=True)

    author_valid: bool = False
    book_valid: bool = False
    intent_changed: bool = False
    original_intent: SearchIntent | None = None
    rejected_authors: list[str] = Field(default_factory=list)
    rejected_titles: list[str] = Field(default_factory=list)
    rejected_themes: list[str] = Field(default_factory=list)


class ValidatedExtraction(BaseModel):
    """Extraction after every entity has been checked against the catalog.

    ``author`` and ``title`` hold the catalog's canonical spelling, or
    ``None`` when the mention did not match anything in the collection.
    """

    model_config = ConfigDict(frozen=True)

    search_query: str
    intent: SearchIntent
    author: str | None = None
    title: str | None = None
    # First author named literally in the query, whether or not the catalog
    # knows it.
    mentioned_author: str | None = None
    themes: list[str] = Field(default_factory=list)
    extraction_success: bool = True
    validation: ValidationReport = Field(default_factory=ValidationReport)


# ---------------------------------------------------------------------------
# Classification
# ---------------------------------------------------------------------------

class TasteAlignment(BaseModel):
    """Estimate of how well a query matches the catalog's identity."""

    model_config = ConfigDict(frozen=True)

    score: float = Field(default=0.0, ge=-1.0, le=1.0)
    signals: list[str] = Field(default_factory=list)

    @property
    def label(self) -> str:
        if self.score >= 0.7:
            return "strongly_aligned"
        if self.score >= 0.3:
            return "aligned"
        if self.score > -0.3:
            return "neutral"
        if self.score > -0.7:
            return "divergent"
        return "strongly_divergent"


class QueryEntities(BaseModel):
    model_config = ConfigDict(frozen=True)

    authors: list[str] = Field(default_factory=list)
    # Unvalidated; only phrases web searches whose results are verified.
    mentioned_authors: list[str] = Field(default_factory=list)
    titles: list[str] = Field(default_factory=list)
    genres: list[str] = Field(default_factory=list)
    moods: list[str] = Field(default_factory=list)
    timeframe: str | None = None


class Classification(BaseModel):
    """Derived view of a query used by the path executors.  Never persisted."""

    model_config = ConfigDict(frozen=True)

    intent: SearchIntent
    taste_alignment: TasteAlignment = Field(default_factory=TasteAlignment)
    specificity: Specificity = Specificity.VAGUE_MOOD
    temporal_intent: TemporalIntent = TemporalIntent.ANY_TIME
    entities: QueryEntities = Field(default_factory=QueryEntities)
    themes: list[str] = Field(default_factory=list)
    search_query: str = ""
