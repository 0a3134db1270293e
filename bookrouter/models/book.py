"""Book models shared by every stage of the recommendation pipeline.

Two kinds of book flow through the system:

- **CatalogEntry** -- a row of the curated collection.  Owned by the
  out-of-band ingestion process; the router only ever reads it.
- **CandidateBook** -- the unit passed between stages.  Every candidate
  records where it came from (``source``) and whether its existence has been
  confirmed (``verified``).  Catalog membership and a resolved metadata
  lookup are the only two ways a candidate becomes verified.

``BookMetadata`` is the normalized answer of the books-metadata service
(Google Books) and ``ScoredEntry`` pairs a catalog entry with a cosine
similarity from a vector query.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator


class BookSource(str, Enum):  # noqa: UP042 -- StrEnum requires Python 3.11+
    """Where a candidate book came from."""

    CATALOG = "catalog"
    WORLD = "world"
    TEMPORAL = "temporal"


class CatalogEntry(BaseModel):
    """One book in the curated collection.

    Title and author are always non-empty.  ``embedding`` is precomputed at
    ingestion time; ``favorite`` marks the curator's flagged picks, which
    serve as the fallback when a user has seen everything in a theme.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    title: str = Field(min_length=1)
    author: str = Field(min_length=1)
    description: str | None = None
    curator_assessment: str | None = None
    themes: list[str] = Field(default_factory=list)
    genre: str | None = None
    isbn: str | None = None
    favorite: bool = False
    embedding: list[float] = Field(default_factory=list)

    @field_validator("title", "author")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("must not be blank")
        return value.strip()

    @field_validator("themes")
    @classmethod
    def _lowercase_themes(cls, value: list[str]) -> list[str]:
        return [theme.strip().lower() for theme in value if theme.strip()]

    def embedding_text(self) -> str:
        """Text used to embed this entry when looking for similar books."""
        parts = [self.title, f"by {self.author}"]
        if self.themes:
            parts.append("themes: " + ", ".join(self.themes))
        if self.description:
            parts.append(self.description)
        return ". ".join(parts)


class ScoredEntry(BaseModel):
    """A catalog entry paired with its cosine similarity to a query vector."""

    model_config = ConfigDict(frozen=True)

    entry: CatalogEntry
    similarity: float


class CandidateBook(BaseModel):
    """A book proposed for the user, tagged with provenance."""

    model_config = ConfigDict(frozen=True)

    title: str
    author: str
    description: str | None = None
    themes: list[str] = Field(default_factory=list)
    reputation: str | None = None
    source: BookSource
    verified: bool = False
    isbn: str | None = None
    similarity: float | None = None
    # Set only on the exhausted-theme fallback, where a favorite the user
    # has already seen is deliberately offered again.
    repeat: bool = False

    @classmethod
    def from_catalog(cls, entry: CatalogEntry, similarity: float | None = None) -> CandidateBook:
        """Build a verified candidate from a catalog row."""
        return cls(
            title=entry.title,
            author=entry.author,
            description=entry.curator_assessment or entry.description,
            themes=list(entry.themes),
            source=BookSource.CATALOG,
            verified=True,
            isbn=entry.isbn,
            similarity=similarity,
        )


class BookMetadata(BaseModel):
    """A resolved edition from the books-metadata service."""

    model_config = ConfigDict(frozen=True)

    title: str
    authors: list[str] = Field(default_factory=list)
    isbn_13: str | None = None
    isbn_10: str | None = None
    description: str | None = None
    publisher: str | None = None
    published_date: str | None = None
    categories: list[str] = Field(default_factory=list)
    cover_url: str | None = None

    @property
    def isbn(self) -> str | None:
        """Preferred identifier: ISBN-13 first, then ISBN-10."""
        return self.isbn_13 or self.isbn_10

    @property
    def primary_author(self) -> str:
        return self.authors[0] if self.authors else ""
