"""JSON-file catalog store implementing ICatalogStore.

Loads the whole curated collection from a JSON file (a list of catalog
entries with precomputed embeddings) into memory once, then answers every
query from memory.  Similarity search is a single numpy matrix-vector
product over row-normalized embeddings.

Expected file shape::

    [
      {"id": "b-001", "title": "...", "author": "...", "themes": ["women"],
       "genre": "literary fiction", "curator_assessment": "...",
       "favorite": true, "embedding": [0.01, ...]},
      ...
    ]
"""

from __future__ import annotations

import json
from pathlib import Path

import structlog
from pydantic import ValidationError

from bookrouter.interfaces.catalog_store import ICatalogStore
from bookrouter.models.book import CatalogEntry, ScoredEntry
from bookrouter.providers.catalog import filters
from bookrouter.utils.errors import CatalogError

logger = structlog.get_logger(logger_name=__name__)


class JsonCatalogStore(ICatalogStore):
    """Read-only in-memory catalog, optionally loaded from a JSON file."""

    def __init__(self, entries: list[CatalogEntry] | None = None) -> None:
        self._entries: list[CatalogEntry] = list(entries or [])
        self._matrix, self._indexed = filters.build_matrix(self._entries)

    @classmethod
    def from_file(cls, path: str | Path) -> JsonCatalogStore:
        """Load a catalog file.  A missing file yields an empty catalog."""
        file_path = Path(path)
        if not file_path.exists():
            logger.warning("catalog_file_missing", path=str(file_path))
            return cls([])

        try:
            raw = json.loads(file_path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            raise CatalogError(
                message=f"Cannot read catalog file {file_path}: {exc}",
                provider_name="json",
            ) from exc

        entries: list[CatalogEntry] = []
        for position, item in enumerate(raw if isinstance(raw, list) else []):
            if not isinstance(item, dict):
                logger.warning("catalog_entry_skipped", position=position, error="not an object")
                continue
            item.setdefault("id", f"entry-{position}")
            try:
                entries.append(CatalogEntry.model_validate(item))
            except ValidationError as exc:
                logger.warning("catalog_entry_skipped", position=position, error=str(exc))

        logger.info("catalog_loaded", path=str(file_path), entries=len(entries))
        return cls(entries)

    # ------------------------------------------------------------------
    # ICatalogStore implementation
    # ------------------------------------------------------------------

    async def similarity_search(
        self,
        vector: list[float],
        limit: int = 5,
        min_score: float = 0.0,
    ) -> list[ScoredEntry]:
        return filters.nearest(self._matrix, self._indexed, vector, limit, min_score)

    async def by_theme(self, themes: list[str], limit: int = 10) -> list[CatalogEntry]:
        return filters.by_theme(self._entries, themes, limit)

    async def by_author(self, name: str, limit: int = 10) -> list[CatalogEntry]:
        return filters.by_author(self._entries, name, limit)

    async def by_genre(self, genre: str, limit: int = 10) -> list[CatalogEntry]:
        return filters.by_genre(self._entries, genre, limit)

    async def favorites(self, themes: list[str] | None = None, limit: int = 10) -> list[CatalogEntry]:
        return filters.favorites(self._entries, themes, limit)

    async def list_entries(self) -> list[CatalogEntry]:
        return list(self._entries)

    def get_provider_name(self) -> str:
        return "json"
