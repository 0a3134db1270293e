"""ChromaDB catalog store implementing ICatalogStore.

Wraps ``chromadb.PersistentClient`` with a cosine-space collection holding
one record per catalog book: the precomputed embedding, the description as
the document, and the remaining fields as metadata (themes flattened to a
comma-separated string, since Chroma metadata values must be scalars).

Vector queries go to Chroma.  Theme/author/genre/favorite lookups need the
whole (small) collection, which is loaded once and kept in memory.  Chroma
calls are synchronous and run via ``asyncio.to_thread``.
"""

from __future__ import annotations

import asyncio
import os
from typing import Any

# Telemetry must be disabled before chromadb is imported.
os.environ["ANONYMIZED_TELEMETRY"] = "False"

import posthog

posthog.disabled = True

import chromadb
import structlog

from bookrouter.interfaces.catalog_store import ICatalogStore
from bookrouter.models.book import CatalogEntry, ScoredEntry
from bookrouter.providers.catalog import filters
from bookrouter.utils.errors import CatalogError

logger = structlog.get_logger(logger_name=__name__)

_PAGE_SIZE = 500


class _NoopEmbeddingFunction(chromadb.EmbeddingFunction[list[str]]):
    """Stops Chroma from loading its default model; vectors are always precomputed."""

    def __call__(self, input: list[str]) -> list[list[float]]:
        raise NotImplementedError("bookrouter stores precomputed embeddings only")

    def name(self) -> str:
        return "noop_precomputed"


class ChromaDBCatalogStore(ICatalogStore):
    """Catalog backed by a persistent ChromaDB collection."""

    def __init__(
        self,
        persist_directory: str = "./data/chromadb",
        collection_name: str = "bookrouter_catalog",
        client: Any | None = None,
    ) -> None:
        self._client = client or chromadb.PersistentClient(
            path=persist_directory,
            settings=chromadb.config.Settings(anonymized_telemetry=False),
        )
        try:
            self._collection = self._client.get_or_create_collection(
                name=collection_name,
                metadata={"hnsw:space": "cosine"},
                embedding_function=_NoopEmbeddingFunction(),
            )
        except ValueError:
            # Collection persisted with a different embedding function.
            self._collection = self._client.get_or_create_collection(
                name=collection_name,
                metadata={"hnsw:space": "cosine"},
            )
        self._entries: list[CatalogEntry] | None = None
        self._load_lock = asyncio.Lock()

    # ------------------------------------------------------------------
    # ICatalogStore implementation
    # ------------------------------------------------------------------

    async def similarity_search(
        self,
        vector: list[float],
        limit: int = 5,
        min_score: float = 0.0,
    ) -> list[ScoredEntry]:
        try:
            count = await asyncio.to_thread(self._collection.count)
            if count == 0 or limit <= 0:
                return []
            results = await asyncio.to_thread(
                self._collection.query,
                query_embeddings=[vector],
                n_results=min(limit, count),
                include=["metadatas", "documents", "distances", "embeddings"],
            )
        except Exception as exc:
            raise CatalogError(
                message=f"ChromaDB query failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        ids = results["ids"][0] if results.get("ids") else []
        metadatas = results["metadatas"][0] if results.get("metadatas") else [{}] * len(ids)
        documents = results["documents"][0] if results.get("documents") else [None] * len(ids)
        distances = results["distances"][0] if results.get("distances") else [1.0] * len(ids)
        embeddings = results.get("embeddings")
        vectors = embeddings[0] if embeddings is not None and len(embeddings) else [None] * len(ids)

        scored: list[ScoredEntry] = []
        for record_id, meta, doc, distance, emb in zip(
            ids, metadatas, documents, distances, vectors, strict=True
        ):
            # Cosine space: distance = 1 - similarity.
            similarity = 1.0 - float(distance)
            if similarity < min_score:
                continue
            entry = self._entry_from_record(record_id, meta or {}, doc, emb)
            if entry is not None:
                scored.append(ScoredEntry(entry=entry, similarity=similarity))
        return scored

    async def by_theme(self, themes: list[str], limit: int = 10) -> list[CatalogEntry]:
        return filters.by_theme(await self._all_entries(), themes, limit)

    async def by_author(self, name: str, limit: int = 10) -> list[CatalogEntry]:
        return filters.by_author(await self._all_entries(), name, limit)

    async def by_genre(self, genre: str, limit: int = 10) -> list[CatalogEntry]:
        return filters.by_genre(await self._all_entries(), genre, limit)

    async def favorites(self, themes: list[str] | None = None, limit: int = 10) -> list[CatalogEntry]:
        return filters.favorites(await self._all_entries(), themes, limit)

    async def list_entries(self) -> list[CatalogEntry]:
        return list(await self._all_entries())

    def get_provider_name(self) -> str:
        return "chromadb"

    # ------------------------------------------------------------------
    # Ingestion (used by the ingest CLI, never by the router)
    # ------------------------------------------------------------------

    async def upsert_entries(self, entries: list[CatalogEntry]) -> int:
        """Write *entries* (with embeddings) to the collection.  Returns the count."""
        if not entries:
            return 0
        try:
            await asyncio.to_thread(
                self._collection.upsert,
                ids=[e.id for e in entries],
                embeddings=[e.embedding for e in entries],
                documents=[e.description or "" for e in entries],
                metadatas=[self._entry_to_metadata(e) for e in entries],
            )
        except Exception as exc:
            raise CatalogError(
                message=f"ChromaDB upsert failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        self._entries = None
        logger.info("catalog_upserted", count=len(entries))
        return len(entries)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _all_entries(self) -> list[CatalogEntry]:
        if self._entries is not None:
            return self._entries
        async with self._load_lock:
            if self._entries is None:
                self._entries = await self._load_all()
                logger.info("chromadb_catalog_loaded", entries=len(self._entries))
        return self._entries

    async def _load_all(self) -> list[CatalogEntry]:
        entries: list[CatalogEntry] = []
        offset = 0
        try:
            while True:
                page = await asyncio.to_thread(
                    self._collection.get,
                    include=["metadatas", "documents", "embeddings"],
                    limit=_PAGE_SIZE,
                    offset=offset,
                )
                ids = page.get("ids") or []
                if not ids:
                    break
                metadatas = page.get("metadatas") or [{}] * len(ids)
                documents = page.get("documents") or [None] * len(ids)
                embeddings = page.get("embeddings")
                if embeddings is None or not len(embeddings):
                    embeddings = [None] * len(ids)
                for record_id, meta, doc, emb in zip(ids, metadatas, documents, embeddings, strict=True):
                    entry = self._entry_from_record(record_id, meta or {}, doc, emb)
                    if entry is not None:
                        entries.append(entry)
                if len(ids) < _PAGE_SIZE:
                    break
                offset += _PAGE_SIZE
        except Exception as exc:
            raise CatalogError(
                message=f"ChromaDB read failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        return entries

    @staticmethod
    def _entry_to_metadata(entry: CatalogEntry) -> dict[str, Any]:
        meta: dict[str, Any] = {
            "title": entry.title,
            "author": entry.author,
            "themes": ",".join(entry.themes),
            "favorite": entry.favorite,
        }
        if entry.genre:
            meta["genre"] = entry.genre
        if entry.isbn:
            meta["isbn"] = entry.isbn
        if entry.curator_assessment:
            meta["curator_assessment"] = entry.curator_assessment
        return meta

    @staticmethod
    def _entry_from_record(
        record_id: str,
        meta: dict[str, Any],
        document: str | None,
        embedding: Any,
    ) -> CatalogEntry | None:
        title = meta.get("title")
        author = meta.get("author")
        if not title or not author:
            logger.warning("chromadb_record_skipped", record_id=record_id)
            return None
        themes_raw = meta.get("themes") or ""
        return CatalogEntry(
            id=record_id,
            title=title,
            author=author,
            description=document or None,
            curator_assessment=meta.get("curator_assessment"),
            themes=[t for t in themes_raw.split(",") if t],
            genre=meta.get("genre"),
            isbn=meta.get("isbn"),
            favorite=bool(meta.get("favorite", False)),
            embedding=[float(x) for x in embedding] if embedding is not None else [],
        )
