"""In-memory catalog query helpers shared by the catalog store adapters.

The collection is small (a few hundred titles), so theme, author, genre and
favorite lookups are plain scans over the loaded entries.  Vector math uses
numpy.
"""

from __future__ import annotations

import numpy as np

from bookrouter.models.book import CatalogEntry, ScoredEntry
from bookrouter.utils.text_normalizer import normalize_text


def cosine_similarity(a: list[float] | np.ndarray, b: list[float] | np.ndarray) -> float:
    """Cosine similarity of two vectors; 0.0 on dimension mismatch or a zero vector."""
    va = np.asarray(a, dtype=np.float64)
    vb = np.asarray(b, dtype=np.float64)
    if va.shape != vb.shape or va.size == 0:
        return 0.0
    denom = float(np.linalg.norm(va) * np.linalg.norm(vb))
    if denom == 0.0:
        return 0.0
    return float(np.dot(va, vb) / denom)


def build_matrix(entries: list[CatalogEntry]) -> tuple[np.ndarray, list[CatalogEntry]]:
    """Stack entry embeddings into a row-normalized matrix.

    Entries whose embedding length differs from the majority dimension are
    left out of the matrix (they can still be found by theme/author/genre).
    """
    dims = [len(e.embedding) for e in entries if e.embedding]
    if not dims:
        return np.zeros((0, 0)), []
    dim = max(set(dims), key=dims.count)
    indexed = [e for e in entries if len(e.embedding) == dim]
    matrix = np.asarray([e.embedding for e in indexed], dtype=np.float64)
    norms = np.linalg.norm(matrix, axis=1, keepdims=True)
    norms[norms == 0.0] = 1.0
    return matrix / norms, indexed


def nearest(
    matrix: np.ndarray,
    indexed: list[CatalogEntry],
    vector: list[float],
    limit: int,
    min_score: float,
) -> list[ScoredEntry]:
    """Top-*limit* entries by cosine similarity at or above *min_score*."""
    if not indexed or limit <= 0:
        return []
    query = np.asarray(vector, dtype=np.float64)
    if query.shape[0] != matrix.shape[1]:
        return []
    norm = float(np.linalg.norm(query))
    if norm == 0.0:
        return []
    scores = matrix @ (query / norm)
    order = np.argsort(-scores)
    results: list[ScoredEntry] = []
    for idx in order:
        score = float(scores[idx])
        if score < min_score:
            break
        results.append(ScoredEntry(entry=indexed[int(idx)], similarity=score))
        if len(results) >= limit:
            break
    return results


def by_theme(entries: list[CatalogEntry], themes: list[str], limit: int) -> list[CatalogEntry]:
    """Entries overlapping *themes*, most overlap first, favorites breaking ties."""
    wanted = {t.strip().lower() for t in themes if t.strip()}
    if not wanted:
        return []
    scored = [
        (len(wanted.intersection(entry.themes)), entry.favorite, -position, entry)
        for position, entry in enumerate(entries)
    ]
    ranked = sorted((s for s in scored if s[0] > 0), key=lambda s: (s[0], s[1], s[2]), reverse=True)
    return [s[3] for s in ranked[:limit]]


def by_author(entries: list[CatalogEntry], name: str, limit: int) -> list[CatalogEntry]:
    key = normalize_text(name)
    if not key:
        return []
    return [e for e in entries if normalize_text(e.author) == key][:limit]


def by_genre(entries: list[CatalogEntry], genre: str, limit: int) -> list[CatalogEntry]:
    key = normalize_text(genre)
    if not key:
        return []
    return [e for e in entries if e.genre and normalize_text(e.genre) == key][:limit]


def favorites(entries: list[CatalogEntry], themes: list[str] | None, limit: int) -> list[CatalogEntry]:
    flagged = [e for e in entries if e.favorite]
    if themes:
        wanted = {t.strip().lower() for t in themes}
        flagged = [e for e in flagged if wanted.intersection(e.themes)]
    return flagged[:limit]
