"""Keyword pre-filter: route unambiguous queries without any network call.

Checks, in order, and stops at the first hit:

1. a curated theme selected in the UI          -> CATALOG
2. temporal phrasing, "new <Author Name>", or a
   year no older than last year                 -> TEMPORAL
3. open-world phrasing ("surprise me", ...)     -> WORLD
4. explicit references to the collection        -> CATALOG

A hit returns ``confidence=high``; otherwise ``confidence=none`` and the
catalog probe decides.  Pure and deterministic: ``today`` is injectable so
the year rule can be tested.
"""

from __future__ import annotations

import re
from datetime import date

from bookrouter.config.themes import (
    CATALOG_KEYWORDS,
    CURATED_THEMES,
    NEW_AUTHOR_PATTERN,
    TEMPORAL_KEYWORDS,
    WORLD_KEYWORDS,
    find_recent_year,
)
from bookrouter.models.routing import PreFilterResult, RoutingConfidence, RoutingPath


def _find_keyword(text: str, keywords: tuple[str, ...]) -> str | None:
    for keyword in keywords:
        if re.search(r"(?<![\w-])" + re.escape(keyword) + r"(?![\w-])", text):
            return keyword
    return None


def _hit(path: RoutingPath, keyword: str, reason: str) -> PreFilterResult:
    return PreFilterResult(
        confidence=RoutingConfidence.HIGH,
        path=path,
        matched_keyword=keyword,
        reason=reason,
    )


def prefilter(
    query_text: str,
    theme_filters: list[str] | None = None,
    today: date | None = None,
) -> PreFilterResult:
    """Classify *query_text* by keyword alone.

    Parameters
    ----------
    query_text:
        The raw user query.
    theme_filters:
        Themes selected in the UI.  Only curated themes count.
    today:
        Reference date for the recent-year rule.

    Returns
    -------
    PreFilterResult
        ``is_conclusive`` is True when a path was chosen.
    """
    for theme in theme_filters or []:
        key = theme.strip().lower()
        if key in CURATED_THEMES:
            return _hit(RoutingPath.CATALOG, key, "theme_filter_selected")

    text = query_text.lower()

    keyword = _find_keyword(text, TEMPORAL_KEYWORDS)
    if keyword:
        return _hit(RoutingPath.TEMPORAL, keyword, "temporal_keyword")

    author_match = NEW_AUTHOR_PATTERN.match(query_text)
    if author_match:
        return _hit(RoutingPath.TEMPORAL, author_match.group(0).strip(), "new_author_pattern")

    year = find_recent_year(query_text, today)
    if year is not None:
        return _hit(RoutingPath.TEMPORAL, str(year), "recent_year")

    keyword = _find_keyword(text, WORLD_KEYWORDS)
    if keyword:
        return _hit(RoutingPath.WORLD, keyword, "world_keyword")

    keyword = _find_keyword(text, CATALOG_KEYWORDS)
    if keyword:
        return _hit(RoutingPath.CATALOG, keyword, "catalog_keyword")

    return PreFilterResult()
