"""Serper (Google Search API) provider implementing IWebSearchProvider.

POSTs to ``https://google.serper.dev/search`` with the ``X-API-KEY`` header.
Serper answers with up to three useful sections, flattened here in order of
trust:

1. ``knowledgeGraph`` -- Google's entity panel (often the exact book),
   tagged ``knowledge``.
2. ``answerBox`` -- a direct answer snippet, tagged ``answer``.
3. ``organic`` -- regular results, tagged ``organic``.

ISBNs mentioned in any snippet are extracted so the temporal path can
resolve a specific edition without another search.
"""

from __future__ import annotations

import re

import httpx
import structlog

from bookrouter.interfaces.web_search_provider import IWebSearchProvider, SearchResult
from bookrouter.utils.errors import RateLimitError, SearchError

logger = structlog.get_logger(logger_name=__name__)

_SERPER_URL = "https://google.serper.dev/search"
_DEFAULT_TIMEOUT = 8.0

_ISBN_RE = re.compile(
    r"ISBN(?:-1[03])?[:\s]*((?:97[89][- ]?)?(?:\d[- ]?){9}[\dXx])\b",
    re.IGNORECASE,
)


def extract_isbn(text: str | None) -> str | None:
    """Return the first well-formed ISBN-10/13 in *text* (digits only), or ``None``."""
    if not text:
        return None
    for match in _ISBN_RE.finditer(text):
        digits = re.sub(r"[\s-]", "", match.group(1)).upper()
        if len(digits) in (10, 13):
            return digits
    return None


class SerperSearchProvider(IWebSearchProvider):
    """Google results via Serper.  Requires ``SERPER_API_KEY``."""

    def __init__(self, api_key: str, http_client: httpx.AsyncClient | None = None) -> None:
        self._api_key = api_key
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(timeout=httpx.Timeout(_DEFAULT_TIMEOUT))

    async def search(self, query: str, num_results: int = 5) -> list[SearchResult]:
        if not self._api_key:
            raise SearchError(message="Serper API key not configured", provider_name="serper")

        try:
            response = await self._client.post(
                _SERPER_URL,
                json={"q": query, "num": num_results},
                headers={"X-API-KEY": self._api_key, "Content-Type": "application/json"},
            )
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as exc:
            if exc.response.status_code == 429:
                raise RateLimitError(
                    message="Serper rate limit exceeded",
                    provider_name=self.get_provider_name(),
                ) from exc
            raise SearchError(
                message=f"HTTP {exc.response.status_code} from Serper",
                provider_name=self.get_provider_name(),
            ) from exc
        except (httpx.HTTPError, ValueError) as exc:
            raise SearchError(
                message=f"Serper request failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        results = self._parse(data, num_results)
        logger.debug("serper_search_complete", query=query, result_count=len(results))
        return results

    @staticmethod
    def _parse(data: dict, num_results: int) -> list[SearchResult]:
        results: list[SearchResult] = []

        knowledge = data.get("knowledgeGraph") or {}
        if knowledge.get("title"):
            attributes = knowledge.get("attributes") or {}
            attribute_text = " ".join(f"{k}: {v}" for k, v in attributes.items())
            snippet = " ".join(part for part in (knowledge.get("description"), attribute_text) if part)
            results.append(
                SearchResult(
                    title=knowledge["title"],
                    url=knowledge.get("website", "") or "",
                    snippet=snippet or None,
                    result_type="knowledge",
                    isbn=extract_isbn(snippet),
                )
            )

        answer = data.get("answerBox") or {}
        answer_text = answer.get("answer") or answer.get("snippet")
        if answer_text:
            results.append(
                SearchResult(
                    title=answer.get("title", "") or "",
                    url=answer.get("link", "") or "",
                    snippet=answer_text,
                    result_type="answer",
                    isbn=extract_isbn(answer_text),
                )
            )

        for item in (data.get("organic") or [])[:num_results]:
            snippet = item.get("snippet")
            results.append(
                SearchResult(
                    title=item.get("title", "") or "",
                    url=item.get("link", "") or "",
                    snippet=snippet,
                    result_type="organic",
                    isbn=extract_isbn(snippet),
                )
            )
        return results

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    def get_provider_name(self) -> str:
        return "serper"

    def is_available(self) -> bool:
        return bool(self._api_key)
