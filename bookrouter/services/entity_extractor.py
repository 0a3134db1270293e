"""Generative entity extraction for book recommendation queries.

Turns a raw query ("something like Brit Bennett but lighter") into a
:class:`QueryExtraction`: a cleaned search phrase, the author and book
mentioned (only if literally present), a primary intent and zero or more
themes from a fixed vocabulary.

Architecture: LLM-as-Parser behind a forced tool call
-----------------------------------------------------
Free-text parsing of model output is brittle, so the model is offered
exactly one tool, ``extract_search_intent``, and must call it.  Arguments
are validated against a pydantic model by :class:`StructuredTextService`.

Two deterministic guards follow the call:

- an author or title that does not occur in the query text is discarded,
  whatever the model claims;
- any failure (timeout, provider error, schema mismatch) yields
  :meth:`QueryExtraction.fallback` instead of an exception.

Nothing extracted here is trusted yet: the entity validator checks every
mention against the catalog before it can steer retrieval.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from bookrouter.config.themes import EXTRACTION_THEMES
from bookrouter.models.query import QueryExtraction, SearchIntent
from bookrouter.models.result import DegradationReason, StageResult
from bookrouter.services.structured_text import StructuredTextService
from bookrouter.utils.logging import get_logger
from bookrouter.utils.text_normalizer import normalize_text

_TOOL_NAME = "extract_search_intent"
_TOOL_DESCRIPTION = "Record the structured search intent of a book recommendation request."


class ExtractionToolOutput(BaseModel):
    """Arguments of the ``extract_search_intent`` tool."""

    model_config = ConfigDict(extra="ignore")

    search_query: str = Field(description="The request rewritten as a short search phrase.")
    author_mentioned: str | None = Field(
        default=None,
        description="Author name ONLY if it is explicitly written in the request, else null.",
    )
    book_mentioned: str | None = Field(
        default=None,
        description="Book title ONLY if it is explicitly written in the request, else null.",
    )
    intent: SearchIntent = Field(description="Primary intent of the request.")
    themes: list[str] = Field(
        default_factory=list,
        description="Zero or more themes from: " + ", ".join(EXTRACTION_THEMES),
    )


class EntityExtractor:
    """Extracts structured intent from a raw query with one constrained call."""

    def __init__(self, structured_text: StructuredTextService) -> None:
        self._structured = structured_text
        self._logger = get_logger(__name__)

    async def extract(self, raw_query: str) -> StageResult[QueryExtraction]:
        """Extract intent from *raw_query*.  Never raises.

        Returns
        -------
        StageResult[QueryExtraction]
            The extraction, or the deterministic fallback with an
            ``extraction_failed`` degradation.
        """
        query = raw_query.strip()
        if not query:
            return StageResult.degraded(
                QueryExtraction.fallback(raw_query),
                "entity_extraction",
                DegradationReason.EXTRACTION_FAILED,
                "empty query",
            )

        result = await self._structured.query(
            ExtractionToolOutput,
            tool_name=_TOOL_NAME,
            tool_description=_TOOL_DESCRIPTION,
            system_prompt=self._system_prompt(),
            user_prompt=f"Request: {query}",
            stage="entity_extraction",
            failure_reason=DegradationReason.EXTRACTION_FAILED,
            temperature=0.0,
            max_tokens=500,
        )
        if result.value is None:
            return StageResult(value=QueryExtraction.fallback(query), degradation=result.degradation)

        extraction = self._to_extraction(result.value, query)
        self._logger.info(
            "entity_extraction_complete",
            intent=extraction.intent.value,
            authors=len(extraction.authors),
            titles=len(extraction.titles),
            themes=extraction.themes,
        )
        return StageResult.ok(extraction)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _to_extraction(self, output: ExtractionToolOutput, query: str) -> QueryExtraction:
        authors = self._literal_mentions(output.author_mentioned, query, "author")
        titles = self._literal_mentions(output.book_mentioned, query, "title")
        themes: list[str] = []
        for theme in output.themes:
            key = theme.strip().lower()
            if key and key not in themes:
                themes.append(key)
        return QueryExtraction(
            search_query=output.search_query.strip() or query,
            intent=output.intent,
            authors=authors,
            titles=titles,
            themes=themes,
            extraction_success=True,
        )

    def _literal_mentions(self, mention: str | None, query: str, kind: str) -> list[str]:
        if not mention or not mention.strip():
            return []
        if normalize_text(mention) not in normalize_text(query):
            self._logger.info("extracted_entity_not_in_query", kind=kind)
            return []
        return [mention.strip()]

    @staticmethod
    def _system_prompt() -> str:
        return (
            "You analyze book recommendation requests and call the "
            f"{_TOOL_NAME} tool exactly once.\n"
            "Rules:\n"
            "- author_mentioned: only an author name that is written in the request. "
            "Never infer an author from a description, genre or title.\n"
            "- book_mentioned: only a book title that is written in the request. "
            "Never guess a title.\n"
            "- intent: similar_author when the user wants books like a named author; "
            "similar_book when they want books like a named title; new_releases for "
            "recent or upcoming books; mood_search for a feeling or mood; browse for "
            "open-ended requests; otherwise theme_search.\n"
            "- themes: choose only from this list: "
            + ", ".join(EXTRACTION_THEMES)
            + ". Use an empty list when none apply.\n"
            "- search_query: a short phrase capturing what the user wants."
        )
