"""Response formatting and validation.

Two generative jobs live here, both behind :class:`StructuredTextService`
and both followed by deterministic checks against ground truth:

1. **World proposals** (:meth:`ResponseFormatter.propose_world_candidates`).
   When a path asks for generative knowledge, the model proposes a few
   well-known books under the path's directive.  Each proposal is looked up
   in the books-metadata service; only proposals that resolve to an edition
   with an ISBN and a matching title and author become verified
   ``source=world`` candidates.

2. **Prose** (:meth:`ResponseFormatter.format`).  The model explains why
   each already-chosen candidate fits, in a fixed template.  Afterwards
   :func:`validate_recommendations` drops every item whose title does not
   match a candidate that was actually passed in, which is the last line of
   defense against the model substituting or adding a book.

When the prose call fails, a deterministic template built from the
candidates' own descriptions is used instead.
"""

from __future__ import annotations

import asyncio

from pydantic import BaseModel, Field

from bookrouter.interfaces.book_metadata_provider import IBookMetadataProvider
from bookrouter.models.book import BookMetadata, BookSource, CandidateBook
from bookrouter.models.result import (
    Degradation,
    DegradationReason,
    FormattedRecommendation,
    FormattedResponse,
    StageResult,
)
from bookrouter.services.structured_text import StructuredTextService
from bookrouter.utils.concurrency import throttled_gather, with_timeout
from bookrouter.utils.errors import BookRouterError
from bookrouter.utils.logging import get_logger
from bookrouter.utils.text_normalizer import names_match, normalize_title, titles_match

_FORMAT_STAGE = "response_formatter"
_WORLD_STAGE = "world_proposals"

EMPTY_MESSAGE = (
    "I couldn't find a book I can vouch for with that request. "
    "Try browsing one of my curated lists, or tell me a bit more about what you're in the mood for."
)
FALLBACK_WHY = "A strong match for what you asked for."


# ---------------------------------------------------------------------------
# Tool schemas
# ---------------------------------------------------------------------------

class ProposedBook(BaseModel):
    title: str = Field(description="Exact published title.")
    author: str = Field(description="Author name; say 'uncertain' in reputation if unsure.")
    reputation: str | None = Field(
        default=None,
        description="One line on prizes or bestseller recognition.",
    )


class WorldProposals(BaseModel):
    """Arguments of the ``propose_books`` tool."""

    books: list[ProposedBook] = Field(default_factory=list)


class RecommendationProse(BaseModel):
    title: str = Field(description="Title exactly as given in the candidate list.")
    author: str = Field(description="Author exactly as given in the candidate list.")
    why_fits: str = Field(description="One or two sentences on why this book fits the request.")
    reputation: str | None = Field(default=None, description="Optional one-line reputation note.")


class FormattedTool(BaseModel):
    """Arguments of the ``format_recommendations`` tool."""

    intro_text: str = Field(default="", description="One short sentence introducing the picks.")
    recommendations: list[RecommendationProse] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------

def validate_recommendations(
    items: list[RecommendationProse],
    candidates: list[CandidateBook],
) -> tuple[list[FormattedRecommendation], list[str]]:
    """Keep items whose title matches a candidate; return (kept, dropped_titles).

    Kept items take the candidate's canonical title, author and source.
    Each candidate is used at most once.
    """
    kept: list[FormattedRecommendation] = []
    dropped: list[str] = []
    used: set[str] = set()
    for item in items:
        match = next(
            (
                c for c in candidates
                if normalize_title(c.title) not in used and titles_match(item.title, c.title)
            ),
            None,
        )
        if match is None:
            dropped.append(item.title)
            continue
        used.add(normalize_title(match.title))
        kept.append(
            FormattedRecommendation(
                title=match.title,
                author=match.author,
                why_fits=item.why_fits.strip() or match.description or FALLBACK_WHY,
                reputation=item.reputation or match.reputation,
                source=match.source.value,
            )
        )
    return kept, dropped


def template_response(candidates: list[CandidateBook], intro_text: str) -> FormattedResponse:
    """Deterministic formatting from the candidates' own data."""
    return FormattedResponse(
        intro_text=intro_text,
        recommendations=[
            FormattedRecommendation(
                title=c.title,
                author=c.author,
                why_fits=c.description or FALLBACK_WHY,
                reputation=c.reputation,
                source=c.source.value,
            )
            for c in candidates
        ],
        used_fallback=True,
    )


class ResponseFormatter:
    """Generates world proposals and prose, then validates both."""

    def __init__(
        self,
        structured_text: StructuredTextService,
        metadata_provider: IBookMetadataProvider | None = None,
        metadata_timeout: float = 6.0,
        proposal_limit: int = 6,
        context_limit: int = 5,
        verify_concurrency: int = 3,
    ) -> None:
        self._structured = structured_text
        self._metadata = metadata_provider
        self._metadata_timeout = metadata_timeout
        self._proposal_limit = proposal_limit
        self._context_limit = context_limit
        self._verify_concurrency = verify_concurrency
        self._logger = get_logger(__name__)

    # ------------------------------------------------------------------
    # World proposals
    # ------------------------------------------------------------------

    async def propose_world_candidates(
        self,
        query_text: str,
        directive: str,
    ) -> StageResult[list[CandidateBook]]:
        """Generate and verify open-world candidates.

        Returns
        -------
        StageResult[list[CandidateBook]]
            Only metadata-verified candidates.  Empty with a degradation when
            generation fails or nothing could be verified.
        """
        if self._metadata is None:
            return StageResult.degraded(
                [],
                _WORLD_STAGE,
                DegradationReason.METADATA_LOOKUP_FAILED,
                "no metadata provider configured",
            )

        result = await self._structured.query(
            WorldProposals,
            tool_name="propose_books",
            tool_description="Record well-known books that fit the request.",
            system_prompt=(
                f"{directive}\nPropose at most {self._proposal_limit} books that fit the "
                "reader's request and call the propose_books tool."
            ),
            user_prompt=f"Request: {query_text}",
            stage=_WORLD_STAGE,
            failure_reason=DegradationReason.WORLD_GENERATION_FAILED,
            temperature=0.3,
            max_tokens=1000,
        )
        if result.value is None:
            return StageResult(value=[], degradation=result.degradation)

        proposals = result.value.books[: self._proposal_limit]
        outcomes = await throttled_gather(
            [self._verify(p) for p in proposals],
            limit=self._verify_concurrency,
        )

        verified: list[CandidateBook] = []
        failures = 0
        for proposal, outcome in zip(proposals, outcomes):
            if isinstance(outcome, BaseException):
                if not isinstance(outcome, (asyncio.TimeoutError, BookRouterError)):
                    raise outcome
                failures += 1
                continue
            if outcome is None:
                self._logger.info("world_proposal_unverified", title=proposal.title)
                continue
            verified.append(outcome)

        self._logger.info(
            "world_proposals_verified",
            proposed=len(proposals),
            verified=len(verified),
            lookup_failures=failures,
        )
        if not verified and failures:
            return StageResult.degraded(
                [],
                _WORLD_STAGE,
                DegradationReason.METADATA_LOOKUP_FAILED,
                f"{failures} lookups failed",
            )
        if not verified:
            return StageResult.degraded(
                [],
                _WORLD_STAGE,
                DegradationReason.WORLD_GENERATION_FAILED,
                "no proposal could be verified",
            )
        return StageResult.ok(verified)

    async def _verify(self, proposal: ProposedBook) -> CandidateBook | None:
        edition = await with_timeout(
            self._metadata.lookup_title(proposal.title, proposal.author),
            self._metadata_timeout,
        )
        if not _edition_matches(edition, proposal):
            return None
        return CandidateBook(
            title=edition.title,
            author=proposal.author,
            description=edition.description,
            reputation=proposal.reputation,
            source=BookSource.WORLD,
            verified=True,
            isbn=edition.isbn,
        )

    # ------------------------------------------------------------------
    # Prose
    # ------------------------------------------------------------------

    async def format(
        self,
        query_text: str,
        candidates: list[CandidateBook],
        intro_text: str = "",
        transparency_note: str | None = None,
    ) -> StageResult[FormattedResponse]:
        """Explain why each candidate fits, then strip anything not in *candidates*."""
        if not candidates:
            return StageResult.ok(FormattedResponse(intro_text=EMPTY_MESSAGE))

        context = candidates[: self._context_limit]
        result = await self._structured.query(
            FormattedTool,
            tool_name="format_recommendations",
            tool_description="Record the formatted recommendations.",
            system_prompt=self._system_prompt(transparency_note),
            user_prompt=self._user_prompt(query_text, context),
            stage=_FORMAT_STAGE,
            failure_reason=DegradationReason.FORMATTING_FAILED,
            temperature=0.5,
            max_tokens=1500,
        )
        if result.value is None:
            return StageResult(
                value=template_response(context, intro_text),
                degradation=result.degradation,
            )

        kept, dropped = validate_recommendations(result.value.recommendations, context)
        if dropped:
            self._logger.warning("formatter_dropped_unlisted_book", dropped=dropped)
        if not kept:
            fallback = template_response(context, intro_text)
            return StageResult(
                value=fallback.model_copy(update={"dropped_titles": dropped}),
                degradation=Degradation(
                    stage=_FORMAT_STAGE,
                    reason=DegradationReason.FORMATTING_FAILED,
                    detail="no formatted item matched a candidate",
                ),
            )

        intro = result.value.intro_text.strip() or intro_text
        if transparency_note and transparency_note not in intro:
            intro = f"{intro} {transparency_note}".strip()
        return StageResult.ok(
            FormattedResponse(intro_text=intro, recommendations=kept, dropped_titles=dropped)
        )

    @staticmethod
    def _system_prompt(transparency_note: str | None) -> str:
        prompt = (
            "You write short book recommendations. Call format_recommendations once. "
            "Use ONLY the books in the candidate list, with title and author exactly as "
            "given. Do not add, replace or rename books. For each, explain in one or two "
            "sentences why it fits the request. Add a reputation line only if you know "
            "of real prizes or bestseller status."
        )
        if transparency_note:
            prompt += f" Mention in the intro: {transparency_note}"
        return prompt

    @staticmethod
    def _user_prompt(query_text: str, candidates: list[CandidateBook]) -> str:
        lines = [f"Request: {query_text}", "", "Candidates:"]
        for idx, c in enumerate(candidates, 1):
            line = f"{idx}. {c.title} by {c.author}"
            if c.description:
                line += f": {c.description[:300]}"
            lines.append(line)
        return "\n".join(lines)


def _edition_matches(edition: BookMetadata | None, proposal: ProposedBook) -> bool:
    if edition is None or not edition.isbn:
        return False
    if not titles_match(edition.title, proposal.title):
        return False
    return any(names_match(proposal.author, name) for name in edition.authors)
