"""World path: delegate open-world suggestions to the response formatter.

This path does no retrieval of its own.  It returns an empty candidate list
flagged ``use_generative_knowledge`` together with the directive that limits
what may be proposed.  The formatter generates the proposals and verifies
each one against the books-metadata service, so the anti-hallucination
check lives in a single place.
"""

from __future__ import annotations

from bookrouter.models.query import Classification
from bookrouter.models.result import PathResult
from bookrouter.models.routing import RoutingPath

WORLD_DIRECTIVE = (
    "Suggest only extremely well-known books whose existence anyone can "
    "verify: major literary prize winners or titles with wide bestseller "
    "recognition. Never invent a title. If you are not certain who wrote a "
    "book, say so in its reputation line instead of stating an author as fact."
)

TRANSPARENCY_NOTE = "These aren't my usual picks, but they're the best of their genre."

EXPLAIN_WORLD = "Your request is outside my curated collection, so I looked further afield."


class WorldPath:
    def execute(self, classification: Classification) -> PathResult:
        directive = WORLD_DIRECTIVE
        if classification.entities.genres:
            directive += " Stay within: " + ", ".join(classification.entities.genres) + "."
        return PathResult(
            path=RoutingPath.WORLD,
            candidates=[],
            explanation=EXPLAIN_WORLD,
            use_generative_knowledge=True,
            generative_directive=directive,
            transparency_note=TRANSPARENCY_NOTE,
        )
