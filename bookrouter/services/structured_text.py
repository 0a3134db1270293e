"""Schema-constrained generative calls with validation and a hard deadline.

Every place the pipeline asks a generative model for structure (query
extraction, world proposals, temporal snippet extraction, response prose)
goes through :meth:`StructuredTextService.query`:

1. The pydantic output model's JSON schema becomes the forced tool's
   ``input_schema``.
2. The call runs under ``asyncio.wait_for`` with the configured timeout.
3. The tool arguments are validated back into the output model.

Any failure along the way (provider error, missing tool call, timeout,
schema mismatch) comes back as a degraded :class:`StageResult` with value
``None``.  Callers then apply their own deterministic fallback.  Validating
the *content* against ground truth (catalog, snippets, candidate list)
remains each caller's job.
"""

from __future__ import annotations

import asyncio
from typing import Any, TypeVar

from pydantic import BaseModel, ValidationError

from bookrouter.interfaces.llm_provider import ILLMProvider
from bookrouter.models.result import DegradationReason, StageResult
from bookrouter.utils.concurrency import with_timeout
from bookrouter.utils.errors import BookRouterError
from bookrouter.utils.logging import get_logger

_M = TypeVar("_M", bound=BaseModel)


def tool_schema(model: type[BaseModel]) -> dict[str, Any]:
    """JSON schema for *model*, flattened for tool-call APIs.

    ``$defs`` references are inlined because several providers reject
    ``$ref`` in tool parameter schemas.
    """
    schema = model.model_json_schema()
    defs = schema.pop("$defs", {})

    def _inline(node: Any) -> Any:
        if isinstance(node, dict):
            ref = node.get("$ref")
            if isinstance(ref, str) and ref.startswith("#/$defs/"):
                return _inline(dict(defs[ref.split("/")[-1]]))
            # Drop schema "title" annotations, not properties named "title".
            return {
                k: _inline(v)
                for k, v in node.items()
                if not (k == "title" and isinstance(v, str))
            }
        if isinstance(node, list):
            return [_inline(item) for item in node]
        return node

    return _inline(schema)


class StructuredTextService:
    """Typed, time-bounded wrapper around :meth:`ILLMProvider.complete_structured`."""

    def __init__(self, llm_provider: ILLMProvider, timeout: float = 12.0) -> None:
        self._llm = llm_provider
        self._timeout = timeout
        self._logger = get_logger(__name__)

    @property
    def provider_name(self) -> str:
        return self._llm.get_provider_name()

    async def query(
        self,
        output_model: type[_M],
        *,
        tool_name: str,
        tool_description: str,
        system_prompt: str,
        user_prompt: str,
        stage: str,
        failure_reason: DegradationReason,
        temperature: float = 0.0,
        max_tokens: int = 2000,
    ) -> StageResult[_M | None]:
        """Run one forced tool call and parse it into *output_model*.

        Returns
        -------
        StageResult
            ``value`` is the parsed model on success.  On any failure the
            value is ``None`` and ``degradation`` carries *failure_reason*.
        """
        try:
            raw = await with_timeout(
                self._llm.complete_structured(
                    system_prompt=system_prompt,
                    user_prompt=user_prompt,
                    tool_name=tool_name,
                    tool_description=tool_description,
                    input_schema=tool_schema(output_model),
                    temperature=temperature,
                    max_tokens=max_tokens,
                ),
                self._timeout,
            )
        except asyncio.TimeoutError:
            self._logger.warning("structured_call_timeout", stage=stage, timeout=self._timeout)
            return StageResult.degraded(None, stage, failure_reason, f"timeout after {self._timeout}s")
        except BookRouterError as exc:
            self._logger.warning("structured_call_failed", stage=stage, error=str(exc))
            return StageResult.degraded(None, stage, failure_reason, str(exc))

        try:
            parsed = output_model.model_validate(raw)
        except ValidationError as exc:
            self._logger.warning(
                "structured_call_schema_mismatch",
                stage=stage,
                errors=exc.error_count(),
            )
            return StageResult.degraded(None, stage, failure_reason, "schema mismatch")

        return StageResult.ok(parsed)
