"""Standalone CLI for running the recommendation pipeline.

Usage::

    python -m bookrouter.cli.recommend "something like Brit Bennett"
    python -m bookrouter.cli.recommend "books about justice" --theme justice
    python -m bookrouter.cli.recommend "new releases" --read "The Vanishing Half" --json

Prints the formatted recommendations (or the full response as JSON) to
stdout.  ``--diagnostics`` adds the routing diagnostics to text output.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import sys

import structlog

from bookrouter.models.result import RecommendationResponse


def _suppress_logs() -> None:
    """Send logs to stderr at WARNING+ so stdout holds only the answer.

    Must run before ``bookrouter.main`` is imported: structlog caches
    loggers on first use.
    """
    os.environ["LOG_LEVEL"] = "WARNING"
    structlog.configure(
        processors=[
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.dev.ConsoleRenderer(colors=False),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(logging.WARNING),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )
    for name in ("httpx", "httpcore", "chromadb", "openai", "anthropic"):
        logging.getLogger(name).setLevel(logging.WARNING)


def format_text_output(response: RecommendationResponse, diagnostics: bool = False) -> str:
    """Human-readable rendering of a pipeline response."""
    lines: list[str] = []
    lines.append(response.text or response.explanation)
    if response.exhausted:
        lines.append("")
        lines.append("(All unseen books in this slice have been shown; these are repeats.)")
    if diagnostics:
        diag = response.routing_diagnostics
        lines.append("")
        lines.append("-" * 40)
        lines.append(f"path:        {diag.path.value} ({diag.confidence.value})")
        lines.append(f"decided by:  {diag.decision_source} / {diag.reason}")
        if diag.matched_keyword:
            lines.append(f"keyword:     {diag.matched_keyword}")
        if diag.probe_max_similarity is not None:
            lines.append(
                f"probe:       max={diag.probe_max_similarity:.3f} "
                f"avg={diag.probe_avg_similarity:.3f} matches={diag.probe_match_count}"
            )
        lines.append(f"excluded:    {diag.excluded_count}")
        for degradation in diag.degradations:
            lines.append(f"degraded:    {degradation.stage}: {degradation.reason.value}")
        lines.append(f"elapsed:     {diag.elapsed_ms:.0f} ms")
    return "\n".join(lines)


async def _run(args: argparse.Namespace) -> int:
    # Deferred import: bookrouter.main builds settings and logging on import.
    from bookrouter.main import run_recommendation

    response = await run_recommendation(
        args.query,
        user_id=args.user_id,
        reading_history=args.read,
        theme_filters=args.theme,
        session_shown_titles=args.shown,
    )
    if args.json_output:
        print(response.model_dump_json(indent=2))
    else:
        print(format_text_output(response, diagnostics=args.diagnostics))
    return 0 if response.success else 1


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="python -m bookrouter.cli.recommend",
        description="Get book recommendations from the command line.",
    )
    parser.add_argument("query", type=str, help="What you'd like to read.")
    parser.add_argument(
        "--theme",
        action="append",
        default=[],
        help="Curated theme filter (repeatable), e.g. --theme justice.",
    )
    parser.add_argument(
        "--read",
        action="append",
        default=[],
        help="A title you've already read (repeatable).",
    )
    parser.add_argument(
        "--shown",
        action="append",
        default=[],
        help="A title already shown this session (repeatable).",
    )
    parser.add_argument("--user-id", dest="user_id", default=None, help="User id for stored history.")
    parser.add_argument(
        "--json",
        action="store_true",
        dest="json_output",
        help="Print the full response as JSON.",
    )
    parser.add_argument(
        "--diagnostics",
        action="store_true",
        help="Append routing diagnostics to text output.",
    )
    parser.add_argument(
        "--quiet", "-q",
        action="store_true",
        help="Suppress log output (implied by --json).",
    )
    return parser


def main() -> None:
    parser = _build_parser()
    args = parser.parse_args()

    if args.quiet or args.json_output:
        _suppress_logs()

    sys.exit(asyncio.run(_run(args)))


if __name__ == "__main__":
    main()
