"""Unit tests for the bookrouter.cli.recommend and bookrouter.cli.ingest modules."""

from __future__ import annotations

import json
import re
from argparse import Namespace
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from bookrouter.cli import ingest, recommend
from bookrouter.config.settings import Settings
from bookrouter.models.book import BookSource, CandidateBook, CatalogEntry
from bookrouter.models.result import (
    Degradation,
    DegradationReason,
    FormattedRecommendation,
    RecommendationResponse,
    RoutingDiagnostics,
)
from bookrouter.models.routing import RoutingConfidence, RoutingPath


# ======================================================================
# Shared helpers
# ======================================================================


def _response(**overrides) -> RecommendationResponse:
    diagnostics = RoutingDiagnostics(
        path=RoutingPath.CATALOG,
        confidence=RoutingConfidence.HIGH,
        decision_source="catalog_probe",
        reason="strong_catalog_fit",
        probe_max_similarity=1.0,
        probe_avg_similarity=0.94,
        probe_match_count=4,
        excluded_count=1,
        degradations=[
            Degradation(stage="history", reason=DegradationReason.HISTORY_UNAVAILABLE),
        ],
        elapsed_ms=42.4,
    )
    fields = {
        "success": True,
        "candidates": [
            CandidateBook(title="Just Mercy", author="Bryan Stevenson", source=BookSource.CATALOG, verified=True)
        ],
        "recommendations": [
            FormattedRecommendation(title="Just Mercy", author="Bryan Stevenson", why_fits="Justice.")
        ],
        "text": "Title: Just Mercy\nAuthor: Bryan Stevenson\nWhy This Fits: Justice.",
        "explanation": "From my collection.",
        "routing_diagnostics": diagnostics,
    }
    fields.update(overrides)
    return RecommendationResponse(**fields)


# ======================================================================
# recommend
# ======================================================================


class TestFormatTextOutput:
    def test_plain_text(self) -> None:
        output = recommend.format_text_output(_response())

        assert output.startswith("Title: Just Mercy")
        assert "path:" not in output

    def test_falls_back_to_explanation(self) -> None:
        output = recommend.format_text_output(_response(text=""))
        assert output == "From my collection."

    def test_exhausted_note(self) -> None:
        output = recommend.format_text_output(_response(exhausted=True))
        assert "these are repeats" in output

    def test_diagnostics(self) -> None:
        output = recommend.format_text_output(_response(), diagnostics=True)

        assert "path:        CATALOG (high)" in output
        assert "decided by:  catalog_probe / strong_catalog_fit" in output
        assert "probe:       max=1.000 avg=0.940 matches=4" in output
        assert "excluded:    1" in output
        assert "degraded:    history: history_unavailable" in output
        assert "elapsed:     42 ms" in output
        assert "keyword:" not in output


class TestRecommendParser:
    def test_repeatable_options(self) -> None:
        args = recommend._build_parser().parse_args(
            ["books about justice", "--theme", "justice", "--read", "Gilead", "--read", "Beach Read", "--json"]
        )

        assert args.query == "books about justice"
        assert args.theme == ["justice"]
        assert args.read == ["Gilead", "Beach Read"]
        assert args.shown == []
        assert args.json_output is True
        assert args.user_id is None


# ======================================================================
# ingest
# ======================================================================


class TestEmbedEntries:
    @pytest.mark.asyncio()
    async def test_fills_missing_embeddings_in_batches(self, mock_embedding_provider: MagicMock) -> None:
        entries = [
            CatalogEntry(id="1", title="Just Mercy", author="Bryan Stevenson", themes=["justice"]),
            CatalogEntry(id="2", title="Gilead", author="Marilynne Robinson", embedding=[9.0] * 5),
            CatalogEntry(id="3", title="Beach Read", author="Emily Henry", themes=["beach"]),
        ]

        embedded, count = await ingest.embed_entries(entries, mock_embedding_provider, batch_size=1)

        assert count == 2
        assert mock_embedding_provider.embed.await_count == 2
        assert embedded[0].embedding == [1.0, 0.0, 0.0, 0.0, 0.0]
        assert embedded[1].embedding == [9.0] * 5
        assert embedded[2].embedding == [0.0, 0.0, 2.0, 0.0, 0.0]

    @pytest.mark.asyncio()
    async def test_reembed_recomputes_everything(
        self, mock_embedding_provider: MagicMock, catalog_entries: list[CatalogEntry]
    ) -> None:
        _, count = await ingest.embed_entries(catalog_entries, mock_embedding_provider, reembed=True)

        assert count == len(catalog_entries)
        mock_embedding_provider.embed.assert_awaited_once()


class TestWriteCatalogJson:
    def test_round_trips_through_the_json_store(
        self, tmp_path: Path, catalog_entries: list[CatalogEntry]
    ) -> None:
        output = tmp_path / "out" / "catalog.json"

        ingest.write_catalog_json(catalog_entries, output)

        payload = json.loads(output.read_text(encoding="utf-8"))
        assert len(payload) == len(catalog_entries)
        assert payload[0]["title"] == "Just Mercy"
        assert payload[0]["favorite"] is True


class TestIngestCommands:
    @pytest.mark.asyncio()
    async def test_missing_catalog_file(self, tmp_path: Path, settings: Settings, capsys) -> None:
        args = Namespace(file=str(tmp_path / "absent.json"), target="json", output=None, batch_size=8, reembed=False)

        assert await ingest._handle_catalog(args, settings) == 1
        assert "catalog file not found" in capsys.readouterr().err

    @pytest.mark.asyncio()
    async def test_stats(self, tmp_path: Path, catalog_entries: list[CatalogEntry], capsys) -> None:
        path = tmp_path / "catalog.json"
        ingest.write_catalog_json(catalog_entries, path)
        app_settings = Settings(_env_file=None, catalog_backend="json", catalog_json_path=str(path))

        assert await ingest._handle_stats(app_settings) == 0

        out = capsys.readouterr().out
        assert "Entries:          8" in out
        assert "Favorites:        4" in out
        assert re.search(r"justice\s+4", out)

    def test_parser_subcommands(self) -> None:
        args = ingest._build_parser().parse_args(["catalog", "--file", "c.json", "--target", "json", "--reembed"])

        assert args.command == "catalog"
        assert args.target == "json"
        assert args.reembed is True
        assert args.batch_size == 64
