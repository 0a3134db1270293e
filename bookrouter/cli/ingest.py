"""Standalone CLI for building the catalog store.

Ingestion lives outside the request path: the router only ever reads the
catalog.  This tool embeds a catalog JSON file (title, author, themes,
description) and writes the vectors either into ChromaDB or back into a
JSON file for the in-memory backend.

Usage::

    python -m bookrouter.cli.ingest catalog --file data/catalog.json
    python -m bookrouter.cli.ingest catalog --file data/catalog.json \\
        --target json --output data/catalog.embedded.json
    python -m bookrouter.cli.ingest catalog --file data/catalog.json --reembed
    python -m bookrouter.cli.ingest stats
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from collections import Counter
from pathlib import Path

from bookrouter.config.settings import Settings
from bookrouter.interfaces.embedding_provider import IEmbeddingProvider
from bookrouter.models.book import CatalogEntry
from bookrouter.providers.catalog.json_catalog_store import JsonCatalogStore
from bookrouter.utils.errors import BookRouterError
from bookrouter.utils.logging import get_logger

logger = get_logger(__name__)


async def embed_entries(
    entries: list[CatalogEntry],
    provider: IEmbeddingProvider,
    batch_size: int = 64,
    reembed: bool = False,
) -> tuple[list[CatalogEntry], int]:
    """Return entries with embeddings filled in, and how many were embedded.

    Entries that already carry an embedding are kept unless *reembed*.
    """
    pending = [i for i, e in enumerate(entries) if reembed or not e.embedding]
    result = list(entries)
    for start in range(0, len(pending), batch_size):
        batch = pending[start : start + batch_size]
        vectors = await provider.embed([entries[i].embedding_text() for i in batch])
        for index, vector in zip(batch, vectors):
            result[index] = entries[index].model_copy(update={"embedding": vector})
        logger.info("catalog_batch_embedded", done=start + len(batch), total=len(pending))
    return result, len(pending)


def write_catalog_json(entries: list[CatalogEntry], path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    payload = [entry.model_dump(mode="json") for entry in entries]
    path.write_text(json.dumps(payload, indent=2, ensure_ascii=False), encoding="utf-8")


async def _handle_catalog(args: argparse.Namespace, app_settings: Settings) -> int:
    from bookrouter.providers.embedding.openai_embedding_provider import OpenAIEmbeddingProvider

    source = Path(args.file)
    if not source.exists():
        print(f"Error: catalog file not found: {source}", file=sys.stderr)
        return 1

    provider = OpenAIEmbeddingProvider(settings=app_settings)
    if not provider.is_available():
        print("Error: no embedding provider configured (set OPENAI_API_KEY).", file=sys.stderr)
        return 1

    entries = await JsonCatalogStore.from_file(source).list_entries()
    print(f"Loaded {len(entries)} catalog entries from {source}")

    embedded, count = await embed_entries(entries, provider, args.batch_size, args.reembed)
    print(f"  Embedded: {count}  (dimension {provider.get_dimension()})")

    if args.target == "json":
        output = Path(args.output or source)
        write_catalog_json(embedded, output)
        print(f"  Wrote: {output}")
        return 0

    from bookrouter.providers.catalog.chromadb_catalog_store import ChromaDBCatalogStore

    store = ChromaDBCatalogStore(
        persist_directory=app_settings.chromadb_persist_dir,
        collection_name=app_settings.chromadb_collection,
    )
    written = await store.upsert_entries(embedded)
    print(f"  Upserted: {written} into '{app_settings.chromadb_collection}'")
    return 0


async def _handle_stats(app_settings: Settings) -> int:
    from bookrouter.main import _build_catalog_store

    store = _build_catalog_store(app_settings)
    entries = await store.list_entries()
    themes = Counter(theme for entry in entries for theme in entry.themes)

    print("Catalog Statistics")
    print("=" * 40)
    print(f"  Backend:          {store.get_provider_name()}")
    print(f"  Entries:          {len(entries)}")
    print(f"  Favorites:        {sum(1 for e in entries if e.favorite)}")
    print(f"  Missing vectors:  {sum(1 for e in entries if not e.embedding)}")
    if themes:
        print("\n  Entries by theme:")
        for theme, count in sorted(themes.items()):
            print(f"    {theme:<15} {count}")
    return 0


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="python -m bookrouter.cli.ingest",
        description="Embed and load the curated book catalog.",
    )
    subparsers = parser.add_subparsers(dest="command", help="Ingestion commands")

    catalog_parser = subparsers.add_parser("catalog", help="Embed a catalog JSON file")
    catalog_parser.add_argument("--file", required=True, help="Path to the catalog JSON file")
    catalog_parser.add_argument(
        "--target",
        choices=("chromadb", "json"),
        default="chromadb",
        help="Where to write the embedded catalog (default: chromadb)",
    )
    catalog_parser.add_argument("--output", default=None, help="Output path for --target json")
    catalog_parser.add_argument("--batch-size", dest="batch_size", type=int, default=64)
    catalog_parser.add_argument(
        "--reembed",
        action="store_true",
        help="Recompute embeddings even for entries that already have one",
    )

    subparsers.add_parser("stats", help="Show catalog statistics")
    return parser


def main() -> None:
    parser = _build_parser()
    args = parser.parse_args()

    if args.command is None:
        parser.print_help()
        sys.exit(1)

    app_settings = Settings()
    try:
        if args.command == "stats":
            exit_code = asyncio.run(_handle_stats(app_settings))
        else:
            exit_code = asyncio.run(_handle_catalog(args, app_settings))
    except BookRouterError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        exit_code = 1
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
