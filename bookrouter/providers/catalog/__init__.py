"""Catalog store implementations.

    JsonCatalogStore     -- whole collection loaded from a JSON file; numpy
                           cosine similarity.  Default backend.
    ChromaDBCatalogStore -- persistent ChromaDB collection; used when
                           CATALOG_BACKEND=chromadb.  Imported directly by
                           main.py so chromadb stays off the default path.
"""

from bookrouter.providers.catalog.json_catalog_store import JsonCatalogStore

__all__ = ["JsonCatalogStore"]
