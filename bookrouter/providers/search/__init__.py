"""Web-search provider implementations.

    SerperSearchProvider     -- Google results via Serper (API key required);
                               knowledge panel + answer box + organic hits.
    DuckDuckGoSearchProvider -- free, keyless fallback.
"""

from bookrouter.providers.search.duckduckgo_provider import DuckDuckGoSearchProvider
from bookrouter.providers.search.serper_provider import SerperSearchProvider, extract_isbn

__all__ = ["DuckDuckGoSearchProvider", "SerperSearchProvider", "extract_isbn"]
