"""Books-metadata providers.

    GoogleBooksProvider -- Google Books ``volumes`` API; resolves ISBNs and
                          title/author queries to editions.
"""

from bookrouter.providers.book_metadata.google_books_provider import GoogleBooksProvider

__all__ = ["GoogleBooksProvider"]
