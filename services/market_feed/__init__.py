"""
Market Feed

In-memory quote book (the price source for trading) and an optional
Yahoo Finance polling feed that keeps it fresh.
"""

from .quote_book import CATALOGUE, QuoteBook, StockListing, build_listing

__all__ = [
    'CATALOGUE',
    'QuoteBook',
    'StockListing',
    'build_listing',
]
