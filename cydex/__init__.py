"""CyDex scraper: field office extraction and deduplication pipeline."""

__version__ = "1.0.0"
