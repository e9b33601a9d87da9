"""AI metadata extraction for uploaded scores."""

from .extractor import ExtractionError, MetadataExtractor

__all__ = ["ExtractionError", "MetadataExtractor"]
