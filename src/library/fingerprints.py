"""Content and work fingerprints used to spot scores already in the library."""

import hashlib
import re


def content_hash(data: bytes) -> str:
    """Hex SHA-256 of a file's bytes."""
    return hashlib.sha256(data).hexdigest()


def normalise_for_fingerprint(text: str | None) -> str:
    """Lowercase, drop punctuation, collapse whitespace."""
    text = re.sub(r"[^\w\s]", "", (text or "").lower())
    return re.sub(r"\s+", " ", text).strip()


def work_fingerprint(title: str | None, composer: str | None) -> str:
    """
    Short hash of normalised title and composer.

    "The Liberty Bell" by "John Philip Sousa" and "the liberty bell!" by
    "john philip sousa" share a fingerprint. An empty title has none.
    """
    normalised_title = normalise_for_fingerprint(title)
    if not normalised_title:
        return ""
    combined = f"{normalised_title}::{normalise_for_fingerprint(composer)}"
    return hashlib.sha256(combined.encode()).hexdigest()[:16]
