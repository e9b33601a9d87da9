"""Keyword-based instrument family guessing for newly created instruments."""

from .models import Instrument

# Checked in order; first family with a matching keyword wins.
FAMILY_KEYWORDS: list[tuple[str, tuple[str, ...]]] = [
    (Instrument.Family.WOODWINDS, ("flute", "piccolo", "oboe", "clarinet", "bassoon", "saxophone", "sax")),
    (Instrument.Family.BRASS, ("trumpet", "trombone", "horn", "tuba", "euphonium", "cornet", "flugelhorn")),
    (Instrument.Family.STRINGS, ("violin", "viola", "cello", "bass", "harp", "guitar")),
    (Instrument.Family.PERCUSSION, ("drum", "timpani", "percussion", "marimba", "xylophone", "cymbal", "triangle")),
    (Instrument.Family.KEYBOARD, ("piano", "keyboard", "organ", "celeste")),
    (Instrument.Family.VOCALS, ("voice", "vocal", "soprano", "alto", "tenor", "baritone", "chorus")),
]


def guess_instrument_family(name: str) -> str:
    """
    Guess an instrument's family from its name.

    Matching is substring based, so "Alto Saxophone" is a woodwind (the
    woodwind list is checked before vocals) and "Bass Clarinet" is too.

    Returns:
        One of the Instrument.Family values, Other when nothing matches
    """
    lowered = name.lower()
    for family, keywords in FAMILY_KEYWORDS:
        if any(keyword in lowered for keyword in keywords):
            return family
    return Instrument.Family.OTHER
