import json

from stylecheck.core.constants import NO_SIGNALS_HASH
from stylecheck.models.signals import StyleSignals


def djb2(text: str) -> int:
    """32-bit djb2 variant (xor) used for cache keys and rollout buckets."""
    value = 5381
    for char in text:
        value = (((value << 5) + value) ^ ord(char)) & 0xFFFFFFFF
    return value


def canonical_signals(signals: StyleSignals) -> dict:
    """Confidence-free view of a signals record with a fixed key order."""
    palette = sorted({color.value for color in signals.palette.colors})
    return {
        "v": signals.version,
        "a": {"p": signals.aesthetic.primary.value, "s": signals.aesthetic.secondary.value},
        "f": signals.formality.band.value,
        "st": signals.statement.level.value,
        "se": signals.season.heaviness.value,
        "pt": signals.pattern.level.value,
        "m": signals.material.family.value,
        "pa": palette,
    }


def signals_hash(signals: StyleSignals | None) -> str:
    """
    Deterministic hash of the categorical content of a signals record.

    Two records that differ only in confidence values hash the same; any
    categorical difference changes the hash.
    """
    if signals is None:
        return NO_SIGNALS_HASH
    payload = json.dumps(canonical_signals(signals), separators=(",", ":"))
    return f"{djb2(payload):08x}"
