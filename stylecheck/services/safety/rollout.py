from stylecheck.services.signals.hashing import djb2

BUCKETS = 100


def user_bucket(identifier: str | None) -> int:
    """Stable 0-99 bucket for an identifier, or -1 when there is none."""
    if not identifier:
        return -1
    return djb2(identifier) % BUCKETS


def in_rollout(identifier: str | None, pct: int | float) -> bool:
    """
    Deterministic percentage rollout.

    A given identifier always lands in the same bucket, so raising the
    percentage only ever adds users. Callers without an identifier are
    excluded.
    """
    if not identifier:
        return False
    if pct <= 0:
        return False
    if pct >= BUCKETS:
        return True
    return user_bucket(identifier) < pct
