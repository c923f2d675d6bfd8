"""Severity buckets: display categories and the raw injury codes behind them."""

from __future__ import annotations

from collections.abc import Iterable

# Ordered: display buckets and their raw MostSevereInjuryType codes.
SEVERITY_BUCKETS: dict[str, tuple[str, ...]] = {
    "Death": ("Dead at Scene", "Died in Hospital", "Dead on Arrival"),
    "Major Injury": ("Suspected Serious Injury",),
    "Minor Injury": ("Suspected Minor Injury", "Possible Injury"),
    "None": ("No Apparent Injury", "Unknown"),
}

BUCKET_NAMES: tuple[str, ...] = tuple(SEVERITY_BUCKETS)

_RAW_TO_BUCKET = {
    raw: bucket for bucket, codes in SEVERITY_BUCKETS.items() for raw in codes
}


def raw_to_bucket(raw: str | None) -> str | None:
    """Map a raw injury code to its bucket.

    Unmapped codes are returned unchanged so newly introduced source values
    still reach the client.
    """
    if not raw:
        return None
    return _RAW_TO_BUCKET.get(raw, raw)


def buckets_to_raw_values(buckets: Iterable[str | None]) -> list[str]:
    """Expand bucket names into raw codes, keeping declaration order."""
    raw: list[str] = []
    for bucket in buckets:
        if bucket is None:
            continue
        raw.extend(SEVERITY_BUCKETS.get(bucket, (bucket,)))
    return raw


def merge_bucket_counts(rows: Iterable[tuple[str | None, int]]) -> list[dict]:
    """Fold (raw code, count) pairs into per-bucket counts."""
    totals: dict[str, int] = {}
    for raw, count in rows:
        bucket = raw_to_bucket(raw)
        if bucket is None:
            continue
        totals[bucket] = totals.get(bucket, 0) + int(count)
    return [{"severity": bucket, "count": count} for bucket, count in totals.items()]
