"""
Count <-> percentage projection for chart-ready category lists.

Percentages are always derived from the raw count and its total. A
projected value is never projected again, and every projected item keeps
its raw count so tooltips can show ground truth in either display mode.
"""

import math
from dataclasses import dataclass
from typing import Union

import pandas as pd

from pophealth.config import DisplayMode
from pophealth.exceptions import ConfigurationError


def _round_half_up(x):
    return int(math.floor(x + 0.5))


def percentage_of(value, total):
    """Whole-number percentage of total; 0 when total is 0."""
    if not total:
        return 0
    return _round_half_up(100.0 * value / total)


def project(value, total, mode):
    """
    Project a raw count for display.

    Args:
        value: Raw count
        total: Denominator for percentage mode
        mode: DisplayMode or 'count' / 'percentage'

    Returns:
        The count unchanged in count mode, else round(100 * value / total)
    """
    mode = DisplayMode.parse(mode)
    if mode is DisplayMode.COUNT:
        return value
    return percentage_of(value, total)


@dataclass(frozen=True)
class ProjectedItem:
    id: str
    value: Union[int, float]
    raw_value: int
    percentage: int

    def to_dict(self):
        return {'id': self.id, 'value': self.value, 'rawValue': self.raw_value, 'percentage': self.percentage}


def _as_pairs(counts):
    if isinstance(counts, pd.Series):
        return [(str(k), int(v)) for k, v in counts.items()]
    if isinstance(counts, dict):
        return [(str(k), int(v)) for k, v in counts.items()]
    return [(str(k), int(v)) for k, v in counts]


def project_counts(counts, mode, category_count=None, total=None):
    """
    Chart-ready {id, value, rawValue, percentage} items.

    Items are sorted by raw count descending (ties by id), so switching the
    display mode never reorders categories, then cut to `category_count`.

    Args:
        counts: Series, dict, or iterable of (id, count)
        mode: DisplayMode
        category_count: Top-N to keep (None keeps all)
        total: Percentage denominator; defaults to the sum of all counts
            before truncation

    Returns:
        list: ProjectedItem
    """
    mode = DisplayMode.parse(mode)
    if category_count is not None and category_count < 1:
        raise ConfigurationError('category_count must be at least 1', {'category_count': category_count})

    pairs = _as_pairs(counts)
    if total is None:
        total = sum(count for _, count in pairs)

    pairs.sort(key=lambda pair: (-pair[1], pair[0]))
    if category_count is not None:
        pairs = pairs[:category_count]

    return [
        ProjectedItem(
            id=item_id,
            value=project(count, total, mode),
            raw_value=count,
            percentage=percentage_of(count, total),
        )
        for item_id, count in pairs
    ]


def project_buckets(buckets, mode):
    """
    Project risk buckets, keeping band order and every band.

    Returns:
        list: ProjectedItem with id = bucket display label
    """
    mode = DisplayMode.parse(mode)
    total = sum(b.patient_count for b in buckets)
    return [
        ProjectedItem(
            id=bucket.display_label,
            value=project(bucket.patient_count, total, mode),
            raw_value=bucket.patient_count,
            percentage=percentage_of(bucket.patient_count, total),
        )
        for bucket in buckets
    ]


def items_frame(items):
    """ProjectedItems as a DataFrame (id, value, rawValue, percentage) for charting."""
    return pd.DataFrame([item.to_dict() for item in items], columns=['id', 'value', 'rawValue', 'percentage'])
