"""
Intensity / frequency classification of pivot cells into color tiers.

Clinical mention counts are heavily right-skewed: a few symptoms dominate
every session. Cell intensities are therefore normalized against the
matrix maximum and also log-rescaled,

    log_scaled = ln(1 + 9 * normalized) / ln(10)

and the tier is read off max(normalized, log_scaled), so the log transform
can lift a small cell but never demote a large one.
"""

from collections import OrderedDict
from dataclasses import dataclass

import numpy as np
import pandas as pd

from pophealth.config import DEFAULT_TIER_SCALE, ColorTier, theme_palette


@dataclass(frozen=True)
class ClassifiedPoint:
    row_label: str
    column_label: str
    intensity: int
    frequency: int
    color_tier: ColorTier

    def to_dict(self):
        return {
            'rowLabel': self.row_label,
            'columnLabel': self.column_label,
            'intensity': self.intensity,
            'frequency': self.frequency,
            'colorTier': self.color_tier.value,
        }


def log_scale(normalized):
    """Log rescaling of a value (or array) already clamped to [0, 1]."""
    return np.log1p(np.asarray(normalized, dtype=float) * 9) / np.log(10)


def tier_score(intensity, max_value):
    """max(normalized, log-scaled) for one intensity; 0 when max_value is not positive."""
    if max_value <= 0:
        return 0.0
    normalized = min(max(intensity / max_value, 0.0), 1.0)
    return float(max(normalized, log_scale(normalized)))


def color_tier(score, scale=DEFAULT_TIER_SCALE):
    """Tier for a score in [0, 1] under a TierScale."""
    for threshold, tier in scale.steps():
        if score >= threshold:
            return tier
    return ColorTier.LOWEST


def tier_color(tier, theme='iridis'):
    return theme_palette(theme)[ColorTier(tier)]


def row_summaries(matrix):
    """
    Per-row total intensity and frequency.

    Returns:
        DataFrame: row, intensity (sum of cells), frequency (non-zero cells),
            in the matrix's row order
    """
    if not matrix.rows:
        return pd.DataFrame(columns=['row', 'intensity', 'frequency'])
    cells = matrix.cells
    return pd.DataFrame({
        'row': list(matrix.rows),
        'intensity': cells.sum(axis=1).astype(int).to_numpy(),
        'frequency': (cells > 0).sum(axis=1).astype(int).to_numpy(),
    })


def classify(matrix, scale=DEFAULT_TIER_SCALE):
    """
    One ClassifiedPoint per non-zero cell.

    Args:
        matrix: PivotMatrix
        scale: TierScale thresholds

    Returns:
        list: ClassifiedPoint in row order, then column order. `frequency`
            is the row's count of non-zero columns.
    """
    if matrix.is_empty:
        return []

    cells = matrix.cells
    frequencies = (cells > 0).sum(axis=1)
    points = []
    for row in matrix.rows:
        frequency = int(frequencies.loc[row])
        if frequency == 0:
            continue
        for column in matrix.columns:
            intensity = int(cells.at[row, column])
            if intensity <= 0:
                continue
            points.append(ClassifiedPoint(
                row_label=row,
                column_label=column,
                intensity=intensity,
                frequency=frequency,
                color_tier=color_tier(tier_score(intensity, matrix.max_value), scale),
            ))
    return points


def group_points_by_row(points):
    """Points grouped per row label, preserving first-seen row order (bubble chart series)."""
    groups = OrderedDict()
    for point in points:
        groups.setdefault(point.row_label, []).append(point)
    return groups


def points_frame(points, theme=None):
    """ClassifiedPoints as a DataFrame, with a hex `color` column when a theme is given."""
    columns = ['row', 'column', 'intensity', 'frequency', 'tier']
    df = pd.DataFrame(
        [(p.row_label, p.column_label, p.intensity, p.frequency, p.color_tier.value) for p in points],
        columns=columns,
    )
    if theme is not None:
        palette = theme_palette(theme)
        df['color'] = df['tier'].map(lambda t: palette[ColorTier(t)])
    return df
