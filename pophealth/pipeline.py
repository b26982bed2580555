"""
End-to-end engine run: filter -> pivot -> classify, filter -> stratify,
then projection of the chart-ready lists.

Every call recomputes everything from its inputs and returns a new
PipelineResult; nothing is patched in place between calls.
"""

import hashlib
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

import pandas as pd
from loguru import logger

from pophealth import fields as F
from pophealth.classify import ClassifiedPoint, classify
from pophealth.config import (
    DEFAULT_RISK_BANDS,
    DisplayMode,
    RiskBand,
    TierScale,
    scale_for_theme,
    validate_bands,
)
from pophealth.exceptions import ConfigurationError
from pophealth.fallback import Dataset, events_candidate, resolve_source, server_candidate
from pophealth.filters import Criteria, PopulationSlice, filter_population
from pophealth.ingest import patients_from_events
from pophealth.pivot import PivotMatrix, build_pivot
from pophealth.projection import ProjectedItem, project_buckets
from pophealth.risk import RiskBucket, stratify


@dataclass(frozen=True)
class PipelineConfig:
    criteria: Criteria = field(default_factory=Criteria)
    row_field: str = F.SYMPTOM
    display_mode: DisplayMode = DisplayMode.COUNT
    color_theme: str = 'iridis'
    category_count: int = 10
    max_pivot_rows: Optional[int] = 400
    dedupe: bool = True
    bands: Tuple[RiskBand, ...] = DEFAULT_RISK_BANDS
    tier_scale: Optional[TierScale] = None

    def __post_init__(self):
        if self.row_field not in F.ITEM_FIELDS:
            raise ConfigurationError(
                'Unsupported row field',
                {'row_field': self.row_field, 'allowed': list(F.ITEM_FIELDS)}
            )
        if self.category_count < 1:
            raise ConfigurationError('category_count must be at least 1', {'category_count': self.category_count})
        object.__setattr__(self, 'display_mode', DisplayMode.parse(self.display_mode))
        object.__setattr__(self, 'bands', validate_bands(self.bands))
        scale_for_theme(self.color_theme)

    @property
    def scale(self):
        return self.tier_scale or scale_for_theme(self.color_theme)

    @classmethod
    def from_settings(cls, settings, **overrides):
        """Defaults from a Settings object, overridden per call."""
        values = {
            'display_mode': settings.display_mode,
            'color_theme': settings.color_theme,
            'category_count': settings.category_count,
            'max_pivot_rows': settings.max_pivot_rows,
        }
        values.update(overrides)
        return cls(**values)


@dataclass(frozen=True)
class PipelineResult:
    population: PopulationSlice
    matrix: PivotMatrix
    points: List[ClassifiedPoint]
    buckets: List[RiskBucket]
    items: Dataset
    risk_items: List[ProjectedItem]

    @property
    def has_data(self):
        return self.population.unique_patient_count > 0


def run_pipeline(events, patients=None, config=None, server_payload=None):
    """
    Run the full engine for one configuration.

    Args:
        events: Canonical events DataFrame
        patients: Canonical patients DataFrame; inferred from events when None
        config: PipelineConfig
        server_payload: Optional pre-aggregated server response; its
            `<row_field>Data` list is preferred over recomputation when the
            selection is unfiltered

    Returns:
        PipelineResult
    """
    config = config or PipelineConfig()
    if patients is None:
        patients = patients_from_events(events)

    population = filter_population(events, patients, config.criteria)

    matrix = build_pivot(
        population.events,
        config.row_field,
        dedupe=config.dedupe,
        max_rows=config.max_pivot_rows,
    )
    points = classify(matrix, config.scale)

    buckets = stratify(population.events, population.patients, config.bands)
    risk_items = project_buckets(buckets, config.display_mode)

    candidates = []
    # Server aggregates are computed over the whole population
    if server_payload is not None and config.criteria.is_empty:
        candidates.append(server_candidate(
            server_payload, _server_key(config.row_field), config.display_mode, config.category_count
        ))
    candidates.append(events_candidate(
        population.events, config.row_field, config.display_mode, config.category_count
    ))
    items = resolve_source(candidates)

    logger.debug(
        'Pipeline {}: {} patients, {} rows, {} points',
        config.row_field, population.unique_patient_count, len(matrix.rows), len(points)
    )
    return PipelineResult(population, matrix, points, buckets, items, risk_items)


def _server_key(row_field):
    # symptom_segment -> symptomSegmentData
    head, *rest = row_field.split('_')
    return head + ''.join(part.title() for part in rest) + 'Data'


# =============================================================================
# MEMOIZATION
# =============================================================================

def frame_fingerprint(df):
    """Content hash of a DataFrame; row order is part of the content."""
    if df is None:
        return None
    if df.empty:
        return (tuple(df.columns), 0)
    hashed = pd.util.hash_pandas_object(df.astype(str), index=False)
    return (tuple(df.columns), len(df), hashlib.sha256(hashed.to_numpy().tobytes()).hexdigest())


class PipelineCache:
    """
    Memoizes run_pipeline keyed by (records hash, criteria, row field,
    display mode, theme, category count).

    Results are returned as stored; they are immutable by contract, so a
    cached hit and a fresh run are interchangeable.
    """

    def __init__(self, maxsize=32):
        self.maxsize = maxsize
        self._results = {}

    def key(self, events, patients, config):
        return (
            frame_fingerprint(events),
            frame_fingerprint(patients),
            config,
        )

    def run(self, events, patients=None, config=None):
        config = config or PipelineConfig()
        key = self.key(events, patients, config)
        if key in self._results:
            logger.debug('Pipeline cache hit for {}', config.row_field)
            return self._results[key]
        result = run_pipeline(events, patients, config)
        if len(self._results) >= self.maxsize:
            # Evict oldest entry
            self._results.pop(next(iter(self._results)))
        self._results[key] = result
        return result

    def clear(self):
        self._results.clear()

    def __len__(self):
        return len(self._results)
