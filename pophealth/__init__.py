"""
PopHealth-Explorer: aggregation, pivoting and classification engine for the
population-health dashboard.
"""

from pophealth.classify import ClassifiedPoint, classify, color_tier, group_points_by_row, row_summaries
from pophealth.config import (
    DEFAULT_RISK_BANDS,
    ColorTier,
    DisplayMode,
    RiskBand,
    Settings,
    TierScale,
    get_settings,
)
from pophealth.exceptions import ConfigurationError, PopHealthError
from pophealth.fallback import Dataset, resolve_source
from pophealth.fields import resolve
from pophealth.filters import Criteria, PopulationSlice, filter_population
from pophealth.ingest import ClinicalEvent, EventKind, PatientRecord, events_frame, patients_frame
from pophealth.pipeline import PipelineCache, PipelineConfig, PipelineResult, run_pipeline
from pophealth.pivot import PivotMatrix, build_pivot, pivot_from_response
from pophealth.projection import ProjectedItem, project, project_buckets, project_counts
from pophealth.risk import RiskBucket, stratify

__version__ = '0.1.0'
