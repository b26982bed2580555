"""
Risk stratification: bucket patients by their total recorded event count.

Formula:
    1. Count every event recorded for each known patient under the current
       filter (patients without events count 0)
    2. Place each patient in the single band whose range contains the count
    3. Report the number of patients per band, every band included
"""

from dataclasses import dataclass
from typing import Optional

import numpy as np
import pandas as pd
from loguru import logger

from pophealth import fields as F
from pophealth.config import DEFAULT_RISK_BANDS, RiskBand, validate_bands


@dataclass(frozen=True)
class RiskBucket:
    label: str
    min_count: int
    max_count: Optional[int]
    patient_count: int

    @property
    def band(self):
        return RiskBand(self.label, self.min_count, self.max_count)

    @property
    def display_label(self):
        return self.band.display_label


def patient_event_totals(events, patients=None):
    """
    Events per patient, including known patients with none.

    Args:
        events: Canonical events DataFrame (already filtered)
        patients: Canonical patients DataFrame, or None

    Returns:
        Series: int totals indexed by patient id
    """
    counts = events[F.PATIENT_ID].dropna().value_counts() if len(events) else pd.Series(dtype=int)
    known = []
    if patients is not None and len(patients):
        known = patients[F.PATIENT_ID].dropna().tolist()
    index = list(dict.fromkeys(known + counts.index.tolist()))
    return counts.reindex(index, fill_value=0).astype(int)


def _band_edges(bands):
    # Right-closed integer ranges: (min - 1, max]
    edges = [bands[0].min_count - 1]
    edges += [band.max_count for band in bands[:-1]]
    edges.append(np.inf)
    return edges


def assign_bands(totals, bands=DEFAULT_RISK_BANDS):
    """Band label for every patient total (Series in, Series out)."""
    bands = validate_bands(bands)
    labels = [band.label for band in bands]
    return pd.cut(totals, bins=_band_edges(bands), labels=labels)


def stratify(events, patients=None, bands=DEFAULT_RISK_BANDS):
    """
    Count patients per risk band.

    Args:
        events: Canonical events DataFrame (already filtered)
        patients: Known patients; patients absent from `events` land in the
            band containing 0
        bands: Contiguous RiskBand sequence covering [0, inf)

    Returns:
        list: RiskBucket for every band, in band order, zero counts included
    """
    bands = validate_bands(bands)
    totals = patient_event_totals(events, patients)
    assigned = assign_bands(totals, bands)
    per_band = assigned.value_counts().reindex([b.label for b in bands], fill_value=0)

    buckets = [
        RiskBucket(band.label, band.min_count, band.max_count, int(per_band[band.label]))
        for band in bands
    ]
    logger.debug('Stratified {} patients: {}', len(totals), {b.label: b.patient_count for b in buckets})
    return buckets


def bucket_percentage(bucket, buckets):
    """A bucket's share of all bucketed patients, in percent (0 when there are none)."""
    total = sum(b.patient_count for b in buckets)
    if total == 0:
        return 0.0
    return 100.0 * bucket.patient_count / total
