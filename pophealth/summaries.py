"""
Category counts feeding the bar and pie charts.

All functions return a pandas Series of counts indexed by category, ready
for projection.project_counts.
"""

import pandas as pd

from pophealth import fields as F
from pophealth.exceptions import ConfigurationError
from pophealth.ingest import counted_mentions

# Categories always shown for standardized demographics, even at zero
STANDARD_CATEGORIES = {
    'age_range': list(F.AGE_RANGES) + ['Other', F.NO_DATA],
    'gender': ['Male', 'Female', 'Other', F.NO_DATA],
    'race': ['White', 'Black', 'Asian', 'Hispanic', 'Other', F.NO_DATA],
}


def item_counts(events, field, unit='events'):
    """
    Count events (or distinct patients) per item.

    Mentions classified as HRSN indicators are counted under hrsn_indicator
    only.

    Args:
        events: Canonical events DataFrame
        field: Item column (symptom_segment, diagnosis, ...)
        unit: 'events' counts mentions, 'patients' counts distinct patients

    Returns:
        Series: counts indexed by item, highest first
    """
    if unit not in ('events', 'patients'):
        raise ConfigurationError('Unknown count unit', {'unit': unit, 'allowed': ['events', 'patients']})
    if events.empty or field not in events.columns:
        return pd.Series(dtype=int, name='count')

    df = counted_mentions(events, field)
    df = df[df[field].notna()]

    if unit == 'patients':
        counts = df.groupby(field)[F.PATIENT_ID].nunique()
    else:
        counts = df.groupby(field).size()
    counts = counts.astype(int).rename('count')
    counts.index.name = field
    return counts.sort_values(ascending=False, kind='mergesort')


def attribute_distribution(patients, attribute):
    """
    Patients per category of a demographic attribute.

    Standardized attributes (age_range, gender, race) are seeded with their
    standard categories so every category is present.

    Returns:
        Series: counts indexed by category
    """
    seeds = STANDARD_CATEGORIES.get(attribute, [])
    if patients.empty or attribute not in patients.columns:
        return pd.Series(0, index=seeds, dtype=int, name='count')

    values = patients[attribute].map(lambda v: F.UNKNOWN if F.is_missing(v) else str(v))
    counts = values.value_counts()
    index = list(dict.fromkeys(seeds + counts.index.tolist()))
    counts = counts.reindex(index, fill_value=0).astype(int).rename('count')
    counts.index.name = attribute
    return counts


def hrsn_prevalence(patients, indicators=F.HRSN_INDICATORS):
    """Patients flagged for each HRSN indicator (indicators missing from the table count 0)."""
    counts = {}
    for indicator in indicators:
        if indicator in patients.columns:
            counts[indicator] = int(patients[indicator].fillna(False).astype(bool).sum())
        else:
            counts[indicator] = 0
    return pd.Series(counts, dtype=int, name='count')
