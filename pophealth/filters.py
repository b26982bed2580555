"""
Population filter: narrow the event and patient tables to a selection.
"""

from dataclasses import dataclass, fields as dc_fields
from typing import Optional, Tuple

import pandas as pd
from loguru import logger

from pophealth import fields as F
from pophealth.exceptions import ConfigurationError
from pophealth.ingest import normalize_session_date

ALL = 'all'

# Criteria attribute -> event column it tests
EVENT_PREDICATES = {
    'diagnosis': F.DIAGNOSIS,
    'diagnostic_category': F.CATEGORY,
    'symptom': F.SYMPTOM,
    'hrsn_indicator': F.HRSN,
    'icd10_code': F.ICD10,
}

# Criteria attributes that select patients through their events
EVENT_LEVEL = tuple(EVENT_PREDICATES) + ('start_date', 'end_date')


def _is_noop(value):
    if isinstance(value, tuple):
        return not value
    return value is None or (isinstance(value, str) and value.strip().lower() in ('', ALL))


def _patient_id_tuple(value):
    if _is_noop(value):
        return ()
    if isinstance(value, (str, int)):
        value = (value,)
    return tuple(dict.fromkeys(str(v).strip() for v in value if not F.is_missing(v)))


@dataclass(frozen=True)
class Criteria:
    """
    Optional equality predicates; "all" (or None) disables a predicate.

    Event predicates must all hold on the same event. `hrsn_flag` names a
    patient-level HRSN indicator column (e.g. "housing_insecurity") and
    keeps only patients flagged for it. `patient_ids` (one id or several)
    keeps only those patients. `start_date` and `end_date` bound the
    session date of the kept events, both ends inclusive.
    """
    diagnosis: Optional[str] = ALL
    diagnostic_category: Optional[str] = ALL
    symptom: Optional[str] = ALL
    hrsn_indicator: Optional[str] = ALL
    icd10_code: Optional[str] = ALL
    hrsn_flag: Optional[str] = ALL
    patient_ids: Tuple[str, ...] = ()
    start_date: Optional[str] = None
    end_date: Optional[str] = None

    def __post_init__(self):
        if not _is_noop(self.hrsn_flag) and self.hrsn_flag not in F.HRSN_INDICATORS:
            raise ConfigurationError(
                'Unknown HRSN flag',
                {'hrsn_flag': self.hrsn_flag, 'allowed': list(F.HRSN_INDICATORS)}
            )
        # frozen: normalized values go through object.__setattr__
        object.__setattr__(self, 'patient_ids', _patient_id_tuple(self.patient_ids))
        for name in ('start_date', 'end_date'):
            value = getattr(self, name)
            if _is_noop(value):
                object.__setattr__(self, name, None)
                continue
            day = normalize_session_date(value)
            if day is None:
                raise ConfigurationError('Unparseable date bound', {name: str(value)})
            object.__setattr__(self, name, day)
        if self.start_date and self.end_date and self.start_date > self.end_date:
            raise ConfigurationError(
                'Date range is reversed',
                {'start_date': self.start_date, 'end_date': self.end_date}
            )

    def active(self):
        """Active predicates as {attribute: value}."""
        active = {}
        for f in dc_fields(self):
            value = getattr(self, f.name)
            if not _is_noop(value):
                active[f.name] = value.strip() if isinstance(value, str) else value
        return active

    @property
    def is_empty(self):
        return not self.active()


@dataclass(frozen=True)
class PopulationSlice:
    events: pd.DataFrame
    patients: pd.DataFrame
    unique_patient_count: int

    @property
    def is_empty(self):
        return self.unique_patient_count == 0 and self.patients.empty


def filter_population(events, patients, criteria=None):
    """
    Apply criteria to the event and patient tables.

    Args:
        events: Canonical events DataFrame
        patients: Canonical patients DataFrame
        criteria: Criteria (None means no filtering)

    Returns:
        PopulationSlice: surviving events, surviving patients, and the
            number of distinct patients among the surviving events.
            An empty selection stays empty.
    """
    criteria = criteria or Criteria()
    active = criteria.active()

    event_mask = pd.Series(True, index=events.index)
    for attribute, column in EVENT_PREDICATES.items():
        if attribute in active:
            matches = events[column].astype('string').str.strip().eq(active[attribute])
            event_mask &= matches.fillna(False).astype(bool)

    # ISO day strings compare chronologically
    dates = events[F.SESSION_DATE].astype('string')
    if 'start_date' in active:
        event_mask &= dates.ge(active['start_date']).fillna(False).astype(bool)
    if 'end_date' in active:
        event_mask &= dates.le(active['end_date']).fillna(False).astype(bool)

    patient_mask = pd.Series(True, index=patients.index)
    if 'hrsn_flag' in active:
        patient_mask &= patients[active['hrsn_flag']].fillna(False).astype(bool)
    if 'patient_ids' in active:
        patient_mask &= patients[F.PATIENT_ID].isin(set(active['patient_ids']))
        event_mask &= events[F.PATIENT_ID].isin(set(active['patient_ids']))
    kept_patients = patients[patient_mask]

    if 'hrsn_flag' in active:
        event_mask &= events[F.PATIENT_ID].isin(set(kept_patients[F.PATIENT_ID]))
    subset = events[event_mask]

    # Event predicates select patients through their matching events
    if any(attribute in active for attribute in EVENT_LEVEL):
        kept_patients = kept_patients[kept_patients[F.PATIENT_ID].isin(set(subset[F.PATIENT_ID]))]

    unique_patient_count = len(set(subset[F.PATIENT_ID].dropna()))

    logger.debug(
        'Filter {} kept {} of {} events, {} of {} patients ({} with events)',
        active or 'none', len(subset), len(events), len(kept_patients), len(patients),
        unique_patient_count
    )
    if active and unique_patient_count == 0:
        logger.debug('Selection {} matched no patients', active)

    return PopulationSlice(
        events=subset.reset_index(drop=True),
        patients=kept_patients.reset_index(drop=True),
        unique_patient_count=unique_patient_count,
    )
