"""
Building canonical event and patient frames from raw upstream records.

Every engine stage consumes two DataFrames:

    events:   one row per extracted clinical mention, EVENT_COLUMNS
    patients: one row per patient, PATIENT_COLUMNS + HRSN flag columns

Raw rows may come from the bulk extraction payload ({patients, data}),
from CSV exports, or from ClinicalEvent / PatientRecord objects.
"""

import os
from dataclasses import dataclass, field
from enum import Enum
from typing import Mapping, Optional

import pandas as pd
from loguru import logger

from pophealth import fields as F


EVENT_COLUMNS = [
    F.PATIENT_ID, F.SESSION_DATE, F.SYMPTOM, F.DIAGNOSIS, F.CATEGORY,
    F.HRSN, F.ICD10, F.SYMP_PROB, F.ZCODE_HRSN, F.POSITION,
]

PATIENT_COLUMNS = [F.PATIENT_ID, 'age_range', 'gender', 'race', 'ethnicity', 'zip_code']

PATIENT_COLUMNS_ALL = PATIENT_COLUMNS + list(F.HRSN_INDICATORS)


# =============================================================================
# RECORD TYPES
# =============================================================================

class EventKind(str, Enum):
    SYMPTOM = 'Symptom'
    DIAGNOSIS = 'Diagnosis'
    DIAGNOSTIC_CATEGORY = 'DiagnosticCategory'
    HRSN_INDICATOR = 'HrsnIndicator'


KIND_FIELDS = {
    EventKind.SYMPTOM: F.SYMPTOM,
    EventKind.DIAGNOSIS: F.DIAGNOSIS,
    EventKind.DIAGNOSTIC_CATEGORY: F.CATEGORY,
    EventKind.HRSN_INDICATOR: F.HRSN,
}


@dataclass(frozen=True)
class ClinicalEvent:
    patient_id: str
    kind: EventKind
    label: str
    session_date: str
    diagnostic_category: Optional[str] = None
    diagnosis: Optional[str] = None

    @classmethod
    def from_mapping(cls, record, kind=EventKind.SYMPTOM):
        """Build an event of the given kind from a raw row, resolving aliases."""
        kind = EventKind(kind)
        return cls(
            patient_id=F.patient_id_of(record),
            kind=kind,
            label=F.resolve(record, KIND_FIELDS[kind]),
            session_date=normalize_session_date(F.resolve(record, F.SESSION_DATE)),
            diagnostic_category=F.resolve(record, F.CATEGORY),
            diagnosis=F.resolve(record, F.DIAGNOSIS),
        )

    def to_row(self):
        row = {
            F.PATIENT_ID: self.patient_id,
            F.SESSION_DATE: self.session_date,
            F.CATEGORY: self.diagnostic_category,
            F.DIAGNOSIS: self.diagnosis,
        }
        row[KIND_FIELDS[EventKind(self.kind)]] = self.label
        return row


@dataclass(frozen=True)
class PatientRecord:
    patient_id: str
    attributes: Mapping[str, str] = field(default_factory=dict)
    hrsn_flags: Mapping[str, bool] = field(default_factory=dict)

    @classmethod
    def from_mapping(cls, record):
        """
        Build a PatientRecord from a raw row, defaulting absent attributes.

        Missing demographics become "No Data Available" (or "Unknown" for
        free-form attributes); missing HRSN flags become False.
        """
        attributes = {
            'age_range': F.standard_age_range(record),
            'gender': F.simplify_gender(F.resolve(record, 'gender')),
            'race': F.simplify_race(F.resolve(record, 'race')),
            'ethnicity': str(F.resolve_or_default(record, 'ethnicity')),
            'zip_code': str(F.resolve_or_default(record, 'zip_code')),
        }
        flags = {name: F.is_flag_set(F.resolve(record, name)) for name in F.HRSN_INDICATORS}
        return cls(F.patient_id_of(record), attributes, flags)

    def to_row(self):
        row = {F.PATIENT_ID: self.patient_id}
        for column in PATIENT_COLUMNS[1:]:
            row[column] = self.attributes.get(column, F.default_for(column))
        for name in F.HRSN_INDICATORS:
            row[name] = bool(self.hrsn_flags.get(name, False))
        return row


# =============================================================================
# NORMALIZATION
# =============================================================================

def normalize_session_date(value):
    """
    Canonical ISO date string (YYYY-MM-DD) for a session date.

    Equivalent timestamps written differently ("2024-01-02",
    "2024-01-02T15:30:00Z", "1/2/2024") collapse to the same string.

    Returns:
        str or None: None when the value is missing or unparseable
    """
    if F.is_missing(value):
        return None
    try:
        ts = pd.Timestamp(value)
    except (TypeError, ValueError):
        return None
    if pd.isna(ts):
        return None
    return ts.strftime('%Y-%m-%d')


def _is_hrsn_mention(row):
    return row.get(F.SYMP_PROB) == 'Problem' or row.get(F.ZCODE_HRSN) == 'ZCode/HRSN'


def counted_mentions(events, row_field):
    """Events countable under row_field; HRSN mentions only count under hrsn_indicator."""
    if row_field == F.HRSN or F.HRSN not in events.columns:
        return events
    return events[events[F.HRSN].isna()]


def events_frame(records):
    """
    Canonical events DataFrame from raw rows.

    Args:
        records: DataFrame, list of dicts, or list of ClinicalEvent

    Returns:
        DataFrame: EVENT_COLUMNS, one row per event with a patient id.
            Missing item labels stay None; missing positions become 0.
    """
    if isinstance(records, pd.DataFrame):
        df = records.copy()
    else:
        rows = [r.to_row() if isinstance(r, ClinicalEvent) else dict(r) for r in records or []]
        df = pd.DataFrame(rows)

    if df.empty:
        return pd.DataFrame(columns=EVENT_COLUMNS)

    df = F.canonicalize_columns(df, EVENT_COLUMNS)
    for column in EVENT_COLUMNS:
        if column not in df.columns:
            df[column] = None

    df[F.PATIENT_ID] = df.apply(F.patient_id_of, axis=1)
    df[F.SESSION_DATE] = df[F.SESSION_DATE].map(normalize_session_date)
    df[F.POSITION] = pd.to_numeric(df[F.POSITION], errors='coerce').fillna(0).astype(int)

    for column in F.ITEM_FIELDS + (F.SYMP_PROB, F.ZCODE_HRSN):
        df[column] = df[column].map(lambda v: None if F.is_missing(v) else str(v).strip())

    # HRSN indicators are symptom mentions flagged as a social-needs problem
    derive = df[F.HRSN].isna() & df.apply(_is_hrsn_mention, axis=1)
    df.loc[derive, F.HRSN] = df.loc[derive, F.SYMPTOM]

    orphaned = df[F.PATIENT_ID].isna()
    if orphaned.any():
        logger.debug('Dropping {} events without a patient id', int(orphaned.sum()))
        df = df[~orphaned]

    return df[EVENT_COLUMNS].reset_index(drop=True)


def patients_frame(records):
    """
    Canonical patients DataFrame, one row per patient id (first row wins).

    Args:
        records: DataFrame, list of dicts, or list of PatientRecord

    Returns:
        DataFrame: PATIENT_COLUMNS_ALL
    """
    if isinstance(records, pd.DataFrame):
        raw = records.to_dict('records')
    else:
        raw = list(records or [])

    rows = []
    for record in raw:
        patient = record if isinstance(record, PatientRecord) else PatientRecord.from_mapping(record)
        if patient.patient_id is None:
            continue
        rows.append(patient.to_row())

    if not rows:
        return pd.DataFrame(columns=PATIENT_COLUMNS_ALL)

    df = pd.DataFrame(rows, columns=PATIENT_COLUMNS_ALL)
    return df.drop_duplicates(subset=F.PATIENT_ID, keep='first').reset_index(drop=True)


def patients_from_events(events):
    """Known patients inferred from the event table when no patient table exists."""
    ids = events[F.PATIENT_ID].dropna().unique().tolist() if len(events) else []
    return patients_frame([{F.PATIENT_ID: pid} for pid in ids])


# =============================================================================
# SOURCES
# =============================================================================

def from_extraction(payload):
    """
    Split a bulk extraction result {patients: [...], data: [...]} into frames.

    Returns:
        tuple: (events, patients)
    """
    payload = payload or {}
    return events_frame(payload.get('data') or []), patients_frame(payload.get('patients') or [])


def load_directory(data_dir):
    """
    Load extracted_symptoms.csv and patients.csv from a directory.

    Absent files yield empty frames.

    Returns:
        tuple: (events, patients)
    """
    data_dir = str(data_dir)
    events_path = os.path.join(data_dir, 'extracted_symptoms.csv')
    patients_path = os.path.join(data_dir, 'patients.csv')

    if os.path.exists(events_path):
        events = events_frame(pd.read_csv(events_path, dtype=str, low_memory=False))
    else:
        logger.warning('No extracted_symptoms.csv in {}', data_dir)
        events = events_frame([])

    if os.path.exists(patients_path):
        patients = patients_frame(pd.read_csv(patients_path, dtype=str, low_memory=False))
    else:
        logger.warning('No patients.csv in {}', data_dir)
        patients = patients_frame([])

    logger.info('Loaded {} events for {} patients from {}', len(events), len(patients), data_dir)
    return events, patients
