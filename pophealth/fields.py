"""
Field resolution across the inconsistent schemas the dashboard receives.

Upstream sources disagree on naming: the extraction table says `dos_date`,
the pivot API says `date`, older uploads say `transportation_needs` where the
patient table says `access_to_transportation`, and patient rows arrive keyed
by either `id` or `patient_id`. Everything downstream works on canonical
names only; this module is the one place that knows the aliases.
"""

import re

import pandas as pd


# =============================================================================
# CANONICAL FIELDS & ALIASES
# =============================================================================

PATIENT_ID = 'patient_id'
SESSION_DATE = 'session_date'
SYMPTOM = 'symptom_segment'
DIAGNOSIS = 'diagnosis'
CATEGORY = 'diagnostic_category'
HRSN = 'hrsn_indicator'
ICD10 = 'icd10_code'
SYMP_PROB = 'symp_prob'
ZCODE_HRSN = 'zcode_hrsn'
POSITION = 'position_in_text'

# Canonical name -> alternative spellings, tried in order
FIELD_ALIASES = {
    PATIENT_ID: ('patientId', 'id', 'patientid', 'patient_identifier', 'mrn', 'medical_record_number'),
    SESSION_DATE: ('dos_date', 'dosDate', 'date_of_service', 'service_date', 'encounter_date', 'date'),
    SYMPTOM: ('symptomSegment', 'symptom_wording', 'symptomWording', 'symptom'),
    DIAGNOSIS: ('diagnosis_name',),
    CATEGORY: ('diagnosticCategory', 'category'),
    HRSN: ('hrsnIndicator', 'hrsn_category'),
    ICD10: ('diagnosis_icd10_code', 'icd10Code', 'icd_code'),
    SYMP_PROB: ('sympProb',),
    ZCODE_HRSN: ('zCodeHrsn', 'z_code_hrsn'),
    POSITION: ('positionInText',),
    'age_range': ('ageRange', 'agerange'),
    'age': ('patient_age', 'age_years'),
    'gender': ('sex', 'patient_gender', 'patient_sex'),
    'race': ('patient_race', 'racial_background'),
    'ethnicity': ('patient_ethnicity', 'ethnic_background'),
    'zip_code': ('zipcode', 'zip', 'postal_code', 'patient_zip'),
    'access_to_transportation': ('transportation_needs', 'transportation_access', 'transportation'),
    'housing_insecurity': ('housing_status', 'housingStatus', 'housing_instability'),
    'food_insecurity': ('food_status', 'foodStatus', 'food_access'),
    'financial_strain': ('financial_status', 'financialStatus'),
    'utility_insecurity': ('utilities', 'utility_status'),
    'has_a_car': ('owns_car', 'has_vehicle', 'car_ownership'),
    'veteran_status': ('is_veteran', 'military_status'),
    'education_level': ('education', 'highest_education'),
}

# Row fields the pivot and summaries can group by
ITEM_FIELDS = (SYMPTOM, DIAGNOSIS, CATEGORY, HRSN, ICD10)

HRSN_INDICATORS = (
    'housing_insecurity',
    'food_insecurity',
    'financial_strain',
    'access_to_transportation',
    'utility_insecurity',
)

COUNT_FIELDS = (POSITION, 'symptom_segments_in_note')

UNKNOWN = 'Unknown'
NO_DATA = 'No Data Available'

_MISSING_STRINGS = {'', 'null', 'undefined', 'none', 'nan'}
_TRUTHY = {'yes', 'y', 'true', 't', '1'}


# =============================================================================
# RESOLUTION
# =============================================================================

def is_missing(value):
    """True for None, NaN/NaT and the empty-ish strings uploads use for 'no value'."""
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip().lower() in _MISSING_STRINGS
    try:
        return bool(pd.isna(value))
    except (TypeError, ValueError):
        # Containers are never "missing" as a whole
        return False


def resolve(record, field):
    """
    Look up a canonical field on a record, falling back through its aliases.

    Args:
        record: Mapping (dict or pandas Series)
        field: Canonical field name

    Returns:
        The first present, non-missing value, or None
    """
    for name in (field,) + FIELD_ALIASES.get(field, ()):
        if name in record:
            value = record[name]
            if not is_missing(value):
                return value
    return None


def default_for(field):
    """Deterministic stand-in for a missing field."""
    if field in HRSN_INDICATORS:
        return False
    if field in COUNT_FIELDS:
        return 0
    return UNKNOWN


def resolve_or_default(record, field):
    value = resolve(record, field)
    return default_for(field) if value is None else value


def patient_id_of(record):
    """Patient identifier as a string, accepting both `id` and `patient_id` shapes."""
    value = resolve(record, PATIENT_ID)
    if value is None:
        return None
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return str(value).strip()


def canonicalize_columns(df, fields=None):
    """
    Add canonical columns to a DataFrame, coalescing their aliases row by row.

    Rows from mixed sources may carry a value under different spellings
    (`dos_date` on one row, `date` on the next); each canonical cell takes
    the first non-missing value in alias order. Alias columns are kept.

    Args:
        df: Input DataFrame (not modified)
        fields: Canonical fields to resolve (default: every known field)

    Returns:
        DataFrame: Copy with canonical columns
    """
    df = df.copy()
    for field in fields or FIELD_ALIASES:
        present = [c for c in (field,) + FIELD_ALIASES.get(field, ()) if c in df.columns]
        if not present:
            continue
        combined = None
        for column in present:
            values = df[column].astype(object)
            values = values.where(~values.map(is_missing).astype(bool), None)
            combined = values if combined is None else combined.where(combined.notna(), values)
        df[field] = combined
    return df


# =============================================================================
# VALUE STANDARDIZATION
# =============================================================================

def is_flag_set(value):
    """HRSN flags arrive as Yes/No, true/false, 1/0 or booleans."""
    if is_missing(value):
        return False
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value == 1
    return str(value).strip().lower() in _TRUTHY


def simplify_gender(value):
    """Standardize gender into Male, Female or Other."""
    if is_missing(value):
        return NO_DATA
    x = str(value).strip().lower()
    if x in ('m', 'male'):
        return 'Male'
    if x in ('f', 'female'):
        return 'Female'
    return 'Other'


def simplify_race(value):
    """
    Standardize race/ethnicity text into simplified groups.

    Returns:
        str: White, Black, Asian, Hispanic, Other or No Data Available
    """
    if is_missing(value):
        return NO_DATA

    x = str(value).upper()
    x = re.sub(r'[/,\-]+', ' ', x)

    if any(k in x for k in ['UNKNOWN', 'DECLINED', 'UNABLE', 'NOT SPECIFIED', 'REFUSED']):
        return NO_DATA

    # Hispanic/Latino takes priority (can be any race)
    if 'HISPANIC' in x or 'LATINO' in x:
        return 'Hispanic'
    if 'BLACK' in x or 'AFRICAN' in x:
        return 'Black'
    if 'ASIAN' in x:
        return 'Asian'
    if 'WHITE' in x or 'CAUCASIAN' in x:
        return 'White'

    return 'Other'


AGE_RANGES = ('0-17', '18-24', '25-34', '35-44', '45-54', '55-64', '65+')

_AGE_BINS = [-1, 17, 24, 34, 44, 54, 64, float('inf')]


def age_to_range(age):
    """Map a numeric age (or numeric string) onto AGE_RANGES."""
    if is_missing(age):
        return NO_DATA
    try:
        years = float(age)
    except (TypeError, ValueError):
        return NO_DATA
    if years < 0:
        return NO_DATA
    return str(pd.cut([years], bins=_AGE_BINS, labels=AGE_RANGES)[0])


def standard_age_range(record):
    """Age range from `age_range` if it is one of AGE_RANGES, else derived from `age`."""
    age_range = resolve(record, 'age_range')
    if age_range is not None:
        age_range = str(age_range).strip()
        return age_range if age_range in AGE_RANGES else 'Other'
    return age_to_range(resolve(record, 'age'))
