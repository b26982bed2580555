import pytest

from pophealth.ingest import events_frame, patients_frame


RAW_EVENTS = [
    {'patient_id': 'P1', 'dos_date': '2024-01-01', 'symptom_segment': 'Anxiety',
     'diagnosis': 'Major Depressive Disorder', 'diagnostic_category': 'Mood Disorders',
     'position_in_text': 10},
    {'patient_id': 'P1', 'dos_date': '2024-01-01T09:30:00', 'symptom_segment': 'Anxiety',
     'diagnosis': 'Major Depressive Disorder', 'diagnostic_category': 'Mood Disorders',
     'position_in_text': 55},
    # Pivot-API spelling
    {'patientId': 'P2', 'date': '2024-01-02', 'symptomSegment': 'Fatigue',
     'diagnosis': 'PTSD', 'diagnosticCategory': 'Trauma Disorders', 'position_in_text': 3},
    {'patient_id': 'P2', 'dos_date': '1/2/2024', 'symptom_segment': 'Housing instability',
     'symp_prob': 'Problem', 'zcode_hrsn': 'ZCode/HRSN'},
    {'patient_id': 'P3', 'dos_date': '2024-01-02', 'symptom_segment': 'Anxiety',
     'diagnosis': 'PTSD', 'diagnostic_category': 'Trauma Disorders', 'position_in_text': 7},
]

RAW_PATIENTS = [
    {'patient_id': 'P1', 'age': 30, 'gender': 'F', 'race': 'White', 'housing_insecurity': 'No'},
    {'id': 'P2', 'age_range': '45-54', 'sex': 'male', 'race': 'Black or African American',
     'housing_status': 'Yes', 'transportation_needs': 'Yes'},
    {'patient_id': 'P3'},
    {'patient_id': 'P4', 'gender': 'nonbinary', 'food_insecurity': True},
]


@pytest.fixture
def events():
    return events_frame(RAW_EVENTS)


@pytest.fixture
def patients():
    return patients_frame(RAW_PATIENTS)


@pytest.fixture
def heatmap_payload():
    """Two symptoms over two sessions, as the pivot API serves them."""
    return {
        'rows': ['Anxiety', 'Fatigue'],
        'columns': ['2024-01-01', '2024-01-02'],
        'data': {
            'Anxiety': {'2024-01-01': 5, '2024-01-02': 3},
            'Fatigue': {'2024-01-01': 0, '2024-01-02': 2},
        },
        'maxValue': 5,
    }


@pytest.fixture
def make_events():
    return _make_events


def _make_events(totals):
    """Events frame giving each patient id the requested number of mentions."""
    rows = []
    for patient_id, total in totals.items():
        for i in range(total):
            rows.append({
                'patient_id': patient_id,
                'session_date': '2024-03-01',
                'symptom_segment': f'Symptom {i % 3}',
                'position_in_text': i,
            })
    return events_frame(rows)
