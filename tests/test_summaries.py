import pytest

from pophealth import fields as F
from pophealth.exceptions import ConfigurationError
from pophealth.ingest import events_frame
from pophealth.summaries import attribute_distribution, hrsn_prevalence, item_counts


class TestItemCounts:
    def test_symptom_counts_leave_out_hrsn(self, events):
        counts = item_counts(events, F.SYMPTOM)
        assert counts.to_dict() == {'Anxiety': 3, 'Fatigue': 1}

    def test_patient_unit(self, events):
        assert item_counts(events, F.SYMPTOM, unit='patients').to_dict() == {'Anxiety': 2, 'Fatigue': 1}

    def test_hrsn_mention_with_diagnosis_counts_under_hrsn_only(self):
        events = events_frame([
            {'patient_id': 'P1', 'session_date': '2024-01-01', 'symptom_segment': 'Nightmares',
             'diagnosis': 'PTSD', 'symp_prob': 'Symptom'},
            {'patient_id': 'P2', 'session_date': '2024-01-01', 'symptom_segment': 'Food insecurity',
             'diagnosis': 'PTSD', 'symp_prob': 'Problem'},
        ])
        assert item_counts(events, F.DIAGNOSIS).to_dict() == {'PTSD': 1}
        assert item_counts(events, F.HRSN).to_dict() == {'Food insecurity': 1}

    def test_unknown_unit(self, events):
        with pytest.raises(ConfigurationError):
            item_counts(events, F.SYMPTOM, unit='visits')


def test_attribute_distribution_seeds_standard_categories(patients):
    counts = attribute_distribution(patients, 'gender')
    assert counts.to_dict() == {'Male': 1, 'Female': 1, 'Other': 1, F.NO_DATA: 1}


def test_hrsn_prevalence(patients):
    counts = hrsn_prevalence(patients)
    assert counts['housing_insecurity'] == 1
    assert counts['food_insecurity'] == 1
    assert counts['utility_insecurity'] == 0
