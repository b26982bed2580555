import pytest

from pophealth import fields as F
from pophealth.exceptions import ConfigurationError
from pophealth.fallback import (
    Dataset,
    SchemaMismatch,
    events_candidate,
    patients_candidate,
    resolve_source,
    server_candidate,
    validate_dataset,
)
from pophealth.projection import ProjectedItem


def _dataset(source, *counts):
    items = tuple(ProjectedItem(f'item{i}', c, c, 0) for i, c in enumerate(counts))
    return Dataset(source=source, items=items)


class TestResolveSource:
    def test_first_usable_candidate_wins(self):
        chosen = resolve_source([
            lambda: _dataset('server', 4),
            lambda: _dataset('events', 9),
        ])
        assert chosen.source == 'server'

    def test_skips_none_and_empty(self):
        chosen = resolve_source([
            lambda: None,
            lambda: _dataset('server'),
            lambda: _dataset('server', 0, 0),
            lambda: _dataset('events', 2),
        ])
        assert chosen.source == 'events'

    def test_schema_mismatch_falls_through(self):
        def broken():
            return [{'id': 'x', 'value': 1}]

        def bad_item():
            return Dataset('server', (ProjectedItem('', 1, 1, 100),))

        chosen = resolve_source([broken, bad_item, lambda: _dataset('patients', 1)])
        assert chosen.source == 'patients'

    def test_key_error_is_not_a_schema_mismatch(self):
        def missing_key():
            return {}['riskStratificationData']

        with pytest.raises(KeyError):
            resolve_source([missing_key, lambda: _dataset('events', 1)])

    def test_nothing_usable_is_explicitly_empty(self):
        chosen = resolve_source([lambda: None, lambda: _dataset('events')])
        assert chosen == Dataset.empty()
        assert chosen.is_empty
        assert chosen.to_records() == []

    def test_unexpected_errors_propagate(self):
        def crash():
            raise RuntimeError('boom')

        with pytest.raises(RuntimeError):
            resolve_source([crash])


class TestValidateDataset:
    def test_valid(self):
        dataset = _dataset('events', 1, 2)
        assert validate_dataset(dataset) is dataset

    @pytest.mark.parametrize('item', [
        ProjectedItem('a', 1, -1, 0),
        ProjectedItem('a', 1, 1.5, 0),
        ProjectedItem('a', 1, True, 0),
        ProjectedItem('a', 'one', 1, 0),
        ProjectedItem('a', 1, 1, 101),
        ProjectedItem(3, 1, 1, 0),
    ])
    def test_invalid_items(self, item):
        with pytest.raises(SchemaMismatch):
            validate_dataset(Dataset('server', (item,)))


class TestServerCandidate:
    def test_reads_raw_values(self):
        payload = {'diagnosisData': [
            {'id': 'PTSD', 'value': 40, 'rawValue': 4},
            {'id': 'GAD', 'value': 60, 'rawValue': 6},
        ]}
        dataset = server_candidate(payload, 'diagnosisData', 'count')()
        assert [(i.id, i.value) for i in dataset.items] == [('GAD', 6), ('PTSD', 4)]

    def test_value_only_records(self):
        payload = {'symptomSegmentData': [{'id': 'Anxiety', 'value': 3}, {'id': 'Fatigue', 'value': 1}]}
        dataset = server_candidate(payload, 'symptomSegmentData', 'percentage')()
        assert [(i.id, i.value, i.raw_value) for i in dataset.items] == [('Anxiety', 75, 3), ('Fatigue', 25, 1)]

    def test_keep_order(self):
        payload = {'riskStratificationData': [{'id': 'Low', 'value': 1}, {'id': 'High', 'value': 5}]}
        dataset = server_candidate(payload, 'riskStratificationData', 'count', keep_order=True)()
        assert [i.id for i in dataset.items] == ['Low', 'High']

    def test_absent_key_is_none(self):
        assert server_candidate({}, 'diagnosisData', 'count')() is None
        assert server_candidate(None, 'diagnosisData', 'count')() is None

    def test_bad_shapes_raise_schema_mismatch(self):
        with pytest.raises(SchemaMismatch):
            server_candidate({'d': 'oops'}, 'd', 'count')()
        with pytest.raises(SchemaMismatch):
            server_candidate({'d': [{'value': 1}]}, 'd', 'count')()
        with pytest.raises(SchemaMismatch):
            server_candidate({'d': [{'id': 'x', 'value': '7'}]}, 'd', 'count')()

    def test_malformed_server_falls_back_to_events(self, events):
        chosen = resolve_source([
            server_candidate({'diagnosisData': [{'name': 'PTSD'}]}, 'diagnosisData', 'count'),
            events_candidate(events, F.DIAGNOSIS, 'count'),
        ])
        assert chosen.source == 'events'
        assert {i.id: i.raw_value for i in chosen.items} == {'Major Depressive Disorder': 2, 'PTSD': 2}


class TestEventsCandidate:
    def test_symptoms_exclude_hrsn_mentions(self, events):
        dataset = events_candidate(events, F.SYMPTOM, 'count')()
        assert [(i.id, i.raw_value) for i in dataset.items] == [('Anxiety', 3), ('Fatigue', 1)]

    def test_patient_unit(self, events):
        dataset = events_candidate(events, F.SYMPTOM, 'count', unit='patients')()
        assert {i.id: i.raw_value for i in dataset.items} == {'Anxiety': 2, 'Fatigue': 1}

    def test_category_count(self, events):
        dataset = events_candidate(events, F.SYMPTOM, 'count', category_count=1)()
        assert [i.id for i in dataset.items] == ['Anxiety']

    def test_no_records(self, events):
        assert events_candidate(events.iloc[0:0], F.SYMPTOM, 'count')() is None

    def test_unknown_unit_is_a_configuration_error(self, events):
        with pytest.raises(ConfigurationError):
            resolve_source([events_candidate(events, F.SYMPTOM, 'count', unit='visits')])


class TestPatientsCandidate:
    def test_demographics_include_standard_categories(self, patients):
        dataset = patients_candidate(patients, 'gender', 'count')()
        counts = {i.id: i.raw_value for i in dataset.items}
        assert counts == {'Female': 1, 'Male': 1, 'Other': 1, F.NO_DATA: 1}

    def test_hrsn_relative_to_patient_count(self, patients):
        dataset = patients_candidate(patients, 'hrsn', 'percentage')()
        values = {i.id: i.value for i in dataset.items}
        assert values['housing_insecurity'] == 25
        assert values['food_insecurity'] == 25
        assert values['financial_strain'] == 0

    def test_empty_table(self, patients):
        assert patients_candidate(patients.iloc[0:0], 'race', 'count')() is None

    def test_empty_selection_resolves_to_none_source(self, patients):
        chosen = resolve_source([patients_candidate(patients.iloc[0:0], 'hrsn', 'count')])
        assert chosen.source == 'none'
