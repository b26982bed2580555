"""
Choosing among upstream sources for the same logical dataset.

The dashboard can get a chart's data three ways, in priority order:

    1. pre-aggregated by the server (e.g. `riskStratificationData`)
    2. computed from the raw extracted-event records
    3. inferred from the patient table

Each candidate is a zero-argument callable that shapes its own result into
a Dataset (or returns None). resolve_source only validates and selects; it
never translates shapes and never invents placeholder data.
"""

from dataclasses import dataclass
from numbers import Integral, Real
from typing import Tuple

from loguru import logger

from pophealth.projection import ProjectedItem, percentage_of, project, project_counts
from pophealth.summaries import attribute_distribution, hrsn_prevalence, item_counts


class SchemaMismatch(ValueError):
    """A candidate produced something that is not a valid Dataset."""


@dataclass(frozen=True)
class Dataset:
    source: str
    items: Tuple[ProjectedItem, ...] = ()

    @property
    def is_empty(self):
        return not self.items or all(item.raw_value == 0 for item in self.items)

    def to_records(self):
        return [item.to_dict() for item in self.items]

    @classmethod
    def empty(cls):
        return cls(source='none')


def validate_dataset(dataset):
    """
    Check the {id, value, rawValue, percentage} contract.

    Raises:
        SchemaMismatch: On any wrong type or out-of-range field
    """
    if not isinstance(dataset, Dataset):
        raise SchemaMismatch(f'expected Dataset, got {type(dataset).__name__}')
    for item in dataset.items:
        if not isinstance(item, ProjectedItem):
            raise SchemaMismatch(f'expected ProjectedItem, got {type(item).__name__}')
        if not isinstance(item.id, str) or not item.id:
            raise SchemaMismatch(f'bad id {item.id!r}')
        if isinstance(item.raw_value, bool) or not isinstance(item.raw_value, Integral) or item.raw_value < 0:
            raise SchemaMismatch(f'bad rawValue {item.raw_value!r} for {item.id!r}')
        if not isinstance(item.value, Real) or isinstance(item.value, bool):
            raise SchemaMismatch(f'bad value {item.value!r} for {item.id!r}')
        if not isinstance(item.percentage, Real) or not 0 <= item.percentage <= 100:
            raise SchemaMismatch(f'bad percentage {item.percentage!r} for {item.id!r}')
    return dataset


def resolve_source(candidates):
    """
    Return the first usable, non-empty dataset.

    A candidate raising SchemaMismatch is skipped; any other error propagates.

    Args:
        candidates: Ordered iterable of zero-argument callables returning a
            Dataset or None

    Returns:
        Dataset: The selected dataset, or Dataset.empty() when none qualifies
    """
    for position, candidate in enumerate(candidates):
        name = getattr(candidate, '__name__', f'candidate[{position}]')
        try:
            dataset = candidate()
            if dataset is None:
                logger.debug('Source {} returned nothing', name)
                continue
            validate_dataset(dataset)
        except SchemaMismatch as exc:
            logger.debug('Source {} rejected: {}', name, exc)
            continue
        if dataset.is_empty:
            logger.debug('Source {} is empty', name)
            continue
        logger.info('Using {} data ({} items)', dataset.source, len(dataset.items))
        return dataset
    logger.info('No source produced data')
    return Dataset.empty()


# =============================================================================
# CANDIDATE BUILDERS
# =============================================================================

def server_candidate(payload, key, mode, category_count=None, keep_order=False):
    """
    Candidate reading pre-aggregated records {id, value, rawValue?, percentage?}.

    Server records carry either a raw count in `rawValue` or, for older
    payloads, only `value`; the raw count is what gets projected. Items are
    re-sorted by raw count unless `keep_order` (risk bands keep band order).
    """
    def server_aggregate():
        if not isinstance(payload, dict):
            return None
        records = payload.get(key)
        if not records:
            return None
        if not isinstance(records, list):
            raise SchemaMismatch(f'{key} is not a list')

        pairs = []
        for record in records:
            if not isinstance(record, dict) or 'id' not in record:
                raise SchemaMismatch(f'{key} record without id: {record!r}')
            raw = record.get('rawValue', record.get('value'))
            if isinstance(raw, bool) or not isinstance(raw, Integral):
                raise SchemaMismatch(f'{key} record {record["id"]!r} has no integer count')
            pairs.append((str(record['id']), int(raw)))

        if keep_order:
            total = sum(count for _, count in pairs)
            items = [
                ProjectedItem(item_id, project(count, total, mode), count, percentage_of(count, total))
                for item_id, count in pairs
            ]
        else:
            items = project_counts(pairs, mode, category_count)
        return Dataset(source='server', items=tuple(items))

    return server_aggregate


def events_candidate(events, field, mode, category_count=None, unit='events'):
    """Candidate counting items in the raw extracted-event records."""
    def extracted_records():
        if events is None or events.empty:
            return None
        counts = item_counts(events, field, unit=unit)
        return Dataset(source='events', items=tuple(project_counts(counts, mode, category_count)))

    return extracted_records


def patients_candidate(patients, attribute, mode, category_count=None):
    """
    Candidate inferring a distribution from the patient table.

    `attribute` is a demographic column, or 'hrsn' for HRSN-flag prevalence.
    HRSN percentages are relative to the number of patients.
    """
    def patient_table():
        if patients is None or patients.empty:
            return None
        if attribute == 'hrsn':
            counts = hrsn_prevalence(patients)
            items = project_counts(counts, mode, category_count, total=len(patients))
        else:
            counts = attribute_distribution(patients, attribute)
            items = project_counts(counts, mode, category_count)
        return Dataset(source='patients', items=tuple(items))

    return patient_table
