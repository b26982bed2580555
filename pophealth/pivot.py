"""
Pivot builder: item x session-date count matrices for heatmaps and pivot tables.
"""

from dataclasses import dataclass
from typing import Tuple

import pandas as pd
from loguru import logger

from pophealth import fields as F
from pophealth.ingest import counted_mentions, normalize_session_date

# Division floor for normalization when a matrix has no non-zero cell
MAX_VALUE_FLOOR = 1


@dataclass(frozen=True)
class PivotMatrix:
    """
    Row x column count table.

    `cells` is an int DataFrame indexed by `rows` with `columns` as its
    columns. `max_value` is the largest cell, or MAX_VALUE_FLOOR when
    there is none above zero.
    """
    rows: Tuple[str, ...]
    columns: Tuple[str, ...]
    cells: pd.DataFrame
    max_value: int

    @property
    def is_empty(self):
        return not self.rows or not self.columns

    def cell(self, row, column):
        if row not in self.cells.index or column not in self.cells.columns:
            return 0
        return int(self.cells.at[row, column])

    def row_total(self, row):
        if row not in self.cells.index:
            return 0
        return int(self.cells.loc[row].sum())

    def row_totals(self):
        """Series of row sums in row order."""
        if self.cells.empty:
            return pd.Series(dtype=int)
        return self.cells.sum(axis=1).astype(int)

    def to_dict(self):
        """The {rows, columns, data, maxValue} shape the pivot API serves."""
        return {
            'rows': list(self.rows),
            'columns': list(self.columns),
            'data': {
                row: {col: int(self.cells.at[row, col]) for col in self.columns}
                for row in self.rows
            },
            'maxValue': int(self.max_value),
        }

    def long_format(self, include_zero=False):
        """One row per cell: row, column, count. Zero cells are dropped unless asked for."""
        if self.is_empty:
            return pd.DataFrame(columns=['row', 'column', 'count'])
        long_df = (
            self.cells
            .rename_axis(index='row', columns='column')
            .stack()
            .reset_index(name='count')
        )
        long_df['count'] = long_df['count'].astype(int)
        if not include_zero:
            long_df = long_df[long_df['count'] > 0]
        return long_df.reset_index(drop=True)


def _make_matrix(cells):
    cells = cells.fillna(0).astype(int)
    observed = int(cells.to_numpy().max()) if cells.size else 0
    return PivotMatrix(
        rows=tuple(cells.index),
        columns=tuple(cells.columns),
        cells=cells,
        max_value=max(observed, MAX_VALUE_FLOOR),
    )


def empty_matrix():
    return _make_matrix(pd.DataFrame(dtype=int))


def _dedupe_mentions(df, row_field):
    """
    Count each mention once per (patient, item, session, position in note).

    Diagnosis and category rows also key on the diagnosis/category pair, so a
    symptom linked to two diagnoses counts once under each.
    """
    keys = [F.PATIENT_ID, '_item_key', F.SESSION_DATE, F.POSITION]
    if row_field in (F.DIAGNOSIS, F.CATEGORY):
        keys += [F.DIAGNOSIS, F.CATEGORY]
    keyed = df.assign(_item_key=df[row_field].str.lower())
    for column in keys:
        if column not in keyed.columns:
            keyed[column] = None
    return keyed.drop_duplicates(subset=keys).drop(columns='_item_key')


def _sort_columns(labels, column_field):
    if column_field == F.SESSION_DATE:
        # ISO date strings sort chronologically
        return sorted(labels)
    return sorted(labels, key=str)


def build_pivot(events, row_field, column_field=F.SESSION_DATE, dedupe=True, max_rows=None, rows=None):
    """
    Count events per (row value, column value).

    Args:
        events: Canonical events DataFrame
        row_field: Canonical item column (symptom_segment, diagnosis, ...)
        column_field: Column field, session_date by default
        dedupe: Collapse repeated mentions (see _dedupe_mentions)
        max_rows: Keep only the most frequent rows (None keeps all)
        rows: Rows that must appear even without data, appended after
            the observed rows

    Returns:
        PivotMatrix: rows in first-encounter order, columns ascending
    """
    requested = list(rows or [])
    if events is None or events.empty or row_field not in events.columns:
        df = pd.DataFrame(columns=[row_field, column_field])
    else:
        df = counted_mentions(events, row_field)
        df = df[df[row_field].notna() & df[column_field].notna()]
        if column_field == F.SESSION_DATE:
            df = df.assign(**{column_field: df[column_field].map(normalize_session_date)})
            df = df[df[column_field].notna()]

    if dedupe and not df.empty:
        df = _dedupe_mentions(df, row_field)

    columns = _sort_columns(df[column_field].unique().tolist(), column_field)

    if max_rows is not None and not df.empty:
        totals = df.groupby(row_field).size().reset_index(name='count')
        top = (
            totals
            .sort_values(['count', row_field], ascending=[False, True])
            .head(max_rows)[row_field]
        )
        # Requested rows are exempt from the cap
        df = df[df[row_field].isin(set(top) | set(requested))]

    observed = list(dict.fromkeys(df[row_field].tolist()))
    row_order = observed + [r for r in dict.fromkeys(requested) if r not in set(observed)]

    if df.empty:
        counts = pd.DataFrame(0, index=row_order, columns=columns)
    else:
        counts = df.groupby([row_field, column_field]).size().unstack(fill_value=0)
    cells = counts.reindex(index=row_order, columns=columns, fill_value=0)
    cells.index.name = None
    cells.columns.name = None

    matrix = _make_matrix(cells)
    logger.debug(
        'Pivot {} x {}: {} rows, {} columns, max {}',
        row_field, column_field, len(matrix.rows), len(matrix.columns), matrix.max_value
    )
    return matrix


def pivot_from_response(payload):
    """
    Rebuild a PivotMatrix from a pivot API payload {rows, columns, data, maxValue}.

    Column labels that parse as dates are normalized (and merged when they
    collapse to the same day). `maxValue` is recomputed from the cells.

    Returns:
        PivotMatrix or None: None when the payload does not have the expected shape
    """
    if not isinstance(payload, dict):
        return None
    rows, columns, data = payload.get('rows'), payload.get('columns'), payload.get('data')
    if not isinstance(rows, list) or not isinstance(columns, list) or not isinstance(data, dict):
        return None
    if len(set(map(str, rows))) != len(rows) or len(set(map(str, columns))) != len(columns):
        return None
    if any(not isinstance(data.get(row, {}), dict) for row in rows):
        return None
    if not rows or not columns:
        return _make_matrix(pd.DataFrame(0, index=[str(r) for r in rows], columns=[str(c) for c in columns]))

    cells = pd.DataFrame(
        [[data.get(row, {}).get(col, 0) for col in columns] for row in rows],
        index=[str(r) for r in rows],
        columns=[str(c) for c in columns],
    )
    cells = cells.apply(pd.to_numeric, errors='coerce')
    if cells.isna().any().any() or (cells < 0).any().any():
        return None
    # Cells are whole counts
    if (cells % 1 != 0).any().any():
        return None

    renamed = [normalize_session_date(c) or c for c in cells.columns]
    cells.columns = renamed
    cells = cells.T.groupby(level=0, sort=False).sum().T
    cells = cells.reindex(columns=sorted(cells.columns))
    return _make_matrix(cells)
