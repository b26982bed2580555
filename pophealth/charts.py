"""
Chart builders over engine output.

Thin wrappers: each function takes a PivotMatrix, ProjectedItems,
ClassifiedPoints or RiskBuckets and returns an Altair chart or a Plotly
figure. No aggregation happens here.
"""

import altair as alt
import pandas as pd
import plotly.graph_objects as go

from pophealth.classify import color_tier, group_points_by_row, points_frame, tier_score
from pophealth.config import DEFAULT_TIER_SCALE, TIER_ORDER, theme_palette
from pophealth.projection import items_frame

# Disable Altair row limit for larger datasets
alt.data_transformers.disable_max_rows()


def _tier_scale(theme):
    palette = theme_palette(theme)
    return alt.Scale(
        domain=[tier.value for tier in TIER_ORDER],
        range=[palette[tier] for tier in TIER_ORDER],
    )


def heatmap_chart(matrix, theme='iridis', scale=DEFAULT_TIER_SCALE, title=None, height=400):
    """
    Item x session heatmap colored by tier.

    Zero cells are drawn in the Lowest color so the grid stays complete.

    Args:
        matrix: PivotMatrix
        theme: Color theme name
        scale: TierScale used to bucket cells
        title: Optional chart title
        height: Chart height in pixels

    Returns:
        alt.Chart: mark_rect heatmap
    """
    cells = matrix.long_format(include_zero=True)
    cells['tier'] = [
        color_tier(tier_score(count, matrix.max_value), scale).value for count in cells['count']
    ]

    chart = alt.Chart(cells).mark_rect().encode(
        x=alt.X('column:O', title='Session Date', sort=list(matrix.columns),
                axis=alt.Axis(labelAngle=-45)),
        y=alt.Y('row:N', title=None, sort=list(matrix.rows)),
        color=alt.Color('tier:N', scale=_tier_scale(theme), title='Intensity'),
        tooltip=[
            alt.Tooltip('row:N', title='Item'),
            alt.Tooltip('column:O', title='Session'),
            alt.Tooltip('count:Q', title='Count'),
        ]
    ).properties(height=height)

    if title:
        chart = chart.properties(title=title)
    return chart


def bar_chart(items, title=None, color='#4C78A8', height=300, value_title='Count'):
    """
    Horizontal bar chart of projected items, ordered as given (raw count, descending).

    Returns:
        alt.Chart: Configured Altair chart
    """
    data = items_frame(items)
    chart = alt.Chart(data).mark_bar(color=color).encode(
        x=alt.X('value:Q', title=value_title),
        y=alt.Y('id:N', title=None, sort=data['id'].tolist()),
        tooltip=[
            alt.Tooltip('id:N', title='Category'),
            alt.Tooltip('rawValue:Q', title='Count'),
            alt.Tooltip('percentage:Q', title='Percent'),
        ]
    ).properties(height=height)

    if title:
        chart = chart.properties(title=title)
    return chart


def risk_chart(risk_items, title='Risk Stratification', height=300, value_title='Patients'):
    """Vertical bars in band order (never re-sorted)."""
    data = items_frame(risk_items)
    chart = alt.Chart(data).mark_bar().encode(
        x=alt.X('id:N', title=None, sort=data['id'].tolist(), axis=alt.Axis(labelAngle=-30)),
        y=alt.Y('value:Q', title=value_title),
        color=alt.Color('id:N', scale=alt.Scale(scheme='magma'), legend=None, sort=data['id'].tolist()),
        tooltip=[
            alt.Tooltip('id:N', title='Risk Band'),
            alt.Tooltip('rawValue:Q', title='Patients'),
            alt.Tooltip('percentage:Q', title='Percent'),
        ]
    ).properties(title=title, height=height)
    return chart


def pie_chart(items, title=None):
    """Plotly pie of projected items; slice sizes always use raw counts."""
    data = items_frame(items)
    fig = go.Figure(data=[go.Pie(
        labels=data['id'],
        values=data['rawValue'],
        customdata=data['percentage'],
        sort=False,
        hovertemplate='%{label}<br>Count: %{value}<br>%{customdata}%<extra></extra>',
    )])
    if title:
        fig.update_layout(title_text=title)
    return fig


def bubble_chart(points, theme='iridis', title=None, max_size=40):
    """
    Bubble chart: one trace per item, x = session, marker size ~ intensity.

    Returns:
        go.Figure
    """
    fig = go.Figure()
    df = points_frame(points, theme=theme)
    biggest = int(df['intensity'].max()) if not df.empty else 1

    for row in group_points_by_row(points):
        sub = df[df['row'] == row]
        fig.add_trace(go.Scatter(
            x=sub['column'],
            y=sub['row'],
            mode='markers',
            name=row,
            marker=dict(
                size=[max(6, max_size * i / biggest) for i in sub['intensity']],
                color=sub['color'].tolist(),
                line=dict(width=1, color='#444444'),
            ),
            customdata=sub[['intensity', 'frequency', 'tier']].to_numpy(),
            hovertemplate=(
                '%{y} on %{x}<br>Intensity: %{customdata[0]}'
                '<br>Sessions: %{customdata[1]}<br>Tier: %{customdata[2]}<extra></extra>'
            ),
            showlegend=False,
        ))

    fig.update_layout(
        title_text=title,
        xaxis_title='Session Date',
        yaxis=dict(autorange='reversed'),
        height=max(300, 28 * len(df['row'].unique()) + 120),
    )
    return fig


def pivot_table_frame(matrix):
    """Pivot as a display DataFrame with a Total column, rows without data dropped."""
    if matrix.is_empty:
        return pd.DataFrame()
    table = matrix.cells.copy()
    table['Total'] = matrix.row_totals()
    return table[table['Total'] > 0]
