import math

import pytest

from pophealth.classify import (
    classify,
    color_tier,
    group_points_by_row,
    log_scale,
    points_frame,
    row_summaries,
    tier_color,
    tier_score,
)
from pophealth.config import COLOR_THEMES, ColorTier, TierScale
from pophealth.exceptions import ConfigurationError
from pophealth.pivot import empty_matrix, pivot_from_response


class TestTierScore:
    def test_log_scale_endpoints(self):
        assert float(log_scale(0.0)) == 0.0
        assert float(log_scale(1.0)) == pytest.approx(1.0)

    def test_log_scale_formula(self):
        assert float(log_scale(0.4)) == pytest.approx(math.log(1 + 3.6) / math.log(10))

    def test_log_never_demotes(self):
        for intensity in range(0, 11):
            assert tier_score(intensity, 10) >= intensity / 10

    def test_zero_max_value(self):
        assert tier_score(3, 0) == 0.0

    def test_clamped(self):
        assert tier_score(12, 10) == pytest.approx(1.0)


class TestColorTier:
    @pytest.mark.parametrize('score,tier', [
        (1.0, ColorTier.HIGHEST),
        (0.8, ColorTier.HIGHEST),
        (0.79, ColorTier.HIGH),
        (0.6, ColorTier.HIGH),
        (0.45, ColorTier.MEDIUM),
        (0.2, ColorTier.LOW),
        (0.19, ColorTier.LOWEST),
        (0.0, ColorTier.LOWEST),
    ])
    def test_default_thresholds(self, score, tier):
        assert color_tier(score) is tier

    def test_custom_scale(self):
        scale = TierScale(highest=0.95, high=0.9, medium=0.5, low=0.1)
        assert color_tier(0.92, scale) is ColorTier.HIGH

    def test_invalid_scales_rejected(self):
        with pytest.raises(ConfigurationError):
            TierScale(highest=0.5, high=0.6)
        with pytest.raises(ConfigurationError):
            TierScale(highest=1.5)

    def test_tier_color(self):
        assert tier_color(ColorTier.HIGHEST, 'viridis') == COLOR_THEMES['viridis'][ColorTier.HIGHEST]
        assert tier_color('Lowest', 'grayscale') == '#EEEEEE'
        with pytest.raises(ConfigurationError):
            tier_color(ColorTier.LOW, 'sepia')


class TestClassify:
    def test_heatmap_scenario(self, heatmap_payload):
        matrix = pivot_from_response(heatmap_payload)
        assert matrix.max_value == 5

        points = {(p.row_label, p.column_label): p for p in classify(matrix)}
        anxiety = points[('Anxiety', '2024-01-01')]
        assert anxiety.intensity == 5
        assert anxiety.frequency == 2
        assert anxiety.color_tier is ColorTier.HIGHEST

        # 2 / 5 = 0.4 normalized, lifted to ~0.66 by the log scale
        fatigue = points[('Fatigue', '2024-01-02')]
        assert fatigue.frequency == 1
        assert fatigue.color_tier is ColorTier.HIGH

    def test_zero_cells_produce_no_points(self, heatmap_payload):
        points = classify(pivot_from_response(heatmap_payload))
        assert len(points) == 3
        assert ('Fatigue', '2024-01-01') not in {(p.row_label, p.column_label) for p in points}

    def test_empty_matrix(self):
        assert classify(empty_matrix()) == []

    def test_point_dict(self, heatmap_payload):
        point = classify(pivot_from_response(heatmap_payload))[0]
        assert point.to_dict() == {
            'rowLabel': 'Anxiety',
            'columnLabel': '2024-01-01',
            'intensity': 5,
            'frequency': 2,
            'colorTier': 'Highest',
        }


def test_row_summaries(heatmap_payload):
    summary = row_summaries(pivot_from_response(heatmap_payload))
    assert summary.to_dict('records') == [
        {'row': 'Anxiety', 'intensity': 8, 'frequency': 2},
        {'row': 'Fatigue', 'intensity': 2, 'frequency': 1},
    ]


def test_group_points_by_row(heatmap_payload):
    groups = group_points_by_row(classify(pivot_from_response(heatmap_payload)))
    assert list(groups) == ['Anxiety', 'Fatigue']
    assert [p.column_label for p in groups['Anxiety']] == ['2024-01-01', '2024-01-02']


def test_points_frame_colors(heatmap_payload):
    df = points_frame(classify(pivot_from_response(heatmap_payload)), theme='iridis')
    assert list(df.columns) == ['row', 'column', 'intensity', 'frequency', 'tier', 'color']
    assert df.loc[0, 'color'] == COLOR_THEMES['iridis'][ColorTier.HIGHEST]
