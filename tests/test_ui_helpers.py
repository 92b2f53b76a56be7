"""
Tests for the UI presentation helpers.
"""

import pandas as pd
import pytest

from models.data_models import SliderParams
from ui.components import (
    frequency_color, insight_color, frequency_description, format_budget,
    build_parameter_chart, build_history_chart
)


class TestColors:

    def test_frequency_color_range(self):
        assert frequency_color(1.0) == "hsl(120, 70%, 50%)"
        assert frequency_color(8.0) == "hsl(60, 70%, 50%)"
        assert frequency_color(15.0) == "hsl(0, 70%, 50%)"

    def test_insight_color_range(self):
        assert insight_color(-2.0) == "hsl(0, 70%, 50%)"
        assert insight_color(0.0) == "hsl(60, 70%, 50%)"
        assert insight_color(2.0) == "hsl(120, 70%, 50%)"


class TestDescriptions:

    @pytest.mark.parametrize('frequency, prefix', [
        (1.0, "Low"),
        (3.0, "Low"),
        (3.1, "Medium"),
        (6.0, "Medium"),
        (9.5, "High"),
        (10.0, "High"),
        (10.5, "Very high"),
        (15.0, "Very high"),
    ])
    def test_thresholds(self, frequency, prefix):
        assert frequency_description(frequency).startswith(prefix)


class TestFormatBudget:

    def test_formats_with_spaces(self):
        assert format_budget(1_500_000) == "1 500 000 RUB"
        assert format_budget(2500.6, "USD") == "2 501 USD"

    def test_unknown(self):
        assert format_budget(None) == "-"


class TestCharts:

    def test_parameter_chart(self):
        params = SliderParams(brand_awareness=1.5, message_complexity=-0.5)

        fig = build_parameter_chart(params)

        bar = fig.data[0]
        assert list(bar.x) == [1.5, 0.0, 0.0, 0.0, 0.0, -0.5]
        assert bar.y[0] == "Brand Awareness"
        assert bar.marker.color[0] == insight_color(1.5)

    def test_history_chart(self):
        df = pd.DataFrame({
            'calculation_time': pd.to_datetime(['2024-05-02', '2024-05-01']),
            'calculated_frequency': [4.0, 2.0],
            'mode': ['ai', 'manual'],
        })

        fig = build_history_chart(df)

        assert {trace.name for trace in fig.data} == {'ai', 'manual'}
        assert tuple(fig.layout.yaxis.range) == (1.0, 15.0)
