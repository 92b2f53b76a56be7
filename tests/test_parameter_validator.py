"""
Tests for the shared validation utilities.
"""

import math
import pytest

from business_logic.parameter_validator import (
    clamp, clamp_parameter, is_number, coerce_parameter_value, coerce_text,
    coerce_positive_number, coerce_fraction, parse_budget, validate_campaign_inputs
)
from models.data_models import CampaignGoal


class TestNumbers:

    def test_clamp(self):
        assert clamp(5, 1, 3) == 3
        assert clamp(-5, 1, 3) == 1
        assert clamp(2, 1, 3) == 2

    @pytest.mark.parametrize('value, expected', [(2.5, 2.0), (-3, -2.0), (0.7, 0.7), (-2.0, -2.0)])
    def test_clamp_parameter(self, value, expected):
        assert clamp_parameter(value) == expected

    @pytest.mark.parametrize('value, expected', [
        (1, True), (1.5, True), (-0.0, True),
        (True, False), (None, False), ("1", False), (float('nan'), False), ([1], False)
    ])
    def test_is_number(self, value, expected):
        assert is_number(value) is expected

    def test_coerce_parameter_value(self):
        assert coerce_parameter_value(1.25) == 1.25
        assert coerce_parameter_value(10) == 2.0
        assert coerce_parameter_value("2") == 0.0
        assert coerce_parameter_value(False) == 0.0

    def test_coerce_text(self):
        assert coerce_text("Source A", "default") == "Source A"
        assert coerce_text("   ", "default") == "default"
        assert coerce_text(None, "default") == "default"
        assert coerce_text(5, "default") == "default"

    def test_coerce_positive_number(self):
        assert coerce_positive_number(1500) == 1500.0
        assert coerce_positive_number(0) is None
        assert coerce_positive_number(float('inf')) is None
        assert coerce_positive_number("1500") is None

    def test_coerce_fraction(self):
        assert coerce_fraction(0.0) == 0.0
        assert coerce_fraction(1) == 1.0
        assert coerce_fraction(1.01) is None
        assert coerce_fraction(-0.1) is None


class TestBudget:

    @pytest.mark.parametrize('text, expected', [
        ("1000000", 1_000_000.0),
        ("1 000 000", 1_000_000.0),
        ("1,500,000", 1_500_000.0),
        ("2_000_000", 2_000_000.0),
        ("1500.50", 1500.5),
        (750000, 750_000.0),
        ("", 0.0),
        ("abc", 0.0),
        ("-500", 0.0),
        ("0", 0.0),
        ("nan", 0.0),
        ("inf", 0.0),
        (None, 0.0),
        (-10, 0.0),
    ])
    def test_parse_budget(self, text, expected):
        budget = parse_budget(text)
        assert budget == expected
        assert math.isfinite(budget)


class TestCampaignInputs:

    def test_valid(self):
        assert validate_campaign_inputs("Acme", "1000000", None) == {}
        assert validate_campaign_inputs("Acme", "1000000", CampaignGoal.RETENTION, require_goal=True) == {}

    def test_all_errors(self):
        errors = validate_campaign_inputs("  ", "zero", None, require_goal=True)
        assert set(errors) == {'brand_name', 'budget', 'campaign_goal'}

    def test_goal_accepts_strings(self):
        assert validate_campaign_inputs("Acme", "10", "Awareness", require_goal=True) == {}
        assert 'campaign_goal' in validate_campaign_inputs("Acme", "10", "brand", require_goal=True)
