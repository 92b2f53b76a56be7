"""
Tests for the AI response normalizer.
"""

import json
import pytest

from business_logic.response_normalizer import (
    ResponseNormalizer, NormalizationErrorKind, extract_json_candidate, normalize
)
from models.data_models import (
    ParameterKey, PARAMETER_KEYS, DEFAULT_INSIGHT, DEFAULT_SOURCE, DEFAULT_KPI_BENCHMARKS
)


def make_payload(values=None, **extra):
    """Build a well-formed analysis payload."""
    values = values or {}
    payload = {
        'parameters': {
            key.value: {
                'id': key.value,
                'value': values.get(key.value, 0.5),
                'insight': f"{key.value} insight",
                'source': "Market report"
            }
            for key in PARAMETER_KEYS
        }
    }
    payload.update(extra)
    return payload


def chat_envelope(content):
    return {'choices': [{'message': {'role': 'assistant', 'content': content}}]}


def tool_envelope(response):
    return {'successful': True, 'error': None, 'data': {'response': response}}


class TestExtractionStrategies:
    """Each supported payload shape normalizes to the same parameters."""

    def setup_method(self):
        self.normalizer = ResponseNormalizer()
        self.payload = make_payload({'brand_awareness': -1.5, 'message_complexity': 1.2})

    def assert_expected_values(self, result):
        assert result.success, result.error
        params = result.analysis.to_slider_params()
        assert params.brand_awareness == -1.5
        assert params.message_complexity == 1.2
        assert params.market_saturation == 0.5

    def test_choices_with_json_string(self):
        result = self.normalizer.normalize(chat_envelope(json.dumps(self.payload)))
        self.assert_expected_values(result)
        assert result.strategy == 'choices'

    def test_choices_with_object_content(self):
        result = self.normalizer.normalize(chat_envelope(self.payload))
        self.assert_expected_values(result)
        assert result.strategy == 'choices'

    def test_choices_with_fenced_block(self):
        content = "Here is the analysis:\n```json\n" + json.dumps(self.payload, indent=2) + "\n```\nGood luck!"
        result = self.normalizer.normalize(chat_envelope(content))
        self.assert_expected_values(result)

    def test_choices_with_json_embedded_in_prose(self):
        content = "Based on my research the values are " + json.dumps(self.payload) + " as requested."
        result = self.normalizer.normalize(chat_envelope(content))
        self.assert_expected_values(result)

    def test_direct_object(self):
        result = self.normalizer.normalize(self.payload)
        self.assert_expected_values(result)
        assert result.strategy == 'direct'

    def test_plain_json_string(self):
        result = self.normalizer.normalize(json.dumps(self.payload))
        self.assert_expected_values(result)
        assert result.strategy == 'string'

    def test_fenced_string(self):
        text = "```json\n" + json.dumps(self.payload) + "\n```"
        result = self.normalizer.normalize(text)
        self.assert_expected_values(result)
        assert result.strategy == 'string'

    @pytest.mark.parametrize('field_name', ['content', 'text', 'output', 'result', 'data'])
    def test_nested_string_field(self, field_name):
        result = self.normalizer.normalize({field_name: json.dumps(self.payload)})
        self.assert_expected_values(result)
        assert result.strategy == 'nested_field'

    def test_nested_object_field(self):
        result = self.normalizer.normalize({'result': self.payload})
        self.assert_expected_values(result)
        assert result.strategy == 'nested_field'

    def test_nested_fields_scanned_in_order(self):
        later = make_payload({'brand_awareness': 2.0})
        raw = {'output': json.dumps(later), 'text': json.dumps(self.payload)}
        result = self.normalizer.normalize(raw)
        assert result.analysis.to_slider_params().brand_awareness == -1.5

    def test_nested_field_skips_unparseable_entries(self):
        raw = {'content': "no json here", 'result': json.dumps(self.payload)}
        result = self.normalizer.normalize(raw)
        self.assert_expected_values(result)

    def test_tool_envelope_is_unwrapped(self):
        result = self.normalizer.normalize(tool_envelope(chat_envelope(json.dumps(self.payload))))
        self.assert_expected_values(result)
        assert result.strategy == 'choices'


class TestStrategyOrdering:
    """Earlier strategies win when several shapes apply."""

    def setup_method(self):
        self.normalizer = ResponseNormalizer()

    def test_choices_beat_direct_parameters(self):
        from_choices = make_payload({'brand_awareness': 1.0})
        raw = chat_envelope(json.dumps(from_choices))
        raw.update(make_payload({'brand_awareness': -1.0}))

        result = self.normalizer.normalize(raw)

        assert result.strategy == 'choices'
        assert result.analysis.to_slider_params().brand_awareness == 1.0

    def test_direct_beats_nested(self):
        raw = make_payload({'brand_awareness': 1.0})
        raw['content'] = json.dumps(make_payload({'brand_awareness': -1.0}))

        result = self.normalizer.normalize(raw)

        assert result.strategy == 'direct'
        assert result.analysis.to_slider_params().brand_awareness == 1.0

    def test_failed_choices_fall_through_to_nested_field(self):
        raw = chat_envelope("I could not find any data.")
        raw['result'] = make_payload({'brand_awareness': 1.5})

        result = self.normalizer.normalize(raw)

        assert result.success
        assert result.strategy == 'nested_field'

    def test_fenced_block_preferred_over_other_braces(self):
        good = make_payload({'brand_awareness': 1.0})
        text = ('Example shape: {"parameters": "..."}\n'
                "```json\n" + json.dumps(good) + "\n```")

        result = self.normalizer.normalize(text)

        assert result.analysis.to_slider_params().brand_awareness == 1.0


class TestFailures:
    """Failures are returned as typed errors, never raised."""

    def setup_method(self):
        self.normalizer = ResponseNormalizer()

    def test_tool_reported_failure(self):
        result = self.normalizer.normalize({'successful': False, 'error': "Rate limit exceeded", 'data': None})
        assert not result.success
        assert result.error.kind == NormalizationErrorKind.TOOL_REPORTED_FAILURE
        assert result.error.message == "Rate limit exceeded"

    def test_tool_failure_without_message(self):
        result = self.normalizer.normalize({'successful': False})
        assert result.error.kind == NormalizationErrorKind.TOOL_REPORTED_FAILURE
        assert result.error.message

    def test_successful_envelope_without_response(self):
        result = self.normalizer.normalize({'successful': True, 'data': {}})
        assert result.error.kind == NormalizationErrorKind.UNRECOGNIZED_SHAPE

    @pytest.mark.parametrize('response', ["", {}, []])
    def test_successful_envelope_with_empty_response(self, response):
        result = self.normalizer.normalize({'successful': True, 'data': {'response': response}})

        assert not result.success
        assert result.error.kind == NormalizationErrorKind.UNRECOGNIZED_SHAPE
        assert result.error.message == "AI response contained no data"

    def test_object_without_parameters(self):
        result = self.normalizer.normalize(chat_envelope(json.dumps({'analysis': "nothing useful"})))
        assert result.error.kind == NormalizationErrorKind.MISSING_PARAMETERS

    def test_parameters_not_an_object(self):
        result = self.normalizer.normalize(chat_envelope(json.dumps({'parameters': [1, 2, 3]})))
        assert result.error.kind == NormalizationErrorKind.MISSING_PARAMETERS

    def test_malformed_json_string(self):
        result = self.normalizer.normalize('{"parameters": {"brand_awareness": ')
        assert result.error.kind == NormalizationErrorKind.MALFORMED_JSON

    def test_prose_without_json(self):
        result = self.normalizer.normalize(chat_envelope("Sorry, I cannot help with that."))
        assert result.error.kind == NormalizationErrorKind.MALFORMED_JSON

    def test_json_array_is_malformed(self):
        result = self.normalizer.normalize("[1, 2, 3]")
        assert result.error.kind == NormalizationErrorKind.MALFORMED_JSON

    @pytest.mark.parametrize('raw', [None, 42, 3.5, ['parameters'], {'unrelated': 1}, {'choices': []}])
    def test_unrecognized_shapes(self, raw):
        result = self.normalizer.normalize(raw)
        assert not result.success
        assert result.error.kind == NormalizationErrorKind.UNRECOGNIZED_SHAPE

    def test_missing_parameters_reported_over_malformed_text(self):
        raw = {'content': "not json", 'result': {'summary': "no parameters"}, 'text': '{"other": 1}'}
        result = self.normalizer.normalize(raw)
        assert result.error.kind == NormalizationErrorKind.MISSING_PARAMETERS

    def test_multiple_brace_blocks_are_ambiguous(self):
        first = json.dumps(make_payload({'brand_awareness': 1.0}))
        second = json.dumps(make_payload({'brand_awareness': -1.0}))
        text = f"Option A: {first}\nOption B: {second}"

        result = self.normalizer.normalize(text)

        assert result.error.kind == NormalizationErrorKind.MALFORMED_JSON

    def test_module_level_normalize(self):
        assert normalize(make_payload()).success
        assert not normalize(None).success


class TestCoercion:
    """Values are clamped and missing fields get defaults."""

    def setup_method(self):
        self.normalizer = ResponseNormalizer()

    def test_values_clamped(self):
        payload = make_payload({'brand_awareness': 5.0, 'market_saturation': -7.5})
        params = self.normalizer.normalize(payload).analysis.to_slider_params()
        assert params.brand_awareness == 2.0
        assert params.market_saturation == -2.0

    @pytest.mark.parametrize('bad_value', ["1.5", None, True, float('nan'), [1], {'v': 1}])
    def test_non_numeric_values_become_zero(self, bad_value):
        payload = make_payload({'target_audience': bad_value})
        params = self.normalizer.normalize(payload).analysis.to_slider_params()
        assert params.target_audience == 0.0

    def test_missing_parameter_entry(self):
        payload = make_payload()
        del payload['parameters']['product_complexity']

        analysis = self.normalizer.normalize(payload).analysis

        estimate = analysis.parameters[ParameterKey.PRODUCT_COMPLEXITY]
        assert estimate.value == 0.0
        assert estimate.insight == DEFAULT_INSIGHT
        assert estimate.source == DEFAULT_SOURCE

    def test_bare_number_entry_becomes_zero(self):
        payload = make_payload()
        payload['parameters']['campaign_goal'] = 1.5
        params = self.normalizer.normalize(payload).analysis.to_slider_params()
        assert params.campaign_goal == 0.0

    def test_empty_insight_and_source_defaulted(self):
        payload = make_payload()
        payload['parameters']['brand_awareness']['insight'] = "  "
        payload['parameters']['brand_awareness'].pop('source')

        estimate = self.normalizer.normalize(payload).analysis.parameters[ParameterKey.BRAND_AWARENESS]

        assert estimate.insight == DEFAULT_INSIGHT
        assert estimate.source == DEFAULT_SOURCE

    def test_all_six_keys_present(self):
        analysis = self.normalizer.normalize({'parameters': {}}).analysis
        assert set(analysis.parameters.keys()) == set(PARAMETER_KEYS)
        assert analysis.to_slider_params().total() == 0.0

    def test_defaults_when_optional_fields_missing(self):
        analysis = self.normalizer.normalize(make_payload()).analysis
        assert analysis.ta_capacity_rf == 1_000_000
        assert analysis.kpi_benchmarks == DEFAULT_KPI_BENCHMARKS
        assert analysis.recommended_budget is None
        assert analysis.budget_reasoning is None

    @pytest.mark.parametrize('capacity', [0, -5, "lots", None])
    def test_invalid_capacity_defaulted(self, capacity):
        analysis = self.normalizer.normalize(make_payload(ta_capacity_rf=capacity)).analysis
        assert analysis.ta_capacity_rf == 1_000_000

    def test_optional_fields_passed_through(self):
        payload = make_payload(
            ta_capacity_rf=1_500_000,
            kpi_benchmarks={
                'awareness_tom_base': 0.18,
                'consideration_search_base': 0.28,
                'conversion_uplift_base': 0.10,
                'retention_ltv_base': 0.05
            },
            recommended_budget=2_500_000,
            budget_reasoning="Needed to reach 80% of the audience"
        )

        analysis = self.normalizer.normalize(payload).analysis

        assert analysis.ta_capacity_rf == 1_500_000
        assert analysis.kpi_benchmarks.awareness_tom_base == 0.18
        assert analysis.kpi_benchmarks.retention_ltv_base == 0.05
        assert analysis.recommended_budget == 2_500_000
        assert analysis.budget_reasoning == "Needed to reach 80% of the audience"

    def test_benchmarks_fall_back_per_field(self):
        payload = make_payload(kpi_benchmarks={'awareness_tom_base': 0.3, 'conversion_uplift_base': 4.0})
        benchmarks = self.normalizer.normalize(payload).analysis.kpi_benchmarks
        assert benchmarks.awareness_tom_base == 0.3
        assert benchmarks.conversion_uplift_base == DEFAULT_KPI_BENCHMARKS.conversion_uplift_base
        assert benchmarks.consideration_search_base == DEFAULT_KPI_BENCHMARKS.consideration_search_base

    @pytest.mark.parametrize('budget', [0, -100, "2500000", float('inf')])
    def test_invalid_recommended_budget_dropped(self, budget):
        analysis = self.normalizer.normalize(make_payload(recommended_budget=budget)).analysis
        assert analysis.recommended_budget is None

    def test_normalization_is_deterministic(self):
        raw = chat_envelope(json.dumps(make_payload({'brand_awareness': 1.3})))
        assert self.normalizer.normalize(raw) == self.normalizer.normalize(raw)


class TestTextExtractor:
    """Fallback substring extraction and its replaceable interface."""

    def test_fenced_block_preferred(self):
        text = 'see {"parameters": 1}\n```json\n{"a": 1}\n```'
        assert extract_json_candidate(text) == '{"a": 1}'

    def test_greedy_span(self):
        text = 'prefix {"x": {"parameters": {}}} suffix'
        assert extract_json_candidate(text) == '{"x": {"parameters": {}}}'

    def test_no_candidate(self):
        assert extract_json_candidate('{"other": 1}') is None

    def test_custom_extractor(self):
        calls = []

        def extractor(text):
            calls.append(text)
            return json.dumps(make_payload({'brand_awareness': 0.7}))

        normalizer = ResponseNormalizer(text_extractor=extractor)
        result = normalizer.normalize(chat_envelope("opaque text"))

        assert calls == ["opaque text"]
        assert result.analysis.to_slider_params().brand_awareness == 0.7
