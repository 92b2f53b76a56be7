"""
Normalization of AI analysis responses.

This module turns the variably-shaped payload returned by the AI search tool
into a validated AnalysisResult. The payload may be a chat-completion
envelope, a direct object, a JSON string (possibly fenced or embedded in
prose) or an object that nests the real payload one level down. Extraction
strategies are tried in a fixed order and the first candidate object that
carries a ``parameters`` field wins.

Failures are returned as data (NormalizationError), never raised.
"""

import json
import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple

from models.data_models import (
    AnalysisResult, KPIBenchmarks, ParameterEstimate, PARAMETER_KEYS,
    DEFAULT_INSIGHT, DEFAULT_SOURCE, DEFAULT_TA_CAPACITY_RF, DEFAULT_KPI_BENCHMARKS
)
from .parameter_validator import (
    coerce_parameter_value, coerce_text, coerce_positive_number, coerce_fraction
)

# Set up logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


NESTED_PAYLOAD_FIELDS = ('content', 'text', 'output', 'result', 'data')

FENCED_JSON_PATTERN = re.compile(r'```json\s*([\s\S]*?)\s*```')
PARAMETERS_SPAN_PATTERN = re.compile(r'\{[\s\S]*"parameters"[\s\S]*\}')


class NormalizationErrorKind(Enum):
    """Reasons a response could not be normalized."""
    UNRECOGNIZED_SHAPE = "unrecognized_shape"
    MISSING_PARAMETERS = "missing_parameters"
    MALFORMED_JSON = "malformed_json"
    TOOL_REPORTED_FAILURE = "tool_reported_failure"


@dataclass(frozen=True)
class NormalizationError:
    """Typed normalization failure with a human-readable message."""
    kind: NormalizationErrorKind
    message: str


@dataclass(frozen=True)
class NormalizationResult:
    """Either an AnalysisResult or a NormalizationError."""
    analysis: Optional[AnalysisResult] = None
    error: Optional[NormalizationError] = None
    strategy: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.analysis is not None


@dataclass(frozen=True)
class ExtractionOutcome:
    """
    What a strategy found.

    ``payload`` is the parsed JSON object, if any. ``malformed`` is set when
    text was present but no parse attempt produced a JSON object.
    """
    payload: Optional[Dict[str, Any]] = None
    malformed: bool = False

    @property
    def has_parameters(self) -> bool:
        return self.payload is not None and isinstance(self.payload.get('parameters'), dict)


# Strategy signature: returns None when the shape does not apply
ExtractionStrategy = Callable[[Any], Optional[ExtractionOutcome]]
# Fallback extractor signature: text -> JSON candidate text or None
JsonTextExtractor = Callable[[str], Optional[str]]


def extract_json_candidate(text: str) -> Optional[str]:
    """
    Heuristically locate a JSON payload inside free text.

    A fenced ```json block is preferred. Otherwise the first greedy
    brace-delimited span containing the token "parameters" is returned,
    which spans from the first opening brace before that token to the last
    closing brace in the text. Text holding several JSON-like blocks can
    therefore yield an unparseable span.
    """
    fenced = FENCED_JSON_PATTERN.search(text)
    if fenced:
        return fenced.group(1)

    span = PARAMETERS_SPAN_PATTERN.search(text)
    if span:
        return span.group(0)

    return None


class ResponseNormalizer:
    """
    Extracts and validates AI analysis payloads.

    Strategies are held in an ordered list and tried first-match-wins. The
    text fallback extractor can be swapped for a stricter implementation
    without changing callers.
    """

    def __init__(self, text_extractor: Optional[JsonTextExtractor] = None):
        self.text_extractor = text_extractor or extract_json_candidate
        self.strategies: List[Tuple[str, ExtractionStrategy]] = [
            ('choices', self._from_choices),
            ('direct', self._from_direct_object),
            ('string', self._from_string),
            ('nested_field', self._from_nested_fields),
        ]

    def normalize(self, raw: Any) -> NormalizationResult:
        """
        Normalize one AI tool result.

        Args:
            raw: The tool envelope or the bare response payload

        Returns:
            NormalizationResult with either an analysis or an error
        """
        try:
            envelope_failure, response = self._unwrap_tool_envelope(raw)
            if envelope_failure:
                logger.warning(f"AI tool reported failure: {envelope_failure.message}")
                return NormalizationResult(error=envelope_failure)

            candidate, strategy_name, error = self._extract_payload(response)
            if error:
                logger.warning(f"Could not extract AI payload: {error.message}")
                return NormalizationResult(error=error)

            analysis = self._build_analysis(candidate)
            logger.info(f"AI analysis normalized using '{strategy_name}' strategy")
            return NormalizationResult(analysis=analysis, strategy=strategy_name)

        except Exception as e:
            # Errors never propagate past normalize()
            logger.error(f"Unexpected error normalizing AI response: {str(e)}")
            return NormalizationResult(error=NormalizationError(
                kind=NormalizationErrorKind.UNRECOGNIZED_SHAPE,
                message=f"Unexpected AI response structure: {str(e)}"
            ))

    def _unwrap_tool_envelope(self, raw: Any) -> Tuple[Optional[NormalizationError], Any]:
        """Handle the tool's own {successful, error, data: {response}} envelope."""
        if not isinstance(raw, dict) or 'successful' not in raw:
            return None, raw

        if not raw.get('successful'):
            message = raw.get('error') or "AI analysis failed"
            return NormalizationError(NormalizationErrorKind.TOOL_REPORTED_FAILURE, str(message)), None

        data = raw.get('data')
        response = data.get('response') if isinstance(data, dict) else None
        if not response and response != 0:
            return NormalizationError(
                NormalizationErrorKind.UNRECOGNIZED_SHAPE,
                "AI response contained no data"
            ), None

        return None, response

    def _extract_payload(self, response: Any) -> Tuple[Optional[Dict[str, Any]], Optional[str],
                                                        Optional[NormalizationError]]:
        """Run the strategies in order and report the most informative failure."""
        saw_object_without_parameters = False
        saw_malformed_text = False

        for name, strategy in self.strategies:
            outcome = strategy(response)
            if outcome is None:
                continue

            if outcome.has_parameters:
                return outcome.payload, name, None

            if outcome.payload is not None:
                saw_object_without_parameters = True
                logger.warning(f"Strategy '{name}' found a JSON object without 'parameters'")
            elif outcome.malformed:
                saw_malformed_text = True
                logger.warning(f"Strategy '{name}' found text that is not valid JSON")

        if saw_object_without_parameters:
            return None, None, NormalizationError(
                NormalizationErrorKind.MISSING_PARAMETERS,
                "The AI response does not contain parameters"
            )

        if saw_malformed_text:
            return None, None, NormalizationError(
                NormalizationErrorKind.MALFORMED_JSON,
                "No valid JSON found in the AI response"
            )

        return None, None, NormalizationError(
            NormalizationErrorKind.UNRECOGNIZED_SHAPE,
            f"Unsupported AI response format: {type(response).__name__}"
        )

    def _parse_text(self, text: str) -> ExtractionOutcome:
        """Direct JSON parse, then the fallback substring extraction."""
        parsed = self._loads(text)
        if parsed is None:
            candidate = self.text_extractor(text)
            if candidate is not None:
                parsed = self._loads(candidate)

        if isinstance(parsed, dict):
            return ExtractionOutcome(payload=parsed)

        return ExtractionOutcome(malformed=True)

    def _loads(self, text: str) -> Optional[Any]:
        try:
            return json.loads(text)
        except (json.JSONDecodeError, TypeError, ValueError):
            return None

    def _from_choices(self, response: Any) -> Optional[ExtractionOutcome]:
        """Chat-completion envelope: choices[0].message.content."""
        if not isinstance(response, dict):
            return None

        choices = response.get('choices')
        if not isinstance(choices, list) or len(choices) == 0:
            return None

        choice = choices[0]
        message = choice.get('message') if isinstance(choice, dict) else None
        if not isinstance(message, dict) or 'content' not in message:
            return None

        content = message['content']
        if isinstance(content, str):
            return self._parse_text(content)
        if isinstance(content, dict):
            return ExtractionOutcome(payload=content)

        return None

    def _from_direct_object(self, response: Any) -> Optional[ExtractionOutcome]:
        """The envelope is already the payload."""
        if isinstance(response, dict) and 'parameters' in response:
            return ExtractionOutcome(payload=response)
        return None

    def _from_string(self, response: Any) -> Optional[ExtractionOutcome]:
        if isinstance(response, str):
            return self._parse_text(response)
        return None

    def _from_nested_fields(self, response: Any) -> Optional[ExtractionOutcome]:
        """Payload nested under one of the conventional field names."""
        if not isinstance(response, dict):
            return None

        failure = None
        for field_name in NESTED_PAYLOAD_FIELDS:
            if field_name not in response:
                continue

            value = response[field_name]
            if isinstance(value, str):
                outcome = self._parse_text(value)
                if outcome.has_parameters:
                    return outcome
                # A parsed object outranks unparseable text when reporting
                if failure is None or (failure.payload is None and outcome.payload is not None):
                    failure = outcome
            elif isinstance(value, dict) and 'parameters' in value:
                return ExtractionOutcome(payload=value)

        return failure

    def _build_analysis(self, payload: Dict[str, Any]) -> AnalysisResult:
        parameters = payload['parameters']

        estimates = {}
        for key in PARAMETER_KEYS:
            entry = parameters.get(key.value)
            if not isinstance(entry, dict):
                entry = {}

            estimates[key] = ParameterEstimate(
                id=key,
                value=coerce_parameter_value(entry.get('value')),
                insight=coerce_text(entry.get('insight'), DEFAULT_INSIGHT),
                source=coerce_text(entry.get('source'), DEFAULT_SOURCE)
            )

        ta_capacity_rf = coerce_positive_number(payload.get('ta_capacity_rf')) or DEFAULT_TA_CAPACITY_RF
        reasoning = payload.get('budget_reasoning')

        return AnalysisResult(
            parameters=estimates,
            ta_capacity_rf=ta_capacity_rf,
            kpi_benchmarks=self._build_benchmarks(payload.get('kpi_benchmarks')),
            recommended_budget=coerce_positive_number(payload.get('recommended_budget')),
            budget_reasoning=reasoning if isinstance(reasoning, str) and reasoning.strip() else None
        )

    def _build_benchmarks(self, raw_benchmarks: Any) -> KPIBenchmarks:
        """Per-field fallback to the default benchmarks."""
        if not isinstance(raw_benchmarks, dict):
            return DEFAULT_KPI_BENCHMARKS

        values = DEFAULT_KPI_BENCHMARKS.as_dict()
        for name in values:
            value = coerce_fraction(raw_benchmarks.get(name))
            if value is not None:
                values[name] = value

        return KPIBenchmarks(**values)


_default_normalizer = ResponseNormalizer()


def normalize(raw: Any) -> NormalizationResult:
    """Normalize a raw AI tool result with the default strategies."""
    return _default_normalizer.normalize(raw)
