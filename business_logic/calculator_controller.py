"""
Calculator Controller - Orchestrates the effective frequency workflow.

This module ties together campaign inputs, manual and AI-estimated
parameters, the response normalizer, the metric engine and the calculation
history to give the UI a single stateful entry point.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, Optional, Tuple

from models.data_models import (
    AnalysisResult, CalculationMode, CalculationRecord, CampaignGoal, CampaignInputs,
    DerivedMetrics, KPIBenchmarks, ParameterEstimate, ParameterKey, SliderParams,
    DEFAULT_KPI_BENCHMARKS, DEFAULT_TA_CAPACITY_RF
)
from data.history_store import CalculationHistoryStore
from .ai_analyzer import AIParameterAnalyzer
from .error_handler import error_handler
from .metric_engine import compute_metrics
from .parameter_validator import clamp_parameter, parse_budget, validate_campaign_inputs
from .response_normalizer import NormalizationResult, ResponseNormalizer

# Set up logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


class WizardStep(Enum):
    """Steps of the calculator wizard."""
    BRAND = "brand"
    PARAMS = "params"
    RESULTS = "results"


class ParamView(Enum):
    """Which parameter view is shown in the parameters step."""
    MANUAL = "manual"
    AI = "ai"


@dataclass
class CalculatorState:
    """Mutable per-session calculator state."""
    brand_name: str = ""
    budget_text: str = ""
    campaign_goal: Optional[CampaignGoal] = None
    ai_mode: bool = False
    params: SliderParams = field(default_factory=SliderParams)
    insights: Dict[ParameterKey, ParameterEstimate] = field(default_factory=dict)
    analysis: Optional[AnalysisResult] = None
    ta_capacity_rf: float = DEFAULT_TA_CAPACITY_RF
    kpi_benchmarks: KPIBenchmarks = DEFAULT_KPI_BENCHMARKS
    recommended_budget: Optional[float] = None
    budget_reasoning: str = ""
    analysis_complete: bool = False
    error_message: str = ""
    error_notification: Optional[Dict[str, Any]] = None
    wizard_step: WizardStep = WizardStep.BRAND
    param_view: ParamView = ParamView.MANUAL

    @property
    def inputs(self) -> CampaignInputs:
        return CampaignInputs(
            brand_name=self.brand_name.strip(),
            budget=parse_budget(self.budget_text),
            campaign_goal=self.campaign_goal
        )


class CalculatorController:
    """
    Main controller for the frequency calculator workflow.

    A failed AI analysis only sets ``error_message``; parameters, insights
    and benchmarks from the last good analysis (or manual entry) stay as they
    were.
    """

    def __init__(self, analyzer: Optional[AIParameterAnalyzer] = None,
                 normalizer: Optional[ResponseNormalizer] = None,
                 history_store: Optional[CalculationHistoryStore] = None):
        """
        Initialize the calculator controller.

        Args:
            analyzer: AI analyzer; AI mode is unavailable when None
            normalizer: Response normalizer; default strategies when None
            history_store: Calculation history; saving is skipped when None
        """
        self.analyzer = analyzer
        self.normalizer = normalizer or ResponseNormalizer()
        self.history_store = history_store
        self.state = CalculatorState()
        self._last_saved_signature: Optional[Tuple[Any, ...]] = None

        logger.info("CalculatorController initialized")

    def set_inputs(self, brand_name: str, budget_text: Any, campaign_goal: Any = None):
        """Store the brand step inputs as entered."""
        self.state.brand_name = brand_name or ""
        self.state.budget_text = "" if budget_text is None else str(budget_text)
        self.state.campaign_goal = CampaignGoal.parse(campaign_goal)

    def set_ai_mode(self, enabled: bool):
        self.state.ai_mode = bool(enabled)

    def update_parameter(self, key: ParameterKey, value: float) -> SliderParams:
        """Set one slider value, clamped to [-2, 2]."""
        self.state.params = self.state.params.with_value(key, clamp_parameter(value))
        return self.state.params

    def can_continue_to_params(self) -> bool:
        inputs = self.state.inputs
        return bool(inputs.brand_name) and inputs.budget > 0

    def can_run_analysis(self) -> bool:
        return self.can_continue_to_params() and self.state.campaign_goal is not None

    def go_to_step(self, step: WizardStep) -> bool:
        """
        Navigate the wizard.

        The parameters and results steps require a brand name and budget.

        Returns:
            True if the step changed
        """
        if step != WizardStep.BRAND and not self.can_continue_to_params():
            logger.info(f"Navigation to {step.value} blocked: brand name and budget required")
            return False

        self.state.wizard_step = step
        return True

    def set_param_view(self, view: ParamView):
        self.state.param_view = view

    def request_analysis(self) -> Optional[NormalizationResult]:
        """
        Run an AI analysis for the current inputs and apply its result.

        Returns:
            The normalization result, or None when the analysis could not start
        """
        errors = validate_campaign_inputs(
            self.state.brand_name, self.state.budget_text, self.state.campaign_goal, require_goal=True
        )
        self.state.error_notification = None
        if errors:
            self.state.error_message = "; ".join(errors.values())
            return None

        if self.analyzer is None:
            self.state.error_message = "AI analysis is not configured. Please set the parameters manually."
            return None

        self.state.error_message = ""
        self.state.analysis_complete = False

        raw_response = self.analyzer.analyze(self.state.inputs)
        return self.apply_ai_response(raw_response)

    def apply_ai_response(self, raw_response: Any) -> NormalizationResult:
        """
        Normalize one AI result and apply it to the session.

        On success the parameters, insights, audience capacity, benchmarks
        and budget recommendation are replaced together. On failure only the
        error message changes.
        """
        result = self.normalizer.normalize(raw_response)

        if not result.success:
            error_info = error_handler.handle_normalization_error(result.error)
            error_handler.log_error(error_info, "AI Response Normalization")
            notification = error_handler.create_user_notification(error_info)
            self.state.error_notification = notification
            self.state.error_message = notification["message"]
            return result

        analysis = result.analysis
        self.state.analysis = analysis
        self.state.params = analysis.to_slider_params()
        self.state.insights = dict(analysis.parameters)
        self.state.ta_capacity_rf = analysis.ta_capacity_rf
        self.state.kpi_benchmarks = analysis.kpi_benchmarks
        self.state.recommended_budget = analysis.recommended_budget
        self.state.budget_reasoning = analysis.budget_reasoning or ""
        self.state.analysis_complete = True
        self.state.error_message = ""
        self.state.error_notification = None
        self.state.param_view = ParamView.AI

        logger.info(f"AI analysis applied for {self.state.brand_name}")
        return result

    def compute_metrics(self) -> DerivedMetrics:
        """Derived metrics for the current inputs and parameters."""
        return compute_metrics(
            self.state.inputs, self.state.params, self.state.kpi_benchmarks, self.state.ta_capacity_rf
        )

    def build_record(self, owner: Optional[str] = None) -> CalculationRecord:
        """Flat history record for the current calculation, tagged with the saving account."""
        params = self.state.params
        inputs = self.state.inputs
        is_ai = self.state.ai_mode

        return CalculationRecord(
            calculation_time=datetime.now(),
            mode=CalculationMode.AI if is_ai else CalculationMode.MANUAL,
            brand_name=inputs.brand_name if is_ai else None,
            budget=inputs.budget if is_ai and inputs.budget > 0 else None,
            campaign_goal=inputs.campaign_goal.value if is_ai and inputs.campaign_goal else None,
            brand_awareness=params.brand_awareness,
            market_saturation=params.market_saturation,
            campaign_goal_param=params.campaign_goal,
            target_audience=params.target_audience,
            product_complexity=params.product_complexity,
            message_complexity=params.message_complexity,
            calculated_frequency=self.compute_metrics().frequency,
            owner=owner
        )

    def save_calculation(self, auth_check: Callable[[], bool], owner: Optional[str] = None) -> bool:
        """
        Save the current calculation to history for authenticated users.

        Failures are logged and dropped; nothing is raised to the caller.
        Saving the same calculation twice in a row is skipped.

        Args:
            auth_check: Returns True when the session is authenticated
            owner: Account identifier stored with the record

        Returns:
            True if a record was written
        """
        if self.history_store is None:
            return False

        try:
            if not auth_check():
                logger.info("Skipping calculation save - user not authenticated")
                return False

            record = self.build_record(owner)
            signature = self._record_signature(record)
            if signature == self._last_saved_signature:
                return False

            self.history_store.insert(record)
            self._last_saved_signature = signature
            return True

        except Exception as e:
            error_info = error_handler.handle_storage_error(e, "calculation save")
            error_handler.log_error(error_info, "Calculation History")
            return False

    def reset(self):
        """Restore the initial state. The AI mode toggle is kept."""
        self.state = CalculatorState(ai_mode=self.state.ai_mode)
        self._last_saved_signature = None
        logger.info("Calculator state reset")

    def _record_signature(self, record: CalculationRecord) -> Tuple[Any, ...]:
        return (
            record.owner, record.mode, record.brand_name, record.budget, record.campaign_goal,
            record.brand_awareness, record.market_saturation, record.campaign_goal_param,
            record.target_audience, record.product_complexity, record.message_complexity
        )
