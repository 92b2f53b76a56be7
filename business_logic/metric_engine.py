"""
Metric engine for effective frequency and campaign KPIs.

Pure functions that derive the effective contact frequency, audience
coverage and goal-specific uplift metrics from the six slider parameters,
the campaign budget and goal, and KPI benchmarks. No function here keeps
state or performs I/O, and underspecified inputs produce 0 rather than an
error.
"""

import math
from typing import Any, Optional

from models.data_models import (
    CampaignGoal, CampaignInputs, DerivedMetrics, KPIBenchmarks, KPIDisplay,
    SliderParams, DEFAULT_KPI_BENCHMARKS, DEFAULT_TA_CAPACITY_RF
)
from .parameter_validator import clamp

MIN_FREQUENCY = 1.0
MAX_FREQUENCY = 15.0

DEFAULT_BASE_KPI = 0.15

# TOM / uplift formula
TOM_FREQUENCY_STEP = 0.08
TOM_REFERENCE_BUDGET = 500_000.0
TOM_SCALE = 3.5
TOM_GOAL_MULTIPLIERS = {
    CampaignGoal.AWARENESS: 1.0,
    CampaignGoal.CONSIDERATION: 0.7,
    CampaignGoal.CONVERSION: 0.4,
    CampaignGoal.RETENTION: 0.2,
}
DEFAULT_TOM_GOAL_MULTIPLIER = 1.0

# LTV growth formula
LTV_FREQUENCY_STEP = 0.05
LTV_SATURATION_PENALTY = 0.1
LTV_REFERENCE_BUDGET = 1_000_000.0
LTV_MAX_BUDGET_QUALITY = 2.0
LTV_SCALE = 7.0
LTV_GOAL_MULTIPLIERS = {
    CampaignGoal.AWARENESS: 0.3,
    CampaignGoal.CONSIDERATION: 0.5,
    CampaignGoal.CONVERSION: 0.8,
    CampaignGoal.RETENTION: 1.0,
}
DEFAULT_LTV_GOAL_MULTIPLIER = 0.5

# Coverage formula
FIXED_CPM = 400.0
COVERAGE_DAMPING = 0.08

KPI_LABELS = {
    CampaignGoal.AWARENESS: "Top of Mind (TOM)",
    CampaignGoal.CONSIDERATION: "Search Query Growth",
    CampaignGoal.CONVERSION: "Conversion Uplift",
    CampaignGoal.RETENTION: "LTV Growth",
}
DEFAULT_KPI_LABEL = "Effectiveness"


def calculate_frequency(params: SliderParams) -> float:
    """Effective frequency: 1 + sum of the six parameters, clamped to [1, 15]."""
    return clamp(MIN_FREQUENCY + params.total(), MIN_FREQUENCY, MAX_FREQUENCY)


def get_base_kpi(goal: Any, benchmarks: KPIBenchmarks = DEFAULT_KPI_BENCHMARKS) -> float:
    """Benchmark base rate for the campaign goal."""
    goal = CampaignGoal.parse(goal)
    if goal == CampaignGoal.AWARENESS:
        return benchmarks.awareness_tom_base
    if goal == CampaignGoal.CONSIDERATION:
        return benchmarks.consideration_search_base
    if goal == CampaignGoal.CONVERSION:
        return benchmarks.conversion_uplift_base
    if goal == CampaignGoal.RETENTION:
        return benchmarks.retention_ltv_base
    return DEFAULT_BASE_KPI


def get_goal_multiplier(goal: Any) -> float:
    """Goal multiplier used by the TOM / uplift formula."""
    return TOM_GOAL_MULTIPLIERS.get(CampaignGoal.parse(goal), DEFAULT_TOM_GOAL_MULTIPLIER)


def get_ltv_goal_multiplier(goal: Any) -> float:
    """Goal multiplier used by the LTV growth formula."""
    return LTV_GOAL_MULTIPLIERS.get(CampaignGoal.parse(goal), DEFAULT_LTV_GOAL_MULTIPLIER)


def calculate_tom(budget: float, goal: Any, frequency: float,
                  benchmarks: KPIBenchmarks = DEFAULT_KPI_BENCHMARKS) -> float:
    """
    TOM / search / conversion uplift in percentage points.

    base_kpi * (1 + (frequency - 1) * 0.08) * sqrt(budget / 500k)
    * goal_multiplier * 100 * 3.5. Returns 0 without a positive budget
    and a known goal.
    """
    if budget is None or budget <= 0 or CampaignGoal.parse(goal) is None:
        return 0.0

    frequency_multiplier = 1 + (frequency - MIN_FREQUENCY) * TOM_FREQUENCY_STEP
    budget_correction = math.sqrt(budget / TOM_REFERENCE_BUDGET)

    return (get_base_kpi(goal, benchmarks) * frequency_multiplier * budget_correction
            * get_goal_multiplier(goal) * 100 * TOM_SCALE)


def calculate_ltv_growth(budget: float, goal: Any, frequency: float, market_saturation: float,
                         benchmarks: KPIBenchmarks = DEFAULT_KPI_BENCHMARKS) -> float:
    """
    LTV growth in percentage points.

    The budget-quality term 1 + log10(budget / 1M) is capped at 2.0 and is
    negative for budgets under 100k. Returns 0 without a positive budget
    and a known goal.
    """
    if budget is None or budget <= 0 or CampaignGoal.parse(goal) is None:
        return 0.0

    frequency_multiplier = 1 + (frequency - MIN_FREQUENCY) * LTV_FREQUENCY_STEP
    competition_correction = 1 - market_saturation * LTV_SATURATION_PENALTY
    budget_quality = min(1.0 + math.log10(budget / LTV_REFERENCE_BUDGET), LTV_MAX_BUDGET_QUALITY)

    return (benchmarks.retention_ltv_base * get_ltv_goal_multiplier(goal) * frequency_multiplier
            * competition_correction * budget_quality * 100 * LTV_SCALE)


def calculate_coverage(budget: float, frequency: float,
                       ta_capacity_rf: float = DEFAULT_TA_CAPACITY_RF) -> float:
    """
    Share of the addressable audience reached, in percent.

    Not clamped: extreme budgets can exceed 100.
    """
    if budget is None or budget <= 0 or not frequency or not ta_capacity_rf:
        return 0.0

    impressions = budget / FIXED_CPM * 1000
    reach = impressions / frequency
    return reach / ta_capacity_rf * 100 * COVERAGE_DAMPING


def get_kpi_label(goal: Any) -> str:
    return KPI_LABELS.get(CampaignGoal.parse(goal), DEFAULT_KPI_LABEL)


def select_display_metric(goal: Any, tom: float, ltv_growth: float) -> KPIDisplay:
    """LTV growth is shown for retention campaigns, TOM / uplift otherwise."""
    is_ltv = CampaignGoal.parse(goal) == CampaignGoal.RETENTION
    return KPIDisplay(label=get_kpi_label(goal), value=ltv_growth if is_ltv else tom, is_ltv=is_ltv)


def compute_metrics(inputs: CampaignInputs, params: SliderParams,
                    benchmarks: Optional[KPIBenchmarks] = None,
                    ta_capacity_rf: float = DEFAULT_TA_CAPACITY_RF) -> DerivedMetrics:
    """
    Derive all metrics for one set of inputs.

    Args:
        inputs: Brand, budget and goal entered by the user
        params: Current slider parameters
        benchmarks: KPI benchmarks, defaults when None
        ta_capacity_rf: Addressable audience capacity

    Returns:
        DerivedMetrics for display
    """
    benchmarks = benchmarks or DEFAULT_KPI_BENCHMARKS
    goal = inputs.campaign_goal

    frequency = calculate_frequency(params)
    tom = calculate_tom(inputs.budget, goal, frequency, benchmarks)
    ltv_growth = calculate_ltv_growth(inputs.budget, goal, frequency, params.market_saturation, benchmarks)
    display = select_display_metric(goal, tom, ltv_growth)

    return DerivedMetrics(
        frequency=frequency,
        coverage=calculate_coverage(inputs.budget, frequency, ta_capacity_rf),
        tom_or_ltv=display.value,
        ltv_growth=ltv_growth,
        kpi_label=display.label,
        shows_ltv=display.is_ltv
    )
