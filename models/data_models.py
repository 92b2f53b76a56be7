"""
Core data models for the Effective Frequency Calculator.
"""

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional, Any


PARAMETER_MIN = -2.0
PARAMETER_MAX = 2.0

DEFAULT_INSIGHT = "insight unavailable"
DEFAULT_SOURCE = "AI analysis"
DEFAULT_TA_CAPACITY_RF = 1_000_000.0


class ParameterKey(Enum):
    """The six qualitative parameters that drive effective frequency."""
    BRAND_AWARENESS = "brand_awareness"
    MARKET_SATURATION = "market_saturation"
    CAMPAIGN_GOAL = "campaign_goal"
    TARGET_AUDIENCE = "target_audience"
    PRODUCT_COMPLEXITY = "product_complexity"
    MESSAGE_COMPLEXITY = "message_complexity"


PARAMETER_KEYS: List[ParameterKey] = list(ParameterKey)


class CampaignGoal(Enum):
    """Campaign goals selectable in the brand step."""
    AWARENESS = "awareness"
    CONSIDERATION = "consideration"
    CONVERSION = "conversion"
    RETENTION = "retention"

    @classmethod
    def parse(cls, value: Any) -> Optional["CampaignGoal"]:
        """Return the matching goal, or None for empty/unknown values."""
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            return None
        try:
            return cls(value.strip().lower())
        except ValueError:
            return None


@dataclass(frozen=True)
class ParameterEstimate:
    """AI estimate for one parameter with its explanation."""
    id: ParameterKey
    value: float
    insight: str = DEFAULT_INSIGHT
    source: str = DEFAULT_SOURCE


@dataclass(frozen=True)
class KPIBenchmarks:
    """Base KPI rates per campaign goal, each a fraction in [0, 1]."""
    awareness_tom_base: float = 0.15
    consideration_search_base: float = 0.25
    conversion_uplift_base: float = 0.08
    retention_ltv_base: float = 0.04

    def as_dict(self) -> Dict[str, float]:
        return {
            'awareness_tom_base': self.awareness_tom_base,
            'consideration_search_base': self.consideration_search_base,
            'conversion_uplift_base': self.conversion_uplift_base,
            'retention_ltv_base': self.retention_ltv_base,
        }


DEFAULT_KPI_BENCHMARKS = KPIBenchmarks()


@dataclass(frozen=True)
class SliderParams:
    """Six parameter values in [-2.0, 2.0], shared by manual and AI modes."""
    brand_awareness: float = 0.0
    market_saturation: float = 0.0
    campaign_goal: float = 0.0
    target_audience: float = 0.0
    product_complexity: float = 0.0
    message_complexity: float = 0.0

    def get(self, key: ParameterKey) -> float:
        return getattr(self, key.value)

    def with_value(self, key: ParameterKey, value: float) -> "SliderParams":
        """Return a copy with one parameter replaced."""
        return replace(self, **{key.value: value})

    def as_dict(self) -> Dict[str, float]:
        return {key.value: self.get(key) for key in PARAMETER_KEYS}

    def total(self) -> float:
        return sum(self.get(key) for key in PARAMETER_KEYS)

    @classmethod
    def from_estimates(cls, estimates: Dict[ParameterKey, ParameterEstimate]) -> "SliderParams":
        return cls(**{key.value: estimates[key].value for key in PARAMETER_KEYS})


@dataclass(frozen=True)
class AnalysisResult:
    """Validated outcome of one successful AI analysis."""
    parameters: Dict[ParameterKey, ParameterEstimate]
    ta_capacity_rf: float = DEFAULT_TA_CAPACITY_RF
    kpi_benchmarks: KPIBenchmarks = DEFAULT_KPI_BENCHMARKS
    recommended_budget: Optional[float] = None
    budget_reasoning: Optional[str] = None

    def to_slider_params(self) -> SliderParams:
        return SliderParams.from_estimates(self.parameters)


@dataclass(frozen=True)
class CampaignInputs:
    """User-entered campaign information. Budget 0.0 means not entered."""
    brand_name: str = ""
    budget: float = 0.0
    campaign_goal: Optional[CampaignGoal] = None


@dataclass(frozen=True)
class KPIDisplay:
    """Goal-specific KPI shown to the user, as a labeled value."""
    label: str
    value: float
    is_ltv: bool = False


@dataclass(frozen=True)
class DerivedMetrics:
    """Metrics derived from the parameters, budget and goal."""
    frequency: float
    coverage: float
    tom_or_ltv: float
    ltv_growth: float
    kpi_label: str
    shows_ltv: bool = False

    @property
    def display(self) -> KPIDisplay:
        return KPIDisplay(label=self.kpi_label, value=self.tom_or_ltv, is_ltv=self.shows_ltv)


class CalculationMode(Enum):
    """How the parameters of a saved calculation were produced."""
    MANUAL = "manual"
    AI = "ai"


@dataclass
class CalculationRecord:
    """Flat calculation history entry."""
    calculation_time: datetime
    mode: CalculationMode
    brand_awareness: float
    market_saturation: float
    campaign_goal_param: float
    target_audience: float
    product_complexity: float
    message_complexity: float
    calculated_frequency: float
    brand_name: Optional[str] = None
    budget: Optional[float] = None
    campaign_goal: Optional[str] = None
    owner: Optional[str] = None
    record_id: str = field(default="")
