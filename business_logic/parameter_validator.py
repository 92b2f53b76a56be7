"""
Shared validation and clamping utilities.

Used by the response normalizer to coerce loosely-typed AI output into
bounded numbers and text, and by the calculator to validate wizard inputs.
"""

import logging
import math
import re
from typing import Any, Dict, Optional

from models.data_models import PARAMETER_MIN, PARAMETER_MAX, CampaignGoal

# Set up logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def clamp(value: float, low: float, high: float) -> float:
    """Clamp value into [low, high]."""
    return max(low, min(high, value))


def clamp_parameter(value: float) -> float:
    """Clamp a parameter value into [-2.0, 2.0]."""
    return clamp(float(value), PARAMETER_MIN, PARAMETER_MAX)


def is_number(value: Any) -> bool:
    """True for int/float values that are not bool and not NaN."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return not math.isnan(value)


def coerce_parameter_value(value: Any) -> float:
    """Clamp numeric values; anything else becomes 0."""
    if not is_number(value):
        return 0.0
    return clamp_parameter(value)


def coerce_text(value: Any, default: str) -> str:
    """Return a non-empty string or the default."""
    if isinstance(value, str) and value.strip():
        return value
    return default


def coerce_positive_number(value: Any) -> Optional[float]:
    """Return value as float when it is a finite positive number, else None."""
    if not is_number(value) or math.isinf(value) or value <= 0:
        return None
    return float(value)


def coerce_fraction(value: Any) -> Optional[float]:
    """Return value as float when it lies in [0, 1], else None."""
    if not is_number(value) or not 0.0 <= value <= 1.0:
        return None
    return float(value)


def parse_budget(text: Any) -> float:
    """
    Parse a budget entered as text.

    Whitespace, underscores and comma thousands separators are ignored. Returns 0.0
    for empty, unparseable or non-positive input.
    """
    if is_number(text):
        return float(text) if text > 0 and not math.isinf(text) else 0.0
    if not isinstance(text, str):
        return 0.0

    cleaned = re.sub(r"[\s_,]", "", text)

    try:
        budget = float(cleaned)
    except ValueError:
        return 0.0

    if math.isnan(budget) or math.isinf(budget) or budget <= 0:
        return 0.0
    return budget


def validate_campaign_inputs(brand_name: str, budget_text: Any,
                             campaign_goal: Any, require_goal: bool = False) -> Dict[str, str]:
    """
    Validate the brand step of the calculator wizard.

    Args:
        brand_name: Brand name as entered
        budget_text: Budget as entered (text or number)
        campaign_goal: Selected campaign goal value
        require_goal: Whether the goal is mandatory (AI analysis needs it)

    Returns:
        Dictionary of field name -> error message; empty when valid
    """
    errors = {}

    if not isinstance(brand_name, str) or not brand_name.strip():
        errors['brand_name'] = "Brand name is required"

    if parse_budget(budget_text) <= 0:
        errors['budget'] = "Budget must be a positive number"

    if require_goal and CampaignGoal.parse(campaign_goal) is None:
        errors['campaign_goal'] = "Select a campaign goal to run the AI analysis"

    if errors:
        logger.info(f"Campaign input validation failed: {', '.join(sorted(errors))}")

    return errors
