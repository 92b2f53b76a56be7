"""
AI parameter analysis through an OpenAI-compatible search model.

This module builds the brand-analysis prompts, calls the chat completions
endpoint (Perplexity sonar models by default) and returns the raw result as
a tool envelope {successful, data: {response}, error}. The envelope is
interpreted by the response normalizer; nothing here parses the payload.
"""

import logging
import time
from typing import Dict, Any, Optional

from openai import OpenAI

from models.data_models import CampaignGoal, CampaignInputs, PARAMETER_KEYS
from config.settings import config_manager, AppConfig
from .error_handler import error_handler, RetryConfig

# Set up logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


GOAL_DESCRIPTIONS = {
    CampaignGoal.AWARENESS: "Awareness",
    CampaignGoal.CONSIDERATION: "Consideration",
    CampaignGoal.CONVERSION: "Conversion",
    CampaignGoal.RETENTION: "Retention",
}

PARAMETER_RANGES = {
    'brand_awareness': "-2.0 (unknown) to +2.0 (globally recognized)",
    'market_saturation': "-2.0 (no competition) to +2.0 (highly saturated)",
    'campaign_goal': "-2.0 (simple awareness) to +2.0 (complex conversion)",
    'target_audience': "-2.0 (mass market) to +2.0 (narrow specific niche)",
    'product_complexity': "-2.0 (very simple) to +2.0 (very complex)",
    'message_complexity': "-2.0 (simple slogan) to +2.0 (detailed explanation)",
}

EXAMPLE_VALUES = {
    'brand_awareness': -1.5,
    'market_saturation': 0.5,
    'campaign_goal': 1.0,
    'target_audience': -0.5,
    'product_complexity': 0.8,
    'message_complexity': 1.2,
}


class AIParameterAnalyzer:
    """
    Estimates the six frequency parameters for a brand with an AI search model.

    The analyzer is the only component that talks to the network. It retries
    retryable API failures and reports everything else as an unsuccessful
    envelope, so callers never see client exceptions.
    """

    def __init__(self, config: Optional[AppConfig] = None, client: Optional[Any] = None,
                 skip_client_init: bool = False):
        """
        Initialize the analyzer.

        Args:
            config: Application configuration; loaded from config_manager when None
            client: Pre-built OpenAI-compatible client (used by tests)
            skip_client_init: Skip client creation (for testing)
        """
        self.config = config or config_manager.load_config()
        self.client = client
        if self.client is None and not skip_client_init:
            self._initialize_client()

    def _initialize_client(self):
        """Initialize the OpenAI-compatible client with API key and base URL."""
        try:
            api_key = self.config.ai_api_key or config_manager.get_ai_api_key()
            self.client = OpenAI(api_key=api_key, base_url=self.config.ai_base_url)
            logger.info(f"AI client initialized for {self.config.ai_base_url}")
        except Exception as e:
            logger.error(f"Failed to initialize AI client: {str(e)}")
            raise

    def create_system_prompt(self) -> str:
        """System prompt describing the required JSON structure and value ranges."""
        parameter_blocks = []
        for key in PARAMETER_KEYS:
            parameter_blocks.append(
                f'    "{key.value}": {{\n'
                f'      "id": "{key.value}",\n'
                f'      "value": {EXAMPLE_VALUES[key.value]},\n'
                f'      "insight": "Detailed explanation of the estimate",\n'
                f'      "source": "Data source or reasoning"\n'
                f'    }}'
            )

        parameters_block = ",\n".join(parameter_blocks)
        ranges = "\n".join(f"- {name}: {description}" for name, description in PARAMETER_RANGES.items())

        return f"""You are a brand analysis expert specializing in advertising frequency optimization. Analyze the brand information provided and return ONLY a valid JSON object.

REQUIRED JSON STRUCTURE:
{{
  "parameters": {{
{parameters_block}
  }},
  "ta_capacity_rf": 1500000,
  "kpi_benchmarks": {{
    "awareness_tom_base": 0.18,
    "consideration_search_base": 0.28,
    "conversion_uplift_base": 0.10,
    "retention_ltv_base": 0.04
  }},
  "recommended_budget": 2500000,
  "budget_reasoning": "Detailed reasoning for the recommended budget"
}}

VALUE RANGES: every parameter value must be between -2.0 and +2.0
{ranges}

BUDGET RECOMMENDATION:
- recommended_budget: a number in {self.config.default_currency}
- budget_reasoning: why this budget is optimal for the campaign

The recommended budget must be sized to achieve 80% of the campaign goals. Consider:
1. Target audience reach (80% of the maximum achievable)
2. The required contact frequency
3. Cost per thousand impressions (CPM ~400 {self.config.default_currency} in {self.config.target_market})
4. The campaign goal (awareness/consideration/conversion/retention)
5. Competition and market saturation

Return ONLY the JSON object, without additional text."""

    def create_user_prompt(self, inputs: CampaignInputs) -> str:
        goal = GOAL_DESCRIPTIONS.get(inputs.campaign_goal, "Retention")
        return f"""Analyze this brand in the {self.config.target_market} market:
Brand name: {inputs.brand_name}
Budget: {inputs.budget:,.0f} {self.config.default_currency}
Campaign goal: {goal}

Provide a detailed analysis with insights and sources for each parameter."""

    def analyze(self, inputs: CampaignInputs) -> Dict[str, Any]:
        """
        Run one AI analysis.

        Args:
            inputs: Campaign inputs with brand, budget and goal

        Returns:
            Tool envelope {successful, data: {response}, error}
        """
        logger.info(f"Starting AI analysis for {inputs.brand_name}")

        if not self.client:
            return self._failure("AI client not initialized. Please check API key configuration.")

        system_prompt = self.create_system_prompt()
        user_prompt = self.create_user_prompt(inputs)

        def call_ai():
            return self._call_api(system_prompt, user_prompt)

        retry_config = RetryConfig(
            max_attempts=self.config.ai_max_attempts,
            base_delay=1.0,
            exponential_backoff=True,
            max_delay=30.0
        )

        success, response, error_info = error_handler.retry_with_backoff(
            call_ai, retry_config, "AI parameter analysis"
        )

        if not success:
            error_handler.log_error(error_info, "AI Parameter Analysis")
            return self._failure(error_info.user_message)

        return {'successful': True, 'data': {'response': response}, 'error': None}

    def _call_api(self, system_prompt: str, user_prompt: str) -> Any:
        """Call the chat completions endpoint and return the response as plain data."""
        start_time = time.time()

        response = self.client.chat.completions.create(
            model=self.config.ai_model,
            messages=[
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt}
            ],
            temperature=self.config.ai_temperature,
            max_tokens=self.config.ai_max_tokens,
            timeout=self.config.ai_timeout_seconds
        )

        logger.info(f"AI call completed in {time.time() - start_time:.2f}s using {self.config.ai_model}")

        if hasattr(response, 'model_dump'):
            return response.model_dump()
        return response

    def _failure(self, message: str) -> Dict[str, Any]:
        return {'successful': False, 'data': None, 'error': message}
