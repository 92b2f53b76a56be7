"""
Configuration management for the Effective Frequency Calculator.
Handles the AI service credentials, model settings and history storage.
"""

import os
import streamlit as st
from typing import Optional
from dataclasses import dataclass
from dotenv import load_dotenv


@dataclass
class AppConfig:
    """Application configuration settings."""
    ai_api_key: Optional[str] = None
    ai_base_url: str = "https://api.perplexity.ai"
    ai_model: str = "sonar-pro"
    ai_temperature: float = 0.7
    ai_max_tokens: int = 3000
    ai_timeout_seconds: float = 60.0
    ai_max_attempts: int = 3
    default_currency: str = "RUB"
    target_market: str = "Russia"
    history_file: str = "calculation_history.json"


class ConfigManager:
    """Manages application configuration and settings."""

    API_KEY_NAMES = ("AI_API_KEY", "PERPLEXITY_API_KEY", "OPENAI_API_KEY")

    def __init__(self):
        self._config: Optional[AppConfig] = None

    def load_config(self) -> AppConfig:
        """Load configuration from Streamlit secrets, environment and .env file."""
        if self._config is not None:
            return self._config

        load_dotenv()

        api_key = None
        for key_name in self.API_KEY_NAMES:
            api_key = self._get_secret_or_env(key_name)
            if api_key:
                break

        defaults = AppConfig()
        self._config = AppConfig(
            ai_api_key=api_key,
            ai_base_url=self._get_setting("AI_BASE_URL", defaults.ai_base_url),
            ai_model=self._get_setting("AI_MODEL", defaults.ai_model),
            ai_temperature=self._get_float_setting("AI_TEMPERATURE", defaults.ai_temperature),
            ai_max_tokens=self._get_int_setting("AI_MAX_TOKENS", defaults.ai_max_tokens),
            ai_timeout_seconds=self._get_float_setting("AI_TIMEOUT_SECONDS", defaults.ai_timeout_seconds),
            ai_max_attempts=self._get_int_setting("AI_MAX_ATTEMPTS", defaults.ai_max_attempts),
            default_currency=self._get_setting("DEFAULT_CURRENCY", defaults.default_currency),
            target_market=self._get_setting("TARGET_MARKET", defaults.target_market),
            history_file=self._get_setting("HISTORY_FILE", defaults.history_file)
        )

        return self._config

    def reset(self):
        """Forget the loaded configuration so the next call reloads it."""
        self._config = None

    def _get_secret_or_env(self, key: str) -> Optional[str]:
        """Get value from Streamlit secrets or environment variables."""
        # Try Streamlit secrets first; reading them fails when no secrets file exists
        try:
            if hasattr(st, 'secrets') and key in st.secrets:
                return st.secrets[key]
        except Exception:
            pass

        # Fall back to environment variables
        return os.getenv(key)

    def _get_setting(self, key: str, default: str) -> str:
        """Get string setting with default value."""
        value = self._get_secret_or_env(key)
        return value if value is not None else default

    def _get_int_setting(self, key: str, default: int) -> int:
        """Get integer setting with default value."""
        value = self._get_secret_or_env(key)
        if value is not None:
            try:
                return int(value)
            except ValueError:
                pass
        return default

    def _get_float_setting(self, key: str, default: float) -> float:
        """Get float setting with default value."""
        value = self._get_secret_or_env(key)
        if value is not None:
            try:
                return float(value)
            except ValueError:
                pass
        return default

    def get_ai_api_key(self) -> str:
        """Get the AI service API key; required only for AI mode."""
        config = self.load_config()
        if not config.ai_api_key:
            raise ValueError(
                "AI API key not found. Please set AI_API_KEY in "
                "Streamlit secrets or environment variables."
            )
        return config.ai_api_key

    def is_ai_available(self) -> bool:
        """Check whether AI analysis can be offered."""
        return bool(self.load_config().ai_api_key)

    def get_history_file(self) -> str:
        return self.load_config().history_file


# Global configuration manager instance
config_manager = ConfigManager()
