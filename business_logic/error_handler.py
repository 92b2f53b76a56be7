"""
Error handling and user feedback for the frequency calculator.

This module maps AI service failures, response normalization failures and
history storage failures to structured error information, provides the
retry policy used around the AI call, and builds user notifications.
"""

import logging
import time
from typing import Dict, Any, Optional, Callable, Tuple
from enum import Enum
from dataclasses import dataclass
from datetime import datetime
import openai

from .response_normalizer import NormalizationError, NormalizationErrorKind

# Set up logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


class ErrorSeverity(Enum):
    """Error severity levels."""
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class ErrorCategory(Enum):
    """Error categories for better classification."""
    API_ERROR = "api_error"
    PARSE_ERROR = "parse_error"
    VALIDATION_ERROR = "validation_error"
    NETWORK_ERROR = "network_error"
    STORAGE_ERROR = "storage_error"
    SYSTEM_ERROR = "system_error"


@dataclass
class ErrorInfo:
    """Structured error information."""
    category: ErrorCategory
    severity: ErrorSeverity
    message: str
    user_message: str
    technical_details: Optional[str] = None
    suggested_action: Optional[str] = None
    retry_possible: bool = False
    timestamp: datetime = None

    def __post_init__(self):
        if self.timestamp is None:
            self.timestamp = datetime.now()


class RetryConfig:
    """Configuration for retry mechanisms."""

    def __init__(self, max_attempts: int = 3, base_delay: float = 1.0,
                 exponential_backoff: bool = True, max_delay: float = 30.0):
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.exponential_backoff = exponential_backoff
        self.max_delay = max_delay

    def delay_for_attempt(self, attempt: int) -> float:
        """Delay before retrying after the given zero-based attempt."""
        if self.exponential_backoff:
            return min(self.base_delay * (2 ** attempt), self.max_delay)
        return self.base_delay


NORMALIZATION_MESSAGES = {
    NormalizationErrorKind.UNRECOGNIZED_SHAPE: "Invalid response format from the AI service.",
    NormalizationErrorKind.MISSING_PARAMETERS: "The AI response does not contain the analysis parameters.",
    NormalizationErrorKind.MALFORMED_JSON: "No valid JSON found in the AI response.",
}


class ErrorHandler:
    """
    Centralized error handling and user feedback.

    Classifies exceptions and normalization failures, retries retryable
    operations with backoff, and keeps a short error history for logging.
    """

    def __init__(self, sleep: Callable[[float], None] = time.sleep):
        self.error_history = []
        self._sleep = sleep

    def handle_openai_error(self, error: Exception, context: str = "") -> ErrorInfo:
        """
        Handle errors raised by the OpenAI-compatible client.

        Args:
            error: The client exception
            context: Additional context about the operation

        Returns:
            ErrorInfo object with structured error information
        """
        status_code = getattr(error, 'status_code', None)
        if status_code is None and hasattr(error, 'response'):
            status_code = getattr(error.response, 'status_code', None)

        if isinstance(error, openai.AuthenticationError) or status_code == 401:
            return ErrorInfo(
                category=ErrorCategory.API_ERROR,
                severity=ErrorSeverity.CRITICAL,
                message=f"AI service authentication failed: {str(error)}",
                user_message="AI service authentication failed. Please check the API key configuration.",
                suggested_action="Verify AI_API_KEY in Streamlit secrets or the environment.",
                retry_possible=False
            )

        if isinstance(error, openai.RateLimitError) or status_code == 429:
            return ErrorInfo(
                category=ErrorCategory.API_ERROR,
                severity=ErrorSeverity.WARNING,
                message=f"AI service rate limit exceeded: {str(error)}",
                user_message="AI service rate limit exceeded. Please try again in a moment.",
                suggested_action="Wait a moment and run the analysis again.",
                retry_possible=True
            )

        if isinstance(error, openai.APITimeoutError) or "timeout" in str(error).lower():
            return ErrorInfo(
                category=ErrorCategory.NETWORK_ERROR,
                severity=ErrorSeverity.WARNING,
                message=f"AI service timeout: {str(error)}",
                user_message="The AI service request timed out. Please try again.",
                suggested_action="Check your internet connection and retry.",
                retry_possible=True
            )

        if isinstance(error, openai.APIConnectionError):
            return ErrorInfo(
                category=ErrorCategory.NETWORK_ERROR,
                severity=ErrorSeverity.ERROR,
                message=f"Failed to connect to AI service: {str(error)}",
                user_message="Cannot connect to the AI service. Please check your internet connection.",
                suggested_action="Check your internet connection and try again.",
                retry_possible=True
            )

        if status_code is not None and status_code >= 500:
            return ErrorInfo(
                category=ErrorCategory.API_ERROR,
                severity=ErrorSeverity.ERROR,
                message=f"AI service server error: {str(error)}",
                user_message="The AI service encountered an internal error. Please try again.",
                suggested_action="Retry the analysis. If the problem persists, use manual parameters.",
                retry_possible=True
            )

        if isinstance(error, openai.BadRequestError) or status_code == 400:
            return ErrorInfo(
                category=ErrorCategory.API_ERROR,
                severity=ErrorSeverity.ERROR,
                message=f"Invalid request to AI service: {str(error)}",
                user_message="The AI service rejected the request.",
                technical_details=str(error),
                suggested_action="Check the AI model configuration.",
                retry_possible=False
            )

        return ErrorInfo(
            category=ErrorCategory.API_ERROR,
            severity=ErrorSeverity.ERROR,
            message=f"AI service error in {context}: {str(error)}",
            user_message="An error occurred while communicating with the AI service.",
            technical_details=str(error),
            suggested_action="Please try again or set the parameters manually.",
            retry_possible=True
        )

    def handle_normalization_error(self, error: NormalizationError) -> ErrorInfo:
        """
        Map a normalization failure to user-facing error information.

        Args:
            error: Failure returned by the response normalizer

        Returns:
            ErrorInfo object with structured error information
        """
        if error.kind == NormalizationErrorKind.TOOL_REPORTED_FAILURE:
            return ErrorInfo(
                category=ErrorCategory.API_ERROR,
                severity=ErrorSeverity.ERROR,
                message=f"AI tool reported failure: {error.message}",
                user_message=error.message,
                suggested_action="Run the analysis again or set the parameters manually.",
                retry_possible=True
            )

        return ErrorInfo(
            category=ErrorCategory.PARSE_ERROR,
            severity=ErrorSeverity.WARNING,
            message=f"AI response normalization failed ({error.kind.value}): {error.message}",
            user_message=NORMALIZATION_MESSAGES.get(error.kind, error.message),
            technical_details=error.message,
            suggested_action="Run the analysis again or set the parameters manually.",
            retry_possible=True
        )

    def handle_storage_error(self, error: Exception, context: str = "") -> ErrorInfo:
        """Calculation history failures are never shown to the user."""
        return ErrorInfo(
            category=ErrorCategory.STORAGE_ERROR,
            severity=ErrorSeverity.WARNING,
            message=f"Calculation history error in {context}: {str(error)}",
            user_message="The calculation could not be saved to history.",
            technical_details=str(error),
            retry_possible=False
        )

    def handle_validation_error(self, error: Exception, context: str = "") -> ErrorInfo:
        return ErrorInfo(
            category=ErrorCategory.VALIDATION_ERROR,
            severity=ErrorSeverity.WARNING,
            message=f"Validation error in {context}: {str(error)}",
            user_message=str(error),
            suggested_action="Please correct the highlighted fields and try again.",
            retry_possible=False
        )

    def classify_error(self, error: Exception, context: str = "") -> ErrorInfo:
        """
        Classify an error and return appropriate ErrorInfo.

        Args:
            error: The exception to classify
            context: Additional context about the operation

        Returns:
            ErrorInfo object with structured error information
        """
        if isinstance(error, openai.OpenAIError):
            return self.handle_openai_error(error, context)

        if isinstance(error, (ConnectionError, TimeoutError)):
            return ErrorInfo(
                category=ErrorCategory.NETWORK_ERROR,
                severity=ErrorSeverity.ERROR,
                message=f"Network error in {context}: {str(error)}",
                user_message="A network error occurred while contacting the AI service.",
                technical_details=str(error),
                suggested_action="Check your internet connection and try again.",
                retry_possible=True
            )

        if isinstance(error, (OSError, PermissionError)):
            return self.handle_storage_error(error, context)

        if isinstance(error, ValueError) and "validation" in str(error).lower():
            return self.handle_validation_error(error, context)

        return ErrorInfo(
            category=ErrorCategory.SYSTEM_ERROR,
            severity=ErrorSeverity.ERROR,
            message=f"Unexpected error in {context}: {str(error)}",
            user_message="An unexpected error occurred. Please try again.",
            technical_details=str(error),
            suggested_action="Try again. If the problem persists, set the parameters manually.",
            retry_possible=True
        )

    def retry_with_backoff(self, func: Callable, config: RetryConfig = None,
                          context: str = "") -> Tuple[bool, Any, Optional[ErrorInfo]]:
        """
        Execute a function with retry logic and exponential backoff.

        Args:
            func: Function to execute
            config: Retry configuration
            context: Context for error reporting

        Returns:
            Tuple of (success, result, error_info)
        """
        if config is None:
            config = RetryConfig()

        last_error = None

        for attempt in range(config.max_attempts):
            try:
                result = func()
                return True, result, None

            except Exception as e:
                last_error = e
                logger.warning(f"Attempt {attempt + 1}/{config.max_attempts} failed in {context}: {str(e)}")

                if attempt == config.max_attempts - 1:
                    break

                if not self.classify_error(e, context).retry_possible:
                    break

                delay = config.delay_for_attempt(attempt)
                logger.info(f"Retrying in {delay} seconds...")
                self._sleep(delay)

        error_info = self.classify_error(last_error, context)
        return False, None, error_info

    def create_user_notification(self, error_info: ErrorInfo) -> Dict[str, Any]:
        """
        Create a user-friendly notification from error information.

        Args:
            error_info: Structured error information

        Returns:
            Dictionary with notification data for UI display
        """
        notification_type_map = {
            ErrorSeverity.INFO: "info",
            ErrorSeverity.WARNING: "warning",
            ErrorSeverity.ERROR: "error",
            ErrorSeverity.CRITICAL: "error"
        }

        notification = {
            'type': notification_type_map[error_info.severity],
            'title': self._get_error_title(error_info),
            'message': error_info.user_message,
            'timestamp': error_info.timestamp.isoformat(),
            'retry_possible': error_info.retry_possible
        }

        if error_info.suggested_action:
            notification['action'] = error_info.suggested_action

        if error_info.technical_details and error_info.severity == ErrorSeverity.CRITICAL:
            notification['technical_details'] = error_info.technical_details

        return notification

    def _get_error_title(self, error_info: ErrorInfo) -> str:
        title_map = {
            ErrorCategory.API_ERROR: "AI Service Error",
            ErrorCategory.PARSE_ERROR: "AI Response Error",
            ErrorCategory.VALIDATION_ERROR: "Input Validation Error",
            ErrorCategory.NETWORK_ERROR: "Connection Error",
            ErrorCategory.STORAGE_ERROR: "History Error",
            ErrorCategory.SYSTEM_ERROR: "System Error"
        }

        return title_map.get(error_info.category, "Error")

    def log_error(self, error_info: ErrorInfo, context: str = ""):
        """
        Log error information and keep it in the recent history.

        Args:
            error_info: Structured error information
            context: Additional context
        """
        self.error_history.append(error_info)

        # Keep only recent errors (last 100)
        if len(self.error_history) > 100:
            self.error_history = self.error_history[-100:]

        log_message = f"{context}: {error_info.message}"

        if error_info.severity == ErrorSeverity.CRITICAL:
            logger.critical(log_message)
        elif error_info.severity == ErrorSeverity.ERROR:
            logger.error(log_message)
        elif error_info.severity == ErrorSeverity.WARNING:
            logger.warning(log_message)
        else:
            logger.info(log_message)


# Global error handler instance
error_handler = ErrorHandler()
