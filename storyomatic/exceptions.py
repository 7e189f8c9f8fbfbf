"""Custom exceptions for Story-o-matic with user-friendly error messages."""

from __future__ import annotations
import logging
from typing import Optional

logger = logging.getLogger(__name__)


class StoryomaticError(Exception):
    """Base exception for all Story-o-matic errors."""

    def __init__(self, message: str, user_message: Optional[str] = None, help_text: Optional[str] = None):
        """Initialize error with technical and user-friendly messages.

        Args:
            message: Technical error message for logs
            user_message: User-friendly message to display
            help_text: Optional help/suggestion text
        """
        super().__init__(message)
        self.message = message
        self.user_message = user_message or message
        self.help_text = help_text

        self._log_error()

    def _log_error(self):
        """Log error to console with user-friendly formatting."""
        logger.error(f"❌ {self.user_message}")
        if self.help_text:
            logger.info(f"💡 {self.help_text}")
        logger.debug(f"Technical details: {self.message}")


# ---------------------------------------------------------------------------
# Configuration errors: fail fast, never retried automatically
# ---------------------------------------------------------------------------


class ConfigurationError(StoryomaticError):
    """Missing credential or invalid static configuration."""


class GenreNotFoundError(ConfigurationError):
    def __init__(self, genre: str, available: Optional[list[str]] = None):
        self.genre = genre
        message = f"Genre not found: {genre}"
        help_text = None
        if available:
            help_text = f"Available genres: {', '.join(available)}"
        super().__init__(message, user_message=f"Unknown genre '{genre}'", help_text=help_text)


class InstructionNotFoundError(ConfigurationError):
    def __init__(self, title: str):
        self.title = title
        super().__init__(f"Instruction not found: {title}")


class TemplateNotFoundError(ConfigurationError):
    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Template not found: {name}")


class UnknownStrategyError(ConfigurationError):
    def __init__(self, version: str, available: Optional[list[str]] = None):
        self.version = version
        message = f"Unknown strategy version '{version}'"
        help_text = None
        if available:
            help_text = f"Available strategies: {', '.join(available)}"
        super().__init__(message, help_text=help_text)


# ---------------------------------------------------------------------------
# Generation and engine errors
# ---------------------------------------------------------------------------


class MalformedResponseError(StoryomaticError):
    """The generation endpoint answered, but not with the expected JSON contract."""

    def __init__(self, message: str, raw_response: Optional[str] = None):
        self.raw_response = raw_response
        if raw_response is not None:
            message = f"{message}\nRaw response:\n{raw_response}"
        super().__init__(
            message,
            user_message="The story generator returned an unreadable response",
            help_text="Try again; this usually resolves itself on retry",
        )


class StoryBusyError(StoryomaticError):
    """A generation request is already in flight for this story."""

    def __init__(self, story_id: Optional[str] = None):
        self.story_id = story_id
        message = "A generation request is already in progress"
        if story_id:
            message += f" for story {story_id}"
        super().__init__(message, help_text="Wait for the current request to finish")


class StoryNotFoundError(StoryomaticError):
    def __init__(self, story_id: str):
        self.story_id = story_id
        super().__init__(f"Story not found: {story_id}")


# ---------------------------------------------------------------------------
# Transport errors
# ---------------------------------------------------------------------------


class APIError(StoryomaticError):
    """Base class for API-related errors."""

    def __init__(self, provider: str, message: str, status_code: Optional[int] = None, **kwargs):
        self.provider = provider
        self.status_code = status_code
        super().__init__(message, **kwargs)


class RateLimitError(APIError):
    """Rate limit exceeded error."""

    def __init__(self, provider: str, retry_after: Optional[int] = None):
        self.retry_after = retry_after

        message = f"{provider} rate limit exceeded"
        if retry_after:
            message += f" (retry after {retry_after}s)"

        help_text = "Try again in a few minutes, or use a different provider in Settings"
        if retry_after:
            help_text = f"Wait {retry_after} seconds and try again, or switch to a different provider"

        super().__init__(
            provider=provider,
            message=message,
            status_code=429,
            user_message=f"Rate limit reached for {provider}",
            help_text=help_text
        )


class AuthenticationError(APIError):
    """API authentication failed error."""

    def __init__(self, provider: str, details: Optional[str] = None):
        message = f"{provider} authentication failed"
        if details:
            message += f": {details}"

        super().__init__(
            provider=provider,
            message=message,
            status_code=401,
            user_message=f"API key invalid or missing for {provider}",
            help_text=f"Check your {provider} API key with `storyomatic setup` or the environment."
        )


class QuotaExceededError(APIError):
    """API quota/credits exceeded error."""

    def __init__(self, provider: str):
        super().__init__(
            provider=provider,
            message=f"{provider} quota or credits exceeded",
            status_code=402,
            user_message=f"You've run out of credits for {provider}",
            help_text=f"Add more credits to your {provider} account, or switch to Gemini which has a free tier"
        )


class ContentPolicyError(APIError):
    """Content rejected by API policy/safety filters."""

    def __init__(self, provider: str, details: Optional[str] = None):
        message = f"{provider} rejected content"
        if details:
            message += f": {details}"

        super().__init__(
            provider=provider,
            message=message,
            status_code=400,
            user_message=f"{provider}'s content policy blocked this request",
            help_text="Try a different genre or choice. Some providers have stricter content policies than others."
        )


class ServerError(APIError):
    """API server error (5xx)."""

    def __init__(self, provider: str, status_code: int, details: Optional[str] = None):
        message = f"{provider} server error ({status_code})"
        if details:
            message += f": {details}"

        super().__init__(
            provider=provider,
            message=message,
            status_code=status_code,
            user_message=f"{provider} is experiencing issues (error {status_code})",
            help_text="Try again in a few minutes, or temporarily use a different provider"
        )


class TimeoutError(APIError):
    """API request timed out."""

    def __init__(self, provider: str, timeout: int):
        super().__init__(
            provider=provider,
            message=f"{provider} request timed out after {timeout}s",
            user_message=f"Request to {provider} timed out",
            help_text="The provider took too long to respond. Try again, or use a faster model."
        )


class NetworkError(APIError):
    """Network connectivity error."""

    def __init__(self, provider: str, details: Optional[str] = None):
        message = f"Network error connecting to {provider}"
        if details:
            message += f": {details}"

        super().__init__(
            provider=provider,
            message=message,
            user_message=f"Cannot connect to {provider}",
            help_text="Check your internet connection and try again"
        )


class InvalidModelError(APIError):
    """Requested model not available or invalid."""

    def __init__(self, provider: str, model: str, available_models: Optional[list[str]] = None):
        self.model = model
        self.available_models = available_models

        help_text = "Check the model name in your settings"
        if available_models:
            help_text += f". Available models: {', '.join(available_models[:3])}"

        super().__init__(
            provider=provider,
            message=f"Invalid model '{model}' for {provider}",
            status_code=400,
            user_message=f"Model '{model}' is not available for {provider}",
            help_text=help_text
        )


def handle_api_error(error: Exception, provider: str) -> StoryomaticError:
    """Convert SDK and HTTP exceptions to user-friendly errors.

    Args:
        error: The original exception
        provider: Name of the provider (for error messages)

    Returns:
        StoryomaticError subclass with helpful messages
    """
    import requests

    if isinstance(error, StoryomaticError):
        return error

    # Handle OpenAI SDK errors
    try:
        from openai import APIError as OpenAIAPIError, RateLimitError as OpenAIRateLimit, AuthenticationError as OpenAIAuthError
        from openai import APITimeoutError, APIConnectionError

        if isinstance(error, OpenAIRateLimit):
            return RateLimitError(provider)
        elif isinstance(error, OpenAIAuthError):
            return AuthenticationError(provider, str(error))
        elif isinstance(error, APITimeoutError):
            return TimeoutError(provider, timeout=60)
        elif isinstance(error, APIConnectionError):
            return NetworkError(provider, str(error))
        elif isinstance(error, OpenAIAPIError):
            status_code = getattr(error, 'status_code', None)
            if status_code:
                if status_code >= 500:
                    return ServerError(provider, status_code, str(error))
                elif status_code == 400:
                    return ContentPolicyError(provider, str(error))
            return APIError(provider, str(error), status_code=status_code,
                          user_message=f"API error from {provider}", help_text="Check your request and try again")
    except ImportError:
        pass

    # Handle Google API core errors raised by the Gemini SDK
    try:
        from google.api_core import exceptions as google_exceptions

        if isinstance(error, google_exceptions.TooManyRequests):
            return RateLimitError(provider)
        elif isinstance(error, (google_exceptions.Unauthenticated, google_exceptions.PermissionDenied)):
            return AuthenticationError(provider, str(error))
        elif isinstance(error, google_exceptions.DeadlineExceeded):
            return TimeoutError(provider, timeout=60)
        elif isinstance(error, google_exceptions.InvalidArgument):
            return ContentPolicyError(provider, str(error))
        elif isinstance(error, google_exceptions.ServerError):
            return ServerError(provider, error.code or 500, str(error))
        elif isinstance(error, google_exceptions.GoogleAPICallError):
            return APIError(provider, str(error), status_code=error.code,
                          user_message=f"API error from {provider}", help_text="Check your request and try again")
    except ImportError:
        pass

    # Handle requests library errors
    if isinstance(error, requests.exceptions.HTTPError):
        status_code = error.response.status_code

        details = None
        try:
            error_data = error.response.json()
            details = error_data.get('error', {}).get('message') or error_data.get('message')
        except Exception:
            pass

        if status_code == 429:
            retry_after = None
            if 'Retry-After' in error.response.headers:
                try:
                    retry_after = int(error.response.headers['Retry-After'])
                except ValueError:
                    pass
            return RateLimitError(provider, retry_after)

        elif status_code in (401, 403):
            return AuthenticationError(provider, details)

        elif status_code == 402:
            return QuotaExceededError(provider)

        elif status_code == 400:
            if details and any(word in details.lower() for word in ['policy', 'safety', 'inappropriate', 'content']):
                return ContentPolicyError(provider, details)
            return APIError(provider, f"Invalid request: {details or 'Unknown error'}", status_code=400,
                          user_message=f"Invalid request to {provider}", help_text="Check your request parameters")

        elif status_code >= 500:
            return ServerError(provider, status_code, details)

    elif isinstance(error, requests.exceptions.Timeout):
        return TimeoutError(provider, timeout=30)

    elif isinstance(error, requests.exceptions.ConnectionError):
        return NetworkError(provider, str(error))

    elif isinstance(error, requests.exceptions.RequestException):
        return NetworkError(provider, str(error))

    return APIError(
        provider=provider,
        message=f"Unexpected error: {str(error)}",
        user_message=f"Unexpected error with {provider}",
        help_text="Try again or use a different provider"
    )
