"""Tests for API error handling and user-friendly error messages."""

import logging

import pytest
from unittest.mock import Mock
from storyomatic.exceptions import (
    APIError,
    AuthenticationError,
    ConfigurationError,
    ContentPolicyError,
    GenreNotFoundError,
    InvalidModelError,
    MalformedResponseError,
    NetworkError,
    QuotaExceededError,
    RateLimitError,
    ServerError,
    StoryBusyError,
    StoryNotFoundError,
    StoryomaticError,
    TimeoutError,
    UnknownStrategyError,
    handle_api_error,
)


class TestExceptionMessages:
    """Test that exceptions have helpful user messages."""

    def test_rate_limit_error_message(self):
        """Test rate limit error has helpful message."""
        error = RateLimitError("OpenAI", retry_after=60)
        assert "Rate limit reached" in error.user_message
        assert "60" in error.help_text
        assert error.status_code == 429

    def test_authentication_error_message(self):
        error = AuthenticationError("OpenAI")
        assert "API key" in error.user_message
        assert "storyomatic setup" in error.help_text

    def test_quota_exceeded_error_message(self):
        error = QuotaExceededError("OpenAI")
        assert "credits" in error.user_message
        assert "free tier" in error.help_text

    def test_content_policy_error_message(self):
        error = ContentPolicyError("OpenAI")
        assert "policy" in error.user_message
        assert "stricter" in error.help_text

    def test_server_error_message(self):
        error = ServerError("OpenAI", 503)
        assert "503" in error.user_message
        assert "Try again" in error.help_text

    def test_timeout_error_message(self):
        error = TimeoutError("OpenAI", timeout=30)
        assert "timed out" in error.user_message

    def test_network_error_message(self):
        error = NetworkError("OpenAI")
        assert "connect" in error.user_message.lower()
        assert "internet" in error.help_text


class TestEngineErrors:
    def test_malformed_response_carries_raw_text(self):
        error = MalformedResponseError("Failed to parse JSON", raw_response="<html>oops</html>")
        assert error.raw_response == "<html>oops</html>"
        assert "<html>oops</html>" in str(error)
        assert error.user_message == "The story generator returned an unreadable response"

    def test_story_busy(self):
        error = StoryBusyError("abc")
        assert "abc" in error.message
        assert isinstance(error, StoryomaticError)

    def test_story_not_found(self):
        assert StoryNotFoundError("abc").story_id == "abc"

    def test_configuration_errors_share_a_base(self):
        assert isinstance(GenreNotFoundError("Westerns", ["Noir"]), ConfigurationError)
        assert isinstance(UnknownStrategyError("v9", ["base"]), ConfigurationError)
        assert "Noir" in GenreNotFoundError("Westerns", ["Noir"]).help_text


def _http_error(status, headers=None, body=None):
    import requests

    mock_response = Mock()
    mock_response.status_code = status
    mock_response.headers = headers or {}
    mock_response.json.return_value = body or {}
    return requests.exceptions.HTTPError(response=mock_response)


class TestRequestsErrorHandling:
    """Test conversion of requests library errors."""

    def test_handle_http_429_rate_limit(self):
        converted = handle_api_error(_http_error(429), "TestProvider")
        assert isinstance(converted, RateLimitError)
        assert converted.provider == "TestProvider"

    def test_handle_retry_after_header(self):
        converted = handle_api_error(_http_error(429, headers={"Retry-After": "120"}), "TestProvider")
        assert isinstance(converted, RateLimitError)
        assert converted.retry_after == 120

    def test_handle_http_401_authentication(self):
        assert isinstance(handle_api_error(_http_error(401), "TestProvider"), AuthenticationError)

    def test_handle_http_402_quota(self):
        assert isinstance(handle_api_error(_http_error(402), "TestProvider"), QuotaExceededError)

    def test_handle_http_400_policy_wording(self):
        error = _http_error(400, body={"error": {"message": "Blocked by safety system"}})
        assert isinstance(handle_api_error(error, "TestProvider"), ContentPolicyError)

    def test_handle_http_400_plain(self):
        converted = handle_api_error(_http_error(400, body={"message": "bad field"}), "TestProvider")
        assert type(converted) is APIError
        assert "bad field" in converted.message

    def test_handle_http_500_server_error(self):
        """Test 5xx status codes convert to ServerError."""
        for status in [500, 502, 503, 504]:
            converted = handle_api_error(_http_error(status), "TestProvider")
            assert isinstance(converted, ServerError)
            assert converted.status_code == status

    def test_handle_timeout_error(self):
        import requests
        assert isinstance(handle_api_error(requests.exceptions.Timeout(), "TestProvider"), TimeoutError)

    def test_handle_connection_error(self):
        import requests
        assert isinstance(handle_api_error(requests.exceptions.ConnectionError(), "TestProvider"), NetworkError)

    def test_storyomatic_errors_pass_through(self):
        original = StoryNotFoundError("abc")
        assert handle_api_error(original, "TestProvider") is original

    def test_unknown_error(self):
        converted = handle_api_error(RuntimeError("boom"), "TestProvider")
        assert type(converted) is APIError
        assert "boom" in converted.message


class TestGoogleErrorHandling:
    def test_too_many_requests(self):
        from google.api_core import exceptions as google_exceptions

        converted = handle_api_error(google_exceptions.TooManyRequests("slow down"), "Gemini")
        assert isinstance(converted, RateLimitError)

    def test_permission_denied(self):
        from google.api_core import exceptions as google_exceptions

        converted = handle_api_error(google_exceptions.PermissionDenied("bad key"), "Gemini")
        assert isinstance(converted, AuthenticationError)

    def test_server_error(self):
        from google.api_core import exceptions as google_exceptions

        converted = handle_api_error(google_exceptions.ServiceUnavailable("down"), "Gemini")
        assert isinstance(converted, ServerError)
        assert converted.status_code == 503


class TestErrorMessageConsoleOutput:
    """Test that errors are logged to console."""

    def test_error_logs_to_console(self, caplog):
        caplog.set_level(logging.ERROR)

        RateLimitError("OpenAI")

        assert any("Rate limit" in record.message for record in caplog.records)

    def test_error_includes_help_text_in_logs(self, caplog):
        """Test that help text is logged."""
        caplog.set_level(logging.INFO)

        AuthenticationError("OpenAI")

        # Should have both ERROR (user message) and INFO (help text) logs
        assert any(record.levelname == "ERROR" for record in caplog.records)
        assert any(record.levelname == "INFO" for record in caplog.records)


@pytest.mark.parametrize("error,expected", [
    (StoryNotFoundError("x"), 404),
    (StoryBusyError("x"), 409),
    (UnknownStrategyError("v9"), 400),
    (InvalidModelError("Gemini", "gemini-9000"), 400),
    (RateLimitError("Gemini"), 429),
    (MalformedResponseError("bad"), 502),
    (NetworkError("Gemini"), 502),
])
def test_http_status_mapping(error, expected):
    from storyomatic.api.dependencies import to_http_exception

    assert to_http_exception(error).status_code == expected
