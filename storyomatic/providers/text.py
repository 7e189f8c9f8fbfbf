"""Text generation provider abstractions and implementations."""

from __future__ import annotations

import os
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

from ..exceptions import APIError, ConfigurationError, ContentPolicyError, InvalidModelError, handle_api_error


def _init_api_key(env_var: str, provider_name: str, api_key: Optional[str] = None) -> str:
    """Initialize API key from parameter or environment.

    Args:
        env_var: Environment variable name to check
        provider_name: Human-readable provider name for error messages
        api_key: Optional API key passed directly

    Returns:
        The API key

    Raises:
        ConfigurationError: If no API key is found
    """
    key = api_key or os.environ.get(env_var)
    if not key:
        raise ConfigurationError(
            f"{provider_name} API key not found. "
            f"Set {env_var} environment variable or pass api_key parameter.",
            help_text="Run `storyomatic setup` to store a key",
        )
    return key


@dataclass
class TextGenerationResult:
    """Result from text generation."""
    content: str
    provider: str
    model: str
    estimated_cost: float  # in USD


class TextProvider(ABC):
    """Abstract base class for text generation providers."""

    @abstractmethod
    def generate(
        self,
        prompt: str,
        temperature: float = 0.7,
        top_p: float = 0.8,
        json_mode: bool = False,
        model: Optional[str] = None,
    ) -> TextGenerationResult:
        """Generate text from a single prompt.

        Args:
            prompt: The full prompt text
            temperature: Sampling temperature (0.0-2.0)
            top_p: Nucleus sampling probability mass
            json_mode: Ask the endpoint for JSON-formatted output
            model: Optional model override

        Returns:
            TextGenerationResult with generated content and metadata
        """
        pass

    @abstractmethod
    def get_default_model(self) -> str:
        """Get the default model for this provider."""
        pass

    def estimate_cost(self, prompt: str, model: Optional[str] = None) -> float:
        """Estimate cost in USD for one call with this prompt."""
        return 0.0

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Human-readable provider name."""
        pass


def _validate_temperature(temperature: float) -> None:
    if not 0.0 <= temperature <= 2.0:
        raise ValueError(f"Temperature must be between 0.0 and 2.0, got {temperature}")


class OpenAICompatibleProvider(TextProvider):
    """Base class for providers using the OpenAI SDK, optionally with a custom base URL."""

    api_key: str

    def get_base_url(self) -> Optional[str]:
        """Get the base URL for this provider. None for native OpenAI."""
        return None

    def generate(
        self,
        prompt: str,
        temperature: float = 0.7,
        top_p: float = 0.8,
        json_mode: bool = False,
        model: Optional[str] = None,
    ) -> TextGenerationResult:
        _validate_temperature(temperature)

        try:
            from openai import OpenAI
        except ImportError as e:
            raise RuntimeError("OpenAI SDK not installed. Run: pip install openai>=1.0") from e

        base_url = self.get_base_url()
        if base_url:
            client = OpenAI(api_key=self.api_key, base_url=base_url)
        else:
            client = OpenAI(api_key=self.api_key)

        model_name = model or self.get_default_model()

        kwargs = {}
        if json_mode:
            kwargs["response_format"] = {"type": "json_object"}

        try:
            resp = client.chat.completions.create(
                model=model_name,
                messages=[{"role": "user", "content": prompt}],
                temperature=temperature,
                top_p=top_p,
                n=1,
                **kwargs,
            )
        except Exception as e:
            raise handle_api_error(e, self.provider_name) from e

        content = resp.choices[0].message.content or ""

        return TextGenerationResult(
            content=content,
            provider=self.provider_name.lower(),
            model=model_name,
            estimated_cost=self.estimate_cost(prompt, model_name),
        )


class OpenAIProvider(OpenAICompatibleProvider):
    """OpenAI text generation provider."""

    def __init__(self, api_key: Optional[str] = None):
        self.api_key = _init_api_key("OPENAI_API_KEY", "OpenAI", api_key)

    def get_default_model(self) -> str:
        return "gpt-4o-mini"

    def estimate_cost(self, prompt: str, model: Optional[str] = None) -> float:
        """Rough estimate: ~1000 input tokens, ~600 output tokens per segment."""
        model_name = model or self.get_default_model()
        if "gpt-4o-mini" in model_name:
            return (1000 * 0.150 / 1_000_000) + (600 * 0.600 / 1_000_000)
        elif "gpt-4o" in model_name:
            return (1000 * 2.50 / 1_000_000) + (600 * 10.00 / 1_000_000)
        return 0.01

    @property
    def provider_name(self) -> str:
        return "OpenAI"


class GroqProvider(OpenAICompatibleProvider):
    """Groq text generation provider."""

    def __init__(self, api_key: Optional[str] = None):
        self.api_key = _init_api_key("GROQ_API_KEY", "Groq", api_key)

    def get_base_url(self) -> Optional[str]:
        return "https://api.groq.com/openai/v1"

    def get_default_model(self) -> str:
        return "llama-3.3-70b-versatile"

    def estimate_cost(self, prompt: str, model: Optional[str] = None) -> float:
        model_name = model or self.get_default_model()
        if "70b" in model_name.lower():
            return (1000 * 0.59 / 1_000_000) + (600 * 0.79 / 1_000_000)
        return 0.001

    @property
    def provider_name(self) -> str:
        return "Groq"


class OpenRouterProvider(OpenAICompatibleProvider):
    """OpenRouter text generation provider."""

    def __init__(self, api_key: Optional[str] = None):
        self.api_key = _init_api_key("OPENROUTER_API_KEY", "OpenRouter", api_key)

    def get_base_url(self) -> Optional[str]:
        return "https://openrouter.ai/api/v1"

    def get_default_model(self) -> str:
        return "z-ai/glm-4.6"

    def estimate_cost(self, prompt: str, model: Optional[str] = None) -> float:
        return 0.003

    @property
    def provider_name(self) -> str:
        return "OpenRouter"


class HuggingFaceProvider(TextProvider):
    """Hugging Face Inference API provider.

    Works with or without API key:
    - With API key: Higher rate limits
    - Without API key: Free tier with lower rate limits

    There is no native JSON mode; the segment templates already demand JSON.
    """

    def __init__(self, api_key: Optional[str] = None):
        self.api_key = api_key or os.environ.get("HUGGINGFACE_API_KEY")
        self.using_free_tier = not self.api_key

    def generate(
        self,
        prompt: str,
        temperature: float = 0.7,
        top_p: float = 0.8,
        json_mode: bool = False,
        model: Optional[str] = None,
    ) -> TextGenerationResult:
        import requests

        _validate_temperature(temperature)

        model_name = model or self.get_default_model()
        api_url = f"https://api-inference.huggingface.co/models/{model_name}"

        headers = {}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"

        payload = {
            "inputs": prompt,
            "parameters": {
                "temperature": temperature,
                "top_p": top_p,
                "max_new_tokens": 1200,
                "return_full_text": False,
            }
        }

        try:
            response = requests.post(api_url, headers=headers, json=payload, timeout=120)
            response.raise_for_status()
        except requests.exceptions.RequestException as e:
            raise handle_api_error(e, self.provider_name) from e

        try:
            result = response.json()
        except ValueError as e:
            raise APIError(
                self.provider_name,
                f"Non-JSON response from {model_name}: {e}",
                status_code=response.status_code,
                user_message="Hugging Face returned an unreadable response",
                help_text="The model may still be loading. Try again in a minute",
            ) from e
        if isinstance(result, list) and len(result) > 0:
            content = result[0].get("generated_text", "")
        else:
            content = result.get("generated_text", "")

        return TextGenerationResult(
            content=content,
            provider="huggingface" + (" (free)" if self.using_free_tier else ""),
            model=model_name,
            estimated_cost=0.0,
        )

    def get_default_model(self) -> str:
        return "mistralai/Mistral-7B-Instruct-v0.3"

    @property
    def provider_name(self) -> str:
        return "Hugging Face"


class GeminiProvider(TextProvider):
    """Google Gemini text generation provider."""

    ALLOWED_MODELS = {
        "gemini-2.5-flash",
        "gemini-2.5-flash-lite",
        "gemini-2.0-flash",
        "gemini-1.5-flash",
        "gemini-1.5-pro",
    }

    def __init__(self, api_key: Optional[str] = None):
        self.api_key = _init_api_key("GEMINI_API_KEY", "Gemini", api_key)

    def generate(
        self,
        prompt: str,
        temperature: float = 0.7,
        top_p: float = 0.8,
        json_mode: bool = False,
        model: Optional[str] = None,
    ) -> TextGenerationResult:
        import google.generativeai as genai

        _validate_temperature(temperature)
        genai.configure(api_key=self.api_key)

        model_name = model or self.get_default_model()
        if model_name not in self.ALLOWED_MODELS:
            raise InvalidModelError(self.provider_name, model_name, sorted(self.ALLOWED_MODELS))

        generation_config = {
            "temperature": temperature,
            "top_p": top_p,
            "candidate_count": 1,
        }
        if json_mode:
            generation_config["response_mime_type"] = "application/json"

        model_instance = genai.GenerativeModel(model_name)

        try:
            response = model_instance.generate_content(prompt, generation_config=generation_config)
        except Exception as e:
            raise handle_api_error(e, self.provider_name) from e

        try:
            content = response.text
        except ValueError as e:
            # The SDK raises when the candidate was blocked and carries no text
            raise ContentPolicyError(self.provider_name, str(e)) from e

        return TextGenerationResult(
            content=content,
            provider="gemini",
            model=model_name,
            estimated_cost=self.estimate_cost(prompt, model_name),
        )

    def get_default_model(self) -> str:
        return "gemini-2.0-flash"

    def estimate_cost(self, prompt: str, model: Optional[str] = None) -> float:
        """Flash models are free tier; pro models are cheap."""
        model_name = model or self.get_default_model()
        if "flash" in model_name.lower():
            return 0.0
        return (1000 * 1.25 / 1_000_000) + (600 * 5.00 / 1_000_000)

    @property
    def provider_name(self) -> str:
        return "Gemini"


def get_text_provider(provider_name: str, api_key: Optional[str] = None) -> TextProvider:
    """Factory function to get a text provider by name.

    Args:
        provider_name: One of "gemini", "openai", "groq", "openrouter", "huggingface"
        api_key: Optional API key (falls back to environment variables)

    Returns:
        Configured TextProvider instance

    Raises:
        ValueError: If provider_name is not recognized
    """
    providers = {
        "gemini": GeminiProvider,
        "openai": OpenAIProvider,
        "groq": GroqProvider,
        "openrouter": OpenRouterProvider,
        "huggingface": HuggingFaceProvider,
    }

    provider_class = providers.get(provider_name.lower())
    if not provider_class:
        raise ValueError(
            f"Unknown text provider: {provider_name}. "
            f"Available providers: {', '.join(providers.keys())}"
        )

    return provider_class(api_key=api_key)
