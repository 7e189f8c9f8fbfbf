from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, asdict, fields
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

# Load environment variables from .env file if present
load_dotenv()

# Configuration mapping: settings_attr -> env_var
ENV_VAR_MAPPING = {
    'gemini_api_key': 'GEMINI_API_KEY',
    'openai_api_key': 'OPENAI_API_KEY',
    'groq_api_key': 'GROQ_API_KEY',
    'openrouter_api_key': 'OPENROUTER_API_KEY',
    'huggingface_api_key': 'HUGGINGFACE_API_KEY',
}

TEXT_PROVIDERS = ["gemini", "openai", "groq", "openrouter", "huggingface"]


def _config_dir() -> Path:
    xdg = os.environ.get("XDG_CONFIG_HOME")
    if xdg:
        return Path(xdg) / "storyomatic"
    return Path.home() / ".config" / "storyomatic"


CONFIG_PATH = _config_dir() / "config.json"


@dataclass
class UserSettings:
    # Gemini has a free tier and native JSON output
    text_provider: str = "gemini"
    default_text_model: Optional[str] = None  # None uses the provider default

    gemini_api_key: Optional[str] = None
    openai_api_key: Optional[str] = None
    groq_api_key: Optional[str] = None
    openrouter_api_key: Optional[str] = None
    huggingface_api_key: Optional[str] = None

    # Defaults for new stories
    default_prompt_strategy: str = "v1"
    default_language: str = "en"

    # Where the story library lives; None means ./stories
    library_dir: Optional[str] = None


def load_user_settings() -> UserSettings:
    """Load user settings from config file.

    Returns default settings if file doesn't exist or is corrupted.
    """
    try:
        if CONFIG_PATH.exists():
            data = json.loads(CONFIG_PATH.read_text(encoding="utf-8"))
            known = {f.name for f in fields(UserSettings)}
            return UserSettings(**{k: v for k, v in data.items() if k in known})
    except json.JSONDecodeError as e:
        logging.warning(f"Failed to parse settings file {CONFIG_PATH}: {e}")
    except Exception as e:
        logging.error(f"Unexpected error loading settings: {e}")

    return UserSettings()


def save_user_settings(s: UserSettings) -> None:
    """Save user settings to config file.

    SECURITY WARNING: API keys stored in plain text. Attempts to set
    file permissions to 0o600 (user read/write only) but logs warning if fails.
    """
    CONFIG_PATH.parent.mkdir(parents=True, exist_ok=True)

    try:
        if not CONFIG_PATH.exists():
            CONFIG_PATH.touch(mode=0o600)
        CONFIG_PATH.chmod(0o600)
    except Exception as e:
        logging.warning(
            f"Failed to set restrictive permissions (0o600) on {CONFIG_PATH}: {e}. "
            "API keys may be readable by other users on this system!"
        )

    CONFIG_PATH.write_text(json.dumps(asdict(s), indent=2), encoding="utf-8")


def ensure_provider_api_keys(settings: Optional[UserSettings] = None) -> None:
    """Ensure all provider API keys are loaded into environment from settings."""
    s = settings or load_user_settings()

    for settings_attr, env_var in ENV_VAR_MAPPING.items():
        key_value = getattr(s, settings_attr, None)
        if key_value and not os.environ.get(env_var):
            os.environ[env_var] = key_value


def get_api_key_for_provider(provider: str, settings: Optional[UserSettings] = None) -> Optional[str]:
    """Get API key for a specific provider from settings or environment.

    Args:
        provider: Provider name (e.g., "gemini", "openai", "groq")
        settings: Optional UserSettings instance (loads if not provided)

    Returns:
        API key string or None if not found
    """
    s = settings or load_user_settings()

    # Check environment first, then settings
    attr = f"{provider}_api_key"
    env_var = ENV_VAR_MAPPING.get(attr)
    if env_var is None:
        return None
    return os.environ.get(env_var) or getattr(s, attr, None)


def get_library_dir(settings: Optional[UserSettings] = None) -> Path:
    """Directory holding the story library: env var, then settings, then ./stories."""
    env_dir = os.environ.get("STORYOMATIC_LIBRARY_DIR")
    if env_dir:
        return Path(env_dir)
    s = settings or load_user_settings()
    if s.library_dir:
        return Path(s.library_dir).expanduser()
    return Path(os.getcwd()) / "stories"
