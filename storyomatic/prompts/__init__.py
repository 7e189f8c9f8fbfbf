"""Prompt templates and the strategies that fill them."""

from .loader import TemplateLoader
from .manager import STRATEGY_VERSIONS, PromptManager, get_prompt_strategy
from .strategies import (
    BasePromptStrategy,
    ChoiceContext,
    PromptStrategy,
    PromptStrategyV1,
    PromptStrategyV2,
)

__all__ = [
    "TemplateLoader",
    "PromptManager",
    "STRATEGY_VERSIONS",
    "get_prompt_strategy",
    "PromptStrategy",
    "BasePromptStrategy",
    "PromptStrategyV1",
    "PromptStrategyV2",
    "ChoiceContext",
]
