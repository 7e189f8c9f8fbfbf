from __future__ import annotations

from typing import Dict, Optional

from ..exceptions import UnknownStrategyError
from .loader import TemplateLoader
from .strategies import BasePromptStrategy, PromptStrategy, PromptStrategyV2

# Stable identifiers stored in persisted story settings.
STRATEGY_VERSIONS = ("base", "v1", "v2")


class PromptManager:
    """Fixed registry of prompt strategies keyed by version identifier."""

    def __init__(self, template_loader: Optional[TemplateLoader] = None):
        loader = template_loader or TemplateLoader()
        base = BasePromptStrategy(loader)
        self.strategies: Dict[str, PromptStrategy] = {
            "base": base,
            "v1": base,  # alias of base
            "v2": PromptStrategyV2(loader),
        }

    def create_strategy(self, version: str) -> PromptStrategy:
        """Return the strategy registered for ``version``.

        Raises:
            UnknownStrategyError: For any identifier outside the registry. There is
                no fallback, since another strategy assembles context differently.
        """
        strategy = self.strategies.get(version)
        if strategy is None:
            raise UnknownStrategyError(version, available=list(STRATEGY_VERSIONS))
        return strategy


_manager: Optional[PromptManager] = None


def get_prompt_strategy(version: str) -> PromptStrategy:
    """Shared-manager shortcut for ``PromptManager().create_strategy(version)``."""
    global _manager
    if _manager is None:
        _manager = PromptManager()
    return _manager.create_strategy(version)
