# Copyright 2025 Vijaykumar Singh <singhvjd@gmail.com>
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""Model strategy registry.

Manages registration and lookup of model strategies following the Factory
pattern. Strategies are registered once and never mutated.
"""

import logging
from typing import Callable, Optional

from victor_nextedit.protocol import ModelDescription
from victor_nextedit.strategies.capabilities import (
    FIM_FAMILIES,
    NEXT_EDIT_FAMILIES,
    match_family,
    supports_fim,
    supports_next_edit,
)
from victor_nextedit.strategies.fim import FIM_DEFAULT, FIM_TEMPLATES, make_fim_strategy
from victor_nextedit.strategies.hole_filler import HOLE_FILLER
from victor_nextedit.strategies.instinct import INSTINCT
from victor_nextedit.strategies.mercury import MERCURY_CODER
from victor_nextedit.strategies.protocol import ModelStrategy

logger = logging.getLogger(__name__)

DEFAULT_NEXT_EDIT_STRATEGY = "mercury-coder"
DEFAULT_FIM_STRATEGY = "fim-default"
FALLBACK_STRATEGY = "hole-filler"


class StrategyRegistry:
    """Registry for model strategies.

    Supports:
    - Registration of strategy records
    - Factory-based lazy construction
    - Resolution of a model description to a strategy
    """

    def __init__(self):
        """Initialize the registry."""
        self._strategies: dict[str, ModelStrategy] = {}
        self._factories: dict[str, Callable[[], ModelStrategy]] = {}

    def register(self, strategy: ModelStrategy) -> None:
        """Register a strategy.

        Args:
            strategy: The strategy to register
        """
        if strategy.name in self._strategies:
            logger.warning(f"Overwriting existing strategy: {strategy.name}")
        self._strategies[strategy.name] = strategy
        logger.debug(f"Registered model strategy: {strategy.name}")

    def register_factory(self, name: str, factory: Callable[[], ModelStrategy]) -> None:
        """Register a factory function for lazy construction.

        Args:
            name: Strategy name
            factory: Function that creates the strategy
        """
        self._factories[name] = factory
        logger.debug(f"Registered strategy factory: {name}")

    def get(self, name: str) -> Optional[ModelStrategy]:
        """Get a strategy by name.

        Args:
            name: Strategy name

        Returns:
            The strategy or None if not found
        """
        if name in self._strategies:
            return self._strategies[name]

        if name in self._factories:
            try:
                strategy = self._factories[name]()
            except Exception as e:
                logger.error(f"Factory failed for {name}: {e}")
                return None
            self._strategies[name] = strategy
            return strategy

        return None

    def unregister(self, name: str) -> bool:
        """Unregister a strategy.

        Args:
            name: Strategy name

        Returns:
            True if the strategy was found and removed
        """
        found = False
        if name in self._strategies:
            del self._strategies[name]
            found = True
        if name in self._factories:
            del self._factories[name]
            found = True
        return found

    def list_strategies(self) -> list[str]:
        """List all registered strategy names."""
        return sorted(set(self._strategies.keys()) | set(self._factories.keys()))

    def resolve(self, model: ModelDescription) -> ModelStrategy:
        """Pick the strategy for a model.

        Next-edit families come first, then FIM families, then the chat
        hole-filler. A model flagged as capable but matching no known family
        gets that capability's default strategy.

        Args:
            model: The selected autocomplete model

        Returns:
            The strategy to use

        Raises:
            LookupError: If not even the fallback strategy is registered
        """
        if supports_next_edit(model):
            family = match_family(model, NEXT_EDIT_FAMILIES)
            strategy = self.get(family or DEFAULT_NEXT_EDIT_STRATEGY)
            if strategy is not None:
                return strategy

        if supports_fim(model):
            family = match_family(model, FIM_FAMILIES)
            strategy = self.get(family or DEFAULT_FIM_STRATEGY) or self.get(DEFAULT_FIM_STRATEGY)
            if strategy is not None:
                return strategy

        strategy = self.get(FALLBACK_STRATEGY)
        if strategy is None:
            raise LookupError(f"No strategy available for model: {model.model}")
        return strategy

    def __contains__(self, name: object) -> bool:
        return name in self._strategies or name in self._factories


def register_builtin_strategies(registry: StrategyRegistry) -> None:
    """Register the strategies shipped with the engine."""
    registry.register(MERCURY_CODER)
    registry.register(INSTINCT)
    registry.register(HOLE_FILLER)
    registry.register(FIM_DEFAULT)
    for family in FIM_TEMPLATES:
        if family != "default" and family not in registry:
            registry.register_factory(family, lambda family=family: make_fim_strategy(family))


# Global registry instance
_strategy_registry: Optional[StrategyRegistry] = None


def get_strategy_registry() -> StrategyRegistry:
    """Get the global strategy registry.

    Creates and initializes the registry with built-in strategies on first
    call.

    Returns:
        The global registry instance
    """
    global _strategy_registry
    if _strategy_registry is None:
        _strategy_registry = StrategyRegistry()
        register_builtin_strategies(_strategy_registry)
    return _strategy_registry


def reset_strategy_registry() -> None:
    """Reset the global registry. Useful for testing."""
    global _strategy_registry
    _strategy_registry = None
