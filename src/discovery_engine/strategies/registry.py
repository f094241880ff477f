"""
Discovery Engine — Strategy Registry
====================================
Version 1.0 — October 2026

Maps role identifiers to strategy factories. Plans may name roles that
were never registered; those get the default entry (Simulation), so
adding a role is a registration, not a new branch in the run loop.
"""

import logging
from typing import Callable, Dict, List, Optional

from ..graph import Strategy
from ..orchestrator_types import (
    ROLE_ANALYZE,
    ROLE_CROSS_REFERENCE,
    ROLE_DATA_COLLECTION,
    ROLE_DESIGN,
    ROLE_HYPOTHESIZE,
    ROLE_SIMULATION,
    ROLE_VALIDATE,
)
from .discovery import (
    AnalysisStrategy,
    ExperimentDesignStrategy,
    HypothesisStrategy,
    SimulationStrategy,
    ValidationStrategy,
)
from .experiment import DataCollectionStrategy

logger = logging.getLogger(__name__)

StrategyFactory = Callable[[], Strategy]


class StrategyRegistry:
    """Role -> strategy factory, with a documented fallback for unknown roles."""

    def __init__(self, default_factory: Optional[StrategyFactory] = None):
        self._factories: Dict[str, StrategyFactory] = {}
        self.default_factory = default_factory

    def register(self, role: str, factory: StrategyFactory) -> None:
        if role in self._factories:
            logger.debug(f"[REGISTRY] Replacing factory for role {role}")
        self._factories[role] = factory

    def __contains__(self, role: str) -> bool:
        return role in self._factories

    def roles(self) -> List[str]:
        return list(self._factories)

    def create(self, role: str) -> Strategy:
        """
        Fresh strategy instance for a role.

        Raises:
            KeyError: If the role is unknown and there is no default entry
        """
        factory = self._factories.get(role)
        if factory is None:
            if self.default_factory is None:
                raise KeyError(f"No strategy registered for role {role!r}")
            logger.info(f"[REGISTRY] No strategy for role {role!r}, using default")
            factory = self.default_factory
        return factory()


def default_registry(reasoning, search_tool) -> StrategyRegistry:
    """Registry with every built-in role; Simulation is the default entry."""
    registry = StrategyRegistry(default_factory=lambda: SimulationStrategy(reasoning))
    registry.register(ROLE_HYPOTHESIZE, lambda: HypothesisStrategy(reasoning))
    registry.register(ROLE_DESIGN, lambda: ExperimentDesignStrategy(reasoning))
    registry.register(ROLE_DATA_COLLECTION, lambda: DataCollectionStrategy(reasoning, search_tool))
    registry.register(ROLE_SIMULATION, lambda: SimulationStrategy(reasoning))
    # No dedicated cross-referencing logic; simulation reasons over all dependency results
    registry.register(ROLE_CROSS_REFERENCE, lambda: SimulationStrategy(reasoning))
    registry.register(ROLE_ANALYZE, lambda: AnalysisStrategy(reasoning))
    registry.register(ROLE_VALIDATE, lambda: ValidationStrategy(reasoning))
    return registry
