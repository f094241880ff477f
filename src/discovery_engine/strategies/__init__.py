"""
Discovery Engine — Strategies Package
=====================================
Built-in strategies, the role registry and the code-patch catalog.
"""

from .discovery import (
    HypothesisStrategy,
    ExperimentDesignStrategy,
    SimulationStrategy,
    AnalysisStrategy,
    ValidationStrategy,
    normalize_plan,
)
from .experiment import DataCollectionStrategy, DirectSearchStrategy
from .registry import StrategyRegistry, default_registry
from .patches import (
    PatchCatalog,
    RerunOriginalStrategy,
    ReasoningOnlyStrategy,
    default_patch_catalog,
    RERUN_ORIGINAL,
    DIRECT_BRIEF_SEARCH,
    REASONING_ONLY,
)

__all__ = [
    "HypothesisStrategy",
    "ExperimentDesignStrategy",
    "SimulationStrategy",
    "AnalysisStrategy",
    "ValidationStrategy",
    "DataCollectionStrategy",
    "DirectSearchStrategy",
    "normalize_plan",
    "StrategyRegistry",
    "default_registry",
    "PatchCatalog",
    "RerunOriginalStrategy",
    "ReasoningOnlyStrategy",
    "default_patch_catalog",
    "RERUN_ORIGINAL",
    "DIRECT_BRIEF_SEARCH",
    "REASONING_ONLY",
]
