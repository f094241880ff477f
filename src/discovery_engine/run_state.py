"""
Discovery Engine - Run State
============================
Shared key-value store for one run.

Node results live under their node id; the orchestrator also keeps the
run's goal and the rolling knowledge summary under well-known keys.
"""

import logging
from typing import Any, Dict, Iterable, Iterator, Type, TypeVar

from pydantic import BaseModel, ValidationError

from .errors import DiscoveryEngineError, ResultContractError
from .orchestrator_types import OUTPUT_CONTRACT_KEYS, STATE_GOAL, STATE_KNOWLEDGE

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


class RunState:
    """
    Mutable store shared by the nodes of a single run.

    A node result is recorded once; an artifact repair may overwrite it
    exactly once more by passing replace=True.
    """

    def __init__(self, goal: str = ""):
        self._data: Dict[str, Any] = {STATE_GOAL: goal, STATE_KNOWLEDGE: ""}
        self._replaced: set = set()

    # --- well-known keys ---------------------------------------------------

    @property
    def goal(self) -> str:
        return self._data[STATE_GOAL]

    @property
    def knowledge(self) -> str:
        return self._data[STATE_KNOWLEDGE]

    def append_knowledge(self, entry: str) -> None:
        self._data[STATE_KNOWLEDGE] = self._data[STATE_KNOWLEDGE] + f"\n- {entry}"

    # --- node results ------------------------------------------------------

    def record(self, node_id: str, entry: Dict[str, Any], replace: bool = False) -> None:
        """Write a node's result entry."""
        missing = [key for key in OUTPUT_CONTRACT_KEYS if key not in entry]
        if missing:
            raise ResultContractError(f"State entry for {node_id} is missing {missing}")

        if node_id in self._data:
            if not replace or node_id in self._replaced:
                raise DiscoveryEngineError(f"Result for {node_id} has already been recorded")
            logger.info(f"[STATE] Replacing recorded result for {node_id}")
            self._replaced.add(node_id)
        elif replace:
            self._replaced.add(node_id)

        self._data[node_id] = dict(entry)

    def get(self, key: str, default: Any = None) -> Any:
        return self._data.get(key, default)

    def __contains__(self, key: str) -> bool:
        return key in self._data

    def __getitem__(self, key: str) -> Any:
        return self._data[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def subset(self, keys: Iterable[str]) -> Dict[str, Any]:
        """Entries for the given keys that have been recorded."""
        return {k: self._data[k] for k in keys if k in self._data}

    def result(self, node_id: str, model: Type[ModelT]) -> ModelT:
        """Read a node's result as its typed model."""
        entry = self._data.get(node_id)
        if entry is None:
            raise ResultContractError(f"No result recorded for {node_id}")
        try:
            return model.model_validate(entry)
        except ValidationError as e:
            raise ResultContractError(
                f"Result for {node_id} does not match {model.__name__}: {e.error_count()} error(s)"
            ) from e
