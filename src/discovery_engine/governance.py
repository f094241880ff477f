"""
Discovery Engine — Governance Policy
====================================
Version 1.0 — October 2026

Approval gate applied to every repair proposal before it is applied, and
the single home of the run-wide repair safety thresholds. No other
component hardcodes them.

The checks are structural only. A deployment that needs sandboxed code
review or policy-as-code extends vet() here without touching the
orchestrator.
"""

import logging
from typing import Iterable, Optional, Type

from pydantic import BaseModel, ValidationError

from .orchestrator_types import ModificationType, RepairProposal, VetResult

logger = logging.getLogger(__name__)

APPROVED_COMMENT = "Approved: Repair proposal is structurally sound and justified."


class GovernancePolicy:
    """
    Stateless (per run) vetting of repair proposals.

    Args:
        max_repair_attempts: Repairs allowed per node before it fails permanently
        allowed_patches: Patch ids a code patch may name (None = any non-blank id)
        user_clarification_trigger_confidence: Confidence below which a
            deployment would ask the user before repairing (not consulted by
            the built-in gate)
        abort_on_recursion_depth: Hard limit on nested repair depth (not
            reached while nested repair is disabled)
    """

    def __init__(
        self,
        max_repair_attempts: int = 1,
        allowed_patches: Optional[Iterable[str]] = None,
        user_clarification_trigger_confidence: float = 0.6,
        abort_on_recursion_depth: int = 50,
    ):
        self.max_repair_attempts = max_repair_attempts
        self.allowed_patches = frozenset(allowed_patches) if allowed_patches is not None else None
        self.user_clarification_trigger_confidence = user_clarification_trigger_confidence
        self.abort_on_recursion_depth = abort_on_recursion_depth

    def vet(self, proposal: RepairProposal, result_model: Optional[Type[BaseModel]] = None) -> VetResult:
        """
        Approve or veto a repair proposal.

        Args:
            proposal: Proposal from the repair mechanism
            result_model: Typed result model of the failing node's role; a
                repaired artifact must validate against it when given

        Returns:
            VetResult with approved flag and comment
        """
        result = self._check(proposal, result_model)
        if result.approved:
            logger.info(f"[GOVERNANCE] {result.comment}")
        else:
            logger.warning(f"[GOVERNANCE] {result.comment}")
        return result

    def _check(self, proposal: RepairProposal, result_model: Optional[Type[BaseModel]]) -> VetResult:
        notes = [note for note in proposal.notes if note and note.strip()]
        if not notes:
            return VetResult(False, "Vetoed: Repair proposal lacks self-reflection notes for justification.")

        if proposal.modification_type == ModificationType.CODE_PATCH:
            patch = (proposal.code_patch or "").strip()
            if not patch:
                return VetResult(False, "Vetoed: Proposed code patch is empty.")
            if self.allowed_patches is not None and patch not in self.allowed_patches:
                return VetResult(False, f"Vetoed: Code patch '{patch}' is not in the patch catalog.")
        else:
            if proposal.repaired_artifact is None:
                return VetResult(False, "Vetoed: Repair proposal is missing the 'repaired_artifact'.")
            artifact = proposal.artifact_payload()
            if not artifact:
                return VetResult(False, "Vetoed: Repaired artifact cannot be an empty object.")
            if result_model is not None:
                try:
                    result_model.model_validate(artifact)
                except ValidationError as e:
                    return VetResult(
                        False,
                        f"Vetoed: Repaired artifact does not match {result_model.__name__} "
                        f"({e.error_count()} error(s)).",
                    )

        return VetResult(True, APPROVED_COMMENT)
