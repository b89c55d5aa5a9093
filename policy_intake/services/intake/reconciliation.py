"""Reconciliation: commits a verified draft as a parent policy plus
independently persisted child records.

The parent is written first; if that fails nothing else is attempted. Each
child is then written on its own. A child that is incomplete is skipped and
a child whose write fails is reported; neither aborts the commit because the
parent has already been saved.
"""

import asyncio
from decimal import Decimal
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

from pydantic import BaseModel

from policy_intake.core.config import settings
from policy_intake.core.exceptions import AppError, DraftValidationError, PersistenceError
from policy_intake.schemas.analysis import AnalysisResult
from policy_intake.schemas.draft import ChildEntities, PolicyDraft
from policy_intake.schemas.policy import AddedMethod, ChildKind, ChildWarning, ReconciliationResult
from policy_intake.services.intake.normalizer import normalize_child_entities, normalize_draft
from policy_intake.services.intake.policy_store import PolicyStore
from policy_intake.services.intake.validator import validate_draft
from policy_intake.utils.logging import get_logger

LOGGER = get_logger(__name__)

REQUIRED_CHILD_FIELDS: Dict[str, Tuple[str, ...]] = {
    "coverage": ("coverage_type", "coverage_name"),
    "beneficiary": ("full_name", "percentage"),
    "driver": ("full_name", "date_of_birth", "license_number"),
    "vehicle": ("make", "model", "year", "license_plate"),
    "property": ("address",),
}

# Plural keys of ReconciliationResult.created
CREATED_KEYS: Dict[str, str] = {
    "coverage": "coverages",
    "beneficiary": "beneficiaries",
    "driver": "drivers",
    "vehicle": "vehicles",
    "property": "properties",
}


def child_problem(kind: str, child: BaseModel) -> Optional[str]:
    """Reason a child cannot be written, or None when it is complete."""
    missing = [
        field for field in REQUIRED_CHILD_FIELDS[kind]
        if getattr(child, field, None) is None
        or (isinstance(getattr(child, field), str) and not getattr(child, field).strip())
    ]
    if missing:
        return f"missing required field(s): {', '.join(missing)}"

    if kind == "beneficiary":
        percentage = child.percentage
        if not Decimal(0) <= percentage <= Decimal(100):
            return "percentage must be between 0 and 100"
    return None


class ReconciliationOrchestrator:
    """Commits a verified draft through a :class:`PolicyStore`."""

    def __init__(self, store: PolicyStore, parallel_child_writes: Optional[bool] = None):
        self.store = store
        self.parallel_child_writes = (
            settings.intake.parallel_child_writes if parallel_child_writes is None else parallel_child_writes
        )

    def _writers(self) -> Dict[str, Callable[[Any, Any], Awaitable[Any]]]:
        return {
            "coverage": self.store.create_coverage,
            "beneficiary": self.store.create_beneficiary,
            "driver": self.store.create_driver,
            "vehicle": self.store.create_vehicle,
            "property": self.store.create_property,
        }

    async def commit(
        self,
        draft: PolicyDraft,
        children: Optional[ChildEntities] = None,
        analysis: Optional[AnalysisResult] = None,
        added_method: AddedMethod = "manual",
        document_parsed_data: Optional[Dict[str, Any]] = None,
        user_id: Optional[str] = None,
    ) -> ReconciliationResult:
        """Commit a draft and its children.

        Args:
            draft: Draft to commit; normalized and validated again here
            children: Child entities; vehicle/property fall back to the draft's blocks
            analysis: Optional plain-language analysis
            added_method: Capture method
            document_parsed_data: Raw extraction payload, when extracted
            user_id: Owning user, when known

        Returns:
            ReconciliationResult with the committed aggregate, per-kind
            created counts and per-child warnings

        Raises:
            DraftValidationError: If the draft does not validate (nothing written)
            PersistenceError: If the parent record cannot be written
        """
        # Stored as the columns will hold it: compact tax ids, ISO dates, cents
        draft = normalize_draft(draft)
        errors = validate_draft(draft)
        if errors:
            LOGGER.warning("Commit rejected: draft has validation errors", extra={"errors": errors})
            raise DraftValidationError(errors)

        children = normalize_child_entities(children or ChildEntities())

        try:
            aggregate = await self.store.create_policy(
                draft,
                added_method=added_method,
                document_parsed_data=document_parsed_data,
                analysis=analysis,
                user_id=user_id,
            )
        except Exception as e:
            LOGGER.error(
                "Failed to create parent policy record",
                exc_info=True,
                extra={"policy_number": draft.policy_number}
            )
            raise PersistenceError(f"Failed to create policy: {e}", original_error=e)

        LOGGER.info(
            "Parent policy committed",
            extra={"policy_id": str(aggregate.id), "added_method": added_method}
        )

        plan = self._plan(draft, children)
        warnings: List[ChildWarning] = []
        jobs: List[Tuple[str, int, BaseModel]] = []
        for kind, index, child in plan:
            problem = child_problem(kind, child)
            if problem:
                LOGGER.warning(
                    f"Skipping {kind} #{index}: {problem}",
                    extra={"policy_id": str(aggregate.id)}
                )
                warnings.append(ChildWarning(kind=kind, index=index, reason=problem))
            else:
                jobs.append((kind, index, child))

        writers = self._writers()

        async def write(kind: str, index: int, child: BaseModel):
            try:
                return kind, index, await writers[kind](aggregate.id, child), None
            except Exception as e:
                LOGGER.warning(
                    f"Failed to persist {kind} #{index}: {e}",
                    extra={"policy_id": str(aggregate.id)}
                )
                reason = str(e) if isinstance(e, AppError) else f"{type(e).__name__}: {e}"
                return kind, index, None, reason

        if self.parallel_child_writes:
            outcomes = await asyncio.gather(*(write(*job) for job in jobs))
        else:
            outcomes = [await write(*job) for job in jobs]

        created: Dict[str, int] = {key: 0 for key in CREATED_KEYS.values()}
        stored: Dict[str, list] = {key: [] for key in CREATED_KEYS.values()}
        for kind, index, record, reason in outcomes:
            if reason is not None:
                warnings.append(ChildWarning(kind=kind, index=index, reason=reason))
                continue
            created[CREATED_KEYS[kind]] += 1
            stored[CREATED_KEYS[kind]].append(record)

        warnings.sort(key=lambda w: (list(CREATED_KEYS).index(w.kind), w.index))
        aggregate = aggregate.model_copy(update=stored)

        LOGGER.info(
            "Reconciliation completed",
            extra={"policy_id": str(aggregate.id), "created_counts": created, "warnings": len(warnings)}
        )
        return ReconciliationResult(policy=aggregate, created=created, warnings=warnings)

    @staticmethod
    def _plan(draft: PolicyDraft, children: ChildEntities) -> List[Tuple[ChildKind, int, BaseModel]]:
        plan: List[Tuple[ChildKind, int, BaseModel]] = []
        plan.extend(("coverage", i, c) for i, c in enumerate(children.coverages))
        plan.extend(("beneficiary", i, b) for i, b in enumerate(children.beneficiaries))
        plan.extend(("driver", i, d) for i, d in enumerate(children.drivers))
        vehicle = children.vehicle or draft.vehicle
        if vehicle is not None:
            plan.append(("vehicle", 0, vehicle))
        prop = children.property or draft.property
        if prop is not None:
            plan.append(("property", 0, prop))
        return plan
