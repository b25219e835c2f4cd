"""
Onboarding Submission - Client → Property → Services Insert Pipeline

Persists a completed form as three dependent inserts. Each step needs the
identifier generated by the previous one, so the steps run strictly in
order and the first failure stops the pipeline.

Rows already written by earlier steps are NOT removed when a later step
fails: a failed property insert leaves its client row behind.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Callable, Optional

from core.onboarding.schema import (
    CLIENTS_TABLE,
    PROPERTIES_TABLE,
    SERVICES_TABLE,
    ClientRecord,
    FormState,
    PropertyRecord,
    ServiceLinkRecord,
)
from core.onboarding.store import InsertFailure, InsertSuccess, RecordStore


logger = logging.getLogger(__name__)


class SubmissionStep(Enum):
    """Steps of the insert pipeline, in execution order."""

    CLIENT = "client"
    PROPERTY = "property"
    SERVICES = "services"


@dataclass
class SubmissionOutcome:
    """
    Result of running the insert pipeline.

    On failure, `failed_step` names the step that stopped the pipeline and
    `error` carries the diagnostic message (never shown to the user).
    """

    client_id: Any = None
    property_id: Any = None
    services_inserted: int = 0
    failed_step: Optional[SubmissionStep] = None
    error: Optional[str] = None
    completed_steps: list[SubmissionStep] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return self.failed_step is None

    @property
    def has_orphaned_rows(self) -> bool:
        """Rows were written before the pipeline failed."""
        return not self.success and bool(self.completed_steps)

    def to_dict(self) -> dict:
        """Convert outcome to dictionary."""
        return {
            "success": self.success,
            "client_id": self.client_id,
            "property_id": self.property_id,
            "services_inserted": self.services_inserted,
            "failed_step": self.failed_step.value if self.failed_step else None,
            "completed_steps": [s.value for s in self.completed_steps],
        }


class StepFailed(Exception):
    """Stops the pipeline; carries the failing step and its message."""

    def __init__(self, step: SubmissionStep, message: str):
        super().__init__(message)
        self.step = step
        self.message = message


class SubmissionPipeline:
    """
    Linear pipeline of fallible insert steps.

    Usage:
        outcome = SubmissionPipeline(store).run(state)
    """

    def __init__(self, store: RecordStore):
        self._store = store

    def run(self, state: FormState) -> SubmissionOutcome:
        """
        Insert the client, property and service rows for a form.

        Rows are built before the first insert, so data that cannot be
        coerced fails the pipeline without writing anything. Never raises
        for store errors; they are reported in the outcome.
        """
        outcome = SubmissionOutcome()
        try:
            client = ClientRecord.from_form(state)
            prop = PropertyRecord.from_form(state, client_id=None)
        except (TypeError, ValueError, OverflowError) as e:
            outcome.failed_step = SubmissionStep.PROPERTY
            outcome.error = f"Invalid property data: {e}"
            return outcome

        steps: list[tuple[SubmissionStep, Callable[[], None]]] = [
            (SubmissionStep.CLIENT, lambda: self._insert_client(client, outcome)),
            (SubmissionStep.PROPERTY, lambda: self._insert_property(prop, outcome)),
            (SubmissionStep.SERVICES, lambda: self._insert_services(state, outcome)),
        ]

        for step, action in steps:
            try:
                action()
            except StepFailed as e:
                outcome.failed_step = e.step
                outcome.error = e.message
                return outcome
            except Exception as e:
                logger.exception("Unexpected error during %s insert", step.value)
                outcome.failed_step = step
                outcome.error = f"{type(e).__name__}: {e}"
                return outcome
            outcome.completed_steps.append(step)

        return outcome

    # =========================================================================
    # Steps
    # =========================================================================

    def _insert_client(self, record: ClientRecord, outcome: SubmissionOutcome) -> None:
        outcome.client_id = self._insert_one(
            SubmissionStep.CLIENT, CLIENTS_TABLE, record.to_row()
        )

    def _insert_property(self, record: PropertyRecord, outcome: SubmissionOutcome) -> None:
        record = replace(record, client_id=outcome.client_id)
        outcome.property_id = self._insert_one(
            SubmissionStep.PROPERTY, PROPERTIES_TABLE, record.to_row()
        )

    def _insert_services(self, state: FormState, outcome: SubmissionOutcome) -> None:
        links = ServiceLinkRecord.from_form(state, property_id=outcome.property_id)
        if not links:
            return

        result = self._store.insert(SERVICES_TABLE, [link.to_row() for link in links])
        if isinstance(result, InsertFailure):
            raise StepFailed(SubmissionStep.SERVICES, result.message)
        outcome.services_inserted = result.row_count

    def _insert_one(self, step: SubmissionStep, table: str, row: dict) -> Any:
        """Insert a single row and return its generated id."""
        result = self._store.insert(table, [row], returning="id")
        if isinstance(result, InsertFailure):
            raise StepFailed(step, result.message)
        if not isinstance(result, InsertSuccess) or result.returned is None:
            raise StepFailed(step, f"No id returned for {table} insert")
        return result.returned


def submit_form(state: FormState, store: RecordStore) -> SubmissionOutcome:
    """Run the insert pipeline for a form against a store."""
    return SubmissionPipeline(store).run(state)
