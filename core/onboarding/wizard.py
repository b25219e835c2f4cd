"""
Form Wizard - Step Navigation, Input Changes and Submission

FormWizard owns the state of one onboarding session: the form data, the
step cursor, both error sets, the busy flag and the last user notice.

Both error sets are recomputed after every change to the form or the
cursor, and subscribed listeners are notified, so inline errors stay
current while the user types.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Final, Optional

from core.onboarding.schema import (
    BOOLEAN_FIELDS,
    FIRST_STEP,
    LAST_STEP,
    MULTI_VALUE_FIELD,
    STEP_TITLES,
    ControlKind,
    FormState,
    UnknownFieldError,
)
from core.onboarding.store import RecordStore
from core.onboarding.submission import SubmissionOutcome, submit_form
from core.onboarding.validation import ErrorMap, validate_all, validate_step


logger = logging.getLogger(__name__)


SUCCESS_MESSAGE: Final[str] = "¡Datos enviados correctamente!"
FAILURE_MESSAGE: Final[str] = (
    "Ha ocurrido un error al guardar los datos. Inténtalo de nuevo."
)


# =============================================================================
# Events and Notices
# =============================================================================


@dataclass(frozen=True)
class ChangeEvent:
    """
    A single input change.

    For toggles `checked` is the new state; for text controls `value`
    is the new value.
    """

    name: str
    value: Any = ""
    kind: ControlKind = ControlKind.TEXT
    checked: bool = False

    @classmethod
    def text(cls, name: str, value: Any) -> "ChangeEvent":
        return cls(name=name, value=value, kind=ControlKind.TEXT)

    @classmethod
    def toggle(cls, name: str, checked: bool, value: Any = "") -> "ChangeEvent":
        return cls(name=name, value=value, kind=ControlKind.TOGGLE, checked=checked)


class NoticeKind(Enum):
    SUCCESS = "success"
    ERROR = "error"


@dataclass(frozen=True)
class Notice:
    """Terminal notification shown to the user after a submission."""

    kind: NoticeKind
    message: str

    def to_dict(self) -> dict:
        return {"kind": self.kind.value, "message": self.message}


Listener = Callable[["FormWizard"], None]


class WizardBusyError(RuntimeError):
    """Raised when the form is changed while a submission is in flight."""


# =============================================================================
# Wizard
# =============================================================================


class FormWizard:
    """
    Controller for one four-step onboarding form.

    State is only mutated through handle_change(), next(), back(),
    submit() and reset(). While a submission is in flight the form is
    frozen: changes and navigation raise WizardBusyError.
    """

    def __init__(self, state: Optional[FormState] = None):
        self.state = state or FormState()
        self.step = FIRST_STEP
        self.errors: ErrorMap = {}
        self.step_errors: ErrorMap = {}
        self.is_submitting = False
        self.notice: Optional[Notice] = None
        self._listeners: list[Listener] = []
        self._submit_lock = threading.Lock()
        self._revalidate()

    # =========================================================================
    # Observers
    # =========================================================================

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """
        Register a callback run after every revalidation.

        Returns:
            Function that removes the listener
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener(self)

    def _revalidate(self) -> None:
        """Recompute both error sets and notify listeners."""
        self.errors = validate_all(self.state)
        self.step_errors = validate_step(self.step, self.state).error_map()
        self._notify()

    def _ensure_idle(self) -> None:
        if self.is_submitting:
            raise WizardBusyError("A submission is in progress")

    # =========================================================================
    # Input
    # =========================================================================

    def handle_change(self, event: ChangeEvent) -> None:
        """
        Apply an input change to the form state.

        Raises:
            UnknownFieldError: If the event names an unknown field
            ValueError: If text is sent for the multi-value or a checkbox field
            WizardBusyError: If a submission is in flight
        """
        self._ensure_idle()
        if not FormState.has_field(event.name):
            raise UnknownFieldError(f"Unknown form field: {event.name}")

        if event.kind == ControlKind.TOGGLE:
            if event.name == MULTI_VALUE_FIELD:
                if event.checked:
                    self.state.add_service(str(event.value))
                else:
                    self.state.remove_service(str(event.value))
            else:
                self.state.set(event.name, bool(event.checked))
        else:
            if event.name == MULTI_VALUE_FIELD or event.name in BOOLEAN_FIELDS:
                raise ValueError(f"'{event.name}' only accepts toggle changes")
            self.state.set(event.name, event.value)

        self._revalidate()

    # =========================================================================
    # Navigation
    # =========================================================================

    def next(self) -> bool:
        """
        Advance one step if the current step's required fields pass.

        Returns:
            True if the step gate passed
        """
        self._ensure_idle()
        result = validate_step(self.step, self.state)
        self.step_errors = result.error_map()
        if not result.passed:
            logger.debug(
                "Step %d blocked: %s", self.step, ", ".join(result.failing_fields)
            )
            self._notify()
            return False

        if self.step < LAST_STEP:
            self.step += 1
        self._revalidate()
        return True

    def back(self) -> None:
        """Go back one step. No validation is performed."""
        self._ensure_idle()
        if self.step > FIRST_STEP:
            self.step -= 1
        self._revalidate()

    # =========================================================================
    # Submission
    # =========================================================================

    def submit(self, store: RecordStore) -> Optional[SubmissionOutcome]:
        """
        Persist the form and reset it on success.

        A no-op (returns None) unless the wizard is on the confirmation
        step, every step gate passes and no submission is already in
        flight. The pipeline works on a copy of the form taken when the
        submission starts. Store errors never propagate: they are logged
        and turned into a generic failure notice, leaving the form and the
        step unchanged.
        """
        if not self._submit_lock.acquire(blocking=False):
            logger.debug("Submission already in progress")
            return None
        try:
            if not self.is_ready_to_submit:
                return None
            return self._run_submission(store)
        finally:
            self._submit_lock.release()

    def _run_submission(self, store: RecordStore) -> SubmissionOutcome:
        self.is_submitting = True
        self.notice = None
        self._notify()
        try:
            outcome = submit_form(self.state.copy(), store)
            if outcome.success:
                logger.info(
                    "Onboarding saved: client=%s property=%s services=%d",
                    outcome.client_id,
                    outcome.property_id,
                    outcome.services_inserted,
                )
                self.reset()
                self.notice = Notice(NoticeKind.SUCCESS, SUCCESS_MESSAGE)
            else:
                logger.error(
                    "Onboarding submission failed at %s step: %s "
                    "(completed: %s, orphaned rows: %s)",
                    outcome.failed_step.value if outcome.failed_step else "unknown",
                    outcome.error,
                    ", ".join(s.value for s in outcome.completed_steps) or "none",
                    "client=%s property=%s" % (outcome.client_id, outcome.property_id)
                    if outcome.has_orphaned_rows
                    else "none",
                )
                self.notice = Notice(NoticeKind.ERROR, FAILURE_MESSAGE)
        finally:
            self.is_submitting = False

        self._notify()
        return outcome

    def reset(self) -> None:
        """Replace the form with defaults, clear errors, return to step 1."""
        self.state = FormState()
        self.step = FIRST_STEP
        self.errors = {}
        self.step_errors = {}
        self._notify()

    def pop_notice(self) -> Optional[Notice]:
        """Return the last notice and clear it (shown once)."""
        notice, self.notice = self.notice, None
        return notice

    # =========================================================================
    # Views
    # =========================================================================

    @property
    def title(self) -> str:
        return STEP_TITLES[self.step]

    @property
    def total_steps(self) -> int:
        return LAST_STEP

    @property
    def is_first_step(self) -> bool:
        return self.step == FIRST_STEP

    @property
    def is_last_step(self) -> bool:
        return self.step == LAST_STEP

    @property
    def can_advance(self) -> bool:
        return not self.step_errors

    @property
    def is_ready_to_submit(self) -> bool:
        """On the last step with every step gate passing."""
        if self.step != LAST_STEP:
            return False
        return all(
            validate_step(step, self.state).passed
            for step in range(FIRST_STEP, LAST_STEP + 1)
        )

    @property
    def can_submit(self) -> bool:
        return self.is_ready_to_submit and not self.is_submitting

    def snapshot(self) -> dict:
        """Serializable view of the wizard for the JSON API."""
        return {
            "step": self.step,
            "total_steps": self.total_steps,
            "title": self.title,
            "data": self.state.to_dict(),
            "errors": dict(self.errors),
            "step_errors": dict(self.step_errors),
            "can_advance": self.can_advance,
            "can_submit": self.can_submit,
            "is_submitting": self.is_submitting,
            "notice": self.notice.to_dict() if self.notice else None,
        }
