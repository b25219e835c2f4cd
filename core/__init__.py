"""
Property Onboarding - Core Business Logic

This module provides the onboarding form pipeline:
1. Input changes (FormState mutation)
2. Field validation (pure, recomputed on every change)
3. Step gating (required fields per step)
4. Submission (client → property → services inserts)
"""

from .onboarding import (
    FormState,
    FormWizard,
    ChangeEvent,
    ControlKind,
    RecordStore,
    SubmissionOutcome,
    validate_field,
    validate_step,
)

__all__ = [
    "FormState",
    "FormWizard",
    "ChangeEvent",
    "ControlKind",
    "RecordStore",
    "SubmissionOutcome",
    "validate_field",
    "validate_step",
]
