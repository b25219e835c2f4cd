"""
Property Onboarding - Four-Step Customer and Property Intake

Collects client, property and service preferences through a gated,
sequential form and saves them as three dependent store records.

Principles:
1. Validation is pure and recomputed on every change
2. A step can only be left forwards when its required fields pass
3. Saving is client → property → services, stopping at the first failure
4. The form is reset only after everything was saved
"""

from core.onboarding.schema import (
    AirbnbChoice,
    ControlKind,
    FormState,
    ClientRecord,
    PropertyRecord,
    ServiceLinkRecord,
    UnknownFieldError,
    BOOLEAN_FIELDS,
    FIELDS_BY_STEP,
    STEP_FIELDS,
    STEP_TITLES,
    SERVICE_OPTIONS,
    FIRST_STEP,
    LAST_STEP,
)
from core.onboarding.validation import (
    ErrorMap,
    StepValidationResult,
    validate_field,
    validate_all,
    validate_step,
    required_fields,
)
from core.onboarding.store import (
    RecordStore,
    SupabaseRecordStore,
    InMemoryRecordStore,
    InsertSuccess,
    InsertFailure,
    InsertResult,
    StoreConfigurationError,
    create_record_store,
    get_record_store,
    set_record_store,
    reset_record_store,
)
from core.onboarding.submission import (
    SubmissionOutcome,
    SubmissionPipeline,
    SubmissionStep,
    submit_form,
)
from core.onboarding.wizard import (
    ChangeEvent,
    FormWizard,
    Notice,
    NoticeKind,
    WizardBusyError,
    SUCCESS_MESSAGE,
    FAILURE_MESSAGE,
)
from core.onboarding.sessions import (
    WizardSession,
    WizardSessionRepository,
    get_session_repository,
    reset_session_repository,
)

__all__ = [
    # Schema
    "AirbnbChoice",
    "ControlKind",
    "FormState",
    "ClientRecord",
    "PropertyRecord",
    "ServiceLinkRecord",
    "UnknownFieldError",
    "BOOLEAN_FIELDS",
    "FIELDS_BY_STEP",
    "STEP_FIELDS",
    "STEP_TITLES",
    "SERVICE_OPTIONS",
    "FIRST_STEP",
    "LAST_STEP",
    # Validation
    "ErrorMap",
    "StepValidationResult",
    "validate_field",
    "validate_all",
    "validate_step",
    "required_fields",
    # Store
    "RecordStore",
    "SupabaseRecordStore",
    "InMemoryRecordStore",
    "InsertSuccess",
    "InsertFailure",
    "InsertResult",
    "StoreConfigurationError",
    "create_record_store",
    "get_record_store",
    "set_record_store",
    "reset_record_store",
    # Submission
    "SubmissionOutcome",
    "SubmissionPipeline",
    "SubmissionStep",
    "submit_form",
    # Wizard
    "ChangeEvent",
    "FormWizard",
    "Notice",
    "NoticeKind",
    "WizardBusyError",
    "SUCCESS_MESSAGE",
    "FAILURE_MESSAGE",
    # Sessions
    "WizardSession",
    "WizardSessionRepository",
    "get_session_repository",
    "reset_session_repository",
]
