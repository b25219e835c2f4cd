"""
Onboarding Validation - Field Rules and Step Gates

Field validation is a pure function of (field, value): it never raises and
never touches state. Step gates run the field rules over the required
fields of one step.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Final, Optional

from core.onboarding.schema import (
    AirbnbChoice,
    EMAIL_REGEX,
    FIELDS_BY_STEP,
    NUMBER_REGEX,
    PHONE_REGEX,
    WHITESPACE_REGEX,
    FormState,
)


# Field name -> error message
ErrorMap = dict[str, str]


# =============================================================================
# Messages
# =============================================================================

NAME_REQUIRED: Final[str] = "El nombre es obligatorio"
EMAIL_REQUIRED: Final[str] = "El email es obligatorio"
EMAIL_INVALID: Final[str] = "Email inválido"
PHONE_REQUIRED: Final[str] = "El teléfono es obligatorio"
PHONE_INVALID: Final[str] = "Teléfono inválido (9-15 dígitos)"
ADDRESS_REQUIRED: Final[str] = "La dirección es obligatoria"
POSITIVE_NUMBER_REQUIRED: Final[str] = "Debe ser un número mayor que 0"
AIRBNB_CHOICE_REQUIRED: Final[str] = "Selecciona sí o no"
PRIVACY_NOT_ACCEPTED: Final[str] = "Debes aceptar la política de privacidad"

NUMERIC_FIELDS: Final[tuple[str, ...]] = ("rooms", "bathrooms", "guests")

AIRBNB_ANSWERS: Final[frozenset[str]] = frozenset(
    {AirbnbChoice.YES.value, AirbnbChoice.NO.value}
)


# =============================================================================
# Helpers
# =============================================================================


def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    return not str(value).strip()


def parse_number(value: Any) -> Optional[float]:
    """
    Parse a numeric form value.

    Surrounding whitespace is ignored. Only plain decimal notation with an
    optional exponent is accepted, so "1_000", "nan" and non-ASCII digits
    are rejected even though float() parses them. Hexadecimal ("0x10")
    and "Infinity" are rejected too: neither can be stored as an integer
    count. Returns None for blank, non-numeric or non-finite input.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    else:
        text = str(value).strip()
        if not NUMBER_REGEX.fullmatch(text):
            return None
        number = float(text)
    if not math.isfinite(number):
        return None
    return number


# =============================================================================
# Field Validation
# =============================================================================


def validate_field(name: str, value: Any) -> str:
    """
    Validate a single form field.

    Args:
        name: Field name (FormState attribute)
        value: Current value

    Returns:
        Error message, or "" if the value is valid
    """
    if name == "name":
        if _is_blank(value):
            return NAME_REQUIRED

    elif name == "email":
        if _is_blank(value):
            return EMAIL_REQUIRED
        if not EMAIL_REGEX.fullmatch(str(value)):
            return EMAIL_INVALID

    elif name == "phone":
        if _is_blank(value):
            return PHONE_REQUIRED
        if not PHONE_REGEX.fullmatch(WHITESPACE_REGEX.sub("", str(value))):
            return PHONE_INVALID

    elif name == "address":
        if _is_blank(value):
            return ADDRESS_REQUIRED

    elif name in NUMERIC_FIELDS:
        number = parse_number(value)
        if number is None or number <= 0:
            return POSITIVE_NUMBER_REQUIRED

    elif name == "airbnb_published":
        if value not in AIRBNB_ANSWERS:
            return AIRBNB_CHOICE_REQUIRED

    elif name == "accepted":
        if not value:
            return PRIVACY_NOT_ACCEPTED

    return ""


def validate_all(state: FormState) -> ErrorMap:
    """Validate every field of the form; only failing fields are returned."""
    errors: ErrorMap = {}
    for name in state.field_names():
        error = validate_field(name, state.get(name))
        if error:
            errors[name] = error
    return errors


# =============================================================================
# Step Gate
# =============================================================================


@dataclass(frozen=True)
class StepValidationResult:
    """
    Result of validating the required fields of one step.

    `errors` holds exactly the failing required fields.
    """

    step: int
    errors: tuple[tuple[str, str], ...]

    @property
    def passed(self) -> bool:
        return not self.errors

    @property
    def is_blocked(self) -> bool:
        return bool(self.errors)

    @property
    def failing_fields(self) -> tuple[str, ...]:
        return tuple(name for name, _ in self.errors)

    def error_map(self) -> ErrorMap:
        return dict(self.errors)

    def to_dict(self) -> dict:
        """Convert result to dictionary."""
        return {
            "step": self.step,
            "passed": self.passed,
            "errors": self.error_map(),
        }


def required_fields(step: int) -> tuple[str, ...]:
    """Required fields of a step; unknown steps require nothing."""
    return FIELDS_BY_STEP.get(step, ())


def validate_step(step: int, state: FormState) -> StepValidationResult:
    """
    Run the field rules over the required fields of a step.

    Args:
        step: Step number (1-4)
        state: Current form state

    Returns:
        StepValidationResult with the failing fields of that step only
    """
    errors = []
    for name in required_fields(step):
        error = validate_field(name, state.get(name))
        if error:
            errors.append((name, error))
    return StepValidationResult(step=step, errors=tuple(errors))
