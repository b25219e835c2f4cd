"""
Onboarding Schema - Form State and Persisted Records

Defines the in-progress form aggregate and the three rows written to the
record store at submission time (client, property, service links).

Principles:
- One mutable FormState per session
- Values stay as entered until submission
- Coercion (trim, int, bool) happens only when building store rows
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field, fields
from enum import Enum
from typing import Any, Final, Optional


# =============================================================================
# Enums
# =============================================================================


class AirbnbChoice(Enum):
    """Answer to "is the property published on Airbnb?"."""

    UNSET = ""
    YES = "yes"
    NO = "no"


class ControlKind(Enum):
    """Kind of input control that produced a change event."""

    TEXT = "text"
    TOGGLE = "toggle"


# =============================================================================
# Constants
# =============================================================================

FIRST_STEP: Final[int] = 1
LAST_STEP: Final[int] = 4

STEP_TITLES: Final[dict[int, str]] = {
    1: "Datos del cliente",
    2: "Datos de la vivienda",
    3: "Servicios y preferencias",
    4: "Confirmación",
}

# Required fields per step; step 3 has none
FIELDS_BY_STEP: Final[dict[int, tuple[str, ...]]] = {
    1: ("name", "email", "phone"),
    2: ("address", "rooms", "bathrooms", "guests", "airbnb_published"),
    3: (),
    4: ("accepted",),
}

# Fields rendered on each screen (required or not)
STEP_FIELDS: Final[dict[int, tuple[str, ...]]] = {
    1: ("name", "phone", "email", "country", "language"),
    2: (
        "address",
        "property_type",
        "rooms",
        "bathrooms",
        "guests",
        "airbnb_published",
        "airbnb_link",
    ),
    3: ("services", "rules", "comments"),
    4: ("accepted",),
}

SERVICE_OPTIONS: Final[tuple[str, ...]] = (
    "Atención al cliente",
    "Gestión completa",
    "Optimización del anuncio",
)

MULTI_VALUE_FIELD: Final[str] = "services"

# Checkbox fields; only toggle changes may set them
BOOLEAN_FIELDS: Final[tuple[str, ...]] = ("accepted",)

# Store tables
CLIENTS_TABLE: Final[str] = "clients"
PROPERTIES_TABLE: Final[str] = "properties"
SERVICES_TABLE: Final[str] = "services"

# ASCII-only like the browser regex engine
EMAIL_REGEX: Final = re.compile(r"[\w.-]+@([\w-]+\.)+[\w-]{2,4}", re.ASCII)
PHONE_REGEX: Final = re.compile(r"\+?\d{9,15}", re.ASCII)
# Plain decimal notation, optional exponent
NUMBER_REGEX: Final = re.compile(r"[+-]?(\d+(\.\d*)?|\.\d+)([eE][+-]?\d+)?", re.ASCII)
WHITESPACE_REGEX: Final = re.compile(r"\s")


class UnknownFieldError(ValueError):
    """Raised when a change event names a field FormState does not have."""


# =============================================================================
# Form State
# =============================================================================


@dataclass
class FormState:
    """
    In-progress onboarding data for one session.

    All fields default to empty/false. Only `services` holds more than one
    value, and it never holds duplicates.
    """

    # Client
    name: str = ""
    phone: str = ""
    email: str = ""
    country: str = ""
    language: str = ""

    # Property
    address: str = ""
    property_type: str = ""
    rooms: str = ""
    bathrooms: str = ""
    guests: str = ""
    airbnb_published: str = AirbnbChoice.UNSET.value
    airbnb_link: str = ""

    # Services and preferences
    services: list[str] = field(default_factory=list)
    rules: str = ""
    comments: str = ""

    # Confirmation
    accepted: bool = False

    @classmethod
    def field_names(cls) -> tuple[str, ...]:
        """Names of all form fields, in declaration order."""
        return tuple(f.name for f in fields(cls))

    @classmethod
    def has_field(cls, name: str) -> bool:
        return name in cls.field_names()

    def get(self, name: str) -> Any:
        """Get a field value by name."""
        if not self.has_field(name):
            raise UnknownFieldError(f"Unknown form field: {name}")
        return getattr(self, name)

    def set(self, name: str, value: Any) -> None:
        """Replace a field value by name."""
        if not self.has_field(name):
            raise UnknownFieldError(f"Unknown form field: {name}")
        setattr(self, name, value)

    def add_service(self, service: str) -> None:
        if service not in self.services:
            self.services.append(service)

    def remove_service(self, service: str) -> None:
        self.services = [s for s in self.services if s != service]

    def copy(self) -> "FormState":
        """Independent copy (the services list is not shared)."""
        data = self.to_dict()
        return FormState(**data)

    def to_dict(self) -> dict[str, Any]:
        """Convert form state to dictionary."""
        data = {name: getattr(self, name) for name in self.field_names()}
        data["services"] = list(self.services)
        return data

    @property
    def is_published_on_airbnb(self) -> bool:
        return self.airbnb_published == AirbnbChoice.YES.value


# =============================================================================
# Persisted Records
# =============================================================================


def _text(value: Any) -> str:
    """Trimmed text for a stored column."""
    if value is None:
        return ""
    return str(value).strip()


def _integer(value: Any) -> int:
    """Integer column value from a validated numeric string."""
    return int(float(str(value).strip()))


@dataclass(frozen=True)
class ClientRecord:
    """Row for the clients table."""

    name: str
    phone: str
    email: str
    country: str
    language: str

    @classmethod
    def from_form(cls, state: FormState) -> "ClientRecord":
        return cls(
            name=_text(state.name),
            phone=_text(state.phone),
            email=_text(state.email),
            country=_text(state.country),
            language=_text(state.language),
        )

    def to_row(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "phone": self.phone,
            "email": self.email,
            "country": self.country,
            "language": self.language,
        }


@dataclass(frozen=True)
class PropertyRecord:
    """Row for the properties table, linked to a client."""

    client_id: Any
    address: str
    property_type: str
    rooms: int
    bathrooms: int
    guests: int
    airbnb_published: bool
    airbnb_link: Optional[str]
    rules: str
    comments: str

    @classmethod
    def from_form(cls, state: FormState, client_id: Any) -> "PropertyRecord":
        """
        Build the property row from form state.

        Raises:
            ValueError: If a numeric field cannot be coerced to an integer
        """
        return cls(
            client_id=client_id,
            address=_text(state.address),
            property_type=state.property_type,
            rooms=_integer(state.rooms),
            bathrooms=_integer(state.bathrooms),
            guests=_integer(state.guests),
            airbnb_published=state.is_published_on_airbnb,
            airbnb_link=_text(state.airbnb_link) or None,
            rules=_text(state.rules),
            comments=_text(state.comments),
        )

    def to_row(self) -> dict[str, Any]:
        return {
            "client_id": self.client_id,
            "address": self.address,
            "property_type": self.property_type,
            "rooms": self.rooms,
            "bathrooms": self.bathrooms,
            "guests": self.guests,
            "airbnb_published": self.airbnb_published,
            "airbnb_link": self.airbnb_link,
            "rules": self.rules,
            "comments": self.comments,
        }


@dataclass(frozen=True)
class ServiceLinkRecord:
    """Row for the services table: one selected service of a property."""

    property_id: Any
    service_name: str

    @classmethod
    def from_form(cls, state: FormState, property_id: Any) -> list["ServiceLinkRecord"]:
        return [cls(property_id=property_id, service_name=s) for s in state.services]

    def to_row(self) -> dict[str, Any]:
        return {
            "property_id": self.property_id,
            "service_name": self.service_name,
        }
