"""
Contact step form: field definitions, validation and error messages.

Values are kept as entered so the customer can fix one field without
retyping the others; ``to_contact_info`` only succeeds once every field
passes.

Usage:
    form = ContactForm()
    form.set_field("name", "Ana Dupont")
    form.set_field("email", "ana@example.ch")
    form.set_field("phone", "079 123 45 67")
    if form.validate():
        contact = form.to_contact_info()
"""

import logging
import re
from dataclasses import dataclass
from typing import Callable, Optional

from cleanbook.schemas.cart_schema import ContactInfo

logger = logging.getLogger(__name__)

MIN_PHONE_LENGTH = 10
EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def _validate_name(value: str) -> bool:
    return bool(value.strip())


def _validate_email(value: str) -> bool:
    return bool(EMAIL_PATTERN.match(value))


def _validate_phone(value: str) -> bool:
    return len(value.strip()) >= MIN_PHONE_LENGTH


@dataclass(frozen=True)
class FieldDefinition:
    """Schema for one contact input."""

    name: str
    display_name: str
    validator: Callable[[str], bool]
    required_message: str
    invalid_message: str = ""


class ContactForm:
    """Collects and validates the three contact fields."""

    FIELD_DEFINITIONS: list[FieldDefinition] = [
        FieldDefinition(
            name="name",
            display_name="Nom complet",
            validator=_validate_name,
            required_message="Le nom est requis",
        ),
        FieldDefinition(
            name="email",
            display_name="E-mail",
            validator=_validate_email,
            required_message="L'e-mail est requis",
            invalid_message="Adresse e-mail invalide",
        ),
        FieldDefinition(
            name="phone",
            display_name="Téléphone",
            validator=_validate_phone,
            required_message="Le téléphone est requis",
            invalid_message=f"Le téléphone doit contenir au moins {MIN_PHONE_LENGTH} caractères",
        ),
    ]

    def __init__(self, initial: Optional[ContactInfo] = None) -> None:
        self.values: dict[str, str] = {d.name: "" for d in self.FIELD_DEFINITIONS}
        self.errors: dict[str, str] = {}
        if initial is not None:
            self.values.update(initial.model_dump())

    def _get_definition(self, name: str) -> FieldDefinition:
        for defn in self.FIELD_DEFINITIONS:
            if defn.name == name:
                return defn
        raise ValueError(f"Unknown field: {name}")

    def set_field(self, name: str, value: str) -> None:
        """Store a value and clear that field's previous error."""
        self._get_definition(name)
        self.values[name] = value
        self.errors.pop(name, None)

    def validate(self) -> bool:
        """Check every field; failures are kept in ``errors`` by field name."""
        self.errors = {}
        for defn in self.FIELD_DEFINITIONS:
            value = self.values.get(defn.name, "")
            if not value.strip():
                self.errors[defn.name] = defn.required_message
            elif not defn.validator(value):
                self.errors[defn.name] = defn.invalid_message or defn.required_message
        if self.errors:
            logger.debug("Contact form invalid: %s", sorted(self.errors))
        return not self.errors

    def to_contact_info(self) -> ContactInfo:
        """Validated contact details, trimmed.

        Raises:
            ValueError: If any field fails validation.
        """
        if not self.validate():
            raise ValueError(f"Invalid contact fields: {', '.join(sorted(self.errors))}")
        return ContactInfo(
            name=self.values["name"].strip(),
            email=self.values["email"].strip(),
            phone=self.values["phone"].strip(),
        )


def validate_contact(contact: ContactInfo) -> dict[str, str]:
    """Field errors for an already-assembled contact; empty when valid."""
    form = ContactForm(contact)
    form.validate()
    return dict(form.errors)
