"""Validation of unit records before they enter the catalogue."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping

from pydantic import BaseModel, ValidationError, ValidationInfo, field_validator

from .constants import CATEGORIES, MIN_DESCRIPTION_LENGTH
from .models import ConversionFactor, NonBlankText
from .normalize import is_valid_url


@dataclass
class ValidationResult:
    errors: list[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors


class UnitInput(BaseModel):
    """A submitted unit record, checked with the same field types as ``Unit``.

    The allowed categories come from the validation context so callers can
    validate against a catalogue other than the built-in one.
    """

    name: NonBlankText
    category: str
    base_unit: NonBlankText
    conversion_factor: ConversionFactor
    source_url: str
    description: str

    @field_validator("category")
    @classmethod
    def _known_category(cls, value: str, info: ValidationInfo) -> str:
        categories = (info.context or {}).get("categories", CATEGORIES)
        if value not in categories:
            raise ValueError("Valid category is required")
        return value

    @field_validator("conversion_factor", mode="before")
    @classmethod
    def _reject_bool(cls, value: Any) -> Any:
        if isinstance(value, bool):
            raise ValueError("Valid conversion factor is required")
        return value

    @field_validator("source_url")
    @classmethod
    def _http_url(cls, value: str) -> str:
        if not is_valid_url(value):
            raise ValueError("Valid source URL is required")
        return value

    @field_validator("description")
    @classmethod
    def _long_enough(cls, value: str) -> str:
        if len(value.strip()) < MIN_DESCRIPTION_LENGTH:
            raise ValueError(f"Description must be at least {MIN_DESCRIPTION_LENGTH} characters")
        return value


def _messages(exc: ValidationError) -> list[str]:
    messages = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error["loc"])
        messages.append(f"{location}: {error['msg']}")
    return messages


def validate_unit_data(data: Mapping[str, Any], categories: Iterable[str] = CATEGORIES) -> ValidationResult:
    try:
        UnitInput.model_validate(dict(data), context={"categories": tuple(categories)})
    except ValidationError as exc:
        return ValidationResult(errors=_messages(exc))
    return ValidationResult()
