"""Exceptions raised by the unit catalogue."""
from __future__ import annotations


class UnitDecoderError(Exception):
    """Base class for catalogue errors."""


class UnitNotFoundError(UnitDecoderError, LookupError):
    def __init__(self, unit_id: object) -> None:
        super().__init__(f"No unit with id {unit_id!r}")
        self.unit_id = unit_id


class ConversionError(UnitDecoderError):
    """A conversion between two units cannot be performed."""


class IncompatibleUnitsError(ConversionError):
    pass
