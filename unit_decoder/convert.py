"""Conversion between two verified units sharing a reference unit."""
from __future__ import annotations

import logging
import math

from .errors import IncompatibleUnitsError, UnitNotFoundError
from .models import ConversionResult, Unit, UnitId, UnitSummary

logger = logging.getLogger(__name__)

RESULT_PRECISION = 6


def _verified(store, unit_id: UnitId) -> Unit:
    unit = store.get_unit(unit_id)
    if unit is None or not unit.is_verified:
        raise UnitNotFoundError(unit_id)
    return unit


def _summary(unit: Unit) -> UnitSummary:
    return UnitSummary(id=unit.id, name=unit.name, category=unit.category, conversion_factor=unit.conversion_factor)


def convert(from_unit: Unit, to_unit: Unit, value: float) -> ConversionResult:
    """Convert ``value`` expressed in ``from_unit`` into ``to_unit``.

    The value is scaled to the shared base unit and back:
    ``value * from.conversion_factor / to.conversion_factor``.
    """

    value = float(value)
    if not math.isfinite(value):
        raise ValueError(f"Cannot convert non-finite value {value!r}")
    if from_unit.category != to_unit.category:
        raise IncompatibleUnitsError(
            f"Cannot convert between {from_unit.category} and {to_unit.category} units"
        )
    if from_unit.base_unit != to_unit.base_unit:
        raise IncompatibleUnitsError(
            "Cannot convert between units with different base units: "
            f"{from_unit.base_unit} and {to_unit.base_unit}"
        )

    result = value * from_unit.conversion_factor / to_unit.conversion_factor
    formula = (
        f"{value:g} {from_unit.name} × {from_unit.conversion_factor:g} ÷ "
        f"{to_unit.conversion_factor:g} = {result:.{RESULT_PRECISION}f} {to_unit.name}"
    )
    logger.debug("convert %s", formula)
    return ConversionResult(
        result=round(result, RESULT_PRECISION),
        formula=formula,
        from_unit=_summary(from_unit),
        to_unit=_summary(to_unit),
        input_value=value,
    )


def convert_units(store, from_id: UnitId, to_id: UnitId, value: float) -> ConversionResult:
    return convert(_verified(store, from_id), _verified(store, to_id), value)
