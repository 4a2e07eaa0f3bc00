"""Domain records for units, aliases and search results."""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Annotated, Any, Optional, Union

from pydantic import BaseModel, Field, StringConstraints

UnitId = Union[int, str]
NonBlankText = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]
ConversionFactor = Annotated[float, Field(gt=0, allow_inf_nan=False)]


class UnitStatus(str, Enum):
    VERIFIED = "verified"
    PENDING = "pending"
    FLAGGED_FOR_REVIEW = "flagged_for_review"
    REJECTED = "rejected"


class MatchLayer(str, Enum):
    EXACT = "exact"
    PHONETIC = "phonetic"
    FUZZY = "fuzzy"

    @property
    def priority(self) -> int:
        return _LAYER_PRIORITY[self]


_LAYER_PRIORITY = {MatchLayer.EXACT: 1, MatchLayer.PHONETIC: 2, MatchLayer.FUZZY: 3}


class Unit(BaseModel):
    """A measurement unit: ``1 <name> = conversion_factor <base_unit>``."""

    id: UnitId
    name: NonBlankText
    category: str
    base_unit: str
    conversion_factor: ConversionFactor
    description: str = ""
    region: str | None = None
    era: str | None = None
    source_url: str | None = None
    status: UnitStatus = UnitStatus.PENDING
    aliases: list[str] = Field(default_factory=list)

    @property
    def is_verified(self) -> bool:
        return self.status == UnitStatus.VERIFIED

    def to_document(self) -> dict[str, Any]:
        return self.model_dump(mode="json")


@dataclass(frozen=True)
class AliasRow:
    """An alias joined with the name of the unit that owns it.

    ``normalized_alias`` and ``phonetic_key`` are ``None`` only for malformed
    records coming back from an external store.
    """

    unit_id: UnitId
    unit_name: str
    alias: str
    normalized_alias: Optional[str]
    phonetic_key: Optional[str]


@dataclass(frozen=True)
class SearchResult:
    unit_id: UnitId
    unit_name: str
    layer: MatchLayer

    @property
    def priority(self) -> int:
        return self.layer.priority


class UnitSummary(BaseModel):
    id: UnitId
    name: str
    category: str
    conversion_factor: float


class ConversionResult(BaseModel):
    result: float
    formula: str
    from_unit: UnitSummary
    to_unit: UnitSummary
    input_value: float
