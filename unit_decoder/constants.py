"""Static vocabularies shared by validation, seeding and search."""
from __future__ import annotations

SEARCH_RESULT_LIMIT = 20
SUGGESTION_LIMIT = 10
SUGGESTION_MIN_LENGTH = 2
BATCH_RESULTS_PER_QUERY = 5
MIN_DESCRIPTION_LENGTH = 10

CATEGORIES: tuple[str, ...] = (
    "Length",
    "Mass",
    "Volume",
    "Area",
    "Time",
    "Temperature",
    "Speed",
    "Counting",
    "Currency (Historical)",
    "Other",
)

# Reference units offered per category when a unit is proposed.
BASE_UNITS: dict[str, tuple[str, ...]] = {
    "Length": ("Meter", "Foot", "Inch"),
    "Mass": ("Gram", "Kilogram", "Pound"),
    "Volume": ("Liter", "Gallon", "Cubic Meter"),
    "Area": ("Square Meter", "Acre", "Hectare"),
    "Time": ("Second", "Minute", "Hour"),
    "Temperature": ("Celsius", "Fahrenheit", "Kelvin"),
    "Speed": ("Meter per Second", "Kilometer per Hour"),
    "Counting": ("Unit", "Piece"),
    "Other": ("Unit",),
}
