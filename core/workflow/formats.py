"""
Property Formats - Format-specific fields captured during data entry.

Each format adds a small set of typed fields on top of the common
measurements, construction and valuation sections. Values are stored in
``PropertyData.custom_data`` keyed by field id.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from typing import Any, Final, Optional

from core.exceptions import InvalidTransition


class FieldKind(Enum):
    TEXT = "text"
    NUMBER = "number"
    SELECT = "select"
    TEXTAREA = "textarea"


@dataclass(frozen=True)
class FormatField:
    """One custom field of a property format."""

    id: str
    label: str
    kind: FieldKind
    required: bool = False
    options: tuple[str, ...] = ()

    def to_dict(self) -> dict:
        data = {
            "id": self.id,
            "label": self.label,
            "type": self.kind.value,
            "required": self.required,
        }
        if self.options:
            data["options"] = list(self.options)
        return data


@dataclass(frozen=True)
class PropertyFormat:
    """A named set of custom fields."""

    id: str
    name: str
    fields: tuple[FormatField, ...]

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "fields": [f.to_dict() for f in self.fields],
        }


_N = FieldKind.NUMBER
_S = FieldKind.SELECT
_T = FieldKind.TEXT
_TA = FieldKind.TEXTAREA

PROPERTY_FORMATS: Final[dict[str, PropertyFormat]] = {
    fmt.id: fmt
    for fmt in (
        PropertyFormat("residential", "Residential Property", (
            FormatField("bedrooms", "Number of Bedrooms", _N, required=True),
            FormatField("bathrooms", "Number of Bathrooms", _N, required=True),
            FormatField("parking", "Parking Spaces", _N),
            FormatField("garden", "Garden Area (sq ft)", _N),
            FormatField("amenities", "Amenities", _TA),
        )),
        PropertyFormat("commercial", "Commercial Property", (
            FormatField("floors", "Number of Floors", _N, required=True),
            FormatField("units", "Number of Units", _N, required=True),
            FormatField("parking_spaces", "Parking Spaces", _N),
            FormatField("elevator", "Elevator Available", _S, required=True,
                        options=("Yes", "No")),
            FormatField("business_type", "Suitable Business Type", _TA),
        )),
        PropertyFormat("industrial", "Industrial Property", (
            FormatField("warehouse_area", "Warehouse Area (sq ft)", _N, required=True),
            FormatField("office_area", "Office Area (sq ft)", _N),
            FormatField("loading_docks", "Loading Docks", _N),
            FormatField("power_supply", "Power Supply (KW)", _N),
            FormatField("machinery", "Existing Machinery", _TA),
        )),
        PropertyFormat("land", "Land/Plot", (
            FormatField("zoning", "Zoning Classification", _S, required=True,
                        options=("Residential", "Commercial", "Industrial",
                                 "Agricultural", "Mixed Use")),
            FormatField("soil_type", "Soil Type", _T),
            FormatField("water_access", "Water Access", _S,
                        options=("Municipal", "Well", "None")),
            FormatField("road_access", "Road Access", _S, required=True,
                        options=("Paved", "Gravel", "Dirt", "No Direct Access")),
            FormatField("utilities", "Available Utilities", _TA),
        )),
        PropertyFormat("luxury_residential", "Luxury Residential", (
            FormatField("master_bedrooms", "Master Bedrooms", _N, required=True),
            FormatField("guest_rooms", "Guest Rooms", _N),
            FormatField("swimming_pool", "Swimming Pool", _S,
                        options=("Indoor", "Outdoor", "Both", "None")),
            FormatField("garage_capacity", "Garage Capacity", _N),
            FormatField("luxury_features", "Luxury Features", _TA),
        )),
        PropertyFormat("mixed_use", "Mixed Use Property", (
            FormatField("residential_units", "Residential Units", _N, required=True),
            FormatField("commercial_units", "Commercial Units", _N, required=True),
            FormatField("total_floors", "Total Floors", _N, required=True),
            FormatField("common_areas", "Common Areas (sq ft)", _N),
            FormatField("usage_restrictions", "Usage Restrictions", _TA),
        )),
    )
}


def get_format(format_id: str) -> PropertyFormat:
    """
    Get a property format by id.

    Raises:
        InvalidTransition: If the format id is unknown
    """
    fmt = PROPERTY_FORMATS.get(format_id)
    if fmt is None:
        raise InvalidTransition(f"Unknown property format: {format_id}", field="format_id")
    return fmt


def list_formats() -> list[dict]:
    return [fmt.to_dict() for fmt in PROPERTY_FORMATS.values()]


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def validate_custom_data(format_id: Optional[str], custom_data: dict[str, Any]) -> dict[str, Any]:
    """
    Check custom field values against a property format.

    Numbers are coerced to float, select values must be one of the options.
    Keys the format does not define are kept as-is.

    Returns:
        Normalised copy of ``custom_data``

    Raises:
        InvalidTransition: Naming ``custom_data.<field id>`` on the first bad value
    """
    if format_id is None:
        return dict(custom_data)

    fmt = get_format(format_id)
    cleaned = dict(custom_data)
    for field_def in fmt.fields:
        name = f"custom_data.{field_def.id}"
        value = cleaned.get(field_def.id)

        if _is_blank(value):
            if field_def.required:
                raise InvalidTransition(f"{field_def.label} is required", field=name)
            cleaned.pop(field_def.id, None)
            continue

        if field_def.kind == FieldKind.NUMBER:
            try:
                number = float(value)
            except (TypeError, ValueError):
                raise InvalidTransition(f"{field_def.label} must be a number", field=name) from None
            if not math.isfinite(number):
                raise InvalidTransition(f"{field_def.label} must be a finite number", field=name)
            if number < 0:
                raise InvalidTransition(f"{field_def.label} cannot be negative", field=name)
            cleaned[field_def.id] = number
        elif field_def.kind == FieldKind.SELECT:
            if value not in field_def.options:
                raise InvalidTransition(
                    f"{field_def.label} must be one of: {', '.join(field_def.options)}",
                    field=name,
                )
        else:
            cleaned[field_def.id] = str(value).strip()

    return cleaned
