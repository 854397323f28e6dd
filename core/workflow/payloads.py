"""
Transition Payloads - Typed, validated inputs for the data-carrying events.

submit_validation carries ``ValidationEvidence`` and submit_property_data
carries ``PropertyDataEntry``. Both validate at construction and raise
InvalidTransition naming the offending field, so an invalid payload never
reaches the record store.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Optional

from core.exceptions import InvalidTransition
from core.workflow.formats import validate_custom_data


def _require_text(value: Optional[str], name: str, label: str) -> str:
    if value is None or not str(value).strip():
        raise InvalidTransition(f"{label} is required", field=name)
    return str(value).strip()


def _optional_float(data: dict[str, Any], name: str) -> Optional[float]:
    value = data.get(name)
    if value is None or value == "":
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise InvalidTransition(f"{name} must be a number", field=name) from None
    if not math.isfinite(number):
        raise InvalidTransition(f"{name} must be a finite number", field=name)
    return number


def _optional_int(data: dict[str, Any], name: str) -> Optional[int]:
    value = data.get(name)
    if value is None or value == "":
        return None
    try:
        return int(value)
    except (TypeError, ValueError, OverflowError):
        raise InvalidTransition(f"{name} must be a whole number", field=name) from None


# =============================================================================
# Site Evidence
# =============================================================================


@dataclass(frozen=True)
class PhotoRef:
    """Locator of an uploaded site photo."""

    url: str
    photo_type: str = "other"
    caption: str = ""

    @classmethod
    def from_value(cls, value: Any) -> "PhotoRef":
        if isinstance(value, PhotoRef):
            return value
        if isinstance(value, str):
            return cls(url=_require_text(value, "photos", "Photo URL"))
        if isinstance(value, dict):
            return cls(
                url=_require_text(value.get("url"), "photos", "Photo URL"),
                photo_type=value.get("photo_type") or "other",
                caption=value.get("caption") or "",
            )
        raise InvalidTransition("Photo must be a URL or an object with a url", field="photos")


@dataclass(frozen=True)
class ValidationEvidence:
    """Evidence a validator records on a site visit."""

    photos: tuple[PhotoRef, ...]
    visit_date: Optional[date]
    property_type: Optional[str]
    gps_latitude: Optional[float] = None
    gps_longitude: Optional[float] = None
    gps_accuracy: Optional[float] = None
    property_condition: Optional[str] = None
    access_notes: Optional[str] = None
    visit_time: Optional[str] = None
    weather_conditions: Optional[str] = None
    extended_data: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        """Validate required evidence at construction."""
        if not self.photos:
            raise InvalidTransition("At least one site photo is required", field="photos")
        if self.visit_date is None:
            raise InvalidTransition("Visit date is required", field="visit_date")
        object.__setattr__(
            self,
            "property_type",
            _require_text(self.property_type, "property_type", "Property type"),
        )

        if self.gps_latitude is not None and not -90 <= self.gps_latitude <= 90:
            raise InvalidTransition("Latitude must be between -90 and 90", field="gps_latitude")
        if self.gps_longitude is not None and not -180 <= self.gps_longitude <= 180:
            raise InvalidTransition(
                "Longitude must be between -180 and 180", field="gps_longitude"
            )
        if self.gps_accuracy is not None and not 0 <= self.gps_accuracy < math.inf:
            raise InvalidTransition("GPS accuracy cannot be negative", field="gps_accuracy")

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ValidationEvidence":
        """Build from a request body, coercing dates and numbers."""
        visit_date = data.get("visit_date")
        if isinstance(visit_date, str):
            try:
                visit_date = date.fromisoformat(visit_date)
            except ValueError:
                raise InvalidTransition(
                    "Visit date must be an ISO date (YYYY-MM-DD)", field="visit_date"
                ) from None

        return cls(
            photos=tuple(PhotoRef.from_value(p) for p in data.get("photos") or ()),
            visit_date=visit_date,
            property_type=data.get("property_type"),
            gps_latitude=_optional_float(data, "gps_latitude"),
            gps_longitude=_optional_float(data, "gps_longitude"),
            gps_accuracy=_optional_float(data, "gps_accuracy"),
            property_condition=data.get("property_condition"),
            access_notes=data.get("access_notes"),
            visit_time=data.get("visit_time"),
            weather_conditions=data.get("weather_conditions"),
            extended_data=dict(data.get("extended_data") or {}),
        )


# =============================================================================
# Property Data
# =============================================================================

# Nested request sections and the flat attribute each key maps to
_SECTIONS: dict[str, dict[str, str]] = {
    "measurements": {
        "length": "length",
        "width": "width",
        "area": "area",
        "built_up_area": "built_up_area",
        "carpet_area": "carpet_area",
    },
    "construction": {
        "type": "construction_type",
        "material": "construction_material",
        "condition": "construction_condition",
        "year_built": "year_built",
        "floors": "floors",
    },
    "valuation": {
        "estimated_value": "estimated_value",
        "market_rate": "market_rate",
        "government_rate": "government_rate",
        "notes": "valuation_notes",
    },
}

_NON_NEGATIVE = (
    "length", "width", "built_up_area", "carpet_area",
    "market_rate", "government_rate", "floors",
)


@dataclass(frozen=True)
class PropertyDataEntry:
    """Measurements, construction details and valuation keyed in for a file."""

    area: Optional[float]
    construction_type: Optional[str]
    estimated_value: Optional[float]

    length: Optional[float] = None
    width: Optional[float] = None
    built_up_area: Optional[float] = None
    carpet_area: Optional[float] = None

    construction_material: Optional[str] = None
    construction_condition: Optional[str] = None
    year_built: Optional[int] = None
    floors: Optional[int] = None

    market_rate: Optional[float] = None
    government_rate: Optional[float] = None
    valuation_notes: Optional[str] = None

    data_source: Optional[str] = None
    format_id: Optional[str] = None
    custom_data: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        """Validate required values at construction."""
        if self.area is None or not math.isfinite(self.area) or self.area <= 0:
            raise InvalidTransition("Area must be positive", field="area")
        object.__setattr__(
            self,
            "construction_type",
            _require_text(self.construction_type, "construction_type", "Construction type"),
        )
        if (
            self.estimated_value is None
            or not math.isfinite(self.estimated_value)
            or self.estimated_value <= 0
        ):
            raise InvalidTransition("Estimated value must be positive", field="estimated_value")

        for name in _NON_NEGATIVE:
            value = getattr(self, name)
            if value is not None and not math.isfinite(value):
                raise InvalidTransition(f"{name} must be a finite number", field=name)
            if value is not None and value < 0:
                raise InvalidTransition(f"{name} cannot be negative", field=name)

        if self.year_built is not None and not 1000 <= self.year_built <= date.today().year:
            raise InvalidTransition("Year built is out of range", field="year_built")

        object.__setattr__(
            self, "custom_data", validate_custom_data(self.format_id, self.custom_data)
        )

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "PropertyDataEntry":
        """
        Build from a request body.

        Accepts flat keys or the nested ``measurements`` / ``construction`` /
        ``valuation`` sections returned by ``PropertyData.to_dict()``.
        """
        flat = {k: v for k, v in data.items() if k not in _SECTIONS}
        for section, mapping in _SECTIONS.items():
            for key, attr in mapping.items():
                value = (data.get(section) or {}).get(key)
                if value is not None:
                    flat[attr] = value

        return cls(
            area=_optional_float(flat, "area"),
            construction_type=flat.get("construction_type"),
            estimated_value=_optional_float(flat, "estimated_value"),
            length=_optional_float(flat, "length"),
            width=_optional_float(flat, "width"),
            built_up_area=_optional_float(flat, "built_up_area"),
            carpet_area=_optional_float(flat, "carpet_area"),
            construction_material=flat.get("construction_material"),
            construction_condition=flat.get("construction_condition"),
            year_built=_optional_int(flat, "year_built"),
            floors=_optional_int(flat, "floors"),
            market_rate=_optional_float(flat, "market_rate"),
            government_rate=_optional_float(flat, "government_rate"),
            valuation_notes=flat.get("valuation_notes"),
            data_source=flat.get("data_source"),
            format_id=flat.get("format_id") or None,
            custom_data=dict(flat.get("custom_data") or {}),
        )

    def column_values(self) -> dict[str, Any]:
        """Values for a PropertyData row."""
        return {
            "length": self.length,
            "width": self.width,
            "area": self.area,
            "built_up_area": self.built_up_area,
            "carpet_area": self.carpet_area,
            "construction_type": self.construction_type,
            "construction_material": self.construction_material,
            "construction_condition": self.construction_condition,
            "year_built": self.year_built,
            "floors": self.floors,
            "estimated_value": self.estimated_value,
            "market_rate": self.market_rate,
            "government_rate": self.government_rate,
            "valuation_notes": self.valuation_notes,
            "data_source": self.data_source,
            "format_id": self.format_id,
            "custom_data": self.custom_data,
        }


def require_notes(notes: Optional[str]) -> str:
    """Rejections must say why."""
    return _require_text(notes, "notes", "Rejection notes")
