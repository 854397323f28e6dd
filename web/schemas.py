"""
Request bodies for the PropertyFlow API.

Only shapes are checked here; business rules (required evidence, role
guards, custom format fields) are enforced by the core and reported as
PropertyFlowError responses.
"""

from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, Field


# =============================================================================
# Auth & Users
# =============================================================================


class LoginRequest(BaseModel):
    email: str
    password: str


class UserCreateRequest(BaseModel):
    full_name: str
    email: str
    mobile_number: str
    position: str
    password: str
    department: Optional[str] = None
    employee_id: Optional[str] = None


class UserUpdateRequest(BaseModel):
    full_name: Optional[str] = None
    email: Optional[str] = None
    mobile_number: Optional[str] = None
    position: Optional[str] = None
    department: Optional[str] = None
    employee_id: Optional[str] = None
    is_active: Optional[bool] = None
    password: Optional[str] = None


# =============================================================================
# Property Files
# =============================================================================


class FileCreateRequest(BaseModel):
    property_address: str
    owner_name: str
    validator_id: int
    key_in_operator_id: int
    verification_officer_id: Optional[int] = None
    coordinator_id: Optional[int] = None
    owner_contact: Optional[str] = None
    village: Optional[str] = None
    bank_id: Optional[int] = None
    property_type_id: Optional[int] = None
    location_id: Optional[int] = None
    coordinator_comments: Optional[str] = None


class TransitionRequest(BaseModel):
    """Body shared by every transition: the status the caller last saw."""

    expected_status: Optional[str] = None


class PhotoInput(BaseModel):
    url: str
    photo_type: str = "other"
    caption: str = ""


class ValidationRequest(TransitionRequest):
    photos: list[PhotoInput] = Field(default_factory=list)
    visit_date: Optional[str] = None
    property_type: Optional[str] = None
    gps_latitude: Optional[float] = None
    gps_longitude: Optional[float] = None
    gps_accuracy: Optional[float] = None
    property_condition: Optional[str] = None
    access_notes: Optional[str] = None
    visit_time: Optional[str] = None
    weather_conditions: Optional[str] = None
    extended_data: dict[str, Any] = Field(default_factory=dict)


class PropertyDataRequest(TransitionRequest):
    measurements: dict[str, Any] = Field(default_factory=dict)
    construction: dict[str, Any] = Field(default_factory=dict)
    valuation: dict[str, Any] = Field(default_factory=dict)
    data_source: Optional[str] = None
    format_id: Optional[str] = None
    custom_data: dict[str, Any] = Field(default_factory=dict)


class DecisionRequest(TransitionRequest):
    notes: Optional[str] = None


class ReasonRequest(TransitionRequest):
    reason: Optional[str] = None


class DocumentRequest(BaseModel):
    name: str
    file_url: str
    document_type: str = "other"
    file_size: Optional[int] = None
    mime_type: Optional[str] = None


# =============================================================================
# Master Data
# =============================================================================


class BankRequest(BaseModel):
    name: Optional[str] = None
    branch: Optional[str] = None


class PropertyTypeRequest(BaseModel):
    category: Optional[str] = None
    name: Optional[str] = None


class LocationRequest(BaseModel):
    state: Optional[str] = None
    district: Optional[str] = None
    city: Optional[str] = None


class ConfigRequest(BaseModel):
    config_type: Optional[str] = None
    key: Optional[str] = None
    value: Any = None
