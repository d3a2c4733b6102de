"""Driver profile, verification and operational state models."""

import re
from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID, uuid4

from pydantic import Field, field_validator

from courier.models.base import CamelModel, Location, utcnow

VEHICLE_NUMBER_PATTERN = re.compile(r"^[A-Z]{2}[0-9]{2}[A-Z]{0,3}[0-9]{4}$")
LICENSE_NUMBER_PATTERN = re.compile(r"^[A-Z]{2}[0-9]{13}$")


class VehicleType(str, Enum):
    """Supported vehicle types."""

    BIKE = "bike"
    SCOOTER = "scooter"
    CAR = "car"
    BICYCLE = "bicycle"


class DriverStatus(str, Enum):
    """Operational status of a driver."""

    IDLE = "idle"
    ACTIVE = "active"
    ON_TRIP = "onTrip"


class VerificationStatus(str, Enum):
    """Document review lifecycle stage."""

    PENDING_DOCUMENTS = "pending_documents"
    PENDING_VERIFICATION = "pending_verification"
    VERIFIED = "verified"
    REJECTED = "rejected"


class DocumentSlot(str, Enum):
    """Named document slots a driver can fill."""

    AADHAAR_FRONT = "aadhaarFront"
    AADHAAR_BACK = "aadhaarBack"
    DL_FRONT = "dlFront"
    DL_BACK = "dlBack"
    PAN_CARD = "panCard"


def normalize_vehicle_number(value: str) -> str:
    """Strip whitespace, upper-case and check a registration plate number."""
    normalized = re.sub(r"\s", "", value or "").upper()
    if not VEHICLE_NUMBER_PATTERN.match(normalized):
        raise ValueError(f"{value} is not a valid vehicle registration number")
    return normalized


def normalize_license_number(value: str) -> str:
    """Strip whitespace and dashes, upper-case and check a driving licence number."""
    normalized = re.sub(r"[\s-]", "", value or "").upper()
    if not LICENSE_NUMBER_PATTERN.match(normalized):
        raise ValueError(f"{value} is not a valid driving licence number")
    return normalized


class DriverDocuments(CamelModel):
    """Stored-file references for each document slot."""

    aadhaar_front: str | None = None
    aadhaar_back: str | None = None
    dl_front: str | None = None
    dl_back: str | None = None
    pan_card: str | None = None

    def filled_slots(self) -> set[DocumentSlot]:
        data = self.model_dump(by_alias=True, exclude_none=True)
        return {DocumentSlot(key) for key in data}

    def merged(self, urls: dict[DocumentSlot, str]) -> "DriverDocuments":
        """Return a copy with ``urls`` layered over the existing references."""
        data = self.model_dump(by_alias=True, exclude_none=True)
        data.update({slot.value: url for slot, url in urls.items()})
        return DriverDocuments.model_validate(data)


class DriverProfile(CamelModel):
    """Registration-time profile fields."""

    name: str = Field(min_length=1)
    phone: str = Field(min_length=1)
    vehicle_type: VehicleType = VehicleType.BIKE
    vehicle_number: str
    license_number: str

    @field_validator("name", "phone")
    @classmethod
    def strip_text(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("must not be blank")
        return v

    @field_validator("vehicle_number")
    @classmethod
    def validate_vehicle_number(cls, v: str) -> str:
        return normalize_vehicle_number(v)

    @field_validator("license_number")
    @classmethod
    def validate_license_number(cls, v: str) -> str:
        return normalize_license_number(v)


class DriverProfileUpdate(CamelModel):
    """Partial profile update. Only profile fields may change through it."""

    name: str | None = None
    phone: str | None = None
    vehicle_type: VehicleType | None = None
    vehicle_number: str | None = None
    license_number: str | None = None

    @field_validator("vehicle_number")
    @classmethod
    def validate_vehicle_number(cls, v: str | None) -> str | None:
        return normalize_vehicle_number(v) if v is not None else None

    @field_validator("license_number")
    @classmethod
    def validate_license_number(cls, v: str | None) -> str | None:
        return normalize_license_number(v) if v is not None else None


class Driver(CamelModel):
    """Delivery partner profile linked one-to-one to an identity."""

    id: UUID = Field(default_factory=uuid4)
    identity_id: UUID
    name: str
    phone: str
    vehicle_type: VehicleType
    vehicle_number: str
    license_number: str

    # Operational state
    current_location: Location = Field(default_factory=Location)
    is_available: bool = False
    current_status: DriverStatus = DriverStatus.IDLE
    rating: float = Field(default=0.0, ge=0, le=5)

    # Earnings
    total_deliveries: int = Field(default=0, ge=0)
    total_earnings: Decimal = Field(default=Decimal("0.00"))
    today_earnings: Decimal = Field(default=Decimal("0.00"))

    # Verification
    documents: DriverDocuments = Field(default_factory=DriverDocuments)
    verification_status: VerificationStatus = VerificationStatus.PENDING_DOCUMENTS
    verification_notes: str | None = None
    verified_at: datetime | None = None
    verified_by: UUID | None = None

    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @field_validator("vehicle_number")
    @classmethod
    def validate_vehicle_number(cls, v: str) -> str:
        return normalize_vehicle_number(v)

    @field_validator("license_number")
    @classmethod
    def validate_license_number(cls, v: str) -> str:
        return normalize_license_number(v)

    @property
    def is_verified(self) -> bool:
        return self.verification_status == VerificationStatus.VERIFIED

    def record_delivery(self, amount: Decimal) -> None:
        """Apply one completed delivery to the earnings counters."""
        self.total_deliveries += 1
        self.total_earnings += amount
        self.today_earnings += amount
