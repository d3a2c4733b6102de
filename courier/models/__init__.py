"""Data models for the courier platform."""

from courier.models.base import CamelModel, Location
from courier.models.driver import (
    DocumentSlot,
    Driver,
    DriverDocuments,
    DriverProfile,
    DriverProfileUpdate,
    DriverStatus,
    VehicleType,
    VerificationStatus,
)
from courier.models.events import (
    JoinPayload,
    LocationPayload,
    OrderStatusPayload,
    RealtimeFrame,
)
from courier.models.identity import Identity
from courier.models.order import Order, OrderCreate, OrderItem, OrderStatus

__all__ = [
    "CamelModel",
    "Location",
    # Driver
    "DocumentSlot",
    "Driver",
    "DriverDocuments",
    "DriverProfile",
    "DriverProfileUpdate",
    "DriverStatus",
    "VehicleType",
    "VerificationStatus",
    # Identity
    "Identity",
    # Order
    "Order",
    "OrderCreate",
    "OrderItem",
    "OrderStatus",
    # Realtime
    "JoinPayload",
    "LocationPayload",
    "OrderStatusPayload",
    "RealtimeFrame",
]
