"""State management modules."""

from courier.state.drivers import DriverRegistry
from courier.state.identities import IdentityStore
from courier.state.manager import StateManager
from courier.state.orders import OrderRegistry
from courier.state.workflow import OrderTransitions, VerificationTransitions

# Every key written by the registries and the OTP service
KEY_PATTERNS = (
    "driver:*",
    "drivers",
    "drivers:*",
    "order:*",
    "orders",
    "orders:*",
    "identity:*",
    "otp:*",
)

__all__ = [
    "KEY_PATTERNS",
    "DriverRegistry",
    "IdentityStore",
    "OrderRegistry",
    "OrderTransitions",
    "StateManager",
    "VerificationTransitions",
]
