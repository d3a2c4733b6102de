"""State machines for driver verification and order delivery."""

from courier.models.driver import VerificationStatus
from courier.models.order import OrderStatus


class VerificationTransitions:
    """Valid verification status transitions."""

    # Decisions an admin may record
    DECISIONS = (
        VerificationStatus.VERIFIED,
        VerificationStatus.REJECTED,
        VerificationStatus.PENDING_VERIFICATION,
    )

    TRANSITIONS = {
        VerificationStatus.PENDING_DOCUMENTS: [VerificationStatus.PENDING_VERIFICATION],
        VerificationStatus.PENDING_VERIFICATION: [
            VerificationStatus.PENDING_VERIFICATION,  # Re-upload while in review
            VerificationStatus.VERIFIED,
            VerificationStatus.REJECTED,
        ],
        VerificationStatus.REJECTED: [
            VerificationStatus.PENDING_VERIFICATION,  # Re-upload or reconsider
            VerificationStatus.VERIFIED,
            VerificationStatus.REJECTED,
        ],
        VerificationStatus.VERIFIED: [
            VerificationStatus.PENDING_VERIFICATION,  # Admin sends back to review
            VerificationStatus.REJECTED,
            VerificationStatus.VERIFIED,
        ],
    }

    @classmethod
    def can_transition(
        cls, from_state: VerificationStatus, to_state: VerificationStatus
    ) -> bool:
        """Check if a verification transition is valid."""
        return to_state in cls.TRANSITIONS.get(from_state, [])

    @classmethod
    def can_submit_documents(cls, current: VerificationStatus) -> bool:
        return current != VerificationStatus.VERIFIED

    @classmethod
    def can_reconsider(cls, current: VerificationStatus) -> bool:
        return current == VerificationStatus.REJECTED


class OrderTransitions:
    """Valid order status transitions."""

    TRANSITIONS = {
        OrderStatus.PENDING: [OrderStatus.ACCEPTED, OrderStatus.CANCELLED],
        OrderStatus.ACCEPTED: [OrderStatus.PICKED_UP, OrderStatus.CANCELLED],
        OrderStatus.PICKED_UP: [OrderStatus.EN_ROUTE, OrderStatus.CANCELLED],
        OrderStatus.EN_ROUTE: [OrderStatus.DELIVERED, OrderStatus.CANCELLED],
        OrderStatus.DELIVERED: [],
        OrderStatus.CANCELLED: [],
    }

    @classmethod
    def can_transition(cls, from_state: OrderStatus, to_state: OrderStatus) -> bool:
        """Check if an order transition is valid."""
        return to_state in cls.TRANSITIONS.get(from_state, [])
