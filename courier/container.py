"""Wiring of stores, services and the presence hub for one application instance."""

from dataclasses import dataclass

from courier.realtime.presence import PresenceHub
from courier.services.dispatch import DispatchService
from courier.services.documents import DocumentStorage, LocalDocumentStorage
from courier.services.notifications import NotificationService
from courier.services.otp import OtpService
from courier.services.registration import RegistrationService
from courier.services.verification import VerificationService
from courier.state.drivers import DriverRegistry
from courier.state.identities import IdentityStore
from courier.state.manager import StateManager
from courier.state.orders import OrderRegistry


@dataclass
class Container:
    state: StateManager
    identities: IdentityStore
    drivers: DriverRegistry
    orders: OrderRegistry
    notifier: NotificationService
    presence: PresenceHub
    otp: OtpService
    registration: RegistrationService
    verification: VerificationService
    dispatch: DispatchService

    @classmethod
    def build(
        cls,
        state_manager: StateManager,
        notifier: NotificationService | None = None,
        storage: DocumentStorage | None = None,
    ) -> "Container":
        notifier = notifier or NotificationService()
        identities = IdentityStore(state_manager)
        drivers = DriverRegistry(state_manager, identities)
        orders = OrderRegistry(state_manager, drivers)
        presence = PresenceHub(drivers)
        otp = OtpService(state_manager, identities, notifier)
        return cls(
            state=state_manager,
            identities=identities,
            drivers=drivers,
            orders=orders,
            notifier=notifier,
            presence=presence,
            otp=otp,
            registration=RegistrationService(identities, drivers, otp, notifier),
            verification=VerificationService(
                drivers, identities, storage or LocalDocumentStorage(), notifier
            ),
            dispatch=DispatchService(orders, drivers, presence),
        )

    async def close(self) -> None:
        await self.presence.close()
        await self.notifier.close()
