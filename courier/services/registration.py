"""Driver sign-up: identity + driver profile + bearer token."""

from dataclasses import dataclass
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from courier.config import get_settings
from courier.errors import ValidationError
from courier.models.driver import Driver, DriverProfile
from courier.models.identity import Identity
from courier.services.notifications import NotificationService
from courier.services.otp import OtpService
from courier.state.drivers import DriverRegistry
from courier.state.identities import IdentityStore
from courier.utils.logging import get_logger
from courier.utils.security import create_access_token

logger = get_logger(__name__)


@dataclass
class Registration:
    identity: Identity
    driver: Driver
    access_token: str


class RegistrationService:
    def __init__(
        self,
        identities: IdentityStore,
        drivers: DriverRegistry,
        otp: OtpService,
        notifier: NotificationService,
    ):
        self.identities = identities
        self.drivers = drivers
        self.otp = otp
        self.notifier = notifier
        self.settings = get_settings()

    async def register_driver(
        self,
        *,
        email: str,
        profile: DriverProfile | dict[str, Any],
        otp: str | None = None,
    ) -> Registration:
        """Create an identity and its driver profile in ``pending_documents``.

        The profile is validated before the OTP is consumed so a typo in a
        plate number does not burn the code.
        """
        if not isinstance(profile, DriverProfile):
            try:
                profile = DriverProfile.model_validate(profile)
            except PydanticValidationError as exc:
                raise ValidationError.from_errors("Invalid driver profile", exc.errors()) from exc

        if self.settings.registration_requires_otp:
            if not otp:
                raise ValidationError("Email OTP is required")
            await self.otp.verify_email_otp(email, otp)

        identity = await self.identities.create_identity(
            email=email, name=profile.name, phone=profile.phone, role="driver"
        )
        try:
            driver = await self.drivers.create_driver(identity.id, profile)
        except Exception:
            await self.identities.delete_identity(identity.id)
            raise

        self.notifier.send_welcome(identity.email, driver.name)
        logger.info("driver_registered", driver_id=str(driver.id), identity_id=str(identity.id))

        return Registration(
            identity=identity,
            driver=driver,
            access_token=create_access_token(sub=str(identity.id), role="driver"),
        )

    async def sign_in(self, *, email: str, otp: str) -> tuple[Identity, str]:
        """Exchange a sign-in code for a fresh bearer token."""
        await self.otp.verify_login_otp(email, otp)
        identity = await self.identities.get_by_email(email)
        if identity is None:
            raise ValidationError("Email is not registered")

        logger.info("identity_signed_in", identity_id=str(identity.id), role=identity.role)
        return identity, create_access_token(sub=str(identity.id), role=identity.role)
