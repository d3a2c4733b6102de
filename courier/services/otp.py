"""Email one-time passwords for registration."""

from courier.config import get_settings
from courier.errors import ValidationError
from courier.services.notifications import NotificationService
from courier.state.identities import IdentityStore
from courier.state.manager import StateManager
from courier.utils.logging import get_logger
from courier.utils.security import generate_otp, hash_otp, verify_otp_hash

logger = get_logger(__name__)


def _normalize(email: str) -> str:
    return email.strip().lower()


class OtpService:
    """Issues and checks single-use email codes.

    Only a salted hash is stored, under a key that expires with the code.
    A code is consumed by the first verification attempt, right or wrong.
    """

    def __init__(
        self,
        state_manager: StateManager,
        identities: IdentityStore,
        notifier: NotificationService,
    ):
        self.state = state_manager
        self.identities = identities
        self.notifier = notifier
        self.settings = get_settings()

    def _otp_key(self, email: str, purpose: str = "email") -> str:
        return f"otp:{purpose}:{email}"

    async def _issue(self, email: str, purpose: str) -> str:
        otp = generate_otp()
        await self.state.set(
            self._otp_key(email, purpose),
            {"hash": hash_otp(f"{purpose}:{email}", otp)},
            ttl=self.settings.otp_ttl_seconds,
        )
        return otp

    async def _consume(self, email: str, otp: str, purpose: str) -> None:
        record = await self.state.pop(self._otp_key(email, purpose))
        if not record or not verify_otp_hash(f"{purpose}:{email}", otp.strip(), record["hash"]):
            logger.warning("otp_rejected", email=email, purpose=purpose)
            raise ValidationError("Invalid or expired OTP")

    async def request_email_otp(self, email: str) -> str:
        """Generate a registration code for ``email`` and send it. Returns the code."""
        email = _normalize(email)
        if await self.identities.email_registered(email):
            raise ValidationError("Email is already registered", email=email)

        otp = await self._issue(email, "email")
        self.notifier.send_email_otp(email, otp, self.settings.otp_ttl_seconds)

        logger.info("email_otp_issued", email=email, ttl=self.settings.otp_ttl_seconds)
        return otp

    async def verify_email_otp(self, email: str, otp: str) -> None:
        """Consume the pending registration code for ``email``; raise if it does not match."""
        email = _normalize(email)
        await self._consume(email, otp, "email")
        logger.info("email_otp_verified", email=email)

    async def request_login_otp(self, email: str) -> str:
        """Send a sign-in code to a registered email. Returns the code."""
        email = _normalize(email)
        if not await self.identities.email_registered(email):
            raise ValidationError("Email is not registered", email=email)

        otp = await self._issue(email, "login")
        self.notifier.send_login_otp(email, otp, self.settings.otp_ttl_seconds)

        logger.info("login_otp_issued", email=email)
        return otp

    async def verify_login_otp(self, email: str, otp: str) -> None:
        email = _normalize(email)
        await self._consume(email, otp, "login")
        logger.info("login_otp_verified", email=email)
