"""Outbound email notifications, delivered fire-and-forget."""

import asyncio

import httpx
from pydantic import BaseModel

from courier.config import get_settings
from courier.errors import DependencyError
from courier.utils.logging import get_logger

logger = get_logger(__name__)


class EmailMessage(BaseModel):
    """One outbound email as posted to the mail relay."""

    to: str
    subject: str
    text: str
    sender: str | None = None


class NotificationService:
    """Sends emails through an HTTP mail relay.

    Without a configured relay URL messages are only logged, which keeps
    development setups free of mail credentials. Callers never await
    delivery: :meth:`dispatch` schedules it and delivery failures are logged.
    """

    def __init__(
        self,
        webhook_url: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        settings = get_settings()
        self.webhook_url = webhook_url if webhook_url is not None else settings.notification_webhook_url
        self.timeout = timeout or settings.notification_timeout_seconds
        self.sender = settings.mail_from
        self.frontend_url = settings.frontend_url
        self.transport = transport
        self._tasks: set[asyncio.Task[None]] = set()

    async def send(self, message: EmailMessage) -> None:
        """Deliver one message, raising DependencyError if the relay fails."""
        if not self.webhook_url:
            logger.info("email_logged", to=message.to, subject=message.subject)
            logger.debug("email_body", to=message.to, text=message.text)
            return

        payload = message.model_dump()
        payload["sender"] = message.sender or self.sender
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.post(self.webhook_url, json=payload)
                response.raise_for_status()
        except httpx.HTTPError as exc:
            raise DependencyError(
                "Notification delivery failed", to=message.to, subject=message.subject
            ) from exc

        logger.info("email_sent", to=message.to, subject=message.subject)

    async def _deliver(self, message: EmailMessage) -> None:
        try:
            await self.send(message)
        except DependencyError as exc:
            logger.error(
                "notification_failed",
                to=message.to,
                subject=message.subject,
                error=str(exc),
                cause=str(exc.__cause__),
            )

    def dispatch(self, message: EmailMessage) -> asyncio.Task[None]:
        """Schedule delivery without waiting for it."""
        task = asyncio.create_task(self._deliver(message))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def wait_idle(self) -> None:
        """Wait for every scheduled delivery to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def close(self) -> None:
        await self.wait_idle()

    # Templates

    def send_email_otp(self, email: str, otp: str, ttl_seconds: int) -> asyncio.Task[None]:
        minutes = max(ttl_seconds // 60, 1)
        return self.dispatch(
            EmailMessage(
                to=email,
                subject="Verify Your Email - OTP Code",
                text=f"Your verification code is {otp}. It expires in {minutes} minutes.",
            )
        )

    def send_login_otp(self, email: str, otp: str, ttl_seconds: int) -> asyncio.Task[None]:
        minutes = max(ttl_seconds // 60, 1)
        return self.dispatch(
            EmailMessage(
                to=email,
                subject="Your Sign-In Code",
                text=f"Your sign-in code is {otp}. It expires in {minutes} minutes.",
            )
        )

    def send_welcome(self, email: str, name: str) -> asyncio.Task[None]:
        return self.dispatch(
            EmailMessage(
                to=email,
                subject="Welcome to Our Delivery Network!",
                text=(
                    f"Hi {name}, your partner account is ready. Upload your documents "
                    f"at {self.frontend_url}/driver/documents to start the review."
                ),
            )
        )

    def send_verification_approved(self, email: str, name: str) -> asyncio.Task[None]:
        return self.dispatch(
            EmailMessage(
                to=email,
                subject="Verification Approved - Start Accepting Orders!",
                text=(
                    f"Hi {name}, your documents have been verified. Go online from "
                    f"{self.frontend_url}/driver/dashboard to start accepting orders."
                ),
            )
        )

    def send_verification_rejected(self, email: str, name: str, reason: str) -> asyncio.Task[None]:
        return self.dispatch(
            EmailMessage(
                to=email,
                subject="Verification Update - Action Required",
                text=(
                    f"Hi {name}, we could not verify your documents.\n"
                    f"Reason: {reason}\n"
                    f"Please upload new documents at {self.frontend_url}/driver/documents."
                ),
            )
        )

    def send_documents_uploaded(
        self, admin_email: str, driver_name: str, slots: list[str]
    ) -> asyncio.Task[None]:
        return self.dispatch(
            EmailMessage(
                to=admin_email,
                subject=f"New Documents Uploaded: {driver_name}",
                text=(
                    f"{driver_name} uploaded {', '.join(slots)}. Review pending drivers "
                    f"at {self.frontend_url}/admin/verifications."
                ),
            )
        )
