"""Driver verification workflow: document submission and admin review."""

from dataclasses import dataclass, field
from typing import Mapping
from uuid import UUID

from redis.exceptions import RedisError

from courier.config import get_settings
from courier.errors import CourierError, StateError, ValidationError
from courier.models.base import utcnow
from courier.models.driver import DocumentSlot, Driver, VerificationStatus
from courier.services.documents import DecodedDocument, DocumentStorage, decode_document
from courier.services.notifications import NotificationService
from courier.state.drivers import DriverRegistry
from courier.state.identities import IdentityStore
from courier.state.workflow import VerificationTransitions
from courier.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass
class DocumentSubmission:
    """Outcome of a submission: the updated driver plus per-slot results."""

    driver: Driver
    stored: list[DocumentSlot] = field(default_factory=list)
    skipped: dict[str, str] = field(default_factory=dict)


def _parse_slots(payloads: Mapping[str, str]) -> dict[DocumentSlot, str]:
    slots: dict[DocumentSlot, str] = {}
    for name, payload in payloads.items():
        try:
            slot = DocumentSlot(name)
        except ValueError:
            raise ValidationError(
                f"Unknown document slot {name!r}",
                allowed=[s.value for s in DocumentSlot],
            ) from None
        if payload:
            slots[slot] = payload
    return slots


class VerificationService:
    """Moves drivers through pending_documents -> pending_verification -> verified/rejected."""

    def __init__(
        self,
        drivers: DriverRegistry,
        identities: IdentityStore,
        storage: DocumentStorage,
        notifier: NotificationService,
    ):
        self.drivers = drivers
        self.identities = identities
        self.storage = storage
        self.notifier = notifier
        self.settings = get_settings()

    def _check_complete(self, driver: Driver, slots: set[DocumentSlot]) -> None:
        if not self.settings.require_complete_documents:
            return
        missing = set(DocumentSlot) - driver.documents.filled_slots() - slots
        if missing:
            raise ValidationError(
                "All documents are required before review",
                missing=sorted(s.value for s in missing),
            )

    async def submit_documents(
        self, driver_id: UUID, payloads: Mapping[str, str]
    ) -> DocumentSubmission:
        """Store any decodable documents and move the driver into review.

        Undecodable payloads are skipped; the call fails only if none of
        them could be used. Stored references are merged over existing ones.
        """
        slots = _parse_slots(payloads)
        if not slots:
            raise ValidationError("No documents supplied")

        driver = await self.drivers.require_driver(driver_id)
        if not VerificationTransitions.can_submit_documents(driver.verification_status):
            raise StateError("Verified drivers cannot replace their documents")

        decoded: dict[DocumentSlot, DecodedDocument] = {}
        skipped: dict[str, str] = {}
        for slot, payload in slots.items():
            try:
                decoded[slot] = decode_document(payload, self.settings.max_document_bytes)
            except ValidationError as exc:
                skipped[slot.value] = exc.message
                logger.warning(
                    "document_skipped", driver_id=str(driver_id), slot=slot.value, reason=exc.message
                )

        if not decoded:
            raise ValidationError("No document could be decoded", skipped=skipped)
        self._check_complete(driver, set(decoded))

        urls = {
            slot: await self.storage.store(driver.id, slot, document)
            for slot, document in decoded.items()
        }

        def _apply(current: Driver) -> None:
            if not VerificationTransitions.can_submit_documents(current.verification_status):
                raise StateError("Verified drivers cannot replace their documents")
            self._check_complete(current, set(urls))
            current.documents = current.documents.merged(urls)
            current.verification_status = VerificationStatus.PENDING_VERIFICATION

        driver = await self.drivers.mutate(driver_id, _apply)

        stored = sorted(urls, key=lambda s: s.value)
        logger.info(
            "documents_submitted",
            driver_id=str(driver_id),
            stored=[s.value for s in stored],
            skipped=sorted(skipped),
        )
        if self.settings.admin_email:
            self.notifier.send_documents_uploaded(
                self.settings.admin_email, driver.name, [s.value for s in stored]
            )
        return DocumentSubmission(driver=driver, stored=stored, skipped=skipped)

    async def decide(
        self,
        driver_id: UUID,
        admin_id: UUID,
        status: VerificationStatus | str,
        notes: str | None = None,
    ) -> Driver:
        """Record an admin decision and schedule the matching email."""
        try:
            target = VerificationStatus(status)
        except ValueError:
            raise ValidationError(f"Invalid verification status {status!r}") from None
        if target not in VerificationTransitions.DECISIONS:
            raise ValidationError(
                f"Invalid verification status {target.value!r}",
                allowed=[s.value for s in VerificationTransitions.DECISIONS],
            )

        notes = (notes or "").strip()
        if target == VerificationStatus.REJECTED and not notes:
            raise ValidationError("Rejection requires notes")
        if target == VerificationStatus.VERIFIED and not notes:
            notes = self.settings.verified_default_note

        def _apply(driver: Driver) -> None:
            if driver.verification_status == VerificationStatus.PENDING_DOCUMENTS:
                raise StateError("Driver has not submitted documents yet")
            if not VerificationTransitions.can_transition(driver.verification_status, target):
                raise StateError(
                    f"Cannot move verification from {driver.verification_status.value} "
                    f"to {target.value}"
                )
            driver.verification_status = target
            driver.verification_notes = notes or None
            driver.verified_at = utcnow()
            driver.verified_by = admin_id
            if target != VerificationStatus.VERIFIED:
                driver.is_available = False

        driver = await self.drivers.mutate(driver_id, _apply)
        logger.info(
            "verification_decided",
            driver_id=str(driver_id),
            admin_id=str(admin_id),
            status=target.value,
        )
        await self._notify_decision(driver, target)
        return driver

    async def reconsider(
        self, driver_id: UUID, admin_id: UUID, notes: str | None = None
    ) -> Driver:
        """Send a rejected driver back into review."""
        notes = (notes or "").strip() or None

        def _apply(driver: Driver) -> None:
            if not VerificationTransitions.can_reconsider(driver.verification_status):
                raise StateError(
                    "Only rejected drivers can be reconsidered",
                    verification_status=driver.verification_status.value,
                )
            driver.verification_status = VerificationStatus.PENDING_VERIFICATION
            driver.verification_notes = notes
            driver.verified_at = utcnow()
            driver.verified_by = admin_id

        driver = await self.drivers.mutate(driver_id, _apply)
        logger.info("verification_reconsidered", driver_id=str(driver_id), admin_id=str(admin_id))
        return driver

    async def list_pending(self) -> list[Driver]:
        return await self.drivers.list_drivers(VerificationStatus.PENDING_VERIFICATION)

    async def _notify_decision(self, driver: Driver, status: VerificationStatus) -> None:
        if status not in (VerificationStatus.VERIFIED, VerificationStatus.REJECTED):
            return

        try:
            identity = await self.identities.get_identity(driver.identity_id)
        except (RedisError, CourierError) as exc:
            logger.error(
                "verification_email_failed",
                driver_id=str(driver.id),
                status=status.value,
                error=str(exc),
            )
            return
        if identity is None:
            logger.warning(
                "verification_email_skipped",
                driver_id=str(driver.id),
                reason="identity not found",
            )
            return

        if status == VerificationStatus.VERIFIED:
            self.notifier.send_verification_approved(identity.email, driver.name)
        else:
            self.notifier.send_verification_rejected(
                identity.email, driver.name, driver.verification_notes or ""
            )
