"""Identity records and their email index."""

from uuid import UUID

from courier.errors import ValidationError
from courier.models.identity import Identity
from courier.state.manager import StateManager
from courier.utils.logging import get_logger
from courier.utils.security import Role

logger = get_logger(__name__)


class IdentityStore:
    """Persists identities, unique by lower-cased email."""

    def __init__(self, state_manager: StateManager):
        self.state = state_manager

    def _identity_key(self, identity_id: UUID) -> str:
        return f"identity:{identity_id}"

    def _email_key(self, email: str) -> str:
        return f"identity:email:{email.strip().lower()}"

    async def create_identity(
        self,
        *,
        email: str,
        name: str,
        phone: str | None = None,
        role: Role = "driver",
    ) -> Identity:
        """Create an identity, failing if the email is already registered."""
        identity = Identity(email=email.strip().lower(), name=name, phone=phone, role=role)

        claimed = await self.state.set_if_absent(
            self._email_key(identity.email), str(identity.id)
        )
        if not claimed:
            raise ValidationError("Email is already registered", email=identity.email)

        await self.state.set(
            self._identity_key(identity.id), identity.model_dump(mode="json")
        )
        logger.info("identity_created", identity_id=str(identity.id), role=role)
        return identity

    async def get_identity(self, identity_id: UUID) -> Identity | None:
        data = await self.state.get(self._identity_key(identity_id))
        if not data:
            return None
        return Identity(**data)

    async def get_by_email(self, email: str) -> Identity | None:
        identity_id = await self.state.get(self._email_key(email))
        if not identity_id:
            return None
        return await self.get_identity(UUID(identity_id))

    async def email_registered(self, email: str) -> bool:
        return await self.state.exists(self._email_key(email))

    async def delete_identity(self, identity_id: UUID) -> None:
        """Delete an identity and release its email."""
        identity = await self.get_identity(identity_id)
        if identity is None:
            return
        await self.state.delete(
            self._identity_key(identity_id), self._email_key(identity.email)
        )
        logger.info("identity_deleted", identity_id=str(identity_id))
