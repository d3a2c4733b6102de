"""Identity (account) records consumed by the core."""

from datetime import datetime
from uuid import UUID, uuid4

from pydantic import EmailStr, Field

from courier.models.base import CamelModel, utcnow
from courier.utils.security import Role


class Identity(CamelModel):
    """Account that authenticates against the platform."""

    id: UUID = Field(default_factory=uuid4)
    email: EmailStr
    name: str
    phone: str | None = None
    role: Role = "driver"
    created_at: datetime = Field(default_factory=utcnow)
