"""Shared model configuration."""

from datetime import datetime, timezone

from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


def utcnow() -> datetime:
    """Timezone-aware current UTC time."""
    return datetime.now(timezone.utc)


class CamelModel(BaseModel):
    """Model exposed on the wire with camelCase keys.

    Attributes stay snake_case in Python and in stored documents; both spellings
    are accepted on input.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Location(CamelModel):
    """Geographic point. ``[0, 0]`` means the position is unknown."""

    lng: float = Field(default=0.0, validation_alias=AliasChoices("lng", "longitude"))
    lat: float = Field(default=0.0, validation_alias=AliasChoices("lat", "latitude"))

    @property
    def coordinates(self) -> list[float]:
        return [self.lng, self.lat]

    @property
    def is_known(self) -> bool:
        return not (self.lng == 0.0 and self.lat == 0.0)
