"""Error taxonomy shared by the registries, services and API layer."""

from typing import Any, Mapping, Sequence


class CourierError(Exception):
    """Base class for recoverable, caller-reported failures."""

    kind = "error"
    status_code = 500

    def __init__(self, message: str, **details: Any):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"error": self.kind, "message": self.message}
        if self.details:
            payload["details"] = self.details
        return payload


class ValidationError(CourierError):
    """Malformed input, pattern mismatch or missing required field."""

    kind = "validation_error"
    status_code = 400

    @classmethod
    def from_errors(cls, message: str, errors: Sequence[Mapping[str, Any]]) -> "ValidationError":
        """Build from pydantic-style error entries (``loc``/``msg`` pairs)."""
        fields = [
            {
                "field": ".".join(str(part) for part in err.get("loc", ())),
                "message": err.get("msg", "invalid value"),
            }
            for err in errors
        ]
        return cls(message, errors=fields)


class AuthenticationError(CourierError):
    """Missing or unusable bearer credentials."""

    kind = "authentication_error"
    status_code = 401


class AuthorizationError(CourierError):
    """Actor lacks the role or does not own the resource."""

    kind = "authorization_error"
    status_code = 403


class NotFoundError(CourierError):
    """Unknown driver, order or identity id."""

    kind = "not_found"
    status_code = 404


class ConflictError(CourierError):
    """A guarded update lost against a concurrent writer (e.g. order already taken)."""

    kind = "conflict"
    status_code = 409


class StateError(CourierError):
    """The requested transition is not legal from the current state."""

    kind = "invalid_state"
    status_code = 409


class DependencyError(CourierError):
    """A collaborator (notification relay, storage) failed."""

    kind = "dependency_error"
    status_code = 502
