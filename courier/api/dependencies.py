"""FastAPI dependencies: container access and principal checks."""

from typing import Awaitable, Callable
from uuid import UUID

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from courier.container import Container
from courier.errors import AuthenticationError, AuthorizationError, NotFoundError
from courier.models.driver import Driver
from courier.utils.security import Principal, decode_access_token

bearer_scheme = HTTPBearer(auto_error=False)


def get_container(request: Request) -> Container:
    return request.app.state.container


async def get_principal(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> Principal:
    """Resolve the bearer token into an authenticated actor."""
    if credentials is None:
        raise AuthenticationError("Missing bearer token")
    return decode_access_token(credentials.credentials)


def require_role(*roles: str) -> Callable[..., Awaitable[Principal]]:
    async def _check(principal: Principal = Depends(get_principal)) -> Principal:
        if principal.role not in roles:
            raise AuthorizationError("Insufficient role", required=list(roles))
        return principal

    return _check


require_driver = require_role("driver")
require_admin = require_role("admin")
require_order_creator = require_role("restaurant", "admin")


async def current_driver(
    principal: Principal = Depends(require_driver),
    container: Container = Depends(get_container),
) -> Driver:
    """The driver profile owned by the calling identity."""
    driver = await container.drivers.get_by_identity(principal.sub)
    if driver is None:
        raise NotFoundError("No driver profile for this account")
    return driver


async def owned_driver(
    driver_id: UUID,
    driver: Driver = Depends(current_driver),
) -> Driver:
    """Path driver, which must be the caller's own profile."""
    if driver.id != driver_id:
        raise AuthorizationError("Drivers may only act on their own profile")
    return driver


async def owned_or_admin_driver(
    driver_id: UUID,
    principal: Principal = Depends(get_principal),
    container: Container = Depends(get_container),
) -> Driver:
    """Path driver, readable by its owner or by an admin."""
    driver = await container.drivers.require_driver(driver_id)
    if principal.role == "admin":
        return driver
    if principal.role == "driver" and str(driver.identity_id) == principal.sub:
        return driver
    raise AuthorizationError("Not allowed to view this driver")
