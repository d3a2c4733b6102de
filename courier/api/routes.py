"""API routes for the courier partner platform."""

from datetime import datetime
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response, status
from pydantic import EmailStr, Field

from courier.api.dependencies import (
    current_driver,
    get_container,
    get_principal,
    owned_driver,
    owned_or_admin_driver,
    require_admin,
    require_driver,
    require_order_creator,
)
from courier.config import get_settings
from courier.container import Container
from courier.errors import AuthorizationError
from courier.models.base import CamelModel, Location
from courier.models.driver import (
    Driver,
    DriverDocuments,
    DriverProfileUpdate,
    VehicleType,
    VerificationStatus,
)
from courier.models.order import Order, OrderCreate
from courier.services.dispatch import EarningsSummary
from courier.utils.logging import get_logger
from courier.utils.security import Principal

logger = get_logger(__name__)

router = APIRouter()


# Request/Response Models


class EmailOtpRequest(CamelModel):
    email: EmailStr


class EmailOtpResponse(CamelModel):
    message: str
    expires_in: int
    otp: str | None = None


class RegisterDriverRequest(CamelModel):
    """Registration form: account email, OTP and the driver profile."""

    email: EmailStr
    otp: str | None = None
    name: str
    phone: str
    vehicle_type: VehicleType = VehicleType.BIKE
    vehicle_number: str
    license_number: str


class RegisterDriverResponse(CamelModel):
    access_token: str
    token_type: str = "bearer"
    driver: Driver


class SignInRequest(CamelModel):
    email: EmailStr
    otp: str


class TokenResponse(CamelModel):
    access_token: str
    token_type: str = "bearer"
    role: str


class DocumentsRequest(CamelModel):
    """Base64 strings or data URLs keyed by document slot."""

    documents: dict[str, str] = Field(min_length=1)


class DocumentsResponse(CamelModel):
    documents: DriverDocuments
    verification_status: VerificationStatus
    verification_notes: str | None = None
    verified_at: datetime | None = None


class SubmissionResponse(CamelModel):
    driver: Driver
    stored: list[str]
    skipped: dict[str, str]


class AvailabilityRequest(CamelModel):
    is_available: bool


class AvailabilityResponse(CamelModel):
    is_available: bool


class VerificationDecisionRequest(CamelModel):
    status: str
    notes: str | None = None


class ReconsiderRequest(CamelModel):
    notes: str | None = None


class OrderStatusRequest(CamelModel):
    status: str


# Auth & registration


@router.post("/auth/email-otp", response_model=EmailOtpResponse)
async def request_email_otp(
    request: EmailOtpRequest,
    container: Container = Depends(get_container),
) -> EmailOtpResponse:
    """Send a registration code to an unregistered email."""
    settings = get_settings()
    otp = await container.otp.request_email_otp(request.email)
    return EmailOtpResponse(
        message="OTP sent",
        expires_in=settings.otp_ttl_seconds,
        otp=otp if settings.otp_dev_mode else None,
    )


@router.post("/auth/login-otp", response_model=EmailOtpResponse)
async def request_login_otp(
    request: EmailOtpRequest,
    container: Container = Depends(get_container),
) -> EmailOtpResponse:
    """Send a sign-in code to a registered email."""
    settings = get_settings()
    otp = await container.otp.request_login_otp(request.email)
    return EmailOtpResponse(
        message="OTP sent",
        expires_in=settings.otp_ttl_seconds,
        otp=otp if settings.otp_dev_mode else None,
    )


@router.post("/auth/login", response_model=TokenResponse)
async def sign_in(
    request: SignInRequest,
    container: Container = Depends(get_container),
) -> TokenResponse:
    """Exchange a sign-in code for a new bearer token."""
    identity, token = await container.registration.sign_in(email=request.email, otp=request.otp)
    return TokenResponse(access_token=token, role=identity.role)


@router.post(
    "/drivers",
    response_model=RegisterDriverResponse,
    status_code=status.HTTP_201_CREATED,
)
async def register_driver(
    request: RegisterDriverRequest,
    container: Container = Depends(get_container),
) -> RegisterDriverResponse:
    """
    Register a driver.

    Creates the account identity and a driver profile in ``pending_documents``
    and returns a bearer token for the new driver.
    """
    registration = await container.registration.register_driver(
        email=request.email,
        otp=request.otp,
        profile=request.model_dump(
            include={"name", "phone", "vehicle_type", "vehicle_number", "license_number"}
        ),
    )
    return RegisterDriverResponse(
        access_token=registration.access_token, driver=registration.driver
    )


# Driver self-service


@router.get("/drivers/me", response_model=Driver)
async def get_my_profile(driver: Driver = Depends(current_driver)) -> Driver:
    return driver


@router.patch("/drivers/{driver_id}", response_model=Driver)
async def update_profile(
    request: DriverProfileUpdate,
    driver: Driver = Depends(owned_driver),
    container: Container = Depends(get_container),
) -> Driver:
    """Update profile fields; vehicle and licence numbers are re-validated."""
    return await container.drivers.update_profile(driver.id, request)


@router.put("/drivers/{driver_id}/documents", response_model=SubmissionResponse)
async def submit_documents(
    request: DocumentsRequest,
    driver: Driver = Depends(owned_driver),
    container: Container = Depends(get_container),
) -> SubmissionResponse:
    """Upload documents and enter (or re-enter) verification review."""
    submission = await container.verification.submit_documents(driver.id, request.documents)
    return SubmissionResponse(
        driver=submission.driver,
        stored=[slot.value for slot in submission.stored],
        skipped=submission.skipped,
    )


@router.get("/drivers/{driver_id}/documents", response_model=DocumentsResponse)
async def get_documents(driver: Driver = Depends(owned_or_admin_driver)) -> DocumentsResponse:
    return DocumentsResponse(
        documents=driver.documents,
        verification_status=driver.verification_status,
        verification_notes=driver.verification_notes,
        verified_at=driver.verified_at,
    )


@router.put("/drivers/{driver_id}/location", response_model=Location)
async def set_location(
    request: Location,
    driver: Driver = Depends(owned_driver),
    container: Container = Depends(get_container),
) -> Location:
    updated = await container.drivers.set_location(driver.id, request.lng, request.lat)
    return updated.current_location


@router.put("/drivers/{driver_id}/availability", response_model=AvailabilityResponse)
async def set_availability(
    request: AvailabilityRequest,
    driver: Driver = Depends(owned_driver),
    container: Container = Depends(get_container),
) -> AvailabilityResponse:
    """Go online or offline. Going online requires a verified profile."""
    is_available = await container.drivers.set_availability(driver.id, request.is_available)
    return AvailabilityResponse(is_available=is_available)


@router.get("/drivers/{driver_id}/orders", response_model=list[Order])
async def list_driver_orders(
    active: bool = Query(default=False),
    driver: Driver = Depends(owned_driver),
    container: Container = Depends(get_container),
) -> list[Order]:
    return await container.dispatch.list_for_driver(driver.id, active_only=active)


@router.get("/drivers/{driver_id}/earnings", response_model=EarningsSummary)
async def get_earnings(
    driver: Driver = Depends(owned_driver),
    container: Container = Depends(get_container),
) -> EarningsSummary:
    return await container.dispatch.get_earnings(driver.id)


# Admin endpoints


@router.put("/drivers/{driver_id}/verification", response_model=Driver)
async def decide_verification(
    driver_id: UUID,
    request: VerificationDecisionRequest,
    admin: Principal = Depends(require_admin),
    container: Container = Depends(get_container),
) -> Driver:
    """Verify, reject or send back a driver for review."""
    return await container.verification.decide(
        driver_id, UUID(admin.sub), request.status, request.notes
    )


@router.post("/drivers/{driver_id}/reconsider", response_model=Driver)
async def reconsider_verification(
    driver_id: UUID,
    request: ReconsiderRequest | None = None,
    admin: Principal = Depends(require_admin),
    container: Container = Depends(get_container),
) -> Driver:
    notes = request.notes if request else None
    return await container.verification.reconsider(driver_id, UUID(admin.sub), notes)


@router.delete("/drivers/{driver_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_driver(
    driver_id: UUID,
    admin: Principal = Depends(require_admin),
    container: Container = Depends(get_container),
) -> Response:
    await container.drivers.delete_driver(driver_id)
    logger.info("driver_deleted_via_api", driver_id=str(driver_id), admin_id=admin.sub)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/admin/drivers", response_model=list[Driver])
async def list_drivers(
    verification_status: VerificationStatus | None = Query(default=None, alias="status"),
    _: Principal = Depends(require_admin),
    container: Container = Depends(get_container),
) -> list[Driver]:
    return await container.drivers.list_drivers(verification_status)


@router.get("/admin/verifications/pending", response_model=list[Driver])
async def list_pending_verifications(
    _: Principal = Depends(require_admin),
    container: Container = Depends(get_container),
) -> list[Driver]:
    return await container.verification.list_pending()


# Order endpoints


@router.post("/orders", response_model=Order, status_code=status.HTTP_201_CREATED)
async def create_order(
    request: OrderCreate,
    principal: Principal = Depends(require_order_creator),
    container: Container = Depends(get_container),
) -> Order:
    """Place a pending order. Restaurants may only place their own orders."""
    if principal.role == "restaurant" and str(request.restaurant_id) != principal.sub:
        raise AuthorizationError("Restaurants may only create their own orders")
    return await container.dispatch.create_order(request)


@router.get("/orders/available", response_model=list[Order])
async def list_available_orders(
    _: Principal = Depends(require_driver),
    container: Container = Depends(get_container),
) -> list[Order]:
    return await container.dispatch.list_available()


@router.get("/orders/{order_id}", response_model=Order)
async def get_order(
    order_id: UUID,
    _: Principal = Depends(get_principal),
    container: Container = Depends(get_container),
) -> Order:
    return await container.orders.require_order(order_id)


@router.post("/orders/{order_id}/accept", response_model=Order)
async def accept_order(
    order_id: UUID,
    driver: Driver = Depends(current_driver),
    container: Container = Depends(get_container),
) -> Order:
    """Claim a pending order. Exactly one concurrent caller wins; others get 409."""
    return await container.dispatch.accept(order_id, driver.id)


@router.patch("/orders/{order_id}/status", response_model=Order)
async def update_order_status(
    order_id: UUID,
    request: OrderStatusRequest,
    driver: Driver = Depends(current_driver),
    container: Container = Depends(get_container),
) -> Order:
    return await container.dispatch.advance_status(order_id, driver.id, request.status)


@router.post("/orders/{order_id}/cancel", response_model=Order)
async def cancel_order(
    order_id: UUID,
    principal: Principal = Depends(require_order_creator),
    container: Container = Depends(get_container),
) -> Order:
    """Cancel an undelivered order. Restaurants may only cancel their own orders."""
    restaurant_id = UUID(principal.sub) if principal.role == "restaurant" else None
    return await container.dispatch.cancel(order_id, restaurant_id=restaurant_id)
