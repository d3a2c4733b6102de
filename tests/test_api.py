"""Tests for the HTTP API: registration, error mapping and the core endpoints."""

from uuid import uuid4

import pytest
from httpx import ASGITransport, AsyncClient

from courier.config import get_settings
from courier.container import Container
from courier.main import create_app
from courier.models.driver import VerificationStatus


def _order_body(restaurant_id: str) -> dict:
    return {
        "restaurantId": restaurant_id,
        "customerId": str(uuid4()),
        "items": [{"name": "Masala Dosa", "quantity": 2, "price": "120.00"}],
        "deliveryFee": "30.00",
        "pickupLocation": {"lng": 72.83, "lat": 18.92},
        "dropoffLocation": {"longitude": 72.82, "latitude": 18.97},
    }


@pytest.mark.asyncio
async def test_health(test_client: AsyncClient) -> None:
    response = await test_client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"

    ready = await test_client.get("/health/ready")
    assert ready.status_code == 200
    assert ready.json() == {"status": "ready", "redis": "up"}


@pytest.mark.asyncio
async def test_register_with_email_otp(
    test_client: AsyncClient, sample_profile: dict, notifier
) -> None:
    otp_response = await test_client.post("/api/v1/auth/email-otp", json={"email": "New@Courier.io"})
    assert otp_response.status_code == 200
    otp = otp_response.json()["otp"]
    assert otp and len(otp) == 6

    response = await test_client.post(
        "/api/v1/drivers", json={"email": "new@courier.io", "otp": otp, **sample_profile}
    )

    assert response.status_code == 201
    body = response.json()
    assert body["tokenType"] == "bearer"
    assert body["driver"]["verificationStatus"] == "pending_documents"
    assert body["driver"]["isAvailable"] is False

    me = await test_client.get(
        "/api/v1/drivers/me", headers={"Authorization": f"Bearer {body['accessToken']}"}
    )
    assert me.status_code == 200
    assert me.json()["id"] == body["driver"]["id"]

    await notifier.wait_idle()
    assert notifier.subjects() == [
        "Verify Your Email - OTP Code",
        "Welcome to Our Delivery Network!",
    ]


@pytest.mark.asyncio
async def test_register_rejects_bad_otp_and_bad_plate(
    test_client: AsyncClient, sample_profile: dict
) -> None:
    await test_client.post("/api/v1/auth/email-otp", json={"email": "x@courier.io"})

    bad_plate = await test_client.post(
        "/api/v1/drivers",
        json={"email": "x@courier.io", "otp": "000000", **sample_profile, "vehicleNumber": "123"},
    )
    assert bad_plate.status_code == 400
    assert bad_plate.json()["error"] == "validation_error"

    bad_otp = await test_client.post(
        "/api/v1/drivers", json={"email": "x@courier.io", "otp": "000000", **sample_profile}
    )
    assert bad_otp.status_code == 400
    assert bad_otp.json()["message"] == "Invalid or expired OTP"


@pytest.mark.asyncio
async def test_otp_refused_for_registered_email(
    test_client: AsyncClient, make_driver
) -> None:
    identity, _ = await make_driver()

    response = await test_client.post("/api/v1/auth/email-otp", json={"email": identity.email})

    assert response.status_code == 400


@pytest.mark.asyncio
async def test_request_body_errors_use_error_shape(test_client: AsyncClient) -> None:
    response = await test_client.post("/api/v1/auth/email-otp", json={"email": "not-an-email"})

    assert response.status_code == 400
    body = response.json()
    assert body["error"] == "validation_error"
    assert body["details"]["errors"][0]["field"] == "body.email"


@pytest.mark.asyncio
async def test_missing_and_invalid_tokens(test_client: AsyncClient) -> None:
    missing = await test_client.get("/api/v1/drivers/me")
    assert missing.status_code == 401

    invalid = await test_client.get(
        "/api/v1/drivers/me", headers={"Authorization": "Bearer nonsense"}
    )
    assert invalid.status_code == 401
    assert invalid.json()["error"] == "authentication_error"


@pytest.mark.asyncio
async def test_driver_cannot_touch_another_profile(
    test_client: AsyncClient, make_driver, headers_for
) -> None:
    identity, _ = await make_driver()
    _, other = await make_driver()

    response = await test_client.put(
        f"/api/v1/drivers/{other.id}/location",
        json={"lng": 1, "lat": 2},
        headers=headers_for(identity),
    )

    assert response.status_code == 403


@pytest.mark.asyncio
async def test_documents_then_admin_review(
    test_client: AsyncClient, make_driver, admin_identity, headers_for, png_payload: str
) -> None:
    identity, driver = await make_driver()
    driver_headers = headers_for(identity)
    admin_headers = headers_for(admin_identity)

    upload = await test_client.put(
        f"/api/v1/drivers/{driver.id}/documents",
        json={"documents": {"aadhaarFront": png_payload, "dlFront": "garbage"}},
        headers=driver_headers,
    )
    assert upload.status_code == 200
    assert upload.json()["stored"] == ["aadhaarFront"]
    assert "dlFront" in upload.json()["skipped"]

    queue = await test_client.get("/api/v1/admin/verifications/pending", headers=admin_headers)
    assert [d["id"] for d in queue.json()] == [str(driver.id)]

    forbidden = await test_client.put(
        f"/api/v1/drivers/{driver.id}/verification",
        json={"status": "verified"},
        headers=driver_headers,
    )
    assert forbidden.status_code == 403

    empty_rejection = await test_client.put(
        f"/api/v1/drivers/{driver.id}/verification",
        json={"status": "rejected", "notes": ""},
        headers=admin_headers,
    )
    assert empty_rejection.status_code == 400

    verified = await test_client.put(
        f"/api/v1/drivers/{driver.id}/verification",
        json={"status": "verified"},
        headers=admin_headers,
    )
    assert verified.status_code == 200
    assert verified.json()["verificationStatus"] == "verified"
    assert verified.json()["verifiedBy"] == str(admin_identity.id)

    documents = await test_client.get(
        f"/api/v1/drivers/{driver.id}/documents", headers=admin_headers
    )
    assert documents.json()["documents"]["aadhaarFront"].startswith("/uploads/")

    reconsider = await test_client.post(
        f"/api/v1/drivers/{driver.id}/reconsider", headers=admin_headers
    )
    assert reconsider.status_code == 409
    assert reconsider.json()["error"] == "invalid_state"


@pytest.mark.asyncio
async def test_availability_requires_verification(
    test_client: AsyncClient, make_driver, headers_for
) -> None:
    identity, driver = await make_driver()

    response = await test_client.put(
        f"/api/v1/drivers/{driver.id}/availability",
        json={"isAvailable": True},
        headers=headers_for(identity),
    )

    assert response.status_code == 409


@pytest.mark.asyncio
async def test_order_flow_over_http(
    test_client: AsyncClient,
    container: Container,
    make_driver,
    admin_identity,
    headers_for,
) -> None:
    d1_identity, d1 = await make_driver(status=VerificationStatus.VERIFIED)
    d2_identity, _ = await make_driver(status=VerificationStatus.VERIFIED)
    restaurant = await container.identities.create_identity(
        email="kitchen@courier.io", name="Kitchen", role="restaurant"
    )

    not_theirs = await test_client.post(
        "/api/v1/orders", json=_order_body(str(uuid4())), headers=headers_for(restaurant)
    )
    assert not_theirs.status_code == 403

    created = await test_client.post(
        "/api/v1/orders", json=_order_body(str(restaurant.id)), headers=headers_for(restaurant)
    )
    assert created.status_code == 201
    order = created.json()
    assert order["status"] == "pending"
    assert order["totalAmount"] == "240.00"

    available = await test_client.get("/api/v1/orders/available", headers=headers_for(d1_identity))
    assert [o["id"] for o in available.json()] == [order["id"]]

    accepted = await test_client.post(
        f"/api/v1/orders/{order['id']}/accept", headers=headers_for(d1_identity)
    )
    assert accepted.status_code == 200
    assert accepted.json()["driverId"] == str(d1.id)

    taken = await test_client.post(
        f"/api/v1/orders/{order['id']}/accept", headers=headers_for(d2_identity)
    )
    assert taken.status_code == 409
    assert taken.json()["error"] == "conflict"

    wrong_driver = await test_client.patch(
        f"/api/v1/orders/{order['id']}/status",
        json={"status": "pickedUp"},
        headers=headers_for(d2_identity),
    )
    assert wrong_driver.status_code == 403

    for status in ("pickedUp", "enRoute", "delivered"):
        step = await test_client.patch(
            f"/api/v1/orders/{order['id']}/status",
            json={"status": status},
            headers=headers_for(d1_identity),
        )
        assert step.status_code == 200
        assert step.json()["status"] == status

    earnings = await test_client.get(
        f"/api/v1/drivers/{d1.id}/earnings", headers=headers_for(d1_identity)
    )
    assert earnings.json()["totalDeliveries"] == 1
    assert earnings.json()["totalEarnings"] == "30.00"

    missing = await test_client.get(f"/api/v1/orders/{uuid4()}", headers=headers_for(d1_identity))
    assert missing.status_code == 404


@pytest.mark.asyncio
async def test_admin_lists_and_deletes_drivers(
    test_client: AsyncClient, make_driver, admin_identity, headers_for
) -> None:
    identity, driver = await make_driver()
    admin_headers = headers_for(admin_identity)

    listed = await test_client.get(
        "/api/v1/admin/drivers", params={"status": "pending_documents"}, headers=admin_headers
    )
    assert [d["id"] for d in listed.json()] == [str(driver.id)]

    deleted = await test_client.delete(f"/api/v1/drivers/{driver.id}", headers=admin_headers)
    assert deleted.status_code == 204

    again = await test_client.delete(f"/api/v1/drivers/{driver.id}", headers=admin_headers)
    assert again.status_code == 404

    me = await test_client.get("/api/v1/drivers/me", headers=headers_for(identity))
    assert me.status_code == 404


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("environment", "message"),
    [("production", "Internal Server Error"), ("development", "lookup table corrupted")],
)
async def test_unhandled_errors_are_masked_in_production(
    container: Container,
    make_driver,
    headers_for,
    monkeypatch: pytest.MonkeyPatch,
    environment: str,
    message: str,
) -> None:
    monkeypatch.setenv("ENVIRONMENT", environment)
    get_settings.cache_clear()
    application = create_app()
    application.state.container = container
    identity, _ = await make_driver(status=VerificationStatus.VERIFIED)

    async def _broken() -> None:
        raise RuntimeError("lookup table corrupted")

    monkeypatch.setattr(container.dispatch, "list_available", _broken)

    transport = ASGITransport(app=application, raise_app_exceptions=False)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        response = await client.get("/api/v1/orders/available", headers=headers_for(identity))

    assert response.status_code == 500
    assert response.json() == {"error": "internal_error", "message": message}


@pytest.mark.asyncio
async def test_cancel_order_over_http(
    test_client: AsyncClient, container: Container, make_driver, headers_for
) -> None:
    restaurant = await container.identities.create_identity(
        email="tandoor@courier.io", name="Tandoor", role="restaurant"
    )
    rival = await container.identities.create_identity(
        email="rival@courier.io", name="Rival", role="restaurant"
    )
    driver_identity, _ = await make_driver(status=VerificationStatus.VERIFIED)
    created = await test_client.post(
        "/api/v1/orders", json=_order_body(str(restaurant.id)), headers=headers_for(restaurant)
    )
    order_id = created.json()["id"]

    by_driver = await test_client.post(
        f"/api/v1/orders/{order_id}/cancel", headers=headers_for(driver_identity)
    )
    assert by_driver.status_code == 403

    by_rival = await test_client.post(
        f"/api/v1/orders/{order_id}/cancel", headers=headers_for(rival)
    )
    assert by_rival.status_code == 403

    cancelled = await test_client.post(
        f"/api/v1/orders/{order_id}/cancel", headers=headers_for(restaurant)
    )
    assert cancelled.status_code == 200
    assert cancelled.json()["status"] == "cancelled"

    again = await test_client.post(
        f"/api/v1/orders/{order_id}/cancel", headers=headers_for(restaurant)
    )
    assert again.status_code == 409
    assert again.json()["error"] == "invalid_state"


@pytest.mark.asyncio
async def test_sign_in_with_email_code(
    test_client: AsyncClient, make_driver, notifier
) -> None:
    identity, driver = await make_driver()

    unknown = await test_client.post("/api/v1/auth/login-otp", json={"email": "ghost@courier.io"})
    assert unknown.status_code == 400

    requested = await test_client.post("/api/v1/auth/login-otp", json={"email": identity.email})
    assert requested.status_code == 200
    otp = requested.json()["otp"]

    wrong = await test_client.post(
        "/api/v1/auth/login", json={"email": identity.email, "otp": "000000" if otp != "000000" else "111111"}
    )
    assert wrong.status_code == 400

    # The failed attempt consumed the code
    reused = await test_client.post("/api/v1/auth/login", json={"email": identity.email, "otp": otp})
    assert reused.status_code == 400

    otp = (await test_client.post("/api/v1/auth/login-otp", json={"email": identity.email})).json()["otp"]
    signed_in = await test_client.post(
        "/api/v1/auth/login", json={"email": identity.email.upper(), "otp": otp}
    )
    assert signed_in.status_code == 200
    assert signed_in.json()["role"] == "driver"

    me = await test_client.get(
        "/api/v1/drivers/me",
        headers={"Authorization": f"Bearer {signed_in.json()['accessToken']}"},
    )
    assert me.json()["id"] == str(driver.id)

    await notifier.wait_idle()
    assert notifier.subjects() == ["Your Sign-In Code", "Your Sign-In Code"]
