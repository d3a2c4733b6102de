"""WebSocket handlers for realtime presence and order events."""

from typing import Any
from uuid import uuid4

from fastapi import WebSocket, WebSocketDisconnect, status
from pydantic import ValidationError

from courier.container import Container
from courier.errors import AuthenticationError, AuthorizationError, CourierError
from courier.models.events import (
    JoinPayload,
    LocationPayload,
    OrderStatusPayload,
    RealtimeFrame,
)
from courier.utils.logging import get_logger
from courier.utils.security import Principal, decode_access_token

logger = get_logger(__name__)

RELAY_ROLES = ("driver", "restaurant", "admin")


def _frame(event: str, data: dict[str, Any] | None = None) -> dict[str, Any]:
    return RealtimeFrame(event=event, data=data or {}).model_dump()


async def handle_realtime_session(
    websocket: WebSocket,
    token: str | None,
    container: Container,
) -> None:
    """
    Serve one realtime session.

    Args:
        websocket: WebSocket connection
        token: Bearer token from the ``token`` query parameter
        container: Application services
    """
    try:
        principal = decode_access_token(token or "")
    except AuthenticationError:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason="Invalid token")
        return

    hub = container.presence
    connection_id = uuid4().hex

    await websocket.accept()
    hub.register(connection_id, websocket)
    logger.info(
        "websocket_connected",
        connection_id=connection_id,
        actor_id=principal.sub,
        role=principal.role,
    )
    await websocket.send_json(_frame("connected", {"connectionId": connection_id}))

    try:
        while True:
            data = await websocket.receive_text()

            try:
                frame = RealtimeFrame.model_validate_json(data)
                await process_frame(connection_id, principal, frame, container, websocket)

            except ValidationError as e:
                await websocket.send_json(
                    _frame(
                        "error",
                        {
                            "error": "validation_error",
                            "message": "Invalid message format",
                            "details": e.errors(include_url=False, include_context=False),
                        },
                    )
                )

            except CourierError as e:
                await websocket.send_json(_frame("error", e.to_dict()))

            except Exception as e:
                logger.error(
                    "websocket_message_error",
                    connection_id=connection_id,
                    error=str(e),
                    exc_info=True,
                )
                await websocket.send_json(
                    _frame("error", {"error": "internal_error", "message": "Failed to process message"})
                )

    except WebSocketDisconnect:
        logger.info("websocket_client_disconnected", connection_id=connection_id)

    finally:
        await hub.disconnect(connection_id)


async def process_frame(
    connection_id: str,
    principal: Principal,
    frame: RealtimeFrame,
    container: Container,
    websocket: WebSocket,
) -> None:
    """Apply one inbound frame on behalf of ``principal``."""
    hub = container.presence

    if frame.event == "ping":
        await websocket.send_json(_frame("pong"))

    elif frame.event == "join":
        payload = JoinPayload.model_validate(frame.data)
        if payload.actor_id != principal.sub or payload.role != principal.role:
            raise AuthorizationError("Join must match the authenticated account")
        driver_id = await hub.join(connection_id, payload.actor_id, payload.role)
        await websocket.send_json(
            _frame("joined", {"role": payload.role, "driverId": str(driver_id) if driver_id else None})
        )

    elif frame.event == "updateLocation":
        payload = LocationPayload.model_validate(frame.data)
        if principal.role != "driver":
            raise AuthorizationError("Only drivers publish locations")
        if hub.driver_for(connection_id) is None:
            driver = await container.drivers.require_driver(payload.driver_id)
            if str(driver.identity_id) != principal.sub:
                raise AuthorizationError("Drivers may only publish their own location")
        await hub.update_location(connection_id, payload.driver_id, payload.location)

    elif frame.event == "orderStatusUpdate":
        payload = OrderStatusPayload.model_validate(frame.data)
        if principal.role not in RELAY_ROLES:
            raise AuthorizationError("Not allowed to relay order updates")
        await hub.order_status_update(payload)

    else:
        await websocket.send_json(
            _frame("error", {"error": "validation_error", "message": f"Unknown event {frame.event!r}"})
        )
