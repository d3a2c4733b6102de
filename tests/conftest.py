"""Pytest configuration and fixtures."""

import base64
import io
from collections import deque
from typing import Any, AsyncGenerator, Awaitable, Callable, Generator

import pytest
import pytest_asyncio
from fakeredis import FakeAsyncRedis
from fastapi import FastAPI, WebSocketDisconnect
from httpx import ASGITransport, AsyncClient
from PIL import Image

from courier.config import get_settings
from courier.container import Container
from courier.errors import DependencyError
from courier.main import create_app
from courier.models.driver import Driver, DriverProfile, VerificationStatus
from courier.models.identity import Identity
from courier.services.documents import LocalDocumentStorage
from courier.services.notifications import EmailMessage, NotificationService
from courier.state.manager import StateManager
from courier.utils.security import create_access_token


@pytest.fixture(autouse=True)
def isolated_settings(monkeypatch: pytest.MonkeyPatch, tmp_path) -> Generator[None, None, None]:
    """Isolated settings for every test."""
    monkeypatch.setenv("ENVIRONMENT", "development")
    monkeypatch.setenv("UPLOAD_DIR", str(tmp_path / "uploads"))
    monkeypatch.setenv("OTP_DEV_MODE", "true")
    monkeypatch.setenv("ADMIN_EMAIL", "reviews@courier.io")
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


class RecordingNotifier(NotificationService):
    """Notification service that records messages instead of sending them."""

    def __init__(self) -> None:
        super().__init__(webhook_url="")
        self.sent: list[EmailMessage] = []
        self.fail = False

    async def send(self, message: EmailMessage) -> None:
        if self.fail:
            raise DependencyError("relay down", to=message.to)
        self.sent.append(message)

    def subjects(self) -> list[str]:
        return [m.subject for m in self.sent]


class FakeConnection:
    """Stand-in for a websocket that records outbound frames."""

    def __init__(self) -> None:
        self.sent: list[dict[str, Any]] = []

    async def send_json(self, data: Any) -> None:
        self.sent.append(data)

    def events(self, name: str) -> list[dict[str, Any]]:
        return [frame["data"] for frame in self.sent if frame["event"] == name]


class ScriptedWebSocket(FakeConnection):
    """Websocket that replays ``incoming`` text frames, then disconnects."""

    def __init__(self, incoming: list[str]) -> None:
        super().__init__()
        self.incoming = deque(incoming)
        self.accepted = False
        self.close_code: int | None = None

    async def accept(self) -> None:
        self.accepted = True

    async def close(self, code: int = 1000, reason: str | None = None) -> None:
        self.close_code = code

    async def receive_text(self) -> str:
        if self.incoming:
            return self.incoming.popleft()
        raise WebSocketDisconnect(code=1000)


@pytest_asyncio.fixture
async def redis_client() -> AsyncGenerator[FakeAsyncRedis, None]:
    """In-memory Redis server."""
    client = FakeAsyncRedis(decode_responses=True)
    yield client
    await client.flushall()
    await client.aclose()


@pytest_asyncio.fixture
async def state_manager(redis_client: FakeAsyncRedis) -> AsyncGenerator[StateManager, None]:
    """Create a test state manager."""
    manager = StateManager(redis_client=redis_client)
    yield manager


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest_asyncio.fixture
async def container(
    state_manager: StateManager,
    notifier: RecordingNotifier,
    tmp_path,
) -> AsyncGenerator[Container, None]:
    """Fully wired services over the fake store."""
    storage = LocalDocumentStorage(root=tmp_path / "uploads", url_prefix="/uploads")
    built = Container.build(state_manager, notifier=notifier, storage=storage)
    yield built
    await built.close()


@pytest.fixture
def app(container: Container) -> FastAPI:
    application = create_app()
    application.state.container = container
    return application


@pytest_asyncio.fixture
async def test_client(app: FastAPI) -> AsyncGenerator[AsyncClient, None]:
    """Create a test HTTP client."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client


# Sample data fixtures


@pytest.fixture
def sample_profile() -> dict[str, Any]:
    return {
        "name": "Ravi Kumar",
        "phone": "+91 9000000001",
        "vehicleType": "bike",
        "vehicleNumber": "MH01AB1234",
        "licenseNumber": "MH1420110012345",
    }


@pytest.fixture
def png_payload() -> str:
    """A tiny PNG as a data URL."""
    buffer = io.BytesIO()
    Image.new("RGB", (4, 4), color=(200, 30, 30)).save(buffer, format="PNG")
    return "data:image/png;base64," + base64.b64encode(buffer.getvalue()).decode()


@pytest.fixture
def pdf_payload() -> str:
    return base64.b64encode(b"%PDF-1.4\n1 0 obj <<>> endobj\ntrailer <<>>\n%%EOF").decode()


DriverFactory = Callable[..., Awaitable[tuple[Identity, Driver]]]


@pytest.fixture
def make_driver(container: Container, sample_profile: dict[str, Any]) -> DriverFactory:
    """Create an identity plus driver, optionally forced into a verification state."""
    counter = {"n": 0}

    async def _make(
        status: VerificationStatus = VerificationStatus.PENDING_DOCUMENTS,
        available: bool = False,
        **profile: Any,
    ) -> tuple[Identity, Driver]:
        counter["n"] += 1
        identity = await container.identities.create_identity(
            email=f"driver{counter['n']}@courier.io", name=f"Driver {counter['n']}"
        )
        fields = {**sample_profile, "name": f"Driver {counter['n']}", **profile}
        driver = await container.drivers.create_driver(
            identity.id, DriverProfile.model_validate(fields)
        )
        if status != VerificationStatus.PENDING_DOCUMENTS or available:

            def _apply(d: Driver) -> None:
                d.verification_status = status
                d.is_available = available

            driver = await container.drivers.mutate(driver.id, _apply)
        return identity, driver

    return _make


@pytest_asyncio.fixture
async def admin_identity(container: Container) -> Identity:
    return await container.identities.create_identity(
        email="admin@courier.io", name="Admin", role="admin"
    )


def auth_headers(identity: Identity) -> dict[str, str]:
    token = create_access_token(sub=str(identity.id), role=identity.role)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def headers_for() -> Callable[[Identity], dict[str, str]]:
    return auth_headers


@pytest.fixture
def connection() -> Callable[[], FakeConnection]:
    return FakeConnection


@pytest.fixture
def scripted_websocket() -> Callable[[list[str]], ScriptedWebSocket]:
    return ScriptedWebSocket
