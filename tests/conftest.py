"""Pytest fixtures for testing"""

import time
from decimal import Decimal
from typing import AsyncIterator, Awaitable, Callable, Dict, List, Union

import httpx
import pytest
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import AsyncAdaptedQueuePool

from transaction_service.api.main import create_app
from transaction_service.infrastructure.clients.webhooks import WebhookDispatcher
from transaction_service.infrastructure.database.session import build_session_factory, get_db, init_db
from transaction_service.infrastructure.rate_limit import RateLimiter

Outcome = Union[int, Exception]


class WebhookReceiver:
    """
    httpx.MockTransport handler standing in for webhook endpoints.

    Outcomes are queued per URL (status code or exception to raise); once a
    queue is empty the receiver answers with ``default_status``.
    """

    def __init__(self, default_status: int = 200):
        self.default_status = default_status
        self.outcomes: Dict[str, List[Outcome]] = {}
        self.requests: List[httpx.Request] = []
        self.times: List[float] = []
        self.gates: Dict[str, Callable[[], Awaitable[None]]] = {}

    def respond(self, url: str, *outcomes: Outcome) -> None:
        self.outcomes.setdefault(url, []).extend(outcomes)

    def requests_to(self, url: str) -> List[httpx.Request]:
        return [r for r in self.requests if str(r.url) == url]

    async def __call__(self, request: httpx.Request) -> httpx.Response:
        url = str(request.url)
        self.requests.append(request)
        self.times.append(time.monotonic())

        gate = self.gates.get(url)
        if gate is not None:
            await gate()

        queue = self.outcomes.get(url)
        outcome = queue.pop(0) if queue else self.default_status
        if isinstance(outcome, Exception):
            raise outcome
        return httpx.Response(outcome, json={"received": True})


@pytest.fixture
async def engine(tmp_path) -> AsyncIterator[AsyncEngine]:
    """SQLite test database; one pooled connection serializes writers"""
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'test.db'}",
        poolclass=AsyncAdaptedQueuePool,
        pool_size=1,
        max_overflow=0,
    )
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return build_session_factory(engine)


@pytest.fixture
def webhook_receiver() -> WebhookReceiver:
    return WebhookReceiver()


@pytest.fixture
def sleeps() -> List[float]:
    """Backoff delays requested by the dispatcher"""
    return []


@pytest.fixture
async def dispatcher(session_factory, webhook_receiver, sleeps) -> AsyncIterator[WebhookDispatcher]:
    """Dispatcher posting to the in-memory receiver; backoff is recorded, not slept"""

    async def fake_sleep(delay: float) -> None:
        sleeps.append(delay)

    http_client = httpx.AsyncClient(transport=httpx.MockTransport(webhook_receiver))
    dispatcher = WebhookDispatcher(session_factory, http_client=http_client, sleep=fake_sleep)
    yield dispatcher
    await dispatcher.drain()
    await http_client.aclose()


@pytest.fixture
def app(session_factory, dispatcher):
    """Create FastAPI app wired to the test database"""
    app = create_app(
        session_factory=session_factory,
        rate_limiter=RateLimiter(1000),
        webhook_dispatcher=dispatcher,
    )

    async def override_get_db():
        async with session_factory() as db:
            yield db

    app.dependency_overrides[get_db] = override_get_db
    return app


@pytest.fixture
async def client(app) -> AsyncIterator[httpx.AsyncClient]:
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as client:
        yield client


@pytest.fixture
def make_account(client):
    """Create an account over the API and return its JSON"""

    async def _make_account(business_name: str = "Acme Ltd", balance: str = "0.00") -> dict:
        response = await client.post(
            "/v1/accounts",
            json={"business_name": business_name, "initial_balance": balance},
        )
        assert response.status_code == 200, response.text
        return response.json()

    return _make_account


@pytest.fixture
def make_api_key(client):
    """Issue an API key and return request headers carrying it"""

    async def _make_api_key(account_id: str) -> Dict[str, str]:
        response = await client.post("/v1/api-keys", json={"account_id": account_id})
        assert response.status_code == 200, response.text
        return {"x-api-key": response.json()["key"]}

    return _make_api_key


@pytest.fixture
async def funded_account(make_account, make_api_key) -> dict:
    """Account holding 100.00 plus headers for its API key"""
    account = await make_account("Funded Co", "100.00")
    headers = await make_api_key(account["id"])
    return {"account": account, "headers": headers, "balance": Decimal("100.00")}
