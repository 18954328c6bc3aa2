import os

# signing secrets for the app under test; config refuses to start without them outside dev
os.environ.setdefault("JWT_SECRET_KEY", "test-access-secret")
os.environ.setdefault("JWT_REFRESH_SECRET_KEY", "test-refresh-secret")

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from types import SimpleNamespace
from main import app
from config import get_db
from models import Base, Role, User, Product, Order, Transaction
from payment import (
    PaymentProvider,
    InitiatePaymentResult,
    PaymentStatusResult,
    register_payment_provider,
    unregister_payment_provider,
)
from routers.auth.helpers import auth_helpers
from routers.payments.poller import payment_poller
from utils.notifications import expo_push_client
import config
import httpx
import json
import pytest

FARMER_PASSWORD = "farmer-secret-1"
BUYER_PASSWORD = "buyer-secret-1"


@pytest.fixture
async def session_factory():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()


class PushRecorder:
    """Stands in for the Expo push API"""

    def __init__(self):
        self.messages = []
        self.ticket = {"status": "ok", "id": "ticket-1"}
        self.status_code = 200

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.messages.append(json.loads(request.content))
        return httpx.Response(self.status_code, json={"data": self.ticket})

    @property
    def titles(self):
        return [message["title"] for message in self.messages]


@pytest.fixture(autouse=True)
def push(monkeypatch):
    recorder = PushRecorder()
    monkeypatch.setattr(expo_push_client, "transport", httpx.MockTransport(recorder))
    return recorder


class FakeProvider(PaymentProvider):
    """Scripted gateway. statuses are consumed one per check, the last one repeats."""
    id = "adwa"

    def __init__(self):
        self.statuses = ["T"]
        self.initiated = []
        self.checks = []

    async def initiate_payment(self, payload, order_id):
        self.initiated.append((payload, order_id))
        card = payload.mean_code in ("VISA", "MASTERCARD")
        return InitiatePaymentResult(
            success=True,
            footprint="FP-0001",
            redirect_url="https://pay.example.test/card?adpFootprint=FP-0001" if card else None,
            status="E" if card else "P",
            raw={"adpFootprint": "FP-0001", "orderNumber": payload.order_number, "status": "E"},
        )

    async def check_status(self, footprint, mean_code):
        self.checks.append((footprint, mean_code))
        outcome = self.statuses.pop(0) if len(self.statuses) > 1 else self.statuses[0]
        if isinstance(outcome, Exception):
            raise outcome
        return PaymentStatusResult(
            success=outcome == "T",
            status=outcome,
            raw={"status": outcome, "adpFootprint": footprint},
        )


@pytest.fixture
def provider(monkeypatch):
    fake = FakeProvider()
    monkeypatch.setattr(config, "PAYMENT_PROVIDER", "adwa")
    register_payment_provider(fake)
    yield fake
    unregister_payment_provider("adwa")


@pytest.fixture(autouse=True)
async def poller(session_factory, monkeypatch):
    monkeypatch.setattr(config, "PAYMENT_POLL_INITIAL_DELAY", 0.01)
    monkeypatch.setattr(config, "PAYMENT_POLL_MAX_DELAY", 0.02)
    monkeypatch.setattr(config, "PAYMENT_POLL_BACKOFF", 2.0)
    monkeypatch.setattr(config, "PAYMENT_POLL_TIMEOUT", 1.0)
    payment_poller.session_factory = session_factory
    yield payment_poller
    await payment_poller.shutdown()
    payment_poller.session_factory = None


@pytest.fixture
async def client(session_factory):
    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest.fixture
async def seed(session_factory):
    async with session_factory() as db:
        farmer_role = Role(role_name="farmer")
        buyer_role = Role(role_name="buyer")
        db.add_all([farmer_role, buyer_role])
        await db.flush()

        farmer = User(
            email="ama.farmer@example.com",
            first_name="Ama",
            last_name="Mensah",
            country="Cameroon",
            password=auth_helpers.hash_password(FARMER_PASSWORD),
            role_id=farmer_role.id,
            expo_push_token="ExponentPushToken[farmer]",
            ship_address=[],
        )
        buyer = User(
            email="kofi.buyer@example.com",
            first_name="Kofi",
            last_name="Boateng",
            country="Cameroon",
            password=auth_helpers.hash_password(BUYER_PASSWORD),
            role_id=buyer_role.id,
            expo_push_token="ExponentPushToken[buyer]",
            ship_address=[{"id": "addr-1", "title": "Home", "address": "12 Market Road", "default": True}],
        )
        db.add_all([farmer, buyer])
        await db.flush()

        tomatoes = Product(
            user_id=farmer.id,
            product_name="Fresh Tomatoes",
            product_cat="Vegetables",
            price_type="per kg",
            price=1500.0,
            description="Ripe red tomatoes",
            whole_sale=False,
        )
        maize = Product(
            user_id=farmer.id,
            product_name="Yellow Maize",
            product_cat="Grains",
            price_type="per bag",
            price=800.0,
            description="Dried maize, 50kg bags",
            whole_sale=True,
        )
        db.add_all([tomatoes, maize])
        await db.commit()

    return SimpleNamespace(
        farmer=farmer,
        buyer=buyer,
        tomatoes=tomatoes,
        maize=maize,
        farmer_headers={"Authorization": f"Bearer {auth_helpers.create_access_token(farmer.id, farmer.email, 'farmer')}"},
        buyer_headers={"Authorization": f"Bearer {auth_helpers.create_access_token(buyer.id, buyer.email, 'buyer')}"},
    )


@pytest.fixture
def make_order(session_factory, seed):
    async def _make_order(status="pending", tx_status="pending", amount=3000.0, product=None):
        product = product or seed.tomatoes
        async with session_factory() as db:
            order = Order(
                buyer_id=seed.buyer.id,
                seller_id=seed.farmer.id,
                prod_id=product.id,
                amount=amount,
                ship_address="12 Market Road",
                weight="2kg",
                status=status,
                dispatched=status in ("dispatched", "delivered"),
            )
            db.add(order)
            await db.flush()
            db.add(Transaction(order_id=order.id, amount=amount, status=tx_status))
            await db.commit()
        return order

    return _make_order


@pytest.fixture
def fetch(session_factory):
    async def _fetch(model, **filters):
        async with session_factory() as db:
            result = await db.execute(select(model).filter_by(**filters))
            return result.scalars().all()

    return _fetch
