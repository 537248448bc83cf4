"""
Pytest Configuration and Fixtures

Every test gets its own file-backed SQLite database, so several sessions
can run against it at once and hit the real constraints.
"""

import os

os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("OTP_SECRET", "test-otp-secret")
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("SMTP_USER", "")
os.environ.setdefault("SMTP_PASSWORD", "")

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import AsyncGenerator, Callable
from unittest.mock import AsyncMock, patch

import httpx
import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.config import settings
from app.core.database import Base, build_engine, get_db
from app.models import PackPricing, ShopItem
from app.services import order_service, otp_service
from app.services.order_service import ContactInfo, LineRequest, ShippingAddress
from app.services.receipt_storage import ReceiptStorage


# ==================== Settings ====================

@pytest.fixture(autouse=True)
def otp_settings(monkeypatch):
    """Pin OTP timings so tests do not depend on the environment."""
    monkeypatch.setattr(settings, "ENVIRONMENT", "test")
    monkeypatch.setattr(settings, "OTP_TTL_SECONDS", 600)
    monkeypatch.setattr(settings, "OTP_RESEND_SECONDS", 60)
    monkeypatch.setattr(settings, "OTP_MAX_ATTEMPTS", 5)
    monkeypatch.setattr(settings, "OTP_TOKEN_TTL_SECONDS", 1800)
    monkeypatch.setattr(settings, "SMTP_USER", "")
    monkeypatch.setattr(settings, "SMTP_PASSWORD", "")


# ==================== Clock ====================

class FakeClock:
    """Stand-in for app.core.clock.utcnow that only moves when told."""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now = self.now + timedelta(seconds=seconds)


@pytest.fixture
def clock(monkeypatch) -> FakeClock:
    fake = FakeClock(datetime.now(timezone.utc).replace(microsecond=0))
    monkeypatch.setattr("app.core.clock.utcnow", fake)
    return fake


# ==================== Database Fixtures ====================

@pytest.fixture
async def engine(tmp_path):
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'orders.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_maker(engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest.fixture
async def db(session_maker) -> AsyncGenerator[AsyncSession, None]:
    async with session_maker() as session:
        yield session


@pytest.fixture
def storage(tmp_path) -> ReceiptStorage:
    return ReceiptStorage(tmp_path / "receipts", max_bytes=1024 * 1024)


@pytest.fixture
async def catalog(db) -> dict:
    """
    Seed a small catalog.

    Returns:
        dict of ids: soda (base 250.00; packs 500g 450.00, 1kg 800.00,
        inactive 5kg), citric (5000.00, no packs), retired (inactive item),
        sample (price 0).
    """
    soda = ShopItem(name="Sodium Bicarbonate", price=Decimal("250.00"))
    citric = ShopItem(name="Citric Acid", price=Decimal("5000.00"))
    retired = ShopItem(name="Old Stock", price=Decimal("100.00"), is_active=False)
    sample = ShopItem(name="Free Sample", price=Decimal("0"))
    db.add_all([soda, citric, retired, sample])
    await db.flush()

    db.add_all([
        PackPricing(shop_item_id=soda.id, pack_size="500g", our_price=Decimal("450.00")),
        PackPricing(shop_item_id=soda.id, pack_size="1kg", our_price=Decimal("800.00")),
        PackPricing(shop_item_id=soda.id, pack_size="5kg", our_price=Decimal("3000.00"), is_active=False),
        PackPricing(shop_item_id=citric.id, pack_size="free", our_price=Decimal("0")),
    ])
    await db.commit()

    return {
        "soda": soda.id,
        "citric": citric.id,
        "retired": retired.id,
        "sample": sample.id,
    }


# ==================== Email Fixtures ====================

@pytest.fixture
def mailer() -> AsyncMock:
    """Successful email delivery; the sent code is in call_args.args[1]."""
    mock = AsyncMock(return_value=True)
    with patch("app.services.email_service.send_otp_email", mock):
        yield mock


@pytest.fixture
def broken_mailer() -> AsyncMock:
    mock = AsyncMock(return_value=False)
    with patch("app.services.email_service.send_otp_email", mock):
        yield mock


# ==================== Flow Helpers ====================

@pytest.fixture
def verified_token(db, mailer) -> Callable:
    """Factory running send + verify and returning the verification token."""

    async def _verify(email: str = "buyer@example.com") -> str:
        challenge = await otp_service.send_otp(db, email)
        code = mailer.call_args.args[1]
        verification = await otp_service.verify_otp(db, email, challenge.challenge_id, code)
        return verification.verification_token

    return _verify


@pytest.fixture
def contact() -> ContactInfo:
    return ContactInfo(name="Asha Rao", email="buyer@example.com", phone="+91 98765 43210")


@pytest.fixture
def place_order(db, catalog, contact, verified_token) -> Callable:
    """Factory placing a verified order for the given lines (default: one citric acid)."""

    async def _place(lines=None):
        token = await verified_token(contact.email)
        lines = lines or [LineRequest(shop_item_id=catalog["citric"], quantity=1)]
        return await order_service.create_order(
            db,
            contact=contact,
            address=ShippingAddress(city="Pune"),
            lines=lines,
            verification_token=token,
        )

    return _place


# ==================== HTTP Client Fixtures ====================

@pytest.fixture
async def client(session_maker, storage) -> AsyncGenerator[httpx.AsyncClient, None]:
    from app.api.deps import get_storage
    from app.main import app

    async def override_get_db():
        async with session_maker() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_storage] = lambda: storage

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
def admin_headers() -> dict:
    from app.core.security import create_access_token

    return {"Authorization": f"Bearer {create_access_token(subject='admin')}"}
