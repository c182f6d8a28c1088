"""
Shared fixtures for the slot recovery test suite.

Tests run against an in-memory SQLite database built from the models and an
in-process stand-in for the Redis client. Nothing here needs Postgres, Redis
or Twilio.
"""

from datetime import datetime, timedelta, timezone
import os
import time
from typing import Any, Dict, Optional
from unittest.mock import MagicMock

# Must be set before app.core.config / app.database are imported
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("SMS_ENABLED", "false")
os.environ.setdefault("CI", "1")

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from app.core.enums import SlotOfferStatus
from app.core.lock_store import CooldownLockStore
from app.database import Base
import app.models  # noqa: F401
from app.models.appointment import Appointment, Payment
from app.models.customer import Customer, CustomerContactPref, CustomerNoShowStats, CustomerScore
from app.models.shop import Shop, ShopPolicy
from app.models.slot_recovery import SlotOffer, SlotOpening
from app.services.offer_loop_trigger import TriggerResult
from app.services.sms_service import SMSResult, SMSStatus

NOW = datetime(2026, 3, 2, 15, 0, tzinfo=timezone.utc)


class FakeRedis:
    """The handful of Redis commands the cooldown & lock store issues."""

    def __init__(self) -> None:
        self.store: Dict[str, str] = {}
        self.expiry: Dict[str, float] = {}

    def _alive(self, key: str) -> bool:
        deadline = self.expiry.get(key)
        if deadline is not None and deadline <= time.time():
            self.store.pop(key, None)
            self.expiry.pop(key, None)
        return key in self.store

    def set(self, key: str, value: str, nx: bool = False, ex: Optional[int] = None):
        if nx and self._alive(key):
            return None
        self.store[key] = value
        if ex:
            self.expiry[key] = time.time() + ex
        return True

    def setex(self, key: str, ttl: int, value: str) -> bool:
        return bool(self.set(key, value, ex=ttl))

    def delete(self, *keys: str) -> int:
        deleted = 0
        for key in keys:
            if self._alive(key):
                deleted += 1
            self.store.pop(key, None)
            self.expiry.pop(key, None)
        return deleted

    def exists(self, *keys: str) -> int:
        return sum(1 for key in keys if self._alive(key))

    def ttl(self, key: str) -> int:
        if not self._alive(key):
            return -2
        deadline = self.expiry.get(key)
        if deadline is None:
            return -1
        return int(deadline - time.time())

    def ping(self) -> bool:
        return True

    def close(self) -> None:
        pass


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        future=True,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def db(engine) -> Session:
    """Session on a fresh database; services commit for real."""
    SessionLocal = sessionmaker(bind=engine, expire_on_commit=False, future=True)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def fake_redis() -> FakeRedis:
    return FakeRedis()


@pytest.fixture
def lock_store(fake_redis) -> CooldownLockStore:
    return CooldownLockStore(fake_redis, namespace="test", default_lock_ttl_s=60)


@pytest.fixture
def mock_trigger() -> MagicMock:
    trigger = MagicMock()
    trigger.trigger.return_value = TriggerResult(ok=True, status_code=200)
    return trigger


@pytest.fixture
def mock_sms() -> MagicMock:
    sms = MagicMock()
    sms.send.return_value = SMSResult(SMSStatus.SUCCESS, provider_message_id="SM123")
    return sms


@pytest.fixture
def now() -> datetime:
    return NOW


class Seeder:
    """Small factory for the rows the slot recovery paths read."""

    def __init__(self, db: Session) -> None:
        self.db = db
        self._counter = 0

    def _next(self) -> int:
        self._counter += 1
        return self._counter

    def shop(self, *, timezone_name: str = "UTC", **policy: Any) -> Shop:
        n = self._next()
        shop = Shop(name=f"Shop {n}", slug=f"shop-{n}", timezone=timezone_name)
        self.db.add(shop)
        self.db.flush()
        policy.setdefault("deposit_amount_cents", 2000)
        self.db.add(ShopPolicy(shop_id=shop.id, **policy))
        self.db.commit()
        return shop

    def customer(
        self,
        shop: Shop,
        *,
        opt_in: Optional[bool] = True,
        tier: Optional[str] = None,
        score: Optional[int] = None,
        no_show_risk: Optional[str] = None,
        computed_at: Optional[datetime] = None,
        phone: Optional[str] = None,
    ) -> Customer:
        n = self._next()
        customer = Customer(
            shop_id=shop.id,
            full_name=f"Customer {n}",
            phone=phone or f"+1555000{n:04d}",
        )
        self.db.add(customer)
        self.db.flush()
        if opt_in is not None:
            self.db.add(CustomerContactPref(customer_id=customer.id, sms_opt_in=opt_in))
        if tier is not None:
            self.db.add(
                CustomerScore(
                    customer_id=customer.id,
                    shop_id=shop.id,
                    score=score if score is not None else 50,
                    tier=tier,
                    computed_at=computed_at or NOW,
                )
            )
        if no_show_risk is not None:
            self.db.add(
                CustomerNoShowStats(
                    customer_id=customer.id, shop_id=shop.id, no_show_risk=no_show_risk
                )
            )
        self.db.commit()
        return customer

    def appointment(
        self,
        shop: Shop,
        customer: Customer,
        *,
        starts_at: Optional[datetime] = None,
        duration: timedelta = timedelta(hours=1),
        **fields: Any,
    ) -> Appointment:
        starts_at = starts_at or NOW + timedelta(days=2)
        appointment = Appointment(
            shop_id=shop.id,
            customer_id=customer.id,
            starts_at=starts_at,
            ends_at=starts_at + duration,
            **fields,
        )
        self.db.add(appointment)
        self.db.commit()
        return appointment

    def payment(
        self, appointment: Appointment, *, status: str = "succeeded", amount_cents: int = 2000
    ) -> Payment:
        payment = Payment(
            shop_id=appointment.shop_id,
            appointment_id=appointment.id,
            amount_cents=amount_cents,
            status=status,
        )
        self.db.add(payment)
        self.db.commit()
        return payment

    def opening(self, shop: Shop, *, starts_at: Optional[datetime] = None, **fields: Any) -> SlotOpening:
        source_customer = self.customer(shop, opt_in=None)
        source = self.appointment(
            shop, source_customer, starts_at=starts_at, status="cancelled"
        )
        opening = SlotOpening(
            shop_id=shop.id,
            starts_at=source.starts_at,
            ends_at=source.ends_at,
            source_appointment_id=source.id,
            **fields,
        )
        self.db.add(opening)
        self.db.commit()
        return opening

    def offer(
        self,
        opening: SlotOpening,
        customer: Customer,
        *,
        status: str = SlotOfferStatus.SENT.value,
        sent_at: Optional[datetime] = None,
        expires_at: Optional[datetime] = None,
    ) -> SlotOffer:
        sent_at = sent_at or NOW - timedelta(minutes=5)
        offer = SlotOffer(
            slot_opening_id=opening.id,
            customer_id=customer.id,
            status=status,
            sent_at=sent_at,
            expires_at=expires_at or sent_at + timedelta(minutes=15),
        )
        self.db.add(offer)
        self.db.commit()
        return offer


@pytest.fixture
def seed(db) -> Seeder:
    return Seeder(db)
