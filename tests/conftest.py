from __future__ import annotations

import os
from datetime import datetime, timedelta, timezone
from decimal import Decimal


# Prevent import-time failure in src.api.database.database and src.api.auth.auth
# during test discovery.
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("SETTLEMENT_TIMEZONE", "America/New_York")
os.environ.setdefault("RUN_MIGRATIONS_ON_STARTUP", "false")

import pytest
from jose import jwt
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from src.api.database.database import Base
from src.models.customers import Customer
from src.models.rate_config import RateConfig
from src.models.stores import Store
import src.models.reconciliation_ledger  # noqa: F401
import src.models.settlement_transaction  # noqa: F401


@pytest.fixture()
def db_engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(engine)
        engine.dispose()


@pytest.fixture()
def db_session(db_engine):
    session = sessionmaker(bind=db_engine, autocommit=False, autoflush=False)()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def make_customer(db_session):
    def _make(customer_id: int = 1, balance: int = 20_000, is_active: bool = True) -> Customer:
        customer = Customer(
            customer_id=customer_id,
            first_name="Test",
            last_name=f"Customer{customer_id}",
            email=f"customer{customer_id}@example.com",
            token_balance=balance,
            total_withdrawn=Decimal("0"),
            is_active=is_active,
        )
        db_session.add(customer)
        db_session.commit()
        return customer

    return _make


@pytest.fixture()
def make_store(db_session):
    def _make(
        store_id: str = "STORE-1",
        fee_percentage: str = "5",
        status: str = "active",
    ) -> Store:
        store = Store(
            store_id=store_id,
            store_name=f"Venue {store_id}",
            city="Springfield",
            state="IL",
            fee_percentage=Decimal(fee_percentage),
            status=status,
        )
        db_session.add(store)
        db_session.commit()
        return store

    return _make


@pytest.fixture()
def rate_config(db_session) -> RateConfig:
    row = RateConfig(
        tokens_per_dollar=Decimal("1000"),
        min_cashout=Decimal("5"),
        max_cashout_per_transaction=Decimal("500"),
        daily_limit_per_customer=Decimal("1000"),
        daily_limit_per_staff=Decimal("5000"),
        venue_commission_percent=Decimal("0"),
        is_active=True,
        effective_from=datetime(2026, 1, 1, tzinfo=timezone.utc),
        created_by="admin-1",
    )
    db_session.add(row)
    db_session.commit()
    return row


def auth_header(actor_id: str, role: str, expires_delta: timedelta = timedelta(minutes=15)) -> dict:
    # Tokens are minted by the identity service in production.
    from src.api.auth.auth import ALGORITHM, SECRET_KEY

    claims = {
        "sub": actor_id,
        "role": role,
        "exp": datetime.now(timezone.utc) + expires_delta,
    }
    token = jwt.encode(claims, SECRET_KEY, algorithm=ALGORITHM)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture()
def make_auth_header():
    return auth_header


@pytest.fixture()
def client(db_session):
    from fastapi.testclient import TestClient

    from src.api.database.database import get_db
    from src.main import app

    def _get_db():
        yield db_session

    app.dependency_overrides[get_db] = _get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture()
def staff_headers() -> dict:
    return auth_header("staff-1", "staff")


@pytest.fixture()
def admin_headers() -> dict:
    return auth_header("admin-1", "admin")
