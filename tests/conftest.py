"""Pytest fixtures for testing"""

import os

# Point settings at the SQLite test database before the app modules load
os.environ["DATABASE_URL"] = "sqlite:///./test.db"

import pytest
from datetime import datetime
from typing import Callable, Generator, Optional
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session
from merceton_billing.api.main import create_app
from merceton_billing.domain.models import PackageStatus, PayoutFrequency
from merceton_billing.infrastructure.database.models import (
    Base,
    Merchant,
    MerchantFeeConfig,
    PlatformSettings,
    PricingPackage,
)
from merceton_billing.infrastructure.database.session import SessionLocal, engine, get_db
from merceton_billing.services.ledger import capture_payment
from merceton_billing.services.orders import OrderLine, place_order


@pytest.fixture
def db() -> Generator[Session, None, None]:
    """Create test database and session"""
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client(db: Session) -> TestClient:
    """Create FastAPI test client with test database"""
    app = create_app()

    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    return TestClient(app)


@pytest.fixture
def make_merchant(db: Session) -> Callable[..., Merchant]:
    def _make(merchant_id: str = "merchant_1", state: Optional[str] = "27-Maharashtra", **kwargs) -> Merchant:
        merchant = Merchant(id=merchant_id, name=kwargs.pop("name", "Chai Point"), state=state, **kwargs)
        db.add(merchant)
        db.commit()
        return merchant

    return _make


@pytest.fixture
def merchant(make_merchant) -> Merchant:
    """Active merchant registered in the supplier's state (Maharashtra)"""
    return make_merchant()


@pytest.fixture
def make_package(db: Session) -> Callable[..., PricingPackage]:
    def _make(**kwargs) -> PricingPackage:
        values = {
            "name": "Starter",
            "status": PackageStatus.PUBLISHED,
            "fixed_fee_minor": 500,
            "variable_fee_bps": 200,
            "payout_frequency": PayoutFrequency.WEEKLY,
            "holdback_bps": 0,
            "is_payout_hold": False,
        }
        values.update(kwargs)
        package = PricingPackage(**values)
        db.add(package)
        db.commit()
        return package

    return _make


@pytest.fixture
def assign_package(db: Session) -> Callable[..., MerchantFeeConfig]:
    def _assign(merchant_id: str, package: Optional[PricingPackage] = None, **overrides) -> MerchantFeeConfig:
        config = MerchantFeeConfig(
            merchant_id=merchant_id,
            pricing_package_id=package.id if package is not None else None,
            **overrides,
        )
        db.add(config)
        db.commit()
        return config

    return _assign


@pytest.fixture
def set_default_package(db: Session) -> Callable[[PricingPackage], None]:
    def _set(package: PricingPackage) -> None:
        db.add(PlatformSettings(id="singleton", default_pricing_package_id=package.id))
        db.commit()

    return _set


@pytest.fixture
def paid_order(db: Session):
    """Place (and optionally capture) an order, committing like a request would"""

    def _place(
        merchant_id: str,
        unit_price_minor: int,
        created_at: datetime,
        paid: bool = True,
        quantity: int = 1,
    ):
        order = place_order(
            db,
            merchant_id,
            [OrderLine(sku="SKU-1", quantity=quantity, unit_price_minor=unit_price_minor)],
            now=created_at,
        )
        if paid:
            capture_payment(db, order.order_number, paid_at=created_at)
        db.commit()
        return order

    return _place
