"""
Test configuration and fixtures.

Environment variables are set before any ``neosaas`` import so the config
module picks them up. Every test gets a fresh in-memory SQLite database.
"""

import os

# Must be set BEFORE any imports of neosaas.config
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["ENVIRONMENT"] = "production"
os.environ["CREDENTIALS_SECRET"] = "test-secret-for-the-credential-vault-0123456789"
os.environ.pop("NOTIFICATION_EMAIL", None)

from datetime import datetime, timedelta  # noqa: E402
from unittest.mock import MagicMock  # noqa: E402

import pytest  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from neosaas import models, models_email  # noqa: E402, F401
from neosaas.database import Base  # noqa: E402
from neosaas.domain.email.router_service import EmailRouterService  # noqa: E402
from neosaas.domain.email.schemas import EmailProvider, EmailSendResult  # noqa: E402
from neosaas.models import (  # noqa: E402
    Cart,
    CartItem,
    PlatformConfig,
    Product,
    Role,
    User,
    UserRole,
)


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def email_router():
    """EmailRouterService stand-in whose sends always succeed"""
    router = MagicMock(spec=EmailRouterService)
    router.send_with_fallback.return_value = EmailSendResult(
        success=True, provider=EmailProvider.RESEND, message_id="msg_123"
    )
    return router


@pytest.fixture
def user(db):
    user = User(email="customer@example.com", name="Jane Customer")
    db.add(user)
    db.commit()
    return user


def make_product(db, **fields):
    defaults = {"title": "Product", "type": "digital", "price": 0, "currency": "EUR"}
    defaults.update(fields)
    product = Product(**defaults)
    db.add(product)
    db.commit()
    return product


def make_cart(db, user_id, products_with_quantity, status="active"):
    cart = Cart(user_id=user_id, status=status)
    db.add(cart)
    db.flush()
    for product, quantity in products_with_quantity:
        db.add(CartItem(cart_id=cart.id, product_id=product.id, quantity=quantity))
    db.commit()
    return cart


def make_admin(db, email, role_name="admin", is_active=True):
    role = db.query(Role).filter(Role.name == role_name).first()
    if not role:
        role = Role(name=role_name)
        db.add(role)
        db.flush()
    admin = User(email=email, name="Admin", is_active=is_active)
    db.add(admin)
    db.flush()
    db.add(UserRole(user_id=admin.id, role_id=role.id))
    db.commit()
    return admin


def set_platform_config(db, key, value):
    db.merge(PlatformConfig(key=key, value=value))
    db.commit()


def booking_window(days_ahead=3, hours=1):
    start = datetime(2030, 1, 1, 9, 0) + timedelta(days=days_ahead)
    return start, start + timedelta(hours=hours)
