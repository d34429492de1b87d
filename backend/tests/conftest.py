"""
Pytest configuration and shared fixtures for the Storefront order API tests.

Provides an in-memory SQLite session per test, an httpx AsyncClient bound to
the FastAPI app with `get_db` overridden, and user/product/order factories.
"""
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool

from config import settings

# ── Test Configuration ───────────────────────────────────────────────
# Set test-only values for settings that would normally come from .env
if not settings.jwt_secret:
    settings.jwt_secret = "test-jwt-secret-for-pytest-only"

import db_models  # noqa: E402,F401  (registers tables on Base.metadata)
from database import Base, get_db  # noqa: E402
from db_models import Order, Product, User  # noqa: E402
from domain.enums import UserRole  # noqa: E402
from main import app  # noqa: E402
from middleware.auth import issue_access_token  # noqa: E402


# ── Database Fixtures ────────────────────────────────────────────────


@pytest_asyncio.fixture(scope="function")
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """
    Create an in-memory SQLite database session for each test.

    Uses StaticPool to allow in-memory SQLite with async SQLAlchemy.
    """
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async_session_maker = async_sessionmaker(
        engine, class_=AsyncSession, expire_on_commit=False
    )

    async with async_session_maker() as session:
        yield session

    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """
    httpx client against the app, sharing the test DB session.

    Lifespan is not run, so no file database is created.
    """
    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c

    app.dependency_overrides.clear()


# ── Auth helpers ─────────────────────────────────────────────────────


@pytest.fixture
def auth_headers():
    """Returns a helper building an Authorization header with a valid JWT for a user."""
    def _headers(user: User) -> dict:
        token = issue_access_token(user_id=user.id, role=user.role)
        return {"Authorization": f"Bearer {token}"}
    return _headers


# ── Test Data Fixtures ────────────────────────────────────────────────


async def _make_user(db: AsyncSession, email: str, role: str, name: str) -> User:
    user = User(email=email, role=role, name=name)
    db.add(user)
    await db.commit()
    await db.refresh(user)
    return user


@pytest_asyncio.fixture
async def admin_user(db_session: AsyncSession) -> User:
    return await _make_user(db_session, "admin@example.com", UserRole.ADMIN.value, "Shop Admin")


@pytest_asyncio.fixture
async def customer(db_session: AsyncSession) -> User:
    return await _make_user(db_session, "alice@example.com", UserRole.CUSTOMER.value, "Alice")


@pytest_asyncio.fixture
async def other_customer(db_session: AsyncSession) -> User:
    return await _make_user(db_session, "bob@example.com", UserRole.CUSTOMER.value, "Bob")


@pytest_asyncio.fixture
async def product(db_session: AsyncSession) -> Product:
    """A stock-tracked product: 10 units at 25.0."""
    p = Product(slug="linen-shirt", name="Linen Shirt", price=25.0, stock_quantity=10, active=True)
    db_session.add(p)
    await db_session.commit()
    await db_session.refresh(p)
    return p


@pytest_asyncio.fixture
async def unlimited_product(db_session: AsyncSession) -> Product:
    p = Product(slug="gift-card", name="Gift Card", price=50.0, stock_quantity=None, active=True)
    db_session.add(p)
    await db_session.commit()
    await db_session.refresh(p)
    return p


@pytest.fixture
def place_order(db_session: AsyncSession):
    """
    Factory: create an order through checkout, then optionally force its status.

    Forcing writes the column directly, the way legacy data or an earlier
    lifecycle step would have left it.
    """
    from services import order_service

    async def _place(user: User, product: Product, quantity: int = 1, status: str | None = None) -> Order:
        order = await order_service.create_order(
            db_session,
            user_id=user.id,
            customer_name=user.name,
            customer_email=user.email,
            items=[{"product_id": product.id, "quantity": quantity}],
        )
        await db_session.commit()
        if status is not None:
            await db_session.execute(
                update(Order).where(Order.id == order.id).values(status=status)
            )
            await db_session.commit()
        return await order_service.get_order(db_session, order_id=order.id)

    return _place
