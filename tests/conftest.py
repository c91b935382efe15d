# tests/conftest.py
import sys
from pathlib import Path

# --- Configuración del Path ---
ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

import os
import uuid
from collections.abc import Callable
from typing import Generator

import pytest
import pytest_asyncio
import httpx
from sqlalchemy.orm import Session
from sqlalchemy.ext.asyncio import AsyncSession

os.environ["DATABASE_URL"] = "sqlite:///./test.db"
os.environ["ASYNC_DATABASE_URL"] = "sqlite+aiosqlite:///./test.db"
os.environ.setdefault("CELERY_TASK_ALWAYS_EAGER", "true")

from app.main import app
from app.db.session import Base, SessionLocal, engine as sync_engine
from app.db.session_async import AsyncSessionLocal
from app.models.badge import BadgeDefinition
from app.models.reward_wheel import RewardWheel


# ---------- Fixtures ----------
@pytest.fixture(scope="session", autouse=True)
def setup_database():
    """Crea las tablas en SQLite solo una vez por sesión de tests."""
    import app.models.badge  # noqa: F401
    import app.models.loyalty  # noqa: F401
    import app.models.reward_wheel  # noqa: F401

    Base.metadata.create_all(bind=sync_engine)
    yield
    Base.metadata.drop_all(bind=sync_engine)


@pytest.fixture(autouse=True)
def clean_tables():
    yield
    with sync_engine.begin() as connection:
        for table in reversed(Base.metadata.sorted_tables):
            connection.execute(table.delete())


@pytest.fixture(scope="function")
def db_session() -> Generator[Session, any, None]:
    """Provee una sesión corta para pruebas unitarias."""
    session = SessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest_asyncio.fixture(scope="function")
async def client():
    """Provee un AsyncClient enlazado a la app sin overrides adicionales."""
    async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest_asyncio.fixture(scope="function")
async def async_db_session() -> AsyncSession:
    """Provee una AsyncSession para pruebas asíncronas directas."""
    async with AsyncSessionLocal() as session:
        try:
            yield session
        finally:
            await session.rollback()


# --- Fábricas de catálogo (sincrónicas, confirman en la base de test) ---

@pytest.fixture(scope="function")
def make_badge(db_session: Session) -> Callable[..., BadgeDefinition]:
    """Inserta una insignia de catálogo con valores por defecto razonables."""

    def _make(
        badge_id: str | None = None,
        *,
        trigger_type: str = "purchase_count",
        trigger_value=1,
        conditions: list | None = None,
        reward_type: str = "points",
        reward_value=0,
        is_active: bool = True,
        is_hidden: bool = False,
        priority: int = 0,
        timeframe: str = "once",
    ) -> BadgeDefinition:
        badge = BadgeDefinition(
            id=badge_id or f"badge-{uuid.uuid4().hex[:8]}",
            name="Test Badge",
            category="achievement",
            rarity="common",
            trigger_type=trigger_type,
            trigger_value=trigger_value,
            trigger_timeframe=timeframe,
            trigger_conditions=conditions or [],
            reward_type=reward_type,
            reward_value=reward_value,
            is_active=is_active,
            is_hidden=is_hidden,
            priority=priority,
        )
        db_session.add(badge)
        db_session.commit()
        db_session.refresh(badge)
        return badge

    return _make


DEFAULT_SLOTS = [
    {"id": "try_again", "name": "Try Again", "reward_type": "try_again", "reward_value": None, "base_weight": 40, "active": True},
    {"id": "small_coupon", "name": "5% Off", "reward_type": "coupon", "reward_value": 5, "base_weight": 25, "active": True},
    {"id": "medium_coupon", "name": "10% Off", "reward_type": "coupon", "reward_value": 10, "base_weight": 20, "active": True},
    {"id": "free_shipping", "name": "Free Shipping", "reward_type": "free_shipping", "reward_value": None, "base_weight": 10, "active": True},
    {"id": "bonus_points", "name": "Bonus Points", "reward_type": "bonus_points", "reward_value": 100, "base_weight": 5, "active": True},
]


@pytest.fixture(scope="function")
def make_wheel(db_session: Session) -> Callable[..., RewardWheel]:
    """Inserta una ruleta activa; los kwargs pisan cualquier columna."""

    def _make(**overrides) -> RewardWheel:
        values = {
            "name": f"Wheel-{uuid.uuid4().hex[:8]}",
            "is_active": True,
            "slots": [dict(slot) for slot in DEFAULT_SLOTS],
            "tier_modifiers": {},
            "required_points": 0,
            "spins_per_user": 1,
            "token_cost": 1,
            "current_spins_used": 0,
        }
        values.update(overrides)
        wheel = RewardWheel(**values)
        db_session.add(wheel)
        db_session.commit()
        db_session.refresh(wheel)
        return wheel

    return _make
