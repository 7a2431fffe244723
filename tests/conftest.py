"""
Pytest configuration and fixtures for tests.

This file is automatically loaded by pytest and provides shared fixtures
and configuration for all tests.
"""

import os
import sys

# Set required environment variables before importing app modules
# These are required for config.py to load properly
os.environ.setdefault('RUNTIME_ENVIRONMENT', 'TEST')
os.environ.setdefault('DB_URL', 'sqlite+aiosqlite:///:memory:')
os.environ.setdefault('REDIS_HOST', 'localhost')
os.environ.setdefault('REDIS_PASSWORD', '')
os.environ.setdefault('DEFAULT_CURRENCY', 'INR')
os.environ.setdefault('CART_LOGIN_MIGRATION', 'discard')
os.environ.setdefault('LOG_MASK_SECRETS', 'true')

# Add parent directory to Python path so tests can import modules
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

import pytest
import pytest_asyncio
from fakeredis import FakeAsyncRedis
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import StaticPool

from db import create_db_and_tables
from models.product import ProductDTO
from services.document_store import DocumentStore
from services.local_storage import LocalStorage


# ============================================================================
# Database Fixtures
# ============================================================================

@pytest_asyncio.fixture
async def test_engine():
    """In-memory SQLite engine; StaticPool keeps one connection so every session sees the same data."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False,
        poolclass=StaticPool,
    )
    await create_db_and_tables(engine)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(test_engine):
    return async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
def document_store(session_factory):
    return DocumentStore(session_factory)


# ============================================================================
# Redis Fixtures
# ============================================================================

@pytest_asyncio.fixture
async def redis_client():
    """Create fake Redis client for testing (no real Redis server needed)."""
    client = FakeAsyncRedis(decode_responses=True)
    yield client
    await client.aclose()


@pytest.fixture
def local_storage(redis_client):
    return LocalStorage(redis_client, namespace="test")


# ============================================================================
# Catalog Fixtures
# ============================================================================

@pytest.fixture
def make_product():
    """Factory for catalog products."""
    def _make(product_id: str = "x", price: int = 100, name: str | None = None, **kwargs) -> ProductDTO:
        return ProductDTO(id=product_id, name=name or f"Product {product_id}", price=price, **kwargs)
    return _make
