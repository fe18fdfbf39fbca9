"""
InkRead Backend — Test Configuration (conftest.py)
====================================================

Shared fixtures for the suite.

Fixture Hierarchy:
    Function-scoped:
    ├── db_engine:      in-memory aiosqlite engine with every table created
    ├── db_session:     AsyncSession bound to db_engine
    ├── blob_store:     BlobStore rooted in tmp_path
    ├── fake_engine:    OCREngine stand-in (no Tesseract or Gemini needed)
    ├── dispatcher:     OCRDispatcher over fake_engine
    ├── user_caller / guest_caller
    └── test_client:    httpx AsyncClient over ASGITransport, with the DB
                        session and OCR engine dependencies overridden
"""

import io
import os
import tempfile
from datetime import datetime, timedelta, timezone
from typing import AsyncGenerator, Optional

# Before any inkread import: settings are read once at import time
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["STORAGE_ROOT"] = tempfile.mkdtemp(prefix="inkread_test_")
os.environ["SUPABASE_JWT_SECRET"] = "test-jwt-secret-with-at-least-32-bytes!"
os.environ["CLEANUP_SECRET_TOKEN"] = "test-cleanup-token"
os.environ["OCR_ENGINE"] = "tesseract"
os.environ["RATE_LIMIT_REQUESTS"] = "0"
os.environ["ENVIRONMENT"] = "test"
os.environ["LOG_LEVEL"] = "WARNING"

import jwt
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from PIL import Image
from PyPDF2 import PdfWriter
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

import inkread.models  # noqa: F401
from inkread.config import settings
from inkread.database import Base, get_db_session
from inkread.dependencies.auth import AuthenticatedUser, Caller
from inkread.exceptions import OCRServiceError
from inkread.services.blob_store import BlobStore
from inkread.services.ocr_base import OCREngine
from inkread.services.ocr_dispatch import OCRDispatcher, get_ocr_engine

TEST_USER_ID = "5b0c7a52-1d9e-4c8f-9e0b-2f3a4b5c6d7e"
GUEST_IP = "203.0.113.7"

PNG_SIZE = (64, 32)


# ══════════════════════════════════════════════════════════════════════════
# Helpers
# ══════════════════════════════════════════════════════════════════════════

class FakeOCREngine(OCREngine):
    """
    Returns canned text per call, or raises.

    `texts` are handed out in order; once exhausted, `default_text` is used.
    """

    name = "fake"

    def __init__(self, default_text: str = "recognized text", timeout_seconds: Optional[float] = None):
        super().__init__(timeout_seconds=timeout_seconds)
        self.default_text = default_text
        self.texts: list = []
        self.error: Optional[Exception] = None
        self.available = True
        self.calls: list = []

    async def recognize(self, content: bytes, mime_type: str) -> str:
        self.calls.append((len(content), mime_type))
        if self.error is not None:
            raise self.error
        if self.texts:
            return self.texts.pop(0)
        return self.default_text

    async def health_check(self) -> bool:
        return self.available


def make_png(size=PNG_SIZE, mode: str = "RGB") -> bytes:
    buffer = io.BytesIO()
    Image.new(mode, size, "white").save(buffer, format="PNG")
    return buffer.getvalue()


def make_pdf(pages: int = 1) -> bytes:
    writer = PdfWriter()
    for _ in range(pages):
        writer.add_blank_page(width=612, height=792)
    buffer = io.BytesIO()
    writer.write(buffer)
    return buffer.getvalue()


def make_token(
    sub: str = TEST_USER_ID,
    email: Optional[str] = "reader@example.com",
    expires_in: timedelta = timedelta(hours=1),
    secret: Optional[str] = None,
    audience: str = "authenticated",
) -> str:
    now = datetime.now(timezone.utc)
    payload = {"sub": sub, "aud": audience, "iat": now, "exp": now + expires_in}
    if email:
        payload["email"] = email
    return jwt.encode(payload, secret or settings.supabase_jwt_secret, algorithm="HS256")


def auth_headers(**kwargs) -> dict:
    return {"Authorization": f"Bearer {make_token(**kwargs)}"}


# ══════════════════════════════════════════════════════════════════════════
# Database
# ══════════════════════════════════════════════════════════════════════════

@pytest_asyncio.fixture
async def db_engine():
    # StaticPool: one shared connection, or each session sees its own empty :memory: db
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


# ══════════════════════════════════════════════════════════════════════════
# Services
# ══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def blob_store(tmp_path):
    return BlobStore(storage_root=str(tmp_path / "storage"))


@pytest.fixture
def fake_engine():
    return FakeOCREngine()


@pytest.fixture
def dispatcher(fake_engine):
    return OCRDispatcher(engine=fake_engine)


@pytest.fixture
def failing_engine():
    engine = FakeOCREngine()
    engine.error = OCRServiceError(
        message="OCR processing failed for broken.png: engine crashed",
        file_name="broken.png",
    )
    return engine


@pytest.fixture
def user_caller():
    return Caller(user=AuthenticatedUser(id=TEST_USER_ID, email="reader@example.com"), ip_address="198.51.100.4")


@pytest.fixture
def guest_caller():
    return Caller(user=None, ip_address=GUEST_IP)


@pytest.fixture
def sample_png():
    return make_png()


# ══════════════════════════════════════════════════════════════════════════
# HTTP
# ══════════════════════════════════════════════════════════════════════════

@pytest_asyncio.fixture
async def test_client(session_factory, fake_engine, blob_store, monkeypatch):
    """
    AsyncClient over the real app.

    The request-scoped session dependency is swapped for one bound to the
    in-memory engine (same commit/rollback contract), the OCR engine for
    fake_engine, and both blob-store users point at the tmp bucket.
    """
    from inkread.main import app
    from inkread.services.cleanup_service import cleanup_service
    from inkread.services.processing_service import processing_service

    async def override_db_session():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db_session] = override_db_session
    app.dependency_overrides[get_ocr_engine] = lambda: fake_engine
    monkeypatch.setattr(processing_service, "_store", blob_store)
    monkeypatch.setattr(cleanup_service, "_store", blob_store)

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()
