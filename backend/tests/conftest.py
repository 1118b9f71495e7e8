import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./test_fieldservice.db")
os.environ.setdefault("SECRET_KEY", "test-secret-key-used-only-by-the-test-suite")
os.environ.setdefault("DEFAULT_RATE_LIMIT", "10000/minute")
# Dummy credentials so boto3 never looks for a real profile
os.environ.setdefault("AWS_ACCESS_KEY_ID", "test")
os.environ.setdefault("AWS_SECRET_ACCESS_KEY", "test")
os.environ.setdefault("AWS_DEFAULT_REGION", "us-east-1")

import uuid
from datetime import datetime, timezone

import pytest
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.pool import NullPool

from fieldservice.database import Base
from fieldservice.models import audit, visit, visit_photo  # noqa: F401
from fieldservice.models.visit import Visit
from fieldservice.models.visit_photo import VisitPhoto, PHOTO_PENDING
from fieldservice.services.storage_service import PresignedUpload
from fieldservice.services.visit_guard import AuthContext

TENANT_ID = "00000000-0000-0000-0000-000000000001"
OTHER_TENANT_ID = "00000000-0000-0000-0000-000000000002"
OWNER_ID = "00000000-0000-0000-0000-000000000010"
ADMIN_ID = "00000000-0000-0000-0000-000000000011"
MEMBER_ID = "00000000-0000-0000-0000-000000000012"
OTHER_MEMBER_ID = "00000000-0000-0000-0000-000000000013"


class FakeStorage:
    """In-memory PhotoStorage that records calls and can be told to fail."""

    def __init__(self):
        self.presigned = []
        self.deleted = []
        self.fail_upload = False
        self.fail_delete = False

    async def issue_upload_authorization(self, key, content_type, max_bytes):
        if self.fail_upload:
            raise RuntimeError("presign failed")
        self.presigned.append((key, content_type, max_bytes))
        return PresignedUpload(
            url="https://bucket.example.test/",
            fields={"key": key, "Content-Type": content_type},
        )

    async def issue_download_url(self, key):
        return f"https://bucket.example.test/{key}?signature=abc"

    async def delete_object(self, key):
        if self.fail_delete:
            raise RuntimeError("storage unavailable")
        self.deleted.append(key)


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
async def session_factory(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}", poolclass=NullPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    await engine.dispose()


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def storage():
    return FakeStorage()


@pytest.fixture
def owner():
    return AuthContext(tenant_id=TENANT_ID, user_id=OWNER_ID, role="owner")


@pytest.fixture
def admin():
    return AuthContext(tenant_id=TENANT_ID, user_id=ADMIN_ID, role="admin")


@pytest.fixture
def member():
    return AuthContext(tenant_id=TENANT_ID, user_id=MEMBER_ID, role="member")


@pytest.fixture
def other_member():
    return AuthContext(tenant_id=TENANT_ID, user_id=OTHER_MEMBER_ID, role="member")


@pytest.fixture
def make_visit(db):
    async def _make(status="started", assigned_user_id=MEMBER_ID, tenant_id=TENANT_ID):
        v = Visit(id=str(uuid.uuid4()), tenant_id=tenant_id, status=status, assigned_user_id=assigned_user_id)
        db.add(v)
        await db.commit()
        return v
    return _make


@pytest.fixture
def make_photo(db):
    async def _make(v, status=PHOTO_PENDING, created_at=None, file_name="photo.jpg"):
        photo_id = str(uuid.uuid4())
        p = VisitPhoto(
            id=photo_id,
            tenant_id=v.tenant_id,
            visit_id=v.id,
            storage_key=f"tenants/{v.tenant_id}/visits/{v.id}/photos/{photo_id}.jpg",
            file_name=file_name,
            content_type="image/jpeg",
            status=status,
            created_at=created_at or datetime.now(timezone.utc),
        )
        db.add(p)
        await db.commit()
        return p
    return _make
