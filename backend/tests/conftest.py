import sys
from pathlib import Path

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

# Ensure project root is on sys.path
PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from app.core.config import Settings
from app.core.errors import CopyFailed, ObjectNotFound
from app.main import create_app
from app.schemas import StoredObject


class InMemoryStore:
    """Object store fake that records every call it receives."""

    def __init__(self) -> None:
        self.objects: dict[str, tuple[bytes, str]] = {}
        self.calls: list[tuple[str, str]] = []
        self.fail_presign_for: set[str] = set()

    @property
    def mutations(self) -> list[tuple[str, str]]:
        return [call for call in self.calls if call[0] in {"put", "delete", "copy"}]

    async def ensure_bucket(self) -> None:
        self.calls.append(("ensure_bucket", ""))

    async def drain(self) -> None:
        return None

    async def put(self, key: str, data: bytes, content_type: str, length: int) -> None:
        self.calls.append(("put", key))
        self.objects[key] = (data, content_type)

    async def head(self, key: str) -> bool:
        self.calls.append(("head", key))
        return key in self.objects

    async def delete(self, key: str) -> None:
        if key not in self.objects:
            raise ObjectNotFound(key)
        self.calls.append(("delete", key))
        del self.objects[key]

    async def list_objects(self) -> list[StoredObject]:
        self.calls.append(("list", ""))
        result = []
        for key in self.objects:
            url = "" if key in self.fail_presign_for else f"https://store.test/{key}?sig=1"
            result.append(StoredObject.from_key(key, url))
        return result

    async def presign(self, key: str, ttl: int | None = None) -> str:
        self.calls.append(("presign", key))
        return f"https://store.test/{key}?sig=1"

    async def copy(self, old_key: str, new_key: str) -> None:
        if old_key not in self.objects:
            raise CopyFailed("NoSuchKey", "The specified key does not exist.")
        self.calls.append(("copy", f"{old_key}->{new_key}"))
        self.objects[new_key] = self.objects[old_key]


@pytest.fixture
def settings() -> Settings:
    return Settings(
        S3_BUCKET_NAME="test-bucket",
        ACCESS_KEY_ID="test",
        SECRET_ACCESS_KEY="test",
        REGION="us-east-1",
        TIMEOUT=2,
        ALLOWED_MIME_TYPES="image/png,image/jpeg,application/pdf",
    )


@pytest.fixture
def store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture
def app_instance(settings, store):
    return create_app(settings, store=store)


@pytest_asyncio.fixture
async def client(app_instance):
    transport = ASGITransport(app=app_instance)
    async with AsyncClient(transport=transport, base_url="http://testserver") as client:
        yield client
