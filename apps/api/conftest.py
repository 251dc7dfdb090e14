"""Shared fixtures: in-memory database, fake vendor clients and an API client"""

import os

# auth.py refuses to import without a signing key
os.environ.setdefault("SECRET_KEY", "test-secret-key-not-for-production")
os.environ["CACHE_ENABLED"] = "false"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["USE_SQLITE"] = "true"
for _vendor_key in ("GEMINI_API_KEY", "ELEVENLABS_API_KEY", "TAVUS_API_KEY", "S3_BUCKET_NAME", "OPERATOR_API_KEY"):
    os.environ.pop(_vendor_key, None)

import io
from typing import Any, Dict, List, Optional

import httpx
import pytest
from botocore.exceptions import ClientError
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

from config import Settings
from database import enable_sqlite_foreign_keys, get_session
from main import app
from services import ServiceContainer
from services.gemini_service import GeminiService
from services.realtime import RealtimeHub
from services.speech_service import SpeechService
from services.storage_service import StorageService
from services.tavus_service import TavusService
from utils.cache import DirectoryCache, RedisCache

OPERATOR_KEY = "operator-test-key"
STRONG_PASSWORD = "Str0ng!Passw0rd"


class FakeGeminiResponse:
    def __init__(self, text: Optional[str]):
        self.text = text


class FakeGeminiModels:
    def __init__(self):
        self.reply: Optional[str] = "Please rest and drink fluids."
        self.error: Optional[Exception] = None
        self.calls: List[Dict[str, Any]] = []

    def generate_content(self, model: str, contents: Any):
        self.calls.append({"model": model, "contents": contents})
        if self.error is not None:
            raise self.error
        return FakeGeminiResponse(self.reply)


class FakeGeminiClient:
    """Stands in for google.genai.Client; records every generate_content call"""

    def __init__(self):
        self.models = FakeGeminiModels()


class FakeS3Client:
    """In-memory S3 with the handful of calls the storage service makes"""

    def __init__(self):
        self.objects: Dict[str, Dict[str, Any]] = {}
        self.fail_deletes = False

    def put_object(self, Bucket, Key, Body, ContentType, **kwargs):
        self.objects[Key] = {"Body": Body, "ContentType": ContentType}
        return {}

    def get_object(self, Bucket, Key):
        if Key not in self.objects:
            raise ClientError({"Error": {"Code": "NoSuchKey", "Message": "missing"}}, "GetObject")
        stored = self.objects[Key]
        return {"Body": io.BytesIO(stored["Body"]), "ContentType": stored["ContentType"]}

    def delete_object(self, Bucket, Key):
        if self.fail_deletes:
            raise ClientError({"Error": {"Code": "AccessDenied", "Message": "denied"}}, "DeleteObject")
        self.objects.pop(Key, None)
        return {}

    def generate_presigned_url(self, operation, Params, ExpiresIn):
        return f"https://storage.test/{Params['Bucket']}/{Params['Key']}?expires={ExpiresIn}"


class FakeRedis:
    """Dict-backed stand-in for redis.Redis covering what RedisCache calls"""

    def __init__(self):
        self.store: Dict[str, str] = {}

    def ping(self):
        return True

    def get(self, key):
        return self.store.get(key)

    def setex(self, key, ttl, value):
        self.store[key] = value

    def delete(self, key):
        return 1 if self.store.pop(key, None) is not None else 0

    def close(self):
        pass


class RecordingHub(RealtimeHub):
    """Realtime hub that also remembers what it was asked to publish"""

    def __init__(self):
        super().__init__()
        self.published: List[Dict[str, Any]] = []

    async def publish(self, profile_id, channel, record):
        self.published.append({"profile_id": profile_id, "channel": channel.value, "record": record})
        return await super().publish(profile_id, channel, record)


class VendorTransport:
    """httpx transport that counts requests and answers from a handler"""

    def __init__(self, handler=None):
        self.requests: List[httpx.Request] = []
        self.handler = handler or (lambda request: httpx.Response(500, json={"error": "unexpected"}))

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.handler(request)

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self))


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    enable_sqlite_foreign_keys(engine)
    SQLModel.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db_session(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture
def gemini_client():
    return FakeGeminiClient()


@pytest.fixture
def s3_client():
    return FakeS3Client()


@pytest.fixture
def vendor_transport():
    return VendorTransport()


@pytest.fixture
def services(gemini_client, s3_client, vendor_transport):
    http_client = vendor_transport.client()
    settings = Settings(operator_api_key=OPERATOR_KEY, cache_enabled=False)
    return ServiceContainer(
        settings=settings,
        gemini=GeminiService(None, client=gemini_client),
        speech=SpeechService(None, settings.elevenlabs_voice_id, http_client),
        tavus=TavusService(None, settings.tavus_persona_id, http_client),
        storage=StorageService("chat_images", s3_client=s3_client),
        directory_cache=DirectoryCache(RedisCache(None, enabled=False)),
        realtime=RecordingHub(),
        http_client=http_client,
    )


@pytest.fixture
def client(engine, services):
    def override_get_session():
        with Session(engine) as session:
            yield session

    app.dependency_overrides[get_session] = override_get_session
    app.state.services = services
    # No context manager: the lifespan (real vendor clients, file database) must not run
    test_client = TestClient(app)
    yield test_client
    app.dependency_overrides.clear()


def register(client: TestClient, email: str, role: str = "patient", full_name: Optional[str] = None) -> Dict[str, Any]:
    """Register an account; returns its auth headers and profile"""
    response = client.post("/api/auth/register", json={
        "email": email,
        "password": STRONG_PASSWORD,
        "full_name": full_name or email.split("@")[0].title(),
        "role": role,
    })
    assert response.status_code == 201, response.text
    body = response.json()
    return {
        "headers": {"Authorization": f"Bearer {body['access_token']}"},
        "profile": body["profile"],
        "tokens": body,
    }


def verify_doctor(client: TestClient, doctor_record_id: int) -> None:
    response = client.put(
        f"/api/admin/doctors/{doctor_record_id}/verify",
        headers={"X-Operator-Key": OPERATOR_KEY},
    )
    assert response.status_code == 200, response.text


@pytest.fixture
def patient(client):
    return register(client, "pat.smith@example.com", "patient", "Pat Smith")


@pytest.fixture
def doctor(client):
    return register(client, "sarah.johnson@example.com", "doctor", "Sarah Johnson")


@pytest.fixture
def other_doctor(client):
    return register(client, "mike.chen@example.com", "doctor", "Mike Chen")
