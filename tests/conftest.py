import os

os.environ.setdefault("MONGO_URL", "mongodb://localhost:27017")
os.environ.setdefault("DB_NAME", "caseprep_test")
os.environ["JWT_SECRET"] = "test-secret"
os.environ["ADMIN_TOKEN"] = "test-admin-token"
os.environ["REDIS_URL"] = ""
os.environ["OPENAI_API_KEY"] = ""
os.environ["STRIPE_SECRET_KEY"] = ""
os.environ["RESEND_API_KEY"] = ""

import uuid  # noqa: E402

import fakeredis  # noqa: E402
import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from mongomock_motor import AsyncMongoMockClient  # noqa: E402

from caseprep.cache import Cache, get_cache  # noqa: E402
from caseprep.database import get_db  # noqa: E402
from caseprep.llm import LLMClient, get_llm  # noqa: E402
from caseprep.server import app as fastapi_app  # noqa: E402

ADMIN_HEADERS = {"X-Admin-Token": "test-admin-token"}


class FakeClock:
    def __init__(self, now=1_700_000_000.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


@pytest.fixture
def db():
    return AsyncMongoMockClient()[f"caseprep_{uuid.uuid4().hex[:8]}"]


@pytest.fixture
def cache():
    return Cache(fakeredis.FakeAsyncRedis(server=fakeredis.FakeServer(), decode_responses=True))


@pytest.fixture
def app(db, cache):
    fastapi_app.dependency_overrides[get_db] = lambda: db
    fastapi_app.dependency_overrides[get_cache] = lambda: cache
    fastapi_app.dependency_overrides[get_llm] = lambda: LLMClient(None)
    yield fastapi_app
    fastapi_app.dependency_overrides.clear()


@pytest.fixture
def client(app):
    with TestClient(app) as c:
        yield c


def register_user(client, email=None, password="password123", **profile):
    email = email or f"user-{uuid.uuid4().hex[:8]}@example.com"
    response = client.post(
        "/api/auth/register",
        json={"email": email, "password": password, "profile": profile},
    )
    assert response.status_code == 200, response.text
    headers = {"Authorization": f"Bearer {response.json()['access_token']}"}
    user_id = client.get("/api/auth/me", headers=headers).json()["id"]
    return headers, user_id


@pytest.fixture
def user(client):
    return register_user(client)


@pytest.fixture
def seeded(client):
    response = client.post("/api/admin/init-drills", headers=ADMIN_HEADERS)
    assert response.status_code == 200, response.text
    return response.json()


@pytest.fixture
def make_user(client):
    def _make_user(**kwargs):
        return register_user(client, **kwargs)
    return _make_user


@pytest.fixture
def admin_headers():
    return dict(ADMIN_HEADERS)


@pytest.fixture
def clock():
    return FakeClock()
