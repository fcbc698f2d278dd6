import httpx
import pytest

from taskdesk.api.tasks import TaskApi
from taskdesk.core.credentials import CredentialStore
from taskdesk.core.events import EventBus
from taskdesk.db.init_db import init_db
from taskdesk.db.session import make_engine, make_session_factory
from taskdesk.store.task_store import TaskStore
from taskdesk.store.threads import InteractionThreads
from tests.fake_backend import create_app, seeded_backend

TEST_API_URL = "http://testserver/api"


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def session_factory(tmp_path):
    """Fresh credential database per test."""
    engine = make_engine(f"sqlite:///{tmp_path / 'test_taskdesk.db'}")
    init_db(engine)
    yield make_session_factory(engine)
    engine.dispose()


@pytest.fixture
def credentials(session_factory):
    return CredentialStore(session_factory)


@pytest.fixture
def backend():
    """Seed a clean minimal dataset for each test."""
    return seeded_backend()


@pytest.fixture
def api(backend, credentials):
    transport = httpx.ASGITransport(app=create_app(backend))
    return TaskApi(credentials, base_url=TEST_API_URL, transport=transport)


@pytest.fixture
def events():
    return EventBus()


@pytest.fixture
def store(api, credentials, events):
    return TaskStore(api, credentials, events)


@pytest.fixture
def threads(store, api, credentials):
    return InteractionThreads(store, api, credentials)


def login_as(credentials: CredentialStore, user_id: str) -> None:
    tokens = {
        "t1": ("teacher-token", "teacher"),
        "s1": ("student1-token", "student"),
        "s2": ("student2-token", "student"),
    }
    token, role = tokens[user_id]
    credentials.save(token, user_id, role)


@pytest.fixture
def as_student(credentials):
    login_as(credentials, "s1")
    return "s1"


@pytest.fixture
def as_teacher(credentials):
    login_as(credentials, "t1")
    return "t1"
