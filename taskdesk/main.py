import logging
from typing import Optional

import httpx

from taskdesk.api.tasks import TaskApi
from taskdesk.core.config import API_URL, DATABASE_URL
from taskdesk.core.credentials import Credential, CredentialStore
from taskdesk.core.events import EventBus
from taskdesk.db.init_db import init_db
from taskdesk.db.session import make_engine, make_session_factory
from taskdesk.store.task_store import TaskStore
from taskdesk.store.threads import InteractionThreads

logging.basicConfig(level=logging.INFO)


class TaskDesk:
    """Everything a dashboard needs, wired around one HTTP client."""

    def __init__(self, credentials: CredentialStore, api: TaskApi, events: Optional[EventBus] = None):
        self.credentials = credentials
        self.api = api
        self.events = events or EventBus()
        self.store = TaskStore(api, credentials, self.events)
        self.threads = InteractionThreads(self.store, api, credentials)

    def sign_in(self, token: str, user_id: str, role: str = "student") -> Credential:
        return self.credentials.save(token, user_id, role)

    def sign_out(self) -> None:
        self.credentials.clear()

    async def aclose(self) -> None:
        await self.api.aclose()

    async def __aenter__(self) -> "TaskDesk":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()


def create_desk(
    base_url: str = API_URL,
    database_url: str = DATABASE_URL,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> TaskDesk:
    engine = make_engine(database_url)
    init_db(engine)

    credentials = CredentialStore(make_session_factory(engine))
    api = TaskApi(credentials, base_url=base_url, transport=transport)
    return TaskDesk(credentials, api)
