"""Private (teacher and one student) and group discussion threads of a task.

Message order is always the server's. Fetches replace the cached thread
wholesale; private posts install the full list the server returns; group
posts either append the one confirmed message or refetch, depending on the
caller's ``GroupPostStrategy``. The group poller heals any gap left by an
optimistic append within one interval.
"""

import logging
from enum import Enum
from typing import Optional, Sequence

from taskdesk.api.tasks import TaskApi
from taskdesk.core.config import GROUP_CHAT_POLL_INTERVAL, MAX_GROUP_ATTACHMENTS
from taskdesk.core.credentials import CredentialStore
from taskdesk.core.errors import InteractionNotAllowed, ValidationError
from taskdesk.core.polling import Poller
from taskdesk.core.submission_status import can_interact
from taskdesk.core.validation import ensure_upload_limit
from taskdesk.schemas.common import Upload
from taskdesk.schemas.interaction import GroupMessage, GroupThread, InteractionMessage, InteractionThread
from taskdesk.store.task_store import TaskStore

logger = logging.getLogger(__name__)


class GroupPostStrategy(str, Enum):
    # short-lived gaps are tolerable, the next poll fills them
    APPEND = "append"
    # read the thread back right after the post
    REFETCH = "refetch"


class InteractionThreads:
    def __init__(self, store: TaskStore, api: TaskApi, credentials: CredentialStore):
        self._store = store
        self._api = api
        self._credentials = credentials

    def can_participate(self, task_id: str, user_id: Optional[str] = None) -> Optional[bool]:
        """Eligibility for both threads, or None when the task is not cached yet."""
        if self._credentials.get_role() == "teacher":
            return True
        task = self._store.get_task(task_id)
        if task is None:
            return None
        return can_interact(task, user_id or self._credentials.get_user_id())

    def _ensure_can_participate(self, task_id: str) -> None:
        if self.can_participate(task_id) is False:
            raise InteractionNotAllowed()

    # private thread

    async def fetch_private(self, task_id: str, student_id: Optional[str] = None) -> InteractionThread:
        with self._store.writing() as ticket:
            with self._store.recording_errors():
                thread = await self._api.get_interactions(task_id, student_id)

            target = thread.student_id or student_id or self._credentials.get_user_id()
            self._store.apply_private_messages(task_id, target, thread.messages, ticket)
        return thread

    async def post_private(self, task_id: str, message: str) -> list[InteractionMessage]:
        text = (message or "").strip()
        if not text:
            raise ValidationError("Message is required")
        self._ensure_can_participate(task_id)

        async with self._store.lock_for(task_id):
            with self._store.writing() as ticket:
                with self._store.recording_errors():
                    messages = await self._api.post_interaction(task_id, text)
                self._store.apply_private_messages(task_id, self._credentials.get_user_id(), messages, ticket)
        return messages

    async def reply_private(self, task_id: str, student_id: str, message: str) -> list[InteractionMessage]:
        text = (message or "").strip()
        if not text:
            raise ValidationError("Message is required")

        async with self._store.lock_for(task_id):
            with self._store.writing() as ticket:
                with self._store.recording_errors():
                    messages = await self._api.reply_interaction(task_id, student_id, text)
                self._store.apply_private_messages(task_id, student_id, messages, ticket)
        return messages

    # group thread

    async def fetch_group(self, task_id: str) -> GroupThread:
        with self._store.writing() as ticket:
            with self._store.recording_errors():
                thread = await self._api.get_group_interactions(task_id)
            self._store.apply_group_thread(task_id, thread.messages, ticket)
        return thread

    async def post_group(
        self,
        task_id: str,
        message: Optional[str] = None,
        attachments: Sequence[Upload] = (),
        strategy: GroupPostStrategy = GroupPostStrategy.APPEND,
    ) -> Optional[GroupMessage]:
        text = (message or "").strip()
        if not text and not attachments:
            raise ValidationError("Message or attachment is required")
        ensure_upload_limit(attachments, MAX_GROUP_ATTACHMENTS, "attachments")
        self._ensure_can_participate(task_id)

        async with self._store.lock_for(task_id):
            with self._store.writing() as ticket:
                with self._store.recording_errors():
                    created = await self._api.post_group_interaction(task_id, text or None, attachments)
                if created is not None and strategy is GroupPostStrategy.APPEND:
                    self._store.append_group_message(task_id, created, ticket)

            if strategy is GroupPostStrategy.REFETCH:
                await self.fetch_group(task_id)
            elif created is None:
                logger.warning("Group post on task %s returned no message; waiting for next poll", task_id)
        return created

    def poll_group(self, task_id: str, interval: float = GROUP_CHAT_POLL_INTERVAL) -> Poller:
        return Poller(f"group:{task_id}", lambda: self.fetch_group(task_id), interval)
