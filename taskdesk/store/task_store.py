"""Client-side cache of tasks and the submissions attached to them.

All writes go through this object. Each operation draws a ticket when it is
issued and only lands on the field paths it touches (the list membership, a
whole task, one student's submission, the group thread) when no operation
issued later has already written that path. Responses that come back out of
order therefore never roll fresher data back.

Mutations of a single task are queued behind a per-task lock, and their
pre-flight checks run inside it, so two submits for the same task never
interleave.
"""

import asyncio
import itertools
import logging
from contextlib import contextmanager
from typing import Iterator, Optional, Sequence

from taskdesk.api.tasks import TaskApi
from taskdesk.core.config import (
    DASHBOARD_POLL_INTERVAL,
    DESCRIPTION_WORD_LIMIT,
    INSTRUCTIONS_WORD_LIMIT,
    MAX_SUBMISSION_FILES,
    MAX_TASK_ATTACHMENTS,
    REMARKS_WORD_LIMIT,
    SUBMISSION_POLL_INTERVAL,
    SUBMISSION_WORD_LIMIT,
)
from taskdesk.core.credentials import CredentialStore
from taskdesk.core.errors import (
    AlreadySubmitted,
    DraftNotDiscardable,
    FetchError,
    NetworkError,
    Unauthenticated,
)
from taskdesk.core.events import TASK_SUBMITTED, EventBus
from taskdesk.core.polling import Poller
from taskdesk.core.submission_status import get_submission_for, is_finalized, student_id_of
from taskdesk.core.validation import ensure_upload_limit, ensure_word_limit
from taskdesk.schemas.interaction import GroupMessage, InteractionMessage
from taskdesk.schemas.submission import MySubmissionStatus, Submission, SubmissionDraft
from taskdesk.schemas.task import Task, TaskForm

logger = logging.getLogger(__name__)


def _with_submission(
    submissions: Sequence[Submission], student_id: str, replacement: Optional[Submission]
) -> list[Submission]:
    """Drop every entry of one student, putting ``replacement`` where the first one was."""
    placed = False
    result: list[Submission] = []
    for sub in submissions:
        if student_id_of(sub) == student_id:
            if replacement is not None and not placed:
                result.append(replacement)
                placed = True
            continue
        result.append(sub)
    if replacement is not None and not placed:
        result.append(replacement)
    return result


def _dedupe_submissions(task: Task) -> Task:
    """One submission per student: the last entry wins, at the first entry's position."""
    latest: dict[Optional[str], Submission] = {}
    order: list[Optional[str]] = []
    for sub in task.submissions:
        sid = student_id_of(sub)
        if sid not in latest:
            order.append(sid)
        latest[sid] = sub

    if len(order) != len(task.submissions):
        logger.warning(
            "Task %s carried %d submissions for %d students; keeping the latest per student",
            task.id,
            len(task.submissions),
            len(order),
        )
        task.submissions = [latest[sid] for sid in order]
    return task


class TaskStore:
    def __init__(
        self,
        api: TaskApi,
        credentials: CredentialStore,
        events: Optional[EventBus] = None,
        word_limit: int = SUBMISSION_WORD_LIMIT,
    ):
        self._api = api
        self._credentials = credentials
        self.events = events or EventBus()
        self.word_limit = word_limit

        self._tasks: list[Task] = []
        self.task_count = 0
        self.error: Optional[str] = None
        self._loading = 0

        self._clock = itertools.count(1)
        self._locks: dict[str, asyncio.Lock] = {}
        self._list_written = 0
        self._task_written: dict[str, int] = {}
        self._submission_written: dict[tuple[str, str], int] = {}
        self._group_written: dict[str, int] = {}
        self._deleted: dict[str, int] = {}
        self._in_flight: set[int] = set()

    # read side

    @property
    def tasks(self) -> list[Task]:
        return [t.model_copy(deep=True) for t in self._tasks]

    @property
    def is_loading(self) -> bool:
        return self._loading > 0

    def get_task(self, task_id: str) -> Optional[Task]:
        task = self._find(task_id)
        return task.model_copy(deep=True) if task else None

    def submission_for(self, task_id: str, user_id: Optional[str] = None) -> Optional[Submission]:
        user_id = user_id or self._credentials.get_user_id()
        submission = get_submission_for(self._find(task_id), user_id)
        return submission.model_copy(deep=True) if submission else None

    def clear_error(self) -> None:
        self.error = None

    # plumbing shared with the interaction threads

    def begin_write(self) -> int:
        return next(self._clock)

    @contextmanager
    def writing(self) -> Iterator[int]:
        """Ticket for one operation, held as outstanding until its response is applied."""
        ticket = self.begin_write()
        self._in_flight.add(ticket)
        try:
            yield ticket
        finally:
            self._in_flight.discard(ticket)
            self._release_deleted()

    def _release_deleted(self) -> None:
        oldest = min(self._in_flight, default=None)
        for task_id, deleted_at in list(self._deleted.items()):
            # still guarding against a response issued before the delete
            if oldest is not None and oldest < deleted_at:
                continue
            del self._deleted[task_id]
            self._task_written.pop(task_id, None)
            self._group_written.pop(task_id, None)
            for key in [k for k in self._submission_written if k[0] == task_id]:
                del self._submission_written[key]

    def lock_for(self, task_id: str) -> asyncio.Lock:
        lock = self._locks.get(task_id)
        if lock is None:
            lock = self._locks[task_id] = asyncio.Lock()
        return lock

    @contextmanager
    def recording_errors(self) -> Iterator[None]:
        try:
            yield
        except (Unauthenticated, FetchError, NetworkError) as exc:
            self.error = exc.message
            raise

    def _find(self, task_id: str) -> Optional[Task]:
        for task in self._tasks:
            if task.id == task_id:
                return task
        return None

    def _submission_stale(self, task_id: str, student_id: str, ticket: int) -> bool:
        newest = max(
            self._task_written.get(task_id, 0),
            self._submission_written.get((task_id, student_id), 0),
        )
        return newest > ticket

    def _group_stale(self, task_id: str, ticket: int) -> bool:
        newest = max(self._task_written.get(task_id, 0), self._group_written.get(task_id, 0))
        return newest > ticket

    def _keep_newer_fields(self, incoming: Task, current: Task, ticket: int) -> Task:
        # field paths written by operations issued after this response was requested
        for (task_id, student_id), written in self._submission_written.items():
            if task_id != incoming.id or written <= ticket:
                continue
            kept = get_submission_for(current, student_id)
            incoming.submissions = _with_submission(incoming.submissions, student_id, kept)

        if self._group_written.get(incoming.id, 0) > ticket:
            incoming.group_interaction_messages = list(current.group_interaction_messages)
        return incoming

    # reducers

    def _install(self, incoming: Task, ticket: int) -> Optional[Task]:
        task_id = incoming.id
        if self._deleted.get(task_id, 0) > ticket or self._task_written.get(task_id, 0) > ticket:
            logger.debug("Dropping stale copy of task %s (ticket %d)", task_id, ticket)
            return None

        incoming = _dedupe_submissions(incoming)
        current = self._find(task_id)
        if current is not None:
            incoming = self._keep_newer_fields(incoming, current, ticket)

        self._task_written[task_id] = ticket
        for index, task in enumerate(self._tasks):
            if task.id == task_id:
                self._tasks[index] = incoming
                break
        else:
            self._tasks.append(incoming)
        return incoming

    def _replace_list(self, incoming: Sequence[Task], ticket: int) -> bool:
        if ticket < self._list_written:
            logger.debug("Ignoring task list from ticket %d; list already at %d", ticket, self._list_written)
            return False
        self._list_written = ticket

        result: list[Task] = []
        seen: set[str] = set()
        for task in incoming:
            if task.id in seen or self._deleted.get(task.id, 0) > ticket:
                continue
            seen.add(task.id)

            current = self._find(task.id)
            if current is not None and self._task_written.get(task.id, 0) > ticket:
                result.append(current)
                continue

            task = _dedupe_submissions(task)
            if current is not None:
                task = self._keep_newer_fields(task, current, ticket)
            self._task_written[task.id] = ticket
            result.append(task)

        # created or fetched by later operations, so this older listing cannot know them
        for current in self._tasks:
            if current.id not in seen and self._task_written.get(current.id, 0) > ticket:
                result.append(current)

        self._tasks = result
        return True

    def _put_submission(self, task_id: str, student_id: str, submission: Submission, ticket: int) -> bool:
        task = self._find(task_id)
        if task is None or self._submission_stale(task_id, student_id, ticket):
            return False

        existing = get_submission_for(task, student_id)
        if existing is not None:
            # fields the server left out of this payload keep their cached values
            update = {name: getattr(submission, name) for name in submission.model_fields_set}
            submission = existing.model_copy(update=update)

        task.submissions = _with_submission(task.submissions, student_id, submission)
        self._submission_written[(task_id, student_id)] = ticket
        return True

    def _drop_submission(self, task_id: str, student_id: str, ticket: int) -> bool:
        task = self._find(task_id)
        if task is None or self._submission_stale(task_id, student_id, ticket):
            return False
        task.submissions = _with_submission(task.submissions, student_id, None)
        self._submission_written[(task_id, student_id)] = ticket
        return True

    def apply_private_messages(
        self, task_id: str, student_id: Optional[str], messages: Sequence[InteractionMessage], ticket: int
    ) -> bool:
        task = self._find(task_id)
        if task is None or not student_id or self._submission_stale(task_id, student_id, ticket):
            return False
        submission = get_submission_for(task, student_id)
        if submission is None:
            return False
        submission.interaction_messages = list(messages)
        self._submission_written[(task_id, student_id)] = ticket
        return True

    def apply_group_thread(self, task_id: str, messages: Sequence[GroupMessage], ticket: int) -> bool:
        task = self._find(task_id)
        if task is None or self._group_stale(task_id, ticket):
            return False
        task.group_interaction_messages = list(messages)
        self._group_written[task_id] = ticket
        return True

    def append_group_message(self, task_id: str, message: GroupMessage, ticket: int) -> bool:
        task = self._find(task_id)
        if task is None or self._group_stale(task_id, ticket):
            return False
        if message.id and any(m.id == message.id for m in task.group_interaction_messages):
            return False
        task.group_interaction_messages.append(message)
        self._group_written[task_id] = ticket
        return True

    # operations

    async def load_tasks(self, classroom_id: Optional[str] = None) -> list[Task]:
        with self.writing() as ticket:
            self._loading += 1
            try:
                with self.recording_errors():
                    tasks = await self._api.list_tasks(classroom_id)
            finally:
                self._loading -= 1
            self._replace_list(tasks, ticket)
        return self.tasks

    async def load_task_count(self, classroom_id: Optional[str] = None) -> int:
        with self.recording_errors():
            self.task_count = await self._api.count_tasks(classroom_id)
        return self.task_count

    async def load_task(self, task_id: str) -> Optional[Task]:
        with self.writing() as ticket:
            with self.recording_errors():
                task = await self._api.get_task(task_id)
            self._install(task, ticket)
        return self.get_task(task_id)

    async def load_my_submission(self, task_id: str) -> MySubmissionStatus:
        with self.writing() as ticket:
            with self.recording_errors():
                status = await self._api.get_my_submission(task_id)

            user_id = str(status.user_id)
            if status.has_submission and status.submission is not None:
                self._put_submission(task_id, user_id, status.submission, ticket)
            else:
                # discarded server-side without this client hearing about it
                self._drop_submission(task_id, user_id, ticket)
        return status

    async def submit(self, task_id: str, draft: SubmissionDraft) -> Task:
        async with self.lock_for(task_id):
            ensure_word_limit(draft.content, self.word_limit, "Content")
            ensure_upload_limit(draft.new_files, MAX_SUBMISSION_FILES, "files")

            user_id = self._credentials.get_user_id()
            existing = get_submission_for(self._find(task_id), user_id)
            if draft.finalize and is_finalized(existing):
                raise AlreadySubmitted()

            with self.writing() as ticket:
                with self.recording_errors():
                    task = await self._api.submit(task_id, draft)
                self._install(task, ticket)

            logger.info(
                "Task %s updated after %s: %d submissions",
                task.id,
                draft.status,
                len(task.submissions),
            )

        await self.events.emit(TASK_SUBMITTED, task_id=task.id, status=draft.status)
        return self.get_task(task.id) or task

    async def discard_draft(self, task_id: str) -> Optional[str]:
        async with self.lock_for(task_id):
            user_id = self._credentials.get_user_id()
            existing = get_submission_for(self._find(task_id), user_id)
            if is_finalized(existing):
                raise DraftNotDiscardable()

            with self.writing() as ticket:
                with self.recording_errors():
                    message = await self._api.discard_draft(task_id)
                if user_id:
                    self._drop_submission(task_id, str(user_id), ticket)
        return message

    @staticmethod
    def _check_task_form(form: TaskForm) -> None:
        ensure_word_limit(form.description, DESCRIPTION_WORD_LIMIT, "Description")
        ensure_word_limit(form.instructions, INSTRUCTIONS_WORD_LIMIT, "Instructions")
        ensure_upload_limit(form.attachments, MAX_TASK_ATTACHMENTS, "attachments")

    async def create_task(self, form: TaskForm) -> Task:
        self._check_task_form(form)
        with self.writing() as ticket:
            with self.recording_errors():
                task = await self._api.create_task(form)
            self._install(task, ticket)
        return self.get_task(task.id) or task

    async def update_task(self, task_id: str, form: TaskForm) -> Task:
        self._check_task_form(form)
        async with self.lock_for(task_id):
            with self.writing() as ticket:
                with self.recording_errors():
                    task = await self._api.update_task(task_id, form)
                self._install(task, ticket)
        return self.get_task(task.id) or task

    async def delete_task(self, task_id: str) -> str:
        async with self.lock_for(task_id):
            with self.writing() as ticket:
                with self.recording_errors():
                    deleted_id = await self._api.delete_task(task_id)
                self._deleted[deleted_id] = ticket
                self._tasks = [t for t in self._tasks if t.id != deleted_id]
        # operations already queued keep the lock object they hold
        self._locks.pop(task_id, None)
        return deleted_id

    async def set_submission_remarks(self, task_id: str, student_id: str, remarks: str) -> Task:
        ensure_word_limit(remarks, REMARKS_WORD_LIMIT, "Remarks")
        async with self.lock_for(task_id):
            with self.writing() as ticket:
                with self.recording_errors():
                    task = await self._api.set_remarks(task_id, student_id, remarks)
                self._install(task, ticket)
        return self.get_task(task.id) or task

    # polling

    def poll_tasks(self, classroom_id: Optional[str] = None, interval: float = DASHBOARD_POLL_INTERVAL) -> Poller:
        return Poller(f"tasks:{classroom_id or 'all'}", lambda: self.load_tasks(classroom_id), interval)

    def poll_my_submission(self, task_id: str, interval: float = SUBMISSION_POLL_INTERVAL) -> Poller:
        return Poller(f"my-submission:{task_id}", lambda: self.load_my_submission(task_id), interval)
