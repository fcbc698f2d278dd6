from collections import Counter
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Iterable, Optional

from taskdesk.core.config import DUE_SOON_WINDOW
from taskdesk.schemas.common import ref_id
from taskdesk.schemas.submission import Submission
from taskdesk.schemas.task import Task


class TaskStatus(str, Enum):
    COMPLETED = "completed"
    DRAFT = "draft"
    OVERDUE = "overdue"
    DUE_SOON = "dueSoon"
    PENDING = "pending"


def student_id_of(ref: Any) -> Optional[str]:
    """Student id of a submission, a populated user object, a raw dict or a bare id."""
    if isinstance(ref, Submission):
        return ref.student_id
    return ref_id(ref)


def _as_utc(value: datetime) -> datetime:
    # servers sometimes hand back naive datetimes; treat them as UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def get_submission_for(task: Optional[Task], user_id: Optional[str]) -> Optional[Submission]:
    if task is None or not user_id:
        return None
    wanted = str(user_id)
    for submission in task.submissions:
        if student_id_of(submission) == wanted:
            return submission
    return None


def is_finalized(submission: Optional[Submission]) -> bool:
    # either signal counts, partially populated payloads miss one of them
    if submission is None:
        return False
    return submission.status == "submitted" or submission.submitted_at is not None


def is_completed(task: Optional[Task], user_id: Optional[str]) -> bool:
    return is_finalized(get_submission_for(task, user_id))


def is_draft(task: Optional[Task], user_id: Optional[str]) -> bool:
    submission = get_submission_for(task, user_id)
    if submission is None:
        return False
    return submission.status == "draft" and not is_finalized(submission)


def can_interact(task: Optional[Task], user_id: Optional[str]) -> bool:
    """Whether a student may read and post on both discussion surfaces of a task.

    Private messaging and the group discussion open on the same fact: the
    student holds a submitted (not draft) submission.
    """
    submission = get_submission_for(task, user_id)
    return submission is not None and submission.interaction_enabled


def classify(
    task: Task,
    user_id: Optional[str],
    now: datetime,
    lookahead: timedelta = DUE_SOON_WINDOW,
) -> TaskStatus:
    """
    UI-facing status of a task for one viewer at instant ``now``.

    Precedence (first match wins):
    - completed: the viewer's submission is finalized
    - draft: the viewer holds an unfinalized draft
    - overdue: deadline < now
    - dueSoon: now <= deadline <= now + lookahead
    - pending: anything else, including tasks without a deadline
    """
    if is_completed(task, user_id):
        return TaskStatus.COMPLETED
    if is_draft(task, user_id):
        return TaskStatus.DRAFT

    if task.deadline is None:
        return TaskStatus.PENDING

    deadline = _as_utc(task.deadline)
    now = _as_utc(now)

    if deadline < now:
        return TaskStatus.OVERDUE
    if deadline <= now + lookahead:
        return TaskStatus.DUE_SOON
    return TaskStatus.PENDING


def summarize(
    tasks: Iterable[Task],
    user_id: Optional[str],
    now: datetime,
    lookahead: timedelta = DUE_SOON_WINDOW,
) -> dict[TaskStatus, int]:
    counts = Counter(classify(t, user_id, now, lookahead) for t in tasks)
    return {status: counts.get(status, 0) for status in TaskStatus}
