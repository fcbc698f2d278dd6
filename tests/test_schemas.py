import pytest
from pydantic import ValidationError

from taskdesk.core.submission_status import student_id_of
from taskdesk.schemas.submission import MySubmissionStatus, Submission
from taskdesk.schemas.task import Task


def test_auto_submitted_work_must_be_final():
    with pytest.raises(ValidationError):
        Submission.model_validate({"student": "s1", "status": "draft", "isAutoSubmitted": True})

    sub = Submission.model_validate(
        {
            "student": "s1",
            "status": "submitted",
            "isAutoSubmitted": True,
            "autoSubmittedAt": "2024-01-10T00:00:01Z",
        }
    )
    assert sub.is_auto_submitted
    assert sub.auto_submitted_at is not None


def test_unknown_submission_status_is_rejected():
    with pytest.raises(ValidationError):
        Submission.model_validate({"student": "s1", "status": "graded"})


def test_task_accepts_server_payload():
    task = Task.model_validate(
        {
            "_id": "task9",
            "title": "Poster",
            "classroom": {"_id": "c1", "name": "Biology"},
            "teacher": "t1",
            "deadline": None,
            "maxSubmissions": 2,
            "attachments": [{"_id": "f1", "originalName": "brief.pdf", "mimetype": "application/pdf", "size": 12}],
            "status": "archived",
            "groupInteractionMessages": [
                {"sender": {"_id": "t1", "name": "Teacher One"}, "senderRole": "teacher", "message": "hi"}
            ],
        }
    )
    assert task.classroom_id == "c1"
    assert task.max_submissions == 2
    assert task.attachments[0].display_name == "brief.pdf"
    assert task.group_interaction_messages[0].sender.name == "Teacher One"


def test_max_submissions_must_be_positive():
    with pytest.raises(ValidationError):
        Task.model_validate({"_id": "x", "title": "t", "maxSubmissions": 0})


def test_my_submission_without_work():
    status = MySubmissionStatus.model_validate(
        {"taskId": "task1", "userId": "s1", "hasSubmission": False, "submission": None, "isOverdue": False}
    )
    assert not status.interaction_enabled


def test_student_id_agrees_with_classifier_helper():
    for student in ({"_id": "s1", "name": "Student One"}, "s1"):
        sub = Submission.model_validate({"student": student, "status": "draft"})
        assert sub.student_id == student_id_of(sub) == student_id_of(student) == "s1"

    blank = Submission.model_validate({"student": "", "status": "draft"})
    assert blank.student_id is None
    assert student_id_of(blank) is None


def test_classroom_id_for_populated_and_bare_links():
    populated = Task.model_validate({"_id": "t", "title": "x", "classroom": {"_id": "c1", "name": "Biology"}})
    bare = Task.model_validate({"_id": "t", "title": "x", "classroom": "c1"})
    missing = Task.model_validate({"_id": "t", "title": "x"})
    assert populated.classroom_id == bare.classroom_id == "c1"
    assert missing.classroom_id is None
