import pytest

from taskdesk.core.errors import FetchError, InteractionNotAllowed, ValidationError
from taskdesk.schemas.common import Upload
from taskdesk.store.threads import GroupPostStrategy
from tests.conftest import login_as

pytestmark = pytest.mark.anyio


def submitted(backend, student_id, task_id="task1"):
    sub = {"_id": backend.new_id("sub"), "student": student_id, "status": "submitted",
           "content": "final", "interactionMessages": []}
    backend.tasks[task_id]["submissions"].append(sub)
    return sub


def drafted(backend, student_id, task_id="task1"):
    sub = {"_id": backend.new_id("sub"), "student": student_id, "status": "draft", "content": "wip"}
    backend.tasks[task_id]["submissions"].append(sub)
    return sub


def welcome(backend, task_id="task1"):
    backend.tasks[task_id]["groupInteractionMessages"].append(
        {"_id": "g0", "sender": "t1", "senderRole": "teacher", "message": "Welcome", "attachments": []}
    )


async def test_private_thread_round_trip(store, threads, backend, credentials, as_student):
    submitted(backend, "s1")
    await store.load_tasks()

    messages = await threads.post_private("task1", "  Could you check my intro?  ")
    assert [m.message for m in messages] == ["Could you check my intro?"]
    assert store.submission_for("task1").interaction_messages[0].sender_role == "student"

    login_as(credentials, "t1")
    messages = await threads.reply_private("task1", "s1", "Looks good")
    assert [m.sender_role for m in messages] == ["student", "teacher"]
    assert len(store.submission_for("task1", "s1").interaction_messages) == 2

    thread = await threads.fetch_private("task1", "s1")
    assert thread.student_id == "s1"
    assert [m.message for m in thread.messages] == ["Could you check my intro?", "Looks good"]


async def test_student_fetches_own_private_thread(store, threads, backend, as_student):
    sub = submitted(backend, "s1")
    sub["interactionMessages"].append(
        {"_id": "m1", "sender": "t1", "senderRole": "teacher", "message": "Nice start"}
    )
    await store.load_tasks()

    thread = await threads.fetch_private("task1")

    assert thread.interaction_enabled
    assert [m.message for m in thread.messages] == ["Nice start"]
    assert store.submission_for("task1").interaction_messages[0].id == "m1"


async def test_drafts_cannot_interact(store, threads, backend, as_student):
    drafted(backend, "s1")
    await store.load_tasks()
    before = len(backend.requests)

    assert threads.can_participate("task1") is False
    with pytest.raises(InteractionNotAllowed):
        await threads.post_private("task1", "hello?")
    with pytest.raises(InteractionNotAllowed):
        await threads.post_group("task1", "hello everyone")

    assert len(backend.requests) == before


async def test_uncached_task_defers_to_server(threads, backend, as_student):
    drafted(backend, "s1")
    assert threads.can_participate("task1") is None

    with pytest.raises(FetchError) as exc:
        await threads.post_private("task1", "hello?")
    assert exc.value.status_code == 403
    assert exc.value.message == "Interactions available only after submission"

    with pytest.raises(FetchError) as exc:
        await threads.fetch_group("task1")
    assert exc.value.message == "You must submit this task before participating in group discussions"


async def test_empty_messages_are_not_sent(threads, backend, as_student):
    with pytest.raises(ValidationError) as exc:
        await threads.post_private("task1", "   ")
    assert exc.value.message == "Message is required"

    with pytest.raises(ValidationError):
        await threads.reply_private("task1", "s1", "")

    with pytest.raises(ValidationError) as exc:
        await threads.post_group("task1", " ")
    assert exc.value.message == "Message or attachment is required"

    assert backend.requests == []


async def test_group_post_appends_exactly_one_message(store, threads, backend, as_student):
    submitted(backend, "s1")
    welcome(backend)
    await store.load_tasks()

    created = await threads.post_group("task1", "Hi all")

    assert created.message == "Hi all"
    assert created.sender.name == "Student One"
    thread = store.get_task("task1").group_interaction_messages
    assert [m.message for m in thread] == ["Welcome", "Hi all"]
    assert backend.count("GET", "/api/tasks/task1/group-interactions") == 0

    fetched = await threads.fetch_group("task1")
    assert [m.id for m in fetched.messages] == [m.id for m in thread]
    assert fetched.submitted_students == 1


async def test_appending_a_known_message_is_a_no_op(store, threads, backend, as_student):
    submitted(backend, "s1")
    await store.load_tasks()
    created = await threads.post_group("task1", "once")

    assert not store.append_group_message("task1", created, store.begin_write())
    assert len(store.get_task("task1").group_interaction_messages) == 1


async def test_group_post_with_refetch(store, threads, backend, credentials, as_student):
    submitted(backend, "s1")
    submitted(backend, "s2")
    welcome(backend)
    await store.load_tasks()

    login_as(credentials, "s2")
    await threads.post_group("task1", "From s2")
    login_as(credentials, "s1")
    await threads.post_group("task1", "From s1", strategy=GroupPostStrategy.REFETCH)

    thread = store.get_task("task1").group_interaction_messages
    assert [m.message for m in thread] == ["Welcome", "From s2", "From s1"]
    assert backend.count("GET", "/api/tasks/task1/group-interactions") == 1


async def test_attachment_only_group_post(store, threads, backend, as_student):
    submitted(backend, "s1")
    await store.load_tasks()

    created = await threads.post_group("task1", attachments=[Upload(filename="chart.png", content=b"png")])
    assert created.message == ""
    assert created.attachments[0].original_name == "chart.png"

    too_many = [Upload(filename=f"{i}.png", content=b"png") for i in range(6)]
    with pytest.raises(ValidationError):
        await threads.post_group("task1", "look", attachments=too_many)


async def test_teacher_always_participates(threads, backend, as_teacher):
    assert threads.can_participate("task1") is True

    created = await threads.post_group("task1", "Reminder: cite sources")

    assert created.sender_role == "teacher"
    assert backend.tasks["task1"]["groupInteractionMessages"][0]["message"] == "Reminder: cite sources"
