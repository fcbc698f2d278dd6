import json
import logging
from typing import Any, Optional, Sequence, TypeVar

import httpx
from pydantic import BaseModel, TypeAdapter
from pydantic import ValidationError as SchemaError

from taskdesk.core.config import API_URL, REQUEST_TIMEOUT
from taskdesk.core.credentials import CredentialStore
from taskdesk.core.errors import FetchError, NetworkError, Unauthenticated
from taskdesk.core.logging_hooks import EVENT_HOOKS
from taskdesk.schemas.common import Upload
from taskdesk.schemas.interaction import GroupMessage, GroupThread, InteractionMessage, InteractionThread
from taskdesk.schemas.submission import MySubmissionStatus, SubmissionDraft
from taskdesk.schemas.task import RemarksResult, Task, TaskForm

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)

_task_list = TypeAdapter(list[Task])
_message_list = TypeAdapter(list[InteractionMessage])


def _error_message(response: httpx.Response, fallback: str) -> str:
    try:
        body = response.json()
    except ValueError:
        return fallback
    if isinstance(body, dict) and isinstance(body.get("message"), str) and body["message"]:
        return body["message"]
    return fallback


def _task_form_data(form: TaskForm) -> dict[str, str]:
    return {
        "title": form.title,
        "description": form.description,
        "classroom": form.classroom,
        "deadline": form.deadline.isoformat() if form.deadline else "",
        "instructions": form.instructions,
        "maxSubmissions": str(form.max_submissions),
    }


def _multipart(field: str, uploads: Sequence[Upload]) -> list[tuple]:
    return [u.as_multipart(field) for u in uploads]


class TaskApi:
    """REST client for the ``/tasks`` endpoints.

    Every call reads the bearer token from persisted storage first and fails
    with ``Unauthenticated`` without touching the network when there is none.
    Non-2xx answers become ``FetchError`` carrying the server's ``message``
    verbatim, or the per-operation fallback text.
    """

    def __init__(
        self,
        credentials: CredentialStore,
        base_url: str = API_URL,
        timeout: float = REQUEST_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._credentials = credentials
        self._client = httpx.AsyncClient(
            base_url=base_url,
            timeout=timeout,
            transport=transport,
            event_hooks=EVENT_HOOKS,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "TaskApi":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    def _auth_headers(self) -> dict[str, str]:
        token = self._credentials.get_token()
        if not token:
            logger.warning("No authentication token found in credential storage")
            raise Unauthenticated()
        return {"Authorization": f"Bearer {token}"}

    async def _request(self, method: str, path: str, fallback: str, **kwargs: Any) -> httpx.Response:
        headers = self._auth_headers()
        try:
            response = await self._client.request(method, path, headers=headers, **kwargs)
        except httpx.TimeoutException as exc:
            raise NetworkError(f"{fallback}: request timed out") from exc
        except httpx.RequestError as exc:
            raise NetworkError(f"{fallback}: {exc}") from exc

        if response.status_code == 401:
            raise Unauthenticated()
        if response.is_error:
            raise FetchError(_error_message(response, fallback), status_code=response.status_code)
        return response

    async def _json(self, method: str, path: str, fallback: str, **kwargs: Any) -> Any:
        response = await self._request(method, path, fallback, **kwargs)
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as exc:
            raise FetchError(fallback, status_code=response.status_code) from exc

    @staticmethod
    def _parse(model: type[M], payload: Any, fallback: str) -> M:
        try:
            return model.model_validate(payload)
        except SchemaError as exc:
            logger.error("Unexpected payload for %s: %s", model.__name__, exc)
            raise FetchError(fallback) from exc

    # tasks

    async def list_tasks(self, classroom_id: Optional[str] = None) -> list[Task]:
        fallback = "Failed to fetch tasks"
        params = {"classroom": classroom_id} if classroom_id else None
        payload = await self._json("GET", "/tasks", fallback, params=params)
        try:
            return _task_list.validate_python(payload or [])
        except SchemaError as exc:
            logger.error("Unexpected task list payload: %s", exc)
            raise FetchError(fallback) from exc

    async def count_tasks(self, classroom_id: Optional[str] = None) -> int:
        params = {"classroom": classroom_id} if classroom_id else None
        payload = await self._json("GET", "/tasks/count", "Failed to fetch task count", params=params)
        return int((payload or {}).get("count", 0))

    async def get_task(self, task_id: str) -> Task:
        fallback = "Failed to fetch task"
        payload = await self._json("GET", f"/tasks/{task_id}", fallback)
        return self._parse(Task, payload, fallback)

    async def create_task(self, form: TaskForm) -> Task:
        fallback = "Failed to create task"
        payload = await self._json(
            "POST",
            "/tasks",
            fallback,
            data=_task_form_data(form),
            files=_multipart("attachments", form.attachments),
        )
        return self._parse(Task, payload, fallback)

    async def update_task(self, task_id: str, form: TaskForm) -> Task:
        fallback = "Failed to update task"
        payload = await self._json(
            "PUT",
            f"/tasks/{task_id}",
            fallback,
            data=_task_form_data(form),
            files=_multipart("attachments", form.attachments),
        )
        return self._parse(Task, payload, fallback)

    async def delete_task(self, task_id: str) -> str:
        payload = await self._json("DELETE", f"/tasks/{task_id}", "Failed to delete task")
        return str((payload or {}).get("id") or task_id)

    # submissions

    async def get_my_submission(self, task_id: str) -> MySubmissionStatus:
        fallback = "Failed to fetch submission status"
        payload = await self._json("GET", f"/tasks/{task_id}/my-submission", fallback)
        return self._parse(MySubmissionStatus, payload, fallback)

    async def submit(self, task_id: str, draft: SubmissionDraft) -> Task:
        fallback = "Failed to submit task"
        payload = await self._json(
            "POST",
            f"/tasks/{task_id}/submit",
            fallback,
            data={
                "content": draft.content,
                "status": draft.status,
                "filesToRemove": json.dumps(draft.files_to_remove),
            },
            files=_multipart("files", draft.new_files),
        )
        return self._parse(Task, payload, fallback)

    async def discard_draft(self, task_id: str) -> Optional[str]:
        payload = await self._json("DELETE", f"/tasks/{task_id}/draft", "Failed to discard draft")
        return (payload or {}).get("message")

    async def set_remarks(self, task_id: str, student_id: str, remarks: str) -> Task:
        fallback = "Failed to set remarks"
        payload = await self._json(
            "POST",
            f"/tasks/{task_id}/submissions/{student_id}/remarks",
            fallback,
            json={"remarks": remarks},
        )
        return self._parse(RemarksResult, payload, fallback).task

    # private interactions

    async def get_interactions(self, task_id: str, student_id: Optional[str] = None) -> InteractionThread:
        fallback = "Failed to fetch interactions"
        params = {"studentId": student_id} if student_id else None
        payload = await self._json("GET", f"/tasks/{task_id}/interactions", fallback, params=params)
        return self._parse(InteractionThread, payload, fallback)

    async def post_interaction(self, task_id: str, message: str) -> list[InteractionMessage]:
        fallback = "Failed to post interaction"
        payload = await self._json("POST", f"/tasks/{task_id}/interactions", fallback, json={"message": message})
        return self._messages(payload, fallback)

    async def reply_interaction(self, task_id: str, student_id: str, message: str) -> list[InteractionMessage]:
        fallback = "Failed to reply"
        payload = await self._json(
            "POST",
            f"/tasks/{task_id}/interactions/reply",
            fallback,
            json={"studentId": student_id, "message": message},
        )
        return self._messages(payload, fallback)

    @staticmethod
    def _messages(payload: Any, fallback: str) -> list[InteractionMessage]:
        try:
            return _message_list.validate_python((payload or {}).get("messages") or [])
        except SchemaError as exc:
            raise FetchError(fallback) from exc

    # group interactions

    async def get_group_interactions(self, task_id: str) -> GroupThread:
        fallback = "Failed to fetch group interactions"
        payload = await self._json("GET", f"/tasks/{task_id}/group-interactions", fallback)
        return self._parse(GroupThread, payload, fallback)

    async def post_group_interaction(
        self,
        task_id: str,
        message: Optional[str] = None,
        attachments: Sequence[Upload] = (),
    ) -> Optional[GroupMessage]:
        fallback = "Failed to post group interaction"
        data = {"message": message} if message else {}
        payload = await self._json(
            "POST",
            f"/tasks/{task_id}/group-interactions",
            fallback,
            data=data,
            files=_multipart("attachments", attachments),
        )
        created = (payload or {}).get("message")
        if not isinstance(created, dict):
            return None
        return self._parse(GroupMessage, created, fallback)

    # files

    @staticmethod
    def _file_action(action: str) -> str:
        if action not in ("preview", "download"):
            raise ValueError(f"unknown file action: {action}")
        return action

    async def download_attachment(self, task_id: str, attachment_id: str, action: str = "download") -> bytes:
        response = await self._request(
            "GET", f"/tasks/{task_id}/attachments/{attachment_id}/{self._file_action(action)}", "Failed to fetch attachment"
        )
        return response.content

    async def download_submission_file(
        self, task_id: str, submission_id: str, file_id: str, action: str = "download"
    ) -> bytes:
        response = await self._request(
            "GET",
            f"/tasks/{task_id}/submissions/{submission_id}/files/{file_id}/{self._file_action(action)}",
            "Failed to fetch file",
        )
        return response.content
