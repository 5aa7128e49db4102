"""HTTP gateway to the remote study backend.

One method per resource and query shape. Every method needs a logged-in
session; without one it returns an empty result and never touches the network.
"""
from typing import Any, Callable, NamedTuple, Optional, TypeVar
from urllib.parse import quote
import logging

import httpx

from auth import SessionContext
from config import DEFAULT_API_URL
from schemas import (
    ClassCreate,
    ClassEntry,
    ExamQARequest,
    ExamQASet,
    GoalCreate,
    Note,
    NoteCreate,
    NoteUpdate,
    StudyGoal,
    TaskCreate,
    TodoCreate,
    TodoItem,
    TodoUpdate,
    Transaction,
    TransactionCreate,
)
from transform import (
    to_class_entry,
    to_exam_qa,
    to_note,
    to_study_goal,
    to_todo,
    to_transaction,
    transform_all,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


class GatewayError(Exception):
    """A failed backend call: transport error, non-2xx status or unusable body."""

    def __init__(self, resource: str, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.resource = resource
        self.message = message
        self.status_code = status_code

    def __str__(self) -> str:
        return self.message


class Listing(NamedTuple):
    """A decoded list body. `malformed` bodies carry no items."""
    items: list
    malformed: bool = False


def decode_listing(resource: str, response: httpx.Response) -> Listing:
    try:
        data = response.json()
    except ValueError:
        logger.warning("%s: response body is not JSON; using an empty list", resource)
        return Listing([], malformed=True)
    if not isinstance(data, list):
        logger.warning("%s: expected a list, got %s; using an empty list",
                       resource, type(data).__name__)
        return Listing([], malformed=True)
    return Listing(data)


def _segment(value: str) -> str:
    return quote(str(value), safe="")


def _server_message(response: httpx.Response) -> Optional[str]:
    try:
        data = response.json()
    except ValueError:
        return None
    if isinstance(data, dict) and isinstance(data.get("message"), str):
        return data["message"]
    return None


class ApiGateway:
    def __init__(
        self,
        session: SessionContext,
        base_url: str = DEFAULT_API_URL,
        client: Optional[httpx.Client] = None,
    ):
        self.session = session
        self._owns_client = client is None
        self._client = client or httpx.Client(base_url=base_url)

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.close()

    @property
    def ready(self) -> bool:
        return self.session.is_authenticated

    # plumbing

    def _request(
        self,
        resource: str,
        method: str,
        path: str,
        failure: str,
        params: Optional[dict] = None,
        body: Optional[dict] = None,
    ) -> httpx.Response:
        headers = self.session.auth_headers()
        if body is not None:
            headers["Content-Type"] = "application/json"
        try:
            response = self._client.request(
                method, path, params=params, json=body, headers=headers
            )
        except httpx.HTTPError as exc:
            raise GatewayError(resource, f"{failure}: {exc}") from exc
        if not response.is_success:
            detail = _server_message(response)
            message = f"{failure}: {detail}" if detail else f"{failure} (HTTP {response.status_code})"
            raise GatewayError(resource, message, response.status_code)
        return response

    def _user_params(self, **extra) -> dict:
        return {"userId": self.session.user_id, **extra}

    def _list(
        self,
        resource: str,
        path: str,
        transform: Callable[[dict], T],
        failure: str,
    ) -> list[T]:
        if not self.ready:
            logger.debug("%s: no session, skipping fetch", resource)
            return []
        response = self._request(resource, "GET", path, failure, params=self._user_params())
        return transform_all(transform, decode_listing(resource, response).items)

    def _json(self, resource: str, response: httpx.Response) -> Any:
        try:
            return response.json()
        except ValueError as exc:
            raise GatewayError(resource, f"Unexpected response from {resource}") from exc

    def _item(
        self,
        resource: str,
        response: httpx.Response,
        transform: Callable[[dict], T],
    ) -> T:
        data = self._json(resource, response)
        if not isinstance(data, dict):
            raise GatewayError(resource, f"Unexpected response from {resource}")
        return transform(data)

    def _get_one(self, resource: str, path: str, transform: Callable[[dict], T], failure: str) -> Optional[T]:
        if not self.ready:
            return None
        return self._item(resource, self._request(resource, "GET", path, failure), transform)

    def _send(
        self,
        resource: str,
        method: str,
        path: str,
        failure: str,
        body: Optional[dict] = None,
    ) -> None:
        if not self.ready:
            logger.debug("%s: no session, skipping %s %s", resource, method, path)
            return None
        self._request(resource, method, path, failure, body=body)
        return None

    # notes

    def list_notes(self) -> list[Note]:
        return self._list("notes", "/notes", to_note, "Failed to fetch notes")

    def get_note(self, note_id: str) -> Optional[Note]:
        return self._get_one("notes", f"/notes/{_segment(note_id)}", to_note, "Failed to fetch note")

    def list_notes_by_category(self, category: str) -> list[Note]:
        return self._list(
            "notes", f"/notes/category/{_segment(category)}", to_note,
            "Failed to fetch notes by category",
        )

    def create_note(self, payload: NoteCreate) -> None:
        body = {"userId": self.session.user_id, **payload.to_wire()}
        return self._send("notes", "POST", "/notes", "Failed to create note", body)

    def update_note(self, note_id: str, payload: NoteUpdate) -> None:
        return self._send(
            "notes", "PATCH", f"/notes/{_segment(note_id)}", "Failed to update note",
            payload.to_wire(partial=True),
        )

    def update_note_status(self, note_id: str, status: str) -> None:
        return self._send(
            "notes", "PATCH", f"/notes/{_segment(note_id)}/status",
            "Failed to update note status", {"status": status},
        )

    def delete_note(self, note_id: str) -> None:
        return self._send("notes", "DELETE", f"/notes/{_segment(note_id)}", "Failed to delete note")

    # exam Q&A

    def list_exam_qa(self) -> list[ExamQASet]:
        return self._list("exam-qa", "/exam-qa", to_exam_qa, "Failed to fetch exam Q&As")

    def generate_exam_qa(self, payload: ExamQARequest) -> Optional[ExamQASet]:
        """Ask the backend to generate a Q&A set and return it."""
        if not self.ready:
            return None
        body = {"userId": self.session.user_id, **payload.to_wire()}
        response = self._request("exam-qa", "POST", "/exam-qa", "Failed to generate exam Q&A", body=body)
        return self._item("exam-qa", response, to_exam_qa)

    # class schedule

    def list_classes(self) -> list[ClassEntry]:
        return self._list("class-schedule", "/class-schedule", to_class_entry, "Failed to fetch classes")

    def get_class(self, class_id: str) -> Optional[ClassEntry]:
        return self._get_one(
            "class-schedule", f"/class-schedule/{_segment(class_id)}", to_class_entry,
            "Failed to fetch class",
        )

    def list_week(self) -> list[ClassEntry]:
        return self._list(
            "class-schedule", "/class-schedule/week", to_class_entry,
            "Failed to fetch weekly timetable",
        )

    def list_classes_by_day(self, day: str) -> list[ClassEntry]:
        return self._list(
            "class-schedule", f"/class-schedule/day/{_segment(day)}", to_class_entry,
            "Failed to fetch classes by day",
        )

    def list_classes_by_subject(self, subject: str) -> list[ClassEntry]:
        return self._list(
            "class-schedule", f"/class-schedule/subject/{_segment(subject)}", to_class_entry,
            "Failed to fetch classes by subject",
        )

    def list_classes_by_teacher(self, teacher: str) -> list[ClassEntry]:
        return self._list(
            "class-schedule", f"/class-schedule/teacher/{_segment(teacher)}", to_class_entry,
            "Failed to fetch classes by teacher",
        )

    def create_class(self, payload: ClassCreate) -> None:
        body = {"userId": self.session.user_id, **payload.to_wire()}
        return self._send("class-schedule", "POST", "/class-schedule", "Failed to create class", body)

    def update_class(self, class_id: str, payload: ClassCreate) -> None:
        return self._send(
            "class-schedule", "PUT", f"/class-schedule/{_segment(class_id)}",
            "Failed to update class", payload.to_wire(),
        )

    def delete_class(self, class_id: str) -> None:
        return self._send(
            "class-schedule", "DELETE", f"/class-schedule/{_segment(class_id)}",
            "Failed to delete class",
        )

    # study planner

    def list_goals(self) -> list[StudyGoal]:
        return self._list("study-planner", "/study-planner", to_study_goal, "Failed to fetch study goals")

    def create_goal(self, payload: GoalCreate) -> None:
        body = {"userId": self.session.user_id, **payload.to_wire()}
        return self._send("study-planner", "POST", "/study-planner", "Failed to create goal", body)

    def add_task(self, goal_id: str, payload: TaskCreate) -> None:
        return self._send(
            "study-planner", "PATCH", f"/study-planner/{_segment(goal_id)}",
            "Failed to add task", {"task": payload.to_wire()},
        )

    def set_task_completed(self, goal_id: str, task_id: str, completed: bool) -> None:
        return self._send(
            "study-planner", "PATCH", f"/study-planner/{_segment(goal_id)}",
            "Failed to update task", {"taskId": task_id, "isCompleted": completed},
        )

    def set_progress(self, goal_id: str, progress: Optional[float]) -> None:
        """Set the manual progress override; None clears it."""
        return self._send(
            "study-planner", "PATCH", f"/study-planner/{_segment(goal_id)}",
            "Failed to update progress", {"progress": progress},
        )

    def delete_goal(self, goal_id: str) -> None:
        return self._send(
            "study-planner", "DELETE", f"/study-planner/{_segment(goal_id)}", "Failed to delete goal",
        )

    def delete_task(self, goal_id: str, task_id: str) -> None:
        return self._send(
            "study-planner", "DELETE", f"/study-planner/{_segment(goal_id)}",
            "Failed to delete task", {"taskId": task_id},
        )

    def get_progress(self) -> Any:
        """Raw body of the progress summary; callers validate its shape."""
        if not self.ready:
            return None
        response = self._request(
            "study-planner", "GET", "/study-planner/progress", "Failed to fetch progress",
            params=self._user_params(),
        )
        return self._json("study-planner", response)

    # todo

    def list_todos(self) -> list[TodoItem]:
        return self._list("todo", "/todo", to_todo, "Failed to fetch todos")

    def get_todo(self, todo_id: str) -> Optional[TodoItem]:
        return self._get_one("todo", f"/todo/{_segment(todo_id)}", to_todo, "Failed to fetch todo")

    def list_todos_by_category(self, category: str) -> list[TodoItem]:
        return self._list(
            "todo", f"/todo/category/{_segment(category)}", to_todo,
            "Failed to fetch todos by category",
        )

    def create_todo(self, payload: TodoCreate) -> None:
        body = {"userId": self.session.user_id, **payload.to_wire()}
        return self._send("todo", "POST", "/todo", "Failed to create todo", body)

    def update_todo(self, todo_id: str, payload: TodoUpdate) -> None:
        return self._send(
            "todo", "PATCH", f"/todo/{_segment(todo_id)}", "Failed to update todo",
            payload.to_wire(partial=True),
        )

    def update_todo_status(self, todo_id: str, status: str) -> None:
        return self._send(
            "todo", "PATCH", f"/todo/{_segment(todo_id)}/status", "Failed to update todo status",
            {"status": status},
        )

    def delete_todo(self, todo_id: str) -> None:
        return self._send("todo", "DELETE", f"/todo/{_segment(todo_id)}", "Failed to delete todo")

    # budget

    def list_transactions(self) -> list[Transaction]:
        return self._list("budget", "/budget", to_transaction, "Failed to fetch transactions")

    def create_transaction(self, payload: TransactionCreate) -> None:
        body = {"userId": self.session.user_id, **payload.to_wire()}
        return self._send("budget", "POST", "/budget", "Failed to add transaction", body)

    def delete_transaction(self, transaction_id: str) -> None:
        return self._send(
            "budget", "DELETE", f"/budget/{_segment(transaction_id)}", "Failed to delete transaction",
        )

    def get_budget_summary(self) -> Any:
        """Raw body of the budget summary; callers validate its shape."""
        if not self.ready:
            return None
        response = self._request(
            "budget", "GET", "/budget/summary", "Failed to fetch budget summary",
            params=self._user_params(),
        )
        return self._json("budget", response)
