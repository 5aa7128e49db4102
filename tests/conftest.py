import datetime as dt
import json
import os
import sys
import pytest
import httpx
from fastapi import Depends
from fastapi.testclient import TestClient
from jose import jwt
from sqlmodel import SQLModel, create_engine
from sqlalchemy.pool import StaticPool

ROOT_DIR = os.path.dirname(os.path.dirname(__file__))
if ROOT_DIR not in sys.path:
    sys.path.insert(0, ROOT_DIR)

os.environ.setdefault("DASHBOARD_DATABASE_URL", "sqlite://")

from auth import SessionContext  # noqa: E402
from gateway import ApiGateway  # noqa: E402
from main import app, get_current_session, get_engine, get_gateway  # noqa: E402
from schemas import UserProfile  # noqa: E402

BASE_URL = "http://backend.test/api/v1"
USER_ID = "user-1"

# path segment -> record field used by the filtered list routes
FILTER_FIELDS = {"category": "category", "day": "day", "subject": "subject", "teacher": "teacher"}


class FakeBackend:
    """In-process stand-in for the remote REST API, served through httpx.MockTransport.

    - `data` holds the raw server records per resource
    - `failures[resource] = status` makes every call on that resource fail
    - `malformed` lists resources whose list routes answer with a non-list body
    """

    def __init__(self):
        self.data = {
            "notes": [],
            "exam-qa": [],
            "class-schedule": [],
            "study-planner": [],
            "todo": [],
            "budget": [],
        }
        self.summary = None
        self.progress = None
        self.failures = {}
        self.malformed = set()
        self.requests = []
        self._next_id = 0
        self.transport = httpx.MockTransport(self.handle)

    def new_id(self, resource):
        self._next_id += 1
        return f"{resource}-{self._next_id}"

    def add(self, resource, **record):
        record.setdefault("_id", self.new_id(resource))
        record.setdefault("createdAt", "2025-01-01T09:00:00")
        self.data[resource].append(record)
        return record

    def find(self, resource, record_id):
        return next((r for r in self.data[resource] if r["_id"] == record_id), None)

    def calls(self, method, path):
        return [
            r for r in self.requests
            if r.method == method and r.url.path == "/api/v1" + path
        ]

    def handle(self, request):
        self.requests.append(request)
        parts = request.url.path[len("/api/v1/"):].strip("/").split("/")
        resource = parts[0]
        if resource in self.failures:
            return httpx.Response(self.failures[resource], json={"message": "Backend unavailable"})
        body = json.loads(request.content) if request.content else None
        if request.method == "GET":
            return self._get(resource, parts[1:])
        if request.method == "POST":
            return self._create(resource, body)
        record = self.find(resource, parts[1]) if len(parts) > 1 else None
        if record is None:
            return httpx.Response(404, json={"message": "Not found"})
        if request.method == "DELETE":
            if body and "taskId" in body:
                record["tasks"] = [t for t in record["tasks"] if t["_id"] != body["taskId"]]
            else:
                self.data[resource].remove(record)
            return httpx.Response(200, json={"message": "Deleted"})
        if request.method == "PATCH" and resource == "study-planner":
            self._patch_goal(record, body)
        else:
            record.update(body or {})
        return httpx.Response(200, json=record)

    def _get(self, resource, rest):
        rows = self.data[resource]
        if rest and rest[0] == "summary":
            return httpx.Response(200, json=self.summary) if self.summary is not None \
                else httpx.Response(404, json={"message": "No summary"})
        if rest and rest[0] == "progress":
            return httpx.Response(200, json=self.progress) if self.progress is not None \
                else httpx.Response(404, json={"message": "No progress"})
        if not rest or rest[0] == "week" or rest[0] in FILTER_FIELDS and len(rest) == 2:
            if resource in self.malformed:
                return httpx.Response(200, json={"error": "unexpected"})
            if rest and rest[0] in FILTER_FIELDS:
                rows = [r for r in rows if r.get(FILTER_FIELDS[rest[0]]) == rest[1]]
            return httpx.Response(200, json=rows)
        record = self.find(resource, rest[0])
        if record is None:
            return httpx.Response(404, json={"message": "Not found"})
        return httpx.Response(200, json=record)

    def _create(self, resource, body):
        record = dict(body or {})
        if resource == "exam-qa":
            record["questions"] = [
                {"_id": self.new_id("q"), "question": f"What is {body['topic']}?", "answer": "..."},
                {"_id": self.new_id("q"), "question": f"Explain {body['topic']}.", "answer": "..."},
            ]
        if resource == "study-planner":
            record.setdefault("tasks", [])
        record["createdAt"] = dt.datetime(2025, 6, 1, 12, 0).isoformat()
        record = self.add(resource, **record)
        return httpx.Response(201, json=record)

    def _patch_goal(self, goal, body):
        if "task" in body:
            task = {"_id": self.new_id("task"), "isCompleted": False, **body["task"]}
            goal.setdefault("tasks", []).append(task)
        elif "taskId" in body:
            for task in goal.get("tasks", []):
                if task["_id"] == body["taskId"]:
                    task["isCompleted"] = body["isCompleted"]
        elif "progress" in body:
            if body["progress"] is None:
                goal.pop("progress", None)
            else:
                goal["progress"] = body["progress"]


@pytest.fixture
def backend():
    return FakeBackend()


@pytest.fixture
def session_ctx():
    return SessionContext(
        token="test-token",
        user=UserProfile(id=USER_ID, name="sam", email="sam@example.com"),
    )


@pytest.fixture
def gateway(backend, session_ctx):
    http = httpx.Client(transport=backend.transport, base_url=BASE_URL)
    yield ApiGateway(session_ctx, client=http)
    http.close()


@pytest.fixture
def engine():
    test_engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(test_engine)
    yield test_engine
    SQLModel.metadata.drop_all(test_engine)


@pytest.fixture
def make_token():
    """Build an unsigned-for-our-purposes JWT carrying the given claims."""
    def _make(**claims):
        claims.setdefault("id", USER_ID)
        claims.setdefault("email", "sam@example.com")
        claims.setdefault("exp", int((dt.datetime.now(dt.timezone.utc) + dt.timedelta(hours=1)).timestamp()))
        return jwt.encode(claims, "backend-secret", algorithm="HS256")
    return _make


@pytest.fixture(scope="function")
def client(engine, backend):
    """TestClient wired to the in-memory store and the fake backend."""

    def override_get_engine():
        return engine

    def override_get_gateway(ctx: SessionContext = Depends(get_current_session)):
        http = httpx.Client(transport=backend.transport, base_url=BASE_URL)
        try:
            yield ApiGateway(ctx, client=http)
        finally:
            http.close()

    app.dependency_overrides[get_engine] = override_get_engine
    app.dependency_overrides[get_gateway] = override_get_gateway

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


@pytest.fixture
def logged_in(client, make_token):
    """Log the TestClient in and return the token used."""
    token = make_token()
    res = client.post("/session", json={"token": token})
    assert res.status_code == 200
    return token
