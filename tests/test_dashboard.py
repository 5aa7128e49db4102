import datetime as dt
from decimal import Decimal

import httpx
import pytest

from auth import SessionContext
from conftest import BASE_URL
from dashboard import fetch_dashboard_data, newest_first
from gateway import ApiGateway, GatewayError
from schemas import Note

# 2025-05-14 is a Wednesday
NOW = dt.datetime(2025, 5, 14, 10, 0)


def seed(backend):
    for i in range(5):
        backend.add(
            "study-planner",
            goalTitle=f"Goal {i}",
            tasks=[{"_id": f"t{i}a", "isCompleted": True}, {"_id": f"t{i}b", "isCompleted": i % 2 == 0}],
            createdAt=f"2025-01-0{i + 1}T08:00:00",
        )
    for i in range(7):
        backend.add(
            "todo",
            title=f"Todo {i}",
            status="completed" if i < 3 else "pending",
            createdAt=f"2025-02-0{i + 1}T08:00:00",
        )
    for day, start in [("Monday", "09:00"), ("Wednesday", "08:00"), ("Wednesday", "14:00"),
                       ("Thursday", "09:00"), ("Friday", "11:00")]:
        backend.add("class-schedule", subject=f"{day} {start}", day=day, startTime=start)
    backend.add("budget", amount=200, type="income", category="salary", createdAt="2025-03-01T00:00:00")
    backend.add("budget", amount="45.50", type="expense", category="food", createdAt="2025-03-02T00:00:00")
    backend.add("budget", amount=100, type="expense", category="rent", createdAt="2025-03-03T00:00:00")
    for i in range(4):
        backend.add("notes", title=f"Note {i}", createdAt=f"2025-04-0{i + 1}T08:00:00")


def test_dashboard_stats(backend, gateway):
    seed(backend)

    data = fetch_dashboard_data(gateway, Decimal("1000"), now=NOW)

    # goals 0, 2, 4 have both tasks done; 1 and 3 have one
    assert data.stats.study_hours == 8
    assert data.stats.completed_tasks == 3
    assert data.stats.budget_remaining == 854.5
    assert data.stats.overall_progress == pytest.approx((100 + 50 + 100 + 50 + 100) / 5)


def test_dashboard_recent_slices_are_newest_first(backend, gateway):
    seed(backend)

    data = fetch_dashboard_data(gateway, Decimal("1000"), now=NOW)

    assert [g.title for g in data.recent_goals] == ["Goal 4", "Goal 3", "Goal 2"]
    assert [t.title for t in data.recent_todos] == ["Todo 6", "Todo 5", "Todo 4", "Todo 3", "Todo 2"]
    assert [t.category for t in data.recent_transactions] == ["rent", "food", "salary"]
    assert [n.title for n in data.recent_notes] == ["Note 3", "Note 2", "Note 1"]


def test_dashboard_upcoming_classes_follow_the_week_from_now(backend, gateway):
    seed(backend)

    data = fetch_dashboard_data(gateway, Decimal("1000"), now=NOW)

    assert [c.subject for c in data.upcoming_classes] == [
        "Wednesday 14:00", "Thursday 09:00", "Friday 11:00",
    ]


def test_dashboard_empty_backend(gateway):
    data = fetch_dashboard_data(gateway, Decimal("250"), now=NOW)
    assert data.stats.budget_remaining == 250.0
    assert data.stats.overall_progress == 0
    assert data.recent_goals == []


def test_dashboard_requires_a_session(backend):
    gateway = ApiGateway(
        SessionContext(), client=httpx.Client(transport=backend.transport, base_url=BASE_URL)
    )
    with pytest.raises(GatewayError):
        fetch_dashboard_data(gateway)
    assert backend.requests == []


def test_any_failed_fetch_fails_the_dashboard(backend, gateway):
    seed(backend)
    backend.failures["notes"] = 500

    with pytest.raises(GatewayError) as exc_info:
        fetch_dashboard_data(gateway, now=NOW)

    assert str(exc_info.value) == "Failed to fetch dashboard data"
    assert exc_info.value.resource == "dashboard"


def test_malformed_collection_counts_as_empty(backend, gateway):
    seed(backend)
    backend.malformed.add("budget")

    data = fetch_dashboard_data(gateway, Decimal("1000"), now=NOW)

    assert data.stats.budget_remaining == 1000.0
    assert data.recent_transactions == []


def test_newest_first_puts_undated_last():
    notes = [
        Note(id="undated"),
        Note(id="old", created_at=dt.datetime(2025, 1, 1)),
        Note(id="new", created_at=dt.datetime(2025, 2, 1)),
    ]
    assert [n.id for n in newest_first(notes)] == ["new", "old", "undated"]
