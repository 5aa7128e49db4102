from charts import EXPENSE_CATEGORIES, FALLBACK_COLOR, line_chart_data, pie_chart_data
from schemas import MonthlyTrend


def test_pie_chart_uses_category_labels_and_colours():
    data = pie_chart_data({"food": 15.5, "transport": 5.0})
    assert data["labels"] == ["Food & Dining", "Transport"]
    dataset = data["datasets"][0]
    assert dataset["data"] == [15.5, 5.0]
    assert dataset["backgroundColor"] == [
        EXPENSE_CATEGORIES["food"][1],
        EXPENSE_CATEGORIES["transport"][1],
    ]


def test_pie_chart_skips_empty_categories_and_keeps_unknown_ones():
    data = pie_chart_data({"food": 0, "gaming": 12.0})
    assert data["labels"] == ["gaming"]
    assert data["datasets"][0]["backgroundColor"] == [FALLBACK_COLOR]


def test_pie_chart_empty():
    assert pie_chart_data({}) == {"labels": [], "datasets": []}


def test_line_chart_has_income_and_expense_series():
    trends = [
        MonthlyTrend(month="2025-01", income=100.0, expenses=40.0),
        MonthlyTrend(month="2025-02", income=0.0, expenses=12.5),
    ]
    data = line_chart_data(trends)
    assert data["labels"] == ["2025-01", "2025-02"]
    assert [d["label"] for d in data["datasets"]] == ["Income", "Expenses"]
    assert data["datasets"][0]["data"] == [100.0, 0.0]
    assert data["datasets"][1]["data"] == [40.0, 12.5]


def test_line_chart_empty():
    assert line_chart_data([]) == {"labels": [], "datasets": []}
