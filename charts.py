"""Chart payloads in the {labels, datasets} shape the charting sink consumes."""
from schemas import MonthlyTrend

# value -> (label, colour)
EXPENSE_CATEGORIES = {
    "food": ("Food & Dining", "#FF6384"),
    "transport": ("Transport", "#36A2EB"),
    "study": ("Education", "#FFCE56"),
    "entertainment": ("Entertainment", "#4BC0C0"),
    "shopping": ("Shopping", "#9966FF"),
    "health": ("Health", "#FF9F40"),
    "rent": ("Rent & Bills", "#FF6384"),
    "other": ("Other", "#C9CBCF"),
}
FALLBACK_COLOR = "#C9CBCF"


def pie_chart_data(category_breakdown: dict[str, float]) -> dict:
    """Expense share per category; empty and non-positive categories are left out."""
    rows = [
        (category, amount)
        for category, amount in category_breakdown.items()
        if isinstance(amount, (int, float)) and amount > 0
    ]
    if not rows:
        return {"labels": [], "datasets": []}
    return {
        "labels": [EXPENSE_CATEGORIES.get(c, (c, None))[0] for c, _ in rows],
        "datasets": [
            {
                "data": [amount for _, amount in rows],
                "backgroundColor": [
                    EXPENSE_CATEGORIES.get(c, (c, FALLBACK_COLOR))[1] for c, _ in rows
                ],
                "borderWidth": 2,
                "borderColor": "#fff",
            }
        ],
    }


def line_chart_data(trends: list[MonthlyTrend]) -> dict:
    """Income and expense lines over the months present in `trends`."""
    if not trends:
        return {"labels": [], "datasets": []}
    return {
        "labels": [t.month for t in trends],
        "datasets": [
            {
                "label": "Income",
                "data": [t.income for t in trends],
                "borderColor": "#4BC0C0",
                "backgroundColor": "rgba(75, 192, 192, 0.2)",
                "tension": 0.4,
            },
            {
                "label": "Expenses",
                "data": [t.expenses for t in trends],
                "borderColor": "#FF6384",
                "backgroundColor": "rgba(255, 99, 132, 0.2)",
                "tension": 0.4,
            },
        ],
    }
