from datetime import date, datetime

import pytest

from sanka_pulse.aggregator import aggregate
from sanka_pulse.analyzers import (
    ANALYZERS,
    CUSTOMER_ANALYZER,
    FINANCIAL_ANALYZER,
    INVENTORY_ANALYZER,
    SALES_ANALYZER,
    build_customer_prompt,
    build_financial_prompt,
    build_inventory_prompt,
    build_sales_prompt,
)
from sanka_pulse.models import Customer, Expense, Product, Sale, SaleItem
from sanka_pulse.reasoning import INSIGHTS_RESPONSE_SCHEMA, MalformedResponseError


class RecordingReasoner:
    def __init__(self, answer):
        self.answer = answer
        self.calls = []

    def invoke(self, prompt, response_schema):
        self.calls.append((prompt, response_schema))
        return self.answer


@pytest.fixture
def stats():
    products = [
        Product(id="p1", name="Widget", price=50.0, stock_quantity=20),
        Product(id="p2", name="Gizmo", price=5.0, stock_quantity=3, low_stock_threshold=5),
    ]
    customers = [
        Customer(id="c1", name="Ann", total_spent=250.0, total_orders=4, status="vip"),
        Customer(id="c2", name="Bob", total_spent=20.0, total_orders=1, status="at_risk"),
    ]
    sales = [
        Sale(
            id="s1",
            sale_date=date(2025, 1, 10),
            total_amount=100.0,
            items=(SaleItem(product_id="p1", product_name="Widget", quantity=2, total=100.0),),
        )
    ]
    expenses = [
        Expense(id="e1", expense_date=date(2025, 1, 5), amount=30.0, category="office_supplies"),
    ]
    return aggregate(sales, expenses, products, customers, date(2025, 1, 1))


def test_analyzers_order_and_tags():
    """Analyzers run sales, customers, inventory, finance with fixed types."""
    assert [a.category for a in ANALYZERS] == ["sales", "customers", "inventory", "finance"]
    assert SALES_ANALYZER.insight_type == "opportunity"
    assert CUSTOMER_ANALYZER.insight_type == "tip"
    assert INVENTORY_ANALYZER.insight_type == "alert"
    assert FINANCIAL_ANALYZER.insight_type == "opportunity"


def test_sales_prompt_lists_top_products(stats):
    prompt = build_sales_prompt(stats)

    assert "Widget: 2 units sold, $100.00 revenue" in prompt
    assert "Total Products: 2" in prompt
    assert "Total Sales: 1 orders" in prompt
    assert "Total Revenue: $100.00" in prompt


def test_prompts_describe_the_actual_window(stats):
    """Prompts state the recency window the snapshot was built with."""
    assert "Top 5 Products (since 2025-01-01):" in build_sales_prompt(stats)
    assert "Analyze financial performance (since 2025-01-01):" in build_financial_prompt(stats)
    assert "last 30 days" not in build_sales_prompt(stats)

    wider = aggregate([], [], [], [], datetime(2024, 11, 2, 9, 30))
    assert "(since 2024-11-02 09:30)" in build_sales_prompt(wider)


def test_customer_prompt_lists_segments(stats):
    prompt = build_customer_prompt(stats)

    assert "Total Customers: 2" in prompt
    assert "VIP Customers: 1" in prompt
    assert "At-Risk Customers: 1" in prompt
    assert "Total Customer Lifetime Value: $270.00" in prompt
    assert prompt.index("Ann: $250.00 (4 orders)") < prompt.index("Bob: $20.00 (1 orders)")


def test_inventory_prompt_lists_stock_signals(stats):
    prompt = build_inventory_prompt(stats)

    assert "Low Stock Products (1):" in prompt
    assert "Gizmo: 3 units (threshold: 5)" in prompt
    # Widget: 20 in stock, 2 sold in the window.
    assert "Potential Overstock (1):" in prompt
    assert "Widget: 20 units in stock" in prompt
    assert "Total Inventory Value: $1015.00" in prompt


def test_inventory_prompt_truncates_lists_but_keeps_counts():
    products = [
        Product(id=f"p{i}", name=f"Item {i}", stock_quantity=0) for i in range(1, 8)
    ]
    stats = aggregate([], [], products, [], date(2025, 1, 1))

    prompt = build_inventory_prompt(stats)

    assert "Low Stock Products (7):" in prompt
    assert "Item 5:" in prompt
    assert "Item 6:" not in prompt


def test_financial_prompt_formats_categories_and_margin(stats):
    prompt = build_financial_prompt(stats)

    assert "Revenue: $100.00" in prompt
    assert "Expenses: $30.00" in prompt
    assert "Net Profit: $70.00" in prompt
    assert "Profit Margin: 70.0%" in prompt
    assert "office supplies: $30.00" in prompt


def test_analyze_uses_reasoner_with_response_schema(stats):
    reasoner = RecordingReasoner(
        {"insights": [{"title": "Bundle", "message": "Pair Widget with Gizmo", "priority": "low"}]}
    )

    candidates = SALES_ANALYZER.analyze(stats, reasoner)

    assert len(reasoner.calls) == 1
    prompt, schema = reasoner.calls[0]
    assert prompt == build_sales_prompt(stats)
    assert schema == INSIGHTS_RESPONSE_SCHEMA
    assert candidates[0].title == "Bundle"
    assert candidates[0].priority == "low"


def test_analyze_rejects_malformed_answer(stats):
    reasoner = RecordingReasoner({"results": []})

    with pytest.raises(MalformedResponseError):
        FINANCIAL_ANALYZER.analyze(stats, reasoner)
