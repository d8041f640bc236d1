# Sanka Pulse - Business insights engine for small businesses
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Stage analyzers of the insight generation pipeline.

Each analyzer looks at one business domain of the shared ``AggregateStats``
snapshot, turns it into a natural-language analysis request and delegates
the reasoning to a ``Reasoner``. The answer is validated and returned as a
list of ``CandidateInsight`` objects.

Four analyzers are defined, always run in this order:

- sales     : top products, demand, bundling       (type "opportunity")
- customers : retention, segments, re-engagement   (type "tip")
- inventory : restocking, overstock, optimization  (type "alert")
- finance   : costs, margin, cash flow             (type "opportunity")

The category and type of the produced insights are fixed per analyzer and
are stamped by the pipeline; the reasoner only provides title, message,
action label and priority.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime

from .aggregator import AggregateStats
from .models import CandidateInsight, InsightCategory, InsightType
from .reasoning import INSIGHTS_RESPONSE_SCHEMA, Reasoner, parse_insights_response

LOW_STOCK_PROMPT_LIMIT = 5
OVERSTOCK_PROMPT_LIMIT = 3


def _money(value: float) -> str:
    return f"${value:.2f}"


def _units(value: float) -> str:
    # 2.0 -> "2", 2.5 -> "2.5"
    return f"{value:g}"


def _bullets(lines: list[str]) -> str:
    return "\n".join(f"- {line}" for line in lines)


def _window_label(stats: AggregateStats) -> str:
    """Human-readable recency window, e.g. "since 2025-01-01"."""
    start = stats.window_start
    if isinstance(start, datetime):
        return f"since {start:%Y-%m-%d %H:%M}"
    return f"since {start.isoformat()}"


# ---------------------------------------------------------------------------
# Prompt builders
# ---------------------------------------------------------------------------


def build_sales_prompt(stats: AggregateStats) -> str:
    top = _bullets(
        [
            f"{p.name}: {_units(p.quantity)} units sold, {_money(p.revenue)} revenue"
            for p in stats.top_products
        ]
    )
    return (
        "Analyze this sales data and provide actionable insights:\n"
        "\n"
        f"Top 5 Products ({_window_label(stats)}):\n"
        f"{top}\n"
        "\n"
        f"Total Products: {stats.product_count}\n"
        f"Total Sales: {stats.order_count} orders\n"
        f"Total Revenue: {_money(stats.revenue)}\n"
        "\n"
        "Provide 2-3 specific, actionable insights about:\n"
        "1. Which products to stock more of based on demand\n"
        "2. Forecasting and inventory recommendations\n"
        "3. Product bundling or promotion opportunities"
    )


def build_customer_prompt(stats: AggregateStats) -> str:
    top = _bullets(
        [
            f"{c.name}: {_money(c.total_spent or 0.0)} ({c.total_orders or 0} orders)"
            for c in stats.top_customers
        ]
    )
    return (
        "Analyze customer data and identify patterns:\n"
        "\n"
        f"Total Customers: {stats.customer_count}\n"
        f"VIP Customers: {stats.vip_count}\n"
        f"At-Risk Customers: {stats.at_risk_count}\n"
        f"Total Customer Lifetime Value: {_money(stats.customer_lifetime_value)}\n"
        "\n"
        "Top 5 Customers by Spend:\n"
        f"{top}\n"
        "\n"
        "Provide 2-3 specific insights about:\n"
        "1. Customer retention opportunities\n"
        "2. Targeted promotion suggestions for different customer segments\n"
        "3. Re-engagement strategies for at-risk customers"
    )


def build_inventory_prompt(stats: AggregateStats) -> str:
    low_stock = _bullets(
        [
            f"{p.name}: {p.stock_quantity} units "
            f"(threshold: {p.effective_low_stock_threshold})"
            for p in stats.low_stock_products[:LOW_STOCK_PROMPT_LIMIT]
        ]
    )
    overstock = _bullets(
        [
            f"{p.name}: {p.stock_quantity} units in stock"
            for p in stats.overstock_products[:OVERSTOCK_PROMPT_LIMIT]
        ]
    )
    return (
        "Analyze inventory situation:\n"
        "\n"
        f"Low Stock Products ({len(stats.low_stock_products)}):\n"
        f"{low_stock}\n"
        "\n"
        f"Potential Overstock ({len(stats.overstock_products)}):\n"
        f"{overstock}\n"
        "\n"
        f"Total Inventory Value: {_money(stats.inventory_value)}\n"
        "\n"
        "Provide 2-3 specific insights about:\n"
        "1. Urgent restocking needs and quantities\n"
        "2. Overstock reduction strategies\n"
        "3. Inventory optimization opportunities"
    )


def build_financial_prompt(stats: AggregateStats) -> str:
    categories = _bullets(
        [
            f"{category.replace('_', ' ')}: {_money(amount)}"
            for category, amount in stats.top_expense_categories
        ]
    )
    return (
        f"Analyze financial performance ({_window_label(stats)}):\n"
        "\n"
        f"Revenue: {_money(stats.revenue)}\n"
        f"Expenses: {_money(stats.total_expenses)}\n"
        f"Net Profit: {_money(stats.profit)}\n"
        f"Profit Margin: {stats.profit_margin:.1f}%\n"
        "\n"
        "Top Expense Categories:\n"
        f"{categories}\n"
        "\n"
        "Provide 2-3 specific insights about:\n"
        "1. Cost-saving opportunities in high-expense categories\n"
        "2. Profit margin improvement strategies\n"
        "3. Cash flow optimization recommendations"
    )


# ---------------------------------------------------------------------------
# Analyzers
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class StageAnalyzer:
    """
    One analysis stage of the pipeline.

    Attributes
    ----------
    category:
        Category stamped on every insight produced by this stage.
    insight_type:
        Type stamped on every insight produced by this stage.
    stage_label:
        Human-readable progress label shown while the stage runs.
    build_prompt:
        Builds the analysis request from the aggregate snapshot.
    """

    category: InsightCategory
    insight_type: InsightType
    stage_label: str
    build_prompt: Callable[[AggregateStats], str]

    def analyze(
        self, stats: AggregateStats, reasoner: Reasoner
    ) -> list[CandidateInsight]:
        """
        Run the stage against the reasoner.

        Raises:
            ReasonerError: if the reasoner fails.
            MalformedResponseError: if its answer does not match the contract.
        """
        prompt = self.build_prompt(stats)
        answer = reasoner.invoke(prompt, INSIGHTS_RESPONSE_SCHEMA)
        return parse_insights_response(answer)


SALES_ANALYZER = StageAnalyzer(
    category="sales",
    insight_type="opportunity",
    stage_label="Analyzing sales trends and top products...",
    build_prompt=build_sales_prompt,
)

CUSTOMER_ANALYZER = StageAnalyzer(
    category="customers",
    insight_type="tip",
    stage_label="Detecting customer purchasing patterns...",
    build_prompt=build_customer_prompt,
)

INVENTORY_ANALYZER = StageAnalyzer(
    category="inventory",
    insight_type="alert",
    stage_label="Checking inventory levels and forecasting...",
    build_prompt=build_inventory_prompt,
)

FINANCIAL_ANALYZER = StageAnalyzer(
    category="finance",
    insight_type="opportunity",
    stage_label="Analyzing financials and finding opportunities...",
    build_prompt=build_financial_prompt,
)

# Batch order of the generated insights.
ANALYZERS: tuple[StageAnalyzer, ...] = (
    SALES_ANALYZER,
    CUSTOMER_ANALYZER,
    INVENTORY_ANALYZER,
    FINANCIAL_ANALYZER,
)
