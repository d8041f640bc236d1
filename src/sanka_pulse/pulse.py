# Sanka Pulse - Business insights engine for small businesses
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Pulse dashboard metrics.

The Pulse dashboard shows a handful of quick metrics next to the insight
feed. They are simple reductions over the raw records:

- today's revenue and order count (sales dated today or later),
- week profit (7-day revenue minus 7-day expenses),
- number of products at or below their low-stock threshold, whatever
  their status,
- customer and VIP counts,
- total inventory value.

Like the pipeline, these helpers never read the clock: ``now`` is passed
explicitly.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import date, datetime, timedelta

from .aggregator import inventory_value, window_mask
from .models import Customer, Expense, Product, Sale

WEEK_DAYS = 7


@dataclass(frozen=True)
class PulseMetrics:
    """Quick metrics displayed on the Pulse dashboard."""

    greeting: str
    today_revenue: float
    today_orders: int
    week_revenue: float
    week_expenses: float
    week_profit: float
    low_stock_count: int
    customer_count: int
    vip_count: int
    inventory_value: float

    @property
    def week_on_track(self) -> bool:
        return self.week_profit > 0


def greeting_for(now: date | datetime) -> str:
    """Time-of-day greeting ("Good morning", "Good afternoon", "Good evening")."""
    hour = now.hour if isinstance(now, datetime) else 0
    if hour < 12:
        return "Good morning"
    if hour < 18:
        return "Good afternoon"
    return "Good evening"


def compute_pulse_metrics(
    sales: Sequence[Sale],
    expenses: Sequence[Expense],
    products: Sequence[Product],
    customers: Sequence[Customer],
    now: date | datetime,
) -> PulseMetrics:
    """Compute the Pulse dashboard metrics at ``now``."""
    today = now.date() if isinstance(now, datetime) else now
    week_ago = today - timedelta(days=WEEK_DAYS)

    today_sales = [
        s for s, keep in zip(sales, window_mask([s.sale_date for s in sales], today)) if keep
    ]
    week_sales = [
        s
        for s, keep in zip(sales, window_mask([s.sale_date for s in sales], week_ago))
        if keep
    ]
    week_expenses_list = [
        e
        for e, keep in zip(
            expenses, window_mask([e.expense_date for e in expenses], week_ago)
        )
        if keep
    ]

    today_revenue = float(sum(s.total_amount or 0.0 for s in today_sales))
    week_revenue = float(sum(s.total_amount or 0.0 for s in week_sales))
    week_expenses = float(sum(e.amount or 0.0 for e in week_expenses_list))

    return PulseMetrics(
        greeting=greeting_for(now),
        today_revenue=today_revenue,
        today_orders=len(today_sales),
        week_revenue=week_revenue,
        week_expenses=week_expenses,
        week_profit=week_revenue - week_expenses,
        low_stock_count=sum(1 for p in products if p.is_low_stock),
        customer_count=len(customers),
        vip_count=sum(1 for c in customers if c.status == "vip"),
        inventory_value=inventory_value(products),
    )
