# Sanka Pulse - Business insights engine for small businesses
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Financial period summaries.

The Financials view reports revenue, expenses, profit, profit margin and
the top expense categories over one of three periods ending now:

- ``today`` : since the start of the day of ``now``,
- ``week``  : since the start of the day seven days before ``now``,
- ``month`` : since the first day of the month of ``now``.

The reductions are the same as the aggregator's windowed financial totals,
so a period summary and an aggregate snapshot over the same start always
agree.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Literal

from .aggregator import (
    _amount,
    _expenses_by_category,
    _top_expense_categories,
    profit_margin,
    window_mask,
)
from .models import Expense, Sale
from .pulse import WEEK_DAYS

Period = Literal["today", "week", "month"]

PERIODS: tuple[str, ...] = ("today", "week", "month")
DEFAULT_PERIOD: Period = "week"


@dataclass(frozen=True)
class PeriodSummary:
    """
    Financial totals over a reporting period.

    Attributes
    ----------
    period:
        One of "today", "week", "month".
    start:
        Inclusive start date of the period.
    order_count:
        Number of sales in the period.
    revenue, expenses, profit:
        Period totals; ``profit = revenue - expenses``.
    profit_margin:
        Percentage rounded to one decimal, 0.0 without revenue.
    expenses_by_category:
        Expense totals per category, in order of first appearance.
    top_expense_categories:
        Top five ``(category, amount)`` pairs by amount.
    """

    period: Period
    start: date
    order_count: int
    revenue: float
    expenses: float
    profit: float
    profit_margin: float
    expenses_by_category: dict[str, float]
    top_expense_categories: tuple[tuple[str, float], ...]


def period_start(now: date | datetime, period: Period = DEFAULT_PERIOD) -> date:
    """
    Return the inclusive start date of a reporting period.

    Raises:
        ValueError: if the period is unknown.
    """
    today = now.date() if isinstance(now, datetime) else now
    if period == "today":
        return today
    if period == "week":
        return today - timedelta(days=WEEK_DAYS)
    if period == "month":
        return today.replace(day=1)
    raise ValueError(
        f"Unknown period: {period!r}. Expected one of: {', '.join(PERIODS)}."
    )


def compute_period_summary(
    sales: Sequence[Sale],
    expenses: Sequence[Expense],
    now: date | datetime,
    period: Period = DEFAULT_PERIOD,
) -> PeriodSummary:
    """Compute revenue, expenses, profit and top expense categories for a period."""
    start = period_start(now, period)

    period_sales = [
        s for s, keep in zip(sales, window_mask([s.sale_date for s in sales], start)) if keep
    ]
    period_expenses = [
        e
        for e, keep in zip(
            expenses, window_mask([e.expense_date for e in expenses], start)
        )
        if keep
    ]

    revenue = float(sum(_amount(s.total_amount) for s in period_sales))
    total_expenses = float(sum(_amount(e.amount) for e in period_expenses))
    profit = revenue - total_expenses
    by_category = _expenses_by_category(period_expenses)

    return PeriodSummary(
        period=period,
        start=start,
        order_count=len(period_sales),
        revenue=revenue,
        expenses=total_expenses,
        profit=profit,
        profit_margin=profit_margin(revenue, profit),
        expenses_by_category=by_category,
        top_expense_categories=_top_expense_categories(by_category),
    )
