# Sanka Pulse - Business insights engine for small businesses
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Data aggregation for the insight generation pipeline.

This module reduces the raw business records (sales, expenses, products,
customers) into a single immutable ``AggregateStats`` snapshot. The snapshot
is computed once per pipeline run and shared by every stage analyzer.

Windowing
---------
Sales and expenses are restricted to a recency window: only records dated
on or after ``window_start`` contribute to revenue, expenses, profit, top
products and expense categories. Products and customers are not windowed:
inventory value, stock checks and customer counters always use the full
collections. Overstock detection deliberately compares the *windowed* unit
sales of a product against its *current* stock level.

Ordering
--------
All "top N" lists are sorted in descending order with a stable sort, so
records with equal values keep their original relative order (order of
first appearance for per-product and per-category aggregates).

The aggregation is a pure function: inputs are never mutated and the result
only depends on the arguments.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import date, datetime, timedelta

import pandas as pd

from .models import Customer, Expense, Product, Sale

DEFAULT_WINDOW_DAYS = 30
TOP_PRODUCTS_LIMIT = 5
TOP_EXPENSE_CATEGORIES_LIMIT = 5
TOP_CUSTOMERS_LIMIT = 5
# A product is overstocked when it holds more than this many times its
# recent unit sales.
OVERSTOCK_FACTOR = 3
DEFAULT_EXPENSE_CATEGORY = "other"


@dataclass(frozen=True)
class ProductSales:
    """Windowed sales of a single product."""

    product_id: str
    name: str
    quantity: float
    revenue: float


@dataclass(frozen=True)
class AggregateStats:
    """
    Immutable aggregate snapshot shared by all stage analyzers.

    Attributes
    ----------
    window_start:
        Inclusive lower bound applied to sale and expense dates (a date
        bound starts at midnight).
    product_count, customer_count:
        Sizes of the (non-windowed) product and customer collections.
    order_count:
        Number of windowed sales.
    revenue, total_expenses, profit:
        Windowed totals; ``profit = revenue - total_expenses``.
    profit_margin:
        ``profit / revenue`` as a percentage rounded to one decimal, or 0.0
        when revenue is not positive.
    product_sales:
        Per-product windowed sales, in order of first appearance.
    top_products:
        Top products by windowed revenue.
    expenses_by_category:
        Windowed expense totals per category, in order of first appearance.
    top_expense_categories:
        Top ``(category, amount)`` pairs by amount.
    low_stock_products:
        Active products at or below their low-stock threshold.
    overstock_products:
        Products with recent sales whose stock exceeds
        ``OVERSTOCK_FACTOR`` times their windowed unit sales.
    inventory_value:
        Sum of ``price * stock_quantity`` over all products.
    vip_count, at_risk_count:
        Number of customers with status "vip" / "at_risk".
    customer_lifetime_value:
        Sum of ``total_spent`` over all customers.
    top_customers:
        Top customers by lifetime spend.
    """

    window_start: date | datetime
    product_count: int
    order_count: int
    revenue: float
    total_expenses: float
    profit: float
    profit_margin: float
    product_sales: tuple[ProductSales, ...]
    top_products: tuple[ProductSales, ...]
    expenses_by_category: dict[str, float]
    top_expense_categories: tuple[tuple[str, float], ...]
    low_stock_products: tuple[Product, ...]
    overstock_products: tuple[Product, ...]
    inventory_value: float
    customer_count: int
    vip_count: int
    at_risk_count: int
    customer_lifetime_value: float
    top_customers: tuple[Customer, ...]

    def units_sold(self, product_id: str) -> float:
        """Windowed unit sales of a product (0.0 if it has no recent sales)."""
        for entry in self.product_sales:
            if entry.product_id == product_id:
                return entry.quantity
        return 0.0


def default_window_start(
    now: date | datetime, days: int = DEFAULT_WINDOW_DAYS
) -> date:
    """
    Return the start of the trailing recency window.

    The window starts at the beginning of the day ``days`` days before
    ``now`` (for example, 30 days before today at midnight).
    """
    if days < 0:
        raise ValueError("Window length in days cannot be negative.")
    today = now.date() if isinstance(now, datetime) else now
    return today - timedelta(days=days)


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _to_timestamp(value: date | datetime) -> pd.Timestamp:
    """Convert a date-like value to a naive pandas Timestamp."""
    ts = pd.Timestamp(value)
    if ts.tzinfo is not None:
        ts = ts.tz_convert(None)
    return ts


def window_mask(
    dates: Sequence[date | datetime], window_start: date | datetime
) -> list[bool]:
    """
    Return a keep/drop flag per date, keeping dates >= window_start.

    A ``date`` bound starts at midnight; a ``datetime`` bound is compared
    with its time of day.
    """
    if not dates:
        return []
    stamps = pd.Series([_to_timestamp(d) for d in dates], dtype="datetime64[ns]")
    return list(stamps >= _to_timestamp(window_start))


def _amount(value) -> float:
    """Coerce an optional numeric field to float (missing values count as 0)."""
    if value is None:
        return 0.0
    try:
        if pd.isna(value):
            return 0.0
    except TypeError:
        pass
    return float(value)


def _aggregate_product_sales(sales: Sequence[Sale]) -> tuple[ProductSales, ...]:
    """Accumulate quantity and revenue per product over all sale line items."""
    rows = [
        {
            "product_id": str(item.product_id),
            "product_name": item.product_name,
            "quantity": _amount(item.quantity),
            "total": _amount(item.total),
        }
        for sale in sales
        for item in (sale.items or ())
    ]
    if not rows:
        return ()

    items = pd.DataFrame(rows)
    # sort=False keeps groups in order of first appearance.
    grouped = items.groupby("product_id", sort=False).agg(
        name=("product_name", "first"),
        quantity=("quantity", "sum"),
        revenue=("total", "sum"),
    )

    return tuple(
        ProductSales(
            product_id=str(product_id),
            name=str(row.name),
            quantity=float(row.quantity),
            revenue=float(row.revenue),
        )
        for product_id, row in zip(grouped.index, grouped.itertuples(index=False))
    )


def _top_products(product_sales: Sequence[ProductSales]) -> tuple[ProductSales, ...]:
    if not product_sales:
        return ()
    frame = pd.DataFrame({"revenue": [p.revenue for p in product_sales]})
    order = frame.sort_values("revenue", ascending=False, kind="stable").index
    return tuple(product_sales[i] for i in order[:TOP_PRODUCTS_LIMIT])


def _expenses_by_category(expenses: Sequence[Expense]) -> dict[str, float]:
    if not expenses:
        return {}
    frame = pd.DataFrame(
        {
            "category": [e.category or DEFAULT_EXPENSE_CATEGORY for e in expenses],
            "amount": [_amount(e.amount) for e in expenses],
        }
    )
    totals = frame.groupby("category", sort=False)["amount"].sum()
    return {str(cat): float(amount) for cat, amount in totals.items()}


def _top_expense_categories(
    by_category: dict[str, float],
) -> tuple[tuple[str, float], ...]:
    if not by_category:
        return ()
    totals = pd.Series(by_category, dtype=float)
    ranked = totals.sort_values(ascending=False, kind="stable")
    return tuple(
        (str(cat), float(amount))
        for cat, amount in ranked.head(TOP_EXPENSE_CATEGORIES_LIMIT).items()
    )


def _top_customers(customers: Sequence[Customer]) -> tuple[Customer, ...]:
    if not customers:
        return ()
    frame = pd.DataFrame({"total_spent": [_amount(c.total_spent) for c in customers]})
    order = frame.sort_values("total_spent", ascending=False, kind="stable").index
    return tuple(customers[i] for i in order[:TOP_CUSTOMERS_LIMIT])


def low_stock_products(products: Sequence[Product]) -> tuple[Product, ...]:
    """Active products whose stock is at or below their low-stock threshold."""
    return tuple(p for p in products if p.status == "active" and p.is_low_stock)


def overstock_products(
    products: Sequence[Product], product_sales: Sequence[ProductSales]
) -> tuple[Product, ...]:
    """
    Products whose stock exceeds ``OVERSTOCK_FACTOR`` times their recent
    unit sales.

    Products without any recent unit sales are never considered overstocked.
    """
    units = {p.product_id: p.quantity for p in product_sales}
    result = []
    for product in products:
        sold = units.get(str(product.id), 0.0)
        if sold > 0 and product.stock_quantity > sold * OVERSTOCK_FACTOR:
            result.append(product)
    return tuple(result)


def inventory_value(products: Sequence[Product]) -> float:
    """Sum of ``price * stock_quantity`` over all products."""
    return float(
        sum(_amount(p.price) * _amount(p.stock_quantity) for p in products)
    )


def profit_margin(revenue: float, profit: float) -> float:
    """Profit margin in percent, rounded to one decimal (0.0 without revenue)."""
    if revenue > 0:
        return round(profit / revenue * 100, 1)
    return 0.0


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def aggregate(
    sales: Sequence[Sale],
    expenses: Sequence[Expense],
    products: Sequence[Product],
    customers: Sequence[Customer],
    window_start: date | datetime,
) -> AggregateStats:
    """
    Build the aggregate snapshot used by the stage analyzers.

    Steps:
        1. Keep sales and expenses dated on or after ``window_start``.
        2. Accumulate windowed quantity and revenue per product from the
           sale line items, and rank the top products by revenue.
        3. Compute windowed revenue, expenses, profit and profit margin.
        4. Total windowed expenses per category and rank the top categories.
        5. Derive stock signals (low stock, overstock, inventory value) from
           the full product list.
        6. Derive customer counters and the top customers by lifetime spend.

    Args:
        sales: All known sales.
        expenses: All known expenses.
        products: All known products.
        customers: All known customers.
        window_start: Inclusive start of the recency window.

    Returns:
        An ``AggregateStats`` snapshot.
    """
    # 1) Recency window
    sale_flags = window_mask([s.sale_date for s in sales], window_start)
    recent_sales = [s for s, keep in zip(sales, sale_flags) if keep]

    expense_flags = window_mask([e.expense_date for e in expenses], window_start)
    recent_expenses = [e for e, keep in zip(expenses, expense_flags) if keep]

    # 2) Per-product sales
    product_sales = _aggregate_product_sales(recent_sales)

    # 3) Financial totals
    revenue = float(sum(_amount(s.total_amount) for s in recent_sales))
    total_expenses = float(sum(_amount(e.amount) for e in recent_expenses))
    profit = revenue - total_expenses

    # 4) Expense categories
    by_category = _expenses_by_category(recent_expenses)

    # 5-6) Stock and customer signals use the full collections.
    vip_count = sum(1 for c in customers if c.status == "vip")
    at_risk_count = sum(1 for c in customers if c.status == "at_risk")
    lifetime_value = float(sum(_amount(c.total_spent) for c in customers))

    return AggregateStats(
        window_start=window_start,
        product_count=len(products),
        order_count=len(recent_sales),
        revenue=revenue,
        total_expenses=total_expenses,
        profit=profit,
        profit_margin=profit_margin(revenue, profit),
        product_sales=product_sales,
        top_products=_top_products(product_sales),
        expenses_by_category=by_category,
        top_expense_categories=_top_expense_categories(by_category),
        low_stock_products=low_stock_products(products),
        overstock_products=overstock_products(products, product_sales),
        inventory_value=inventory_value(products),
        customer_count=len(customers),
        vip_count=vip_count,
        at_risk_count=at_risk_count,
        customer_lifetime_value=lifetime_value,
        top_customers=_top_customers(customers),
    )
