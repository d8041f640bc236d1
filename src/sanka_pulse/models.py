# Sanka Pulse - Business insights engine for small businesses
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Domain records for Sanka Pulse.

The pipeline reads four kinds of business records (products, customers,
sales with their line items, expenses) and produces one kind of record of
its own (insights). All of them are plain frozen dataclasses so that they
can be shared between stages without any risk of mutation.

Input records
-------------
- ``Product``  : catalog entry with price, cost and stock level.
- ``SaleItem`` : one line of a sale (product, quantity, line total).
- ``Sale``     : a dated order with its total amount and line items.
- ``Expense``  : a dated, categorized expense.
- ``Customer`` : lifetime spend/order counters and a lifecycle status.

Insight records
---------------
- ``CandidateInsight`` : raw analyzer output, before normalization.
- ``NewInsight``       : normalized insight, ready to be persisted.
- ``Insight``          : persisted insight, with its store-assigned id.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Literal

DEFAULT_LOW_STOCK_THRESHOLD = 10

CustomerStatus = Literal["active", "vip", "at_risk", "churned"]
InsightType = Literal["alert", "opportunity", "tip", "achievement"]
InsightCategory = Literal["sales", "customers", "inventory", "finance"]
InsightPriority = Literal["low", "medium", "high", "critical"]

INSIGHT_CATEGORIES: tuple[str, ...] = ("sales", "customers", "inventory", "finance")


# ---------------------------------------------------------------------------
# Input records
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Product:
    """A catalog product and its current stock position."""

    id: str
    name: str
    price: float = 0.0
    stock_quantity: int = 0
    low_stock_threshold: int | None = None
    status: str = "active"
    sku: str | None = None
    category: str | None = None
    cost: float | None = None

    @property
    def effective_low_stock_threshold(self) -> int:
        """Threshold used for low-stock checks (10 when not set)."""
        if self.low_stock_threshold is None:
            return DEFAULT_LOW_STOCK_THRESHOLD
        return self.low_stock_threshold

    @property
    def is_low_stock(self) -> bool:
        return self.stock_quantity <= self.effective_low_stock_threshold


@dataclass(frozen=True)
class SaleItem:
    """One line of a sale."""

    product_id: str
    product_name: str
    quantity: float = 0.0
    total: float = 0.0


@dataclass(frozen=True)
class Sale:
    """
    A dated order.

    ``sale_date`` may be a date or a datetime; only its calendar position
    relative to the recency window matters to the pipeline.
    """

    id: str
    sale_date: date | datetime
    total_amount: float = 0.0
    items: tuple[SaleItem, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class Expense:
    id: str
    expense_date: date | datetime
    amount: float = 0.0
    category: str | None = None
    title: str | None = None


@dataclass(frozen=True)
class Customer:
    id: str
    name: str
    total_spent: float = 0.0
    total_orders: int = 0
    status: str = "active"


@dataclass(frozen=True)
class BusinessData:
    """The four input collections, as loaded from storage."""

    products: tuple[Product, ...] = ()
    customers: tuple[Customer, ...] = ()
    sales: tuple[Sale, ...] = ()
    expenses: tuple[Expense, ...] = ()


# ---------------------------------------------------------------------------
# Insight records
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CandidateInsight:
    """
    Insight as returned by a stage analyzer.

    ``priority`` is kept verbatim (it may be any string, or None); it is
    only coerced into the closed priority set by the normalizer.
    """

    title: str
    message: str
    action_label: str | None = None
    priority: str | None = None


@dataclass(frozen=True)
class NewInsight:
    """
    Data required to create a new insight in the store.

    Attributes
    ----------
    title, message:
        Human-readable recommendation.
    type:
        One of "alert", "opportunity", "tip", "achievement".
    category:
        One of "sales", "customers", "inventory", "finance".
    priority:
        One of "low", "medium", "high", "critical".
    action_label:
        Optional call-to-action label suggested by the analyzer.
    insight_date:
        Creation date (no time component).
    is_read, is_dismissed:
        Lifecycle flags, both False at creation.
    """

    title: str
    message: str
    type: InsightType
    category: InsightCategory
    priority: InsightPriority
    action_label: str | None
    insight_date: date
    is_read: bool = False
    is_dismissed: bool = False


@dataclass(frozen=True)
class Insight:
    """Persisted insight, as returned by the insight store."""

    id: int
    title: str
    message: str
    type: InsightType
    category: InsightCategory
    priority: InsightPriority
    action_label: str | None
    insight_date: date
    is_read: bool
    is_dismissed: bool
    created_at: datetime | None = None
    updated_at: datetime | None = None
