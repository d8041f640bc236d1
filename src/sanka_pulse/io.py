# Sanka Pulse - Business insights engine for small businesses
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
I/O module for Sanka Pulse.

This module reads the business records used by the insight pipeline from a
directory of CSV files and normalizes them into the domain dataclasses of
``models.py``.

Expected files
--------------
All files are optional: a missing file yields an empty collection. Column
names are case-insensitive; extra columns are ignored.

``products.csv``
    id, name [, sku, category, price, cost, stock_quantity,
    low_stock_threshold, status]

``customers.csv``
    id, name [, total_spent, total_orders, status]

``sales.csv``
    id, sale_date [, total_amount]

``sale_items.csv``
    sale_id, product_id [, product_name, quantity, total]

    Line items are attached to the sale whose ``id`` matches ``sale_id``,
    in file order.

``expenses.csv``
    id, expense_date, amount [, category, title]

Dates are parsed strictly as ISO-8601 (invalid dates fail loudly).
Numeric columns must contain numbers; empty cells fall back to the column
default (0, or "not set" for ``low_stock_threshold`` and ``cost``).
``stock_quantity`` and ``low_stock_threshold`` must be non-negative whole
numbers.

If a file lacks a required column, or contains invalid values, a clear
ValueError is raised.
"""

import os
from datetime import date, datetime
from pathlib import Path
from typing import Optional, Union

import pandas as pd

from .models import BusinessData, Customer, Expense, Product, Sale, SaleItem

PRODUCTS_FILE = "products.csv"
CUSTOMERS_FILE = "customers.csv"
SALES_FILE = "sales.csv"
SALE_ITEMS_FILE = "sale_items.csv"
EXPENSES_FILE = "expenses.csv"


def _read_csv(path: Path, required: set[str]) -> Optional[pd.DataFrame]:
    """
    Read a CSV file as text columns with normalized (lowercase) names.

    Returns None when the file does not exist.

    Raises:
        ValueError: if a required column is missing.
    """
    if not path.is_file():
        return None

    df = pd.read_csv(path, dtype=str, keep_default_na=False)
    df.columns = [str(c).lower().strip() for c in df.columns]

    missing = required.difference(df.columns)
    if missing:
        cols = ", ".join(sorted(missing))
        raise ValueError(f"{path.name} is missing required column(s): {cols}")

    return df


def _text(df: pd.DataFrame, col: str, default: Optional[str] = None) -> list:
    """Return a stripped text column, empty cells replaced by ``default``."""
    if col not in df.columns:
        return [default] * len(df)
    values = df[col].astype(str).str.strip()
    return [v if v else default for v in values]


def _numeric(
    df: pd.DataFrame, col: str, default: Optional[float], path: Path
) -> list:
    """
    Return a numeric column as Python floats.

    Empty cells (or a missing column) are replaced by ``default``.

    Raises:
        ValueError: if a non-empty cell is not a number.
    """
    if col not in df.columns:
        return [default] * len(df)

    raw = df[col].astype(str).str.strip()
    parsed = pd.to_numeric(raw.where(raw != ""), errors="coerce")

    invalid = parsed.isna() & (raw != "")
    if invalid.any():
        raise ValueError(f"Invalid numeric values in '{col}' column of {path.name}.")

    return [default if pd.isna(v) else float(v) for v in parsed]


def _dates(df: pd.DataFrame, col: str, path: Path) -> list:
    """
    Parse a date column strictly.

    Values without a time component become ``date`` objects, the others
    ``datetime`` objects.
    """
    try:
        parsed = pd.to_datetime(df[col], format="ISO8601", errors="raise")
    except Exception as exc:  # noqa: BLE001
        raise ValueError(f"Invalid values in '{col}' column of {path.name}.") from exc

    if parsed.isna().any():
        raise ValueError(f"Missing values in '{col}' column of {path.name}.")

    values: list[Union[date, datetime]] = []
    for ts in parsed:
        if ts == ts.normalize():
            values.append(ts.date())
        else:
            values.append(ts.to_pydatetime())
    return values


def read_products(path: Union[str, "os.PathLike[str]"]) -> list[Product]:
    """Read products from ``products.csv``."""
    path = Path(path)
    df = _read_csv(path, {"id", "name"})
    if df is None:
        return []

    thresholds = _numeric(df, "low_stock_threshold", None, path)
    stocks = _numeric(df, "stock_quantity", 0.0, path)

    for col, values in (("stock_quantity", stocks), ("low_stock_threshold", thresholds)):
        if any(v is not None and (v < 0 or not float(v).is_integer()) for v in values):
            raise ValueError(
                f"Invalid values in '{col}' column of {path.name}: "
                "expected non-negative whole numbers."
            )

    return [
        Product(
            id=pid,
            name=name,
            sku=sku,
            category=category,
            price=price,
            cost=cost,
            stock_quantity=int(stock),
            low_stock_threshold=None if threshold is None else int(threshold),
            status=status,
        )
        for pid, name, sku, category, price, cost, stock, threshold, status in zip(
            _text(df, "id"),
            _text(df, "name", ""),
            _text(df, "sku"),
            _text(df, "category"),
            _numeric(df, "price", 0.0, path),
            _numeric(df, "cost", None, path),
            stocks,
            thresholds,
            _text(df, "status", "active"),
        )
    ]


def read_customers(path: Union[str, "os.PathLike[str]"]) -> list[Customer]:
    """Read customers from ``customers.csv``."""
    path = Path(path)
    df = _read_csv(path, {"id", "name"})
    if df is None:
        return []

    return [
        Customer(
            id=cid,
            name=name,
            total_spent=spent,
            total_orders=int(orders),
            status=status,
        )
        for cid, name, spent, orders, status in zip(
            _text(df, "id"),
            _text(df, "name", ""),
            _numeric(df, "total_spent", 0.0, path),
            _numeric(df, "total_orders", 0.0, path),
            _text(df, "status", "active"),
        )
    ]


def read_sale_items(path: Union[str, "os.PathLike[str]"]) -> dict[str, list[SaleItem]]:
    """Read sale line items from ``sale_items.csv``, grouped by sale id."""
    path = Path(path)
    df = _read_csv(path, {"sale_id", "product_id"})
    if df is None:
        return {}

    items: dict[str, list[SaleItem]] = {}
    for sale_id, product_id, product_name, quantity, total in zip(
        _text(df, "sale_id"),
        _text(df, "product_id"),
        _text(df, "product_name", ""),
        _numeric(df, "quantity", 0.0, path),
        _numeric(df, "total", 0.0, path),
    ):
        items.setdefault(sale_id, []).append(
            SaleItem(
                product_id=product_id,
                product_name=product_name,
                quantity=quantity,
                total=total,
            )
        )
    return items


def read_sales(
    path: Union[str, "os.PathLike[str]"],
    items_by_sale: Optional[dict[str, list[SaleItem]]] = None,
) -> list[Sale]:
    """Read sales from ``sales.csv`` and attach their line items."""
    path = Path(path)
    df = _read_csv(path, {"id", "sale_date"})
    if df is None:
        return []

    items_by_sale = items_by_sale or {}
    return [
        Sale(
            id=sid,
            sale_date=sale_date,
            total_amount=amount,
            items=tuple(items_by_sale.get(sid, ())),
        )
        for sid, sale_date, amount in zip(
            _text(df, "id"),
            _dates(df, "sale_date", path),
            _numeric(df, "total_amount", 0.0, path),
        )
    ]


def read_expenses(path: Union[str, "os.PathLike[str]"]) -> list[Expense]:
    """Read expenses from ``expenses.csv``."""
    path = Path(path)
    df = _read_csv(path, {"id", "expense_date", "amount"})
    if df is None:
        return []

    return [
        Expense(
            id=eid,
            expense_date=expense_date,
            amount=amount,
            category=category,
            title=title,
        )
        for eid, expense_date, amount, category, title in zip(
            _text(df, "id"),
            _dates(df, "expense_date", path),
            _numeric(df, "amount", 0.0, path),
            _text(df, "category"),
            _text(df, "title"),
        )
    ]


def read_business_data(directory: Union[str, "os.PathLike[str]"]) -> BusinessData:
    """
    Read all business records from a data directory.

    Parameters
    ----------
    directory:
        Directory containing the CSV files described in this module.

    Returns
    -------
    BusinessData
        Products, customers, sales (with line items) and expenses.

    Raises
    ------
    FileNotFoundError
        If the directory does not exist.
    ValueError
        If a file has an invalid structure or invalid values.
    """
    base = Path(directory)
    if not base.is_dir():
        raise FileNotFoundError(f"Data directory not found: {base}")

    items = read_sale_items(base / SALE_ITEMS_FILE)

    return BusinessData(
        products=tuple(read_products(base / PRODUCTS_FILE)),
        customers=tuple(read_customers(base / CUSTOMERS_FILE)),
        sales=tuple(read_sales(base / SALES_FILE, items)),
        expenses=tuple(read_expenses(base / EXPENSES_FILE)),
    )
