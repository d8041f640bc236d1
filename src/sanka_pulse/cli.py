# Sanka Pulse - Business insights engine for small businesses
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Command-Line Interface (CLI) for Sanka Pulse.

This module wires together the main building blocks of Sanka Pulse:

- global configuration (database, data directory, reasoning provider,
  insight generation options),
- business records import from CSV files,
- the insight generation pipeline (aggregate, analyze, normalize, store),
- the SQLite insight store (feed, read and dismiss operations),
- the Pulse dashboard metrics and the financial period summaries.

The CLI is intentionally thin: it does not implement any aggregation or
insight logic itself. It orchestrates the underlying modules based on
command-line arguments and configuration files.


Commands
--------

generate
    Load the business records from the data directory, run the insight
    generation pipeline once against the configured reasoning provider and
    store the resulting batch in the database. Progress labels are printed
    as the run advances, then the stored batch is displayed.

    If any stage fails, nothing more is generated, a short error message is
    printed and the process exits with a non-zero status.

insights list
    Show the insight feed: non-dismissed insights, newest first. Use
    ``--all`` to include dismissed insights, ``--category`` and
    ``--unread`` to filter, ``--limit`` to cap the number of rows.

insights read ID / insights dismiss ID
    Mark an insight as read, or dismiss it from the feed.

pulse
    Print the dashboard metrics (greeting, today's sales, this week's
    profit, low-stock count, customers, inventory value).

financials [--period today|week|month]
    Print revenue, expenses, profit, margin and the top expense categories
    for today, the last seven days (default) or the current month.


Configuration and overrides
---------------------------

By default, the CLI reads the main configuration from a TOML file named
``sanka_pulse_config.toml`` in the current working directory. You can
override this path using:

    --config PATH

The data directory configured in the TOML file can be overridden with:

    --data-dir DIR

Diagnostic logs go to stderr and are controlled with ``--log-level``
(default: WARNING). Regular output is printed to stdout.


Examples
--------

Generate a new batch of insights:

    python -m sanka_pulse.cli generate

Same, running the four analyzers concurrently over a 60-day window:

    python -m sanka_pulse.cli generate --window-days 60 --concurrent

Show unread sales insights:

    python -m sanka_pulse.cli insights list --category sales --unread

Dismiss insight #12:

    python -m sanka_pulse.cli insights dismiss 12
"""

import argparse
import logging
from datetime import datetime
from typing import Optional

import pandas as pd

from . import __version__
from .config import AppConfig, load_app_config
from .db import (
    SQLiteInsightStore,
    dismiss_insight,
    init_database,
    insights_to_dataframe,
    list_insights,
    mark_insight_read,
)
from .financials import DEFAULT_PERIOD, PERIODS, compute_period_summary
from .io import read_business_data
from .models import INSIGHT_CATEGORIES
from .pipeline import InsightGenerationError, run_insight_generation
from .pulse import compute_pulse_metrics
from .reasoning import build_reasoner

logger = logging.getLogger(__name__)

LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR"]


def _build_parser() -> argparse.ArgumentParser:
    """Create and configure the argument parser for the CLI."""
    ap = argparse.ArgumentParser(
        prog="python -m sanka_pulse.cli",
        description=(
            "Sanka Pulse - Business insights engine for small businesses. "
            "Reads sales, expenses, products and customers, generates "
            "categorized insights and manages the insight feed."
        ),
    )

    # Generic options
    ap.add_argument(
        "--version",
        action="store_true",
        help="Show the installed version of sanka_pulse and exit.",
    )

    ap.add_argument(
        "--config",
        dest="config_path",
        help=(
            "Path to the main TOML configuration file. "
            "If omitted, 'sanka_pulse_config.toml' in the current directory is used."
        ),
    )

    ap.add_argument(
        "--data-dir",
        dest="data_dir",
        help=(
            "Directory holding the business records CSV files. "
            "Overrides the [data] directory of the configuration."
        ),
    )

    ap.add_argument(
        "--log-level",
        dest="log_level",
        choices=LOG_LEVELS,
        default="WARNING",
        help="Logging level for diagnostic messages (default: WARNING).",
    )

    subparsers = ap.add_subparsers(
        dest="command",
        metavar="command",
        help="Subcommand to run ('generate', 'insights', 'pulse' or 'financials').",
    )

    # ------------------------------------------------------------------
    # generate
    # ------------------------------------------------------------------
    generate = subparsers.add_parser(
        "generate",
        help="Generate a new batch of insights from the business records.",
    )
    generate.add_argument(
        "--window-days",
        dest="window_days",
        type=int,
        help=(
            "Length of the recency window in days. "
            "Overrides the [insights] window_days of the configuration."
        ),
    )
    generate.add_argument(
        "--concurrent",
        action="store_true",
        help="Run the stage analyzers concurrently.",
    )

    # ------------------------------------------------------------------
    # insights
    # ------------------------------------------------------------------
    insights_parser = subparsers.add_parser(
        "insights",
        help="Inspect and manage the stored insights.",
    )
    insights_subparsers = insights_parser.add_subparsers(
        dest="insights_command",
        metavar="insights-command",
        help="Insights subcommands ('list', 'read' or 'dismiss').",
    )

    insights_list = insights_subparsers.add_parser(
        "list",
        help="List insights, newest first.",
    )
    insights_list.add_argument(
        "--all",
        dest="include_dismissed",
        action="store_true",
        help="Include dismissed insights.",
    )
    insights_list.add_argument(
        "--category",
        choices=list(INSIGHT_CATEGORIES),
        help="Only show insights of this category.",
    )
    insights_list.add_argument(
        "--unread",
        dest="unread_only",
        action="store_true",
        help="Only show insights that have not been read yet.",
    )
    insights_list.add_argument(
        "--limit",
        type=int,
        help="Maximum number of insights to show.",
    )

    insights_read = insights_subparsers.add_parser(
        "read",
        help="Mark an insight as read.",
    )
    insights_read.add_argument("insight_id", type=int, help="Insight id.")

    insights_dismiss = insights_subparsers.add_parser(
        "dismiss",
        help="Dismiss an insight from the feed.",
    )
    insights_dismiss.add_argument("insight_id", type=int, help="Insight id.")

    # ------------------------------------------------------------------
    # pulse
    # ------------------------------------------------------------------
    subparsers.add_parser(
        "pulse",
        help="Show the Pulse dashboard metrics.",
    )

    # ------------------------------------------------------------------
    # financials
    # ------------------------------------------------------------------
    financials = subparsers.add_parser(
        "financials",
        help="Show revenue, expenses and profit for a period.",
    )
    financials.add_argument(
        "--period",
        choices=list(PERIODS),
        default=DEFAULT_PERIOD,
        help="Reporting period (default: week).",
    )

    return ap


def _load_business_data(args: argparse.Namespace, config: AppConfig):
    """Read the business records from the configured (or overridden) directory."""
    data_dir = args.data_dir or config.data_dir
    try:
        return read_business_data(data_dir)
    except (FileNotFoundError, ValueError) as exc:
        raise SystemExit(f"Unable to read business data: {exc}") from exc


def _print_insights(insights) -> None:
    df = insights_to_dataframe(insights)
    display_cols = ["id", "insight_date", "category", "priority", "title", "is_read"]
    print()
    print(df[display_cols].to_string(index=False))


def _handle_generate(args: argparse.Namespace, config: AppConfig) -> None:
    """
    Handle the 'generate' subcommand: run the insight generation pipeline
    once and store the resulting batch.
    """
    data = _load_business_data(args, config)

    window_days = args.window_days if args.window_days is not None else config.window_days
    if window_days < 0:
        raise SystemExit("--window-days cannot be negative.")

    try:
        reasoner = build_reasoner(config.reasoning)
    except ValueError as exc:
        raise SystemExit(f"Unable to configure the reasoning provider: {exc}") from exc

    store = SQLiteInsightStore(config.database)

    try:
        saved = run_insight_generation(
            data.sales,
            data.expenses,
            data.products,
            data.customers,
            datetime.now(),
            reasoner=reasoner,
            store=store,
            window_days=window_days,
            concurrent=args.concurrent or config.concurrent,
            progress=print,
        )
    except InsightGenerationError as exc:
        logger.error("Insight generation failed at '%s': %s", exc.stage, exc)
        raise SystemExit("Error generating insights. Please try again.") from exc

    if not saved:
        print("No insights were generated.")
        return

    _print_insights(saved)
    print()
    print(f"Generated insights: {len(saved)}")


def _handle_insights_list(args: argparse.Namespace, config: AppConfig) -> None:
    """Handle the 'insights list' subcommand."""
    insights = list_insights(
        config.database,
        include_dismissed=args.include_dismissed,
        category=args.category,
        unread_only=args.unread_only,
        limit=args.limit,
    )

    if not insights:
        print("No insights found for the given criteria.")
        return

    _print_insights(insights)
    print()
    print(f"Total insights: {len(insights)}")


def _handle_insights_read(args: argparse.Namespace, config: AppConfig) -> None:
    """Handle the 'insights read' subcommand."""
    try:
        insight = mark_insight_read(config.database, args.insight_id)
    except LookupError as exc:
        raise SystemExit(str(exc)) from exc

    print(f"Insight #{insight.id} ({insight.category}, {insight.priority})")
    print(f"  {insight.title}")
    print(f"  {insight.message}")
    if insight.action_label:
        print(f"  -> {insight.action_label}")


def _handle_insights_dismiss(args: argparse.Namespace, config: AppConfig) -> None:
    """Handle the 'insights dismiss' subcommand."""
    try:
        insight = dismiss_insight(config.database, args.insight_id)
    except LookupError as exc:
        raise SystemExit(str(exc)) from exc

    print(f"Insight #{insight.id} dismissed: {insight.title}")


def _handle_insights_command(
    args: argparse.Namespace, config: AppConfig, parser: argparse.ArgumentParser
) -> None:
    """Dispatch the 'insights' subcommands."""
    if args.insights_command == "list":
        _handle_insights_list(args, config)
    elif args.insights_command == "read":
        _handle_insights_read(args, config)
    elif args.insights_command == "dismiss":
        _handle_insights_dismiss(args, config)
    else:
        parser.error("Missing insights subcommand: use 'list', 'read' or 'dismiss'.")


def _handle_pulse(args: argparse.Namespace, config: AppConfig) -> None:
    """Handle the 'pulse' subcommand: print the dashboard metrics."""
    data = _load_business_data(args, config)
    metrics = compute_pulse_metrics(
        data.sales, data.expenses, data.products, data.customers, datetime.now()
    )

    status = "on track" if metrics.week_on_track else "needs attention"

    print(f"{metrics.greeting}!")
    print()
    print(f"Today's sales    : {metrics.today_revenue:.2f} ({metrics.today_orders} orders)")
    print(f"Week revenue     : {metrics.week_revenue:.2f}")
    print(f"Week expenses    : {metrics.week_expenses:.2f}")
    print(f"Week profit      : {metrics.week_profit:.2f} ({status})")
    print(f"Low stock        : {metrics.low_stock_count} products")
    print(f"Customers        : {metrics.customer_count} ({metrics.vip_count} VIP)")
    print(f"Inventory value  : {metrics.inventory_value:.2f}")


def _handle_financials(args: argparse.Namespace, config: AppConfig) -> None:
    """Handle the 'financials' subcommand: print a period summary."""
    data = _load_business_data(args, config)
    summary = compute_period_summary(data.sales, data.expenses, datetime.now(), args.period)

    print(f"Financials: {summary.period} (since {summary.start.isoformat()})")
    print()
    print(f"Revenue      : {summary.revenue:.2f} ({summary.order_count} orders)")
    print(f"Expenses     : {summary.expenses:.2f}")
    print(f"Net profit   : {summary.profit:.2f} ({summary.profit_margin:.1f}% margin)")

    if not summary.top_expense_categories:
        print()
        print("No expenses recorded for this period.")
        return

    df = pd.DataFrame(
        [
            {"category": category.replace("_", " "), "amount": f"{amount:.2f}"}
            for category, amount in summary.top_expense_categories
        ]
    )
    print()
    print("Top expense categories:")
    print(df.to_string(index=False))


def main(argv: Optional[list[str]] = None) -> None:
    """Entry point for the Sanka Pulse CLI.

    This function parses command-line arguments, configures logging, loads
    the application configuration, initializes the database and dispatches
    to the requested subcommand.
    """
    parser = _build_parser()
    args = parser.parse_args(argv)

    # --version: short-circuit and exit early.
    if args.version:
        print(f"sanka_pulse version {__version__}")
        return

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.command is None:
        parser.error(
            "Missing command: use 'generate', 'insights', 'pulse' or 'financials'."
        )

    # 1) Load application configuration
    try:
        if args.config_path:
            config = load_app_config(args.config_path)
        else:
            config = load_app_config()
    except (FileNotFoundError, ValueError) as exc:
        raise SystemExit(f"Invalid configuration: {exc}") from exc

    # 2) Initialize the database (create file and schema if needed)
    init_database(config.database)

    # 3) Dispatch
    if args.command == "generate":
        _handle_generate(args, config)
    elif args.command == "insights":
        _handle_insights_command(args, config, parser)
    elif args.command == "pulse":
        _handle_pulse(args, config)
    elif args.command == "financials":
        _handle_financials(args, config)


if __name__ == "__main__":
    main()
