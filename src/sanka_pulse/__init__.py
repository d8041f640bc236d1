# Sanka Pulse - Business insights engine for small businesses
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Sanka Pulse
-----------

A Python-based business insights engine for small businesses. It reads the
day-to-day records of a shop (sales, expenses, products, customers) and turns
them into short, actionable insights grouped in four categories: sales,
customers, inventory and finance.

Main capabilities:
- a pure aggregation step building one snapshot of the business over a
  recency window (revenue, profit margin, top products, stock alerts,
  customer segments),
- four stage analyzers delegating the wording of insights to a reasoning
  provider (OpenAI chat completions with a JSON schema response),
- normalization of the candidates into typed, prioritized insights,
- a SQLite insight store with a dashboard feed (read / dismiss),
- Pulse dashboard metrics (today, this week, stock, customers),
- financial period summaries (today, last seven days, month to date).

Usage:
    python -m sanka_pulse.cli --help
"""

__all__ = [
    "aggregator",
    "analyzers",
    "normalizer",
    "pipeline",
    "db",
    "io",
    "pulse",
    "financials",
]

__version__ = "0.1.0"
