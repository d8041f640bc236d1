# Sanka Pulse - Business insights engine for small businesses
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""Normalization of analyzer candidates into storable insights."""

from __future__ import annotations

from datetime import date, datetime
from typing import Optional

from .models import (
    CandidateInsight,
    InsightCategory,
    InsightPriority,
    InsightType,
    NewInsight,
)

# Only these analyzer priorities are kept as-is; everything else, including
# "low", collapses to "medium".
_KEPT_PRIORITIES: dict[str, InsightPriority] = {
    "high": "high",
    "critical": "critical",
}
DEFAULT_PRIORITY: InsightPriority = "medium"


def coerce_priority(raw: Optional[str]) -> InsightPriority:
    """Map an analyzer priority onto the stored priority set."""
    if raw is None:
        return DEFAULT_PRIORITY
    return _KEPT_PRIORITIES.get(raw, DEFAULT_PRIORITY)


def normalize(
    candidate: CandidateInsight,
    *,
    category: InsightCategory,
    insight_type: InsightType,
    today: date | datetime,
) -> NewInsight:
    """
    Tag a candidate with its category and type, coerce its priority and
    stamp the creation date.

    ``today`` is truncated to a date, so every insight of a run normalized
    with the same value shares the same ``insight_date``.
    """
    insight_date = today.date() if isinstance(today, datetime) else today
    return NewInsight(
        title=candidate.title,
        message=candidate.message,
        type=insight_type,
        category=category,
        priority=coerce_priority(candidate.priority),
        action_label=candidate.action_label,
        insight_date=insight_date,
        is_read=False,
        is_dismissed=False,
    )
