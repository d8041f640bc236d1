# Sanka Pulse - Business insights engine for small businesses
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Insight generation pipeline.

This module orchestrates one run of the pipeline:

1) Aggregate
   ---------
   Build one immutable ``AggregateStats`` snapshot from the raw records,
   restricted to the recency window for sales and expenses.

2) Analyze
   -------
   Run the four stage analyzers (sales, customers, inventory, finance)
   against the snapshot. They are independent from each other and can run
   sequentially (default) or concurrently in a thread pool. Either way,
   their results are joined in the fixed analyzer order, never in
   completion order.

3) Normalize
   ---------
   Stamp each candidate with its analyzer category and type, coerce its
   priority and assign the run date.

4) Store
   -----
   Persist the normalized insights one by one, in batch order, and return
   the stored records.

Failure policy
--------------
Any failure aborts the whole run and is raised as ``InsightGenerationError``
(the original exception is chained as ``__cause__``). Nothing is persisted
unless every analyzer succeeded. A store failure in the middle of the batch
leaves the insights created before it in place: there is no rollback.

The clock is never read here: the caller passes ``now`` explicitly, which
keeps runs reproducible.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from concurrent.futures import ThreadPoolExecutor
from datetime import date, datetime
from typing import Optional, Protocol

from .aggregator import DEFAULT_WINDOW_DAYS, AggregateStats, aggregate, default_window_start
from .analyzers import ANALYZERS, StageAnalyzer
from .models import (
    CandidateInsight,
    Customer,
    Expense,
    Insight,
    NewInsight,
    Product,
    Sale,
)
from .normalizer import normalize
from .reasoning import Reasoner

logger = logging.getLogger(__name__)

AGGREGATING_LABEL = "Aggregating business data..."
SAVING_LABEL = "Saving insights..."
COMPLETE_LABEL = "Analysis complete!"

ProgressCallback = Callable[[str], None]


class InsightStore(Protocol):
    def create(self, new_insight: NewInsight) -> Insight:
        ...


class InsightGenerationError(RuntimeError):
    """
    A pipeline run failed.

    Attributes
    ----------
    stage:
        Progress label of the stage that failed.
    """

    def __init__(self, stage: str, message: str):
        super().__init__(message)
        self.stage = stage


def _report(progress: Optional[ProgressCallback], label: str) -> None:
    logger.info(label)
    if progress is not None:
        progress(label)


def _run_analyzers(
    analyzers: Sequence[StageAnalyzer],
    stats: AggregateStats,
    reasoner: Reasoner,
    *,
    concurrent: bool,
    progress: Optional[ProgressCallback],
) -> list[list[CandidateInsight]]:
    """Run every analyzer and return their candidates in analyzer order."""
    if not concurrent:
        results = []
        for analyzer in analyzers:
            _report(progress, analyzer.stage_label)
            try:
                results.append(analyzer.analyze(stats, reasoner))
            except Exception as exc:  # noqa: BLE001
                logger.error("Stage failed: %s (%s)", analyzer.stage_label, exc)
                raise InsightGenerationError(
                    analyzer.stage_label,
                    f"Error generating {analyzer.category} insights: {exc}",
                ) from exc
        return results

    with ThreadPoolExecutor(max_workers=max(1, len(analyzers))) as executor:
        futures = []
        for analyzer in analyzers:
            _report(progress, analyzer.stage_label)
            futures.append(executor.submit(analyzer.analyze, stats, reasoner))

        # Joined in analyzer order: the first failing analyzer (in that
        # order) decides the reported error.
        results = []
        for analyzer, future in zip(analyzers, futures):
            try:
                results.append(future.result())
            except Exception as exc:  # noqa: BLE001
                for pending in futures:
                    pending.cancel()
                logger.error("Stage failed: %s (%s)", analyzer.stage_label, exc)
                raise InsightGenerationError(
                    analyzer.stage_label,
                    f"Error generating {analyzer.category} insights: {exc}",
                ) from exc
        return results


def run_insight_generation(
    sales: Sequence[Sale],
    expenses: Sequence[Expense],
    products: Sequence[Product],
    customers: Sequence[Customer],
    now: date | datetime,
    *,
    reasoner: Reasoner,
    store: InsightStore,
    window_start: Optional[date | datetime] = None,
    window_days: int = DEFAULT_WINDOW_DAYS,
    concurrent: bool = False,
    progress: Optional[ProgressCallback] = None,
    analyzers: Sequence[StageAnalyzer] = ANALYZERS,
) -> list[Insight]:
    """
    Run the insight generation pipeline once.

    Args:
        sales, expenses, products, customers:
            Raw business records. They are read, never modified.
        now:
            Current date/time of the run. Used to stamp ``insight_date`` and,
            unless ``window_start`` is given, to compute the recency window.
        reasoner:
            Reasoning capability used by the stage analyzers.
        store:
            Insight store receiving one ``create`` call per insight.
        window_start:
            Explicit inclusive start of the recency window.
        window_days:
            Window length used when ``window_start`` is not given.
        concurrent:
            Run the four analyzers concurrently. Output order is unchanged.
        progress:
            Optional callback receiving human-readable stage labels.
        analyzers:
            Analyzer stages to run, in batch order.

    Returns:
        The stored insights of this run, ordered by analyzer (sales,
        customers, inventory, finance) then by candidate order.

    Raises:
        InsightGenerationError: if any stage fails.
    """
    if window_start is None:
        window_start = default_window_start(now, window_days)

    # 1) Aggregate
    _report(progress, AGGREGATING_LABEL)
    try:
        stats = aggregate(sales, expenses, products, customers, window_start)
    except Exception as exc:  # noqa: BLE001
        logger.error("Stage failed: %s (%s)", AGGREGATING_LABEL, exc)
        raise InsightGenerationError(
            AGGREGATING_LABEL, f"Error aggregating business data: {exc}"
        ) from exc

    # 2) Analyze
    results = _run_analyzers(
        analyzers, stats, reasoner, concurrent=concurrent, progress=progress
    )

    # 3) Normalize
    records: list[NewInsight] = [
        normalize(
            candidate,
            category=analyzer.category,
            insight_type=analyzer.insight_type,
            today=now,
        )
        for analyzer, candidates in zip(analyzers, results)
        for candidate in candidates
    ]

    # 4) Store
    _report(progress, SAVING_LABEL)
    saved: list[Insight] = []
    for record in records:
        try:
            stored = store.create(record)
        except Exception as exc:  # noqa: BLE001
            logger.error(
                "Stage failed: %s (%d of %d insights saved) (%s)",
                SAVING_LABEL,
                len(saved),
                len(records),
                exc,
            )
            raise InsightGenerationError(
                SAVING_LABEL, f"Error saving insights: {exc}"
            ) from exc
        logger.debug("Saved %s insight #%s: %s", stored.category, stored.id, stored.title)
        saved.append(stored)

    _report(progress, COMPLETE_LABEL)
    return saved
