import threading
import time
from datetime import date, datetime

import pytest

from sanka_pulse.models import Expense, Insight, Product, Sale, SaleItem
from sanka_pulse.pipeline import (
    AGGREGATING_LABEL,
    COMPLETE_LABEL,
    SAVING_LABEL,
    InsightGenerationError,
    run_insight_generation,
)
from sanka_pulse.reasoning import MalformedResponseError, ReasonerError

NOW = datetime(2025, 1, 31, 9, 0)

# Each prompt starts with a stage-specific sentence; the stub answers by
# matching that prefix.
PROMPT_KEYS = {
    "sales": "Analyze this sales data",
    "customers": "Analyze customer data",
    "inventory": "Analyze inventory situation",
    "finance": "Analyze financial performance",
}


def answer(*titles, priority="high"):
    return {
        "insights": [
            {"title": t, "message": f"{t} message", "action_label": "Act", "priority": priority}
            for t in titles
        ]
    }


class StubReasoner:
    """Deterministic reasoner keyed on the analyzer prompt."""

    def __init__(self, answers, delays=None, failures=None):
        self.answers = answers
        self.delays = delays or {}
        self.failures = failures or {}
        self.prompts = []
        self._lock = threading.Lock()

    def _category(self, prompt):
        for category, key in PROMPT_KEYS.items():
            if prompt.startswith(key):
                return category
        raise AssertionError(f"Unexpected prompt: {prompt[:40]!r}")

    def invoke(self, prompt, response_schema):
        category = self._category(prompt)
        with self._lock:
            self.prompts.append(category)
        time.sleep(self.delays.get(category, 0))
        if category in self.failures:
            raise self.failures[category]
        return self.answers[category]


class MemoryStore:
    """In-memory insight store, optionally failing after N creates."""

    def __init__(self, fail_after=None):
        self.records = []
        self.fail_after = fail_after

    def create(self, new_insight):
        if self.fail_after is not None and len(self.records) >= self.fail_after:
            raise OSError("disk full")
        self.records.append(new_insight)
        return Insight(
            id=len(self.records),
            title=new_insight.title,
            message=new_insight.message,
            type=new_insight.type,
            category=new_insight.category,
            priority=new_insight.priority,
            action_label=new_insight.action_label,
            insight_date=new_insight.insight_date,
            is_read=new_insight.is_read,
            is_dismissed=new_insight.is_dismissed,
        )


def default_answers():
    return {
        "sales": answer("S1", "S2"),
        "customers": answer("C1"),
        "inventory": answer("I1", "I2", priority="low"),
        "finance": answer("F1"),
    }


def sample_records():
    sales = [
        Sale(
            id="s1",
            sale_date=date(2025, 1, 20),
            total_amount=100.0,
            items=(SaleItem(product_id="p1", product_name="Widget", quantity=2, total=100.0),),
        )
    ]
    expenses = [Expense(id="e1", expense_date=date(2025, 1, 5), amount=30.0, category="rent")]
    products = [Product(id="p1", name="Widget", price=50.0, stock_quantity=4)]
    return sales, expenses, products, []


def test_run_returns_batch_in_category_order():
    """Stored insights follow analyzer order, then candidate order."""
    store = MemoryStore()
    sales, expenses, products, customers = sample_records()

    saved = run_insight_generation(
        sales, expenses, products, customers, NOW,
        reasoner=StubReasoner(default_answers()),
        store=store,
    )

    assert [i.title for i in saved] == ["S1", "S2", "C1", "I1", "I2", "F1"]
    assert [i.category for i in saved] == [
        "sales", "sales", "customers", "inventory", "inventory", "finance",
    ]
    assert [i.type for i in saved] == [
        "opportunity", "opportunity", "tip", "alert", "alert", "opportunity",
    ]
    assert [r.title for r in store.records] == [i.title for i in saved]


def test_run_normalizes_priority_and_shares_date():
    store = MemoryStore()
    sales, expenses, products, customers = sample_records()

    saved = run_insight_generation(
        sales, expenses, products, customers, NOW,
        reasoner=StubReasoner(default_answers()),
        store=store,
    )

    priorities = {i.title: i.priority for i in saved}
    assert priorities["S1"] == "high"
    assert priorities["I1"] == "medium"
    assert {i.insight_date for i in saved} == {date(2025, 1, 31)}
    assert all(not i.is_read and not i.is_dismissed for i in saved)


def test_concurrent_mode_keeps_category_order():
    """Completion order does not change the batch order."""
    store = MemoryStore()
    sales, expenses, products, customers = sample_records()
    reasoner = StubReasoner(
        default_answers(),
        delays={"sales": 0.2, "customers": 0.1, "inventory": 0.0, "finance": 0.05},
    )

    saved = run_insight_generation(
        sales, expenses, products, customers, NOW,
        reasoner=reasoner,
        store=store,
        concurrent=True,
    )

    assert [i.title for i in saved] == ["S1", "S2", "C1", "I1", "I2", "F1"]
    assert sorted(reasoner.prompts) == ["customers", "finance", "inventory", "sales"]


@pytest.mark.parametrize("concurrent", [False, True])
def test_analyzer_failure_persists_nothing(concurrent):
    """If one analyzer fails, the run aborts before any store call."""
    store = MemoryStore()
    sales, expenses, products, customers = sample_records()
    failure = ReasonerError("service unavailable")
    reasoner = StubReasoner(default_answers(), failures={"customers": failure})

    with pytest.raises(InsightGenerationError) as excinfo:
        run_insight_generation(
            sales, expenses, products, customers, NOW,
            reasoner=reasoner,
            store=store,
            concurrent=concurrent,
        )

    assert store.records == []
    assert excinfo.value.stage == "Detecting customer purchasing patterns..."
    assert excinfo.value.__cause__ is failure
    assert "customers" in str(excinfo.value)


def test_malformed_answer_aborts_run():
    store = MemoryStore()
    sales, expenses, products, customers = sample_records()
    answers = default_answers()
    answers["finance"] = {"insights": [{"title": "missing message"}]}

    with pytest.raises(InsightGenerationError) as excinfo:
        run_insight_generation(
            sales, expenses, products, customers, NOW,
            reasoner=StubReasoner(answers),
            store=store,
        )

    assert isinstance(excinfo.value.__cause__, MalformedResponseError)
    assert store.records == []


def test_store_failure_keeps_earlier_records():
    """A store failure mid-batch is fatal; earlier creates are not rolled back."""
    store = MemoryStore(fail_after=3)
    sales, expenses, products, customers = sample_records()

    with pytest.raises(InsightGenerationError) as excinfo:
        run_insight_generation(
            sales, expenses, products, customers, NOW,
            reasoner=StubReasoner(default_answers()),
            store=store,
        )

    assert excinfo.value.stage == SAVING_LABEL
    assert isinstance(excinfo.value.__cause__, OSError)
    assert [r.title for r in store.records] == ["S1", "S2", "C1"]


def test_progress_labels_in_order():
    labels = []
    sales, expenses, products, customers = sample_records()

    run_insight_generation(
        sales, expenses, products, customers, NOW,
        reasoner=StubReasoner(default_answers()),
        store=MemoryStore(),
        progress=labels.append,
    )

    assert labels == [
        AGGREGATING_LABEL,
        "Analyzing sales trends and top products...",
        "Detecting customer purchasing patterns...",
        "Checking inventory levels and forecasting...",
        "Analyzing financials and finding opportunities...",
        SAVING_LABEL,
        COMPLETE_LABEL,
    ]


def test_window_start_defaults_to_thirty_days_before_now():
    """Sales older than the default window are not shown to the analyzers."""
    seen = []

    class CapturingReasoner(StubReasoner):
        def invoke(self, prompt, response_schema):
            if prompt.startswith(PROMPT_KEYS["sales"]):
                seen.append(prompt)
            return super().invoke(prompt, response_schema)

    old_sale = Sale(
        id="old",
        sale_date=date(2024, 12, 31),
        total_amount=999.0,
        items=(SaleItem(product_id="p9", product_name="Ancient", quantity=9, total=999.0),),
    )
    sales, expenses, products, customers = sample_records()

    run_insight_generation(
        [old_sale, *sales], expenses, products, customers, NOW,
        reasoner=CapturingReasoner(default_answers()),
        store=MemoryStore(),
    )

    assert "Ancient" not in seen[0]
    assert "Total Revenue: $100.00" in seen[0]


def test_empty_answers_store_nothing_but_succeed():
    answers = {key: {"insights": []} for key in PROMPT_KEYS}
    store = MemoryStore()

    saved = run_insight_generation(
        [], [], [], [], NOW,
        reasoner=StubReasoner(answers),
        store=store,
    )

    assert saved == []
    assert store.records == []
