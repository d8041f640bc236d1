from datetime import date

import pytest

import sanka_pulse.cli as cli
from sanka_pulse.db import DatabaseConfig, create_insight, get_insight
from sanka_pulse.models import NewInsight
from sanka_pulse.reasoning import ReasonerError


class StubReasoner:
    def __init__(self, error=None):
        self.error = error

    def invoke(self, prompt, response_schema):
        if self.error is not None:
            raise self.error
        return {"insights": [{"title": prompt.split(":")[0], "message": "m", "priority": "high"}]}


def make_project(tmp_path):
    """Write a minimal config file and data directory; return the config path."""
    data_dir = tmp_path / "records"
    data_dir.mkdir()
    (data_dir / "products.csv").write_text(
        "id,name,price,stock_quantity\np1,Widget,50,3\n", encoding="utf-8"
    )
    (data_dir / "customers.csv").write_text(
        "id,name,total_spent,status\nc1,Ann,250,vip\n", encoding="utf-8"
    )

    config_path = tmp_path / "sanka_pulse_config.toml"
    config_path.write_text(
        '[database]\npath = "pulse.sqlite"\n\n[data]\ndirectory = "records"\n',
        encoding="utf-8",
    )
    return config_path


def test_version(capsys):
    cli.main(["--version"])

    assert "sanka_pulse version" in capsys.readouterr().out


def test_generate_stores_batch(tmp_path, monkeypatch, capsys):
    """'generate' prints progress labels and stores one insight per answer."""
    config_path = make_project(tmp_path)
    monkeypatch.setattr(cli, "build_reasoner", lambda config: StubReasoner())

    cli.main(["--config", str(config_path), "generate"])

    out = capsys.readouterr().out
    assert "Aggregating business data..." in out
    assert "Analysis complete!" in out
    assert "Generated insights: 4" in out

    cfg = DatabaseConfig(engine="sqlite", path=tmp_path / "pulse.sqlite")
    assert get_insight(cfg, 4) is not None


def test_generate_failure_exits_with_message(tmp_path, monkeypatch):
    config_path = make_project(tmp_path)
    monkeypatch.setattr(
        cli, "build_reasoner", lambda config: StubReasoner(error=ReasonerError("down"))
    )

    with pytest.raises(SystemExit) as excinfo:
        cli.main(["--config", str(config_path), "generate"])

    assert "Error generating insights" in str(excinfo.value.code)

    cfg = DatabaseConfig(engine="sqlite", path=tmp_path / "pulse.sqlite")
    assert get_insight(cfg, 1) is None


def test_insights_list_read_and_dismiss(tmp_path, capsys):
    config_path = make_project(tmp_path)
    cfg = DatabaseConfig(engine="sqlite", path=tmp_path / "pulse.sqlite")
    stored = create_insight(
        cfg,
        NewInsight(
            title="Restock Widget",
            message="Only 3 left.",
            type="alert",
            category="inventory",
            priority="critical",
            action_label="Reorder",
            insight_date=date(2025, 1, 31),
        ),
    )

    cli.main(["--config", str(config_path), "insights", "list"])
    assert "Restock Widget" in capsys.readouterr().out

    cli.main(["--config", str(config_path), "insights", "read", str(stored.id)])
    assert "Only 3 left." in capsys.readouterr().out
    assert get_insight(cfg, stored.id).is_read is True

    cli.main(["--config", str(config_path), "insights", "dismiss", str(stored.id)])
    capsys.readouterr()
    cli.main(["--config", str(config_path), "insights", "list"])
    assert "No insights found" in capsys.readouterr().out


def test_insights_read_unknown_id(tmp_path):
    config_path = make_project(tmp_path)

    with pytest.raises(SystemExit) as excinfo:
        cli.main(["--config", str(config_path), "insights", "read", "99"])

    assert "does not exist" in str(excinfo.value.code)


def test_pulse(tmp_path, capsys):
    config_path = make_project(tmp_path)

    cli.main(["--config", str(config_path), "pulse"])

    out = capsys.readouterr().out
    assert "Low stock        : 1 products" in out
    assert "Customers        : 1 (1 VIP)" in out
    assert "Inventory value  : 150.00" in out


def test_financials_period(tmp_path, capsys):
    """'financials' prints the period totals and top expense categories."""
    config_path = make_project(tmp_path)
    today = date.today().isoformat()
    (tmp_path / "records" / "sales.csv").write_text(
        f"id,sale_date,total_amount\ns1,{today},200\ns2,2001-01-01,999\n", encoding="utf-8"
    )
    (tmp_path / "records" / "expenses.csv").write_text(
        f"id,expense_date,amount,category\ne1,{today},50,office_supplies\n",
        encoding="utf-8",
    )

    cli.main(["--config", str(config_path), "financials", "--period", "today"])

    out = capsys.readouterr().out
    assert "Financials: today" in out
    assert "Revenue      : 200.00 (1 orders)" in out
    assert "Net profit   : 150.00 (75.0% margin)" in out
    assert "office supplies" in out


def test_financials_rejects_unknown_period(tmp_path):
    config_path = make_project(tmp_path)

    with pytest.raises(SystemExit):
        cli.main(["--config", str(config_path), "financials", "--period", "year"])
