# Sanka Pulse - Business insights engine for small businesses
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Configuration helpers for Sanka Pulse.

This module is responsible for:
- loading the main application configuration from a TOML file,
- validating it and filling in defaults,
- exposing typed dataclasses used by the rest of the application.
"""

import tomllib
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

from .aggregator import DEFAULT_WINDOW_DAYS
from .db import DatabaseConfig
from .reasoning import ReasonerConfig

DEFAULT_CONFIG_FILE = "sanka_pulse_config.toml"


@dataclass(frozen=True)
class AppConfig:
    """
    Application-wide configuration for Sanka Pulse.

    This aggregates:
    - the database configuration (where insights are stored),
    - the data directory (where business records are read from),
    - the reasoning provider configuration,
    - the insight generation options (window length, concurrency).
    """

    database: DatabaseConfig
    data_dir: Path
    reasoning: ReasonerConfig
    window_days: int
    concurrent: bool


def _load_toml(path: Path) -> dict[str, Any]:
    """
    Load a TOML file and return its content as a dictionary.

    Raises:
        FileNotFoundError: if the file does not exist.
        ValueError: if the TOML content cannot be parsed or is not a table.
    """
    if not path.is_file():
        raise FileNotFoundError(f"Config file not found: {path}")

    try:
        data = tomllib.loads(path.read_text(encoding="utf-8"))
    except Exception as exc:  # noqa: BLE001
        raise ValueError(f"Failed to parse TOML config file: {path}") from exc

    if not isinstance(data, dict):
        raise ValueError(f"Invalid TOML root type in {path}, expected a table.")

    return data


def _section(raw: Mapping[str, Any], name: str) -> Mapping[str, Any]:
    """Return a top-level table, or an empty mapping if absent or invalid."""
    section = raw.get(name) or {}
    if not isinstance(section, Mapping):
        return {}
    return section


def _parse_reasoning(section: Mapping[str, Any]) -> ReasonerConfig:
    """
    Build the reasoning configuration from the [reasoning] table.

    Raises:
        ValueError: if temperature or timeout_seconds are not numbers, or
            if the timeout is not positive.
    """
    defaults = ReasonerConfig()

    try:
        temperature = float(section.get("temperature", defaults.temperature))
    except (TypeError, ValueError) as exc:
        raise ValueError(
            "Invalid value for 'reasoning.temperature' in the configuration. "
            "Expected a number."
        ) from exc

    try:
        timeout = float(section.get("timeout_seconds", defaults.timeout_seconds))
    except (TypeError, ValueError) as exc:
        raise ValueError(
            "Invalid value for 'reasoning.timeout_seconds' in the configuration. "
            "Expected a number."
        ) from exc
    if timeout <= 0:
        raise ValueError("'reasoning.timeout_seconds' must be positive.")

    base_url_raw = section.get("base_url")
    base_url = str(base_url_raw) if base_url_raw else None

    return ReasonerConfig(
        provider=str(section.get("provider") or defaults.provider),
        model=str(section.get("model") or defaults.model),
        api_key_env=str(section.get("api_key_env") or defaults.api_key_env),
        base_url=base_url,
        temperature=temperature,
        timeout_seconds=timeout,
    )


def load_app_config(config_path: Optional[str] = None) -> AppConfig:
    """
    Load the Sanka Pulse application configuration from a TOML file.

    Expected top-level sections in the TOML file
    --------------------------------------------
    [database]
        Database engine ("sqlite") and SQLite file path.

    [data]
        ``directory``: folder holding products.csv, customers.csv,
        sales.csv, sale_items.csv and expenses.csv.

    [reasoning]
        ``provider``, ``model``, ``api_key_env`` (name of the environment
        variable holding the API key), optional ``base_url``,
        ``temperature`` and ``timeout_seconds``.

    [insights]
        ``window_days`` (recency window, default 30) and ``concurrent``
        (run the analyzers concurrently, default false).

    Every section is optional and falls back to defaults. All file paths
    are resolved relative to the directory of the TOML file itself.

    Parameters
    ----------
    config_path : str, optional
        Path to the TOML configuration file. Defaults to
        ``sanka_pulse_config.toml`` in the current directory.

    Returns
    -------
    AppConfig
        Parsed and validated application configuration.
    """
    if config_path is None:
        config_file = Path(DEFAULT_CONFIG_FILE).resolve()
    else:
        config_file = Path(config_path).resolve()

    raw = _load_toml(config_file)
    base_dir = config_file.parent

    # 1) Database section
    database_section = _section(raw, "database")
    db_engine = str(database_section.get("engine") or "sqlite")
    db_path_raw = database_section.get("path") or "data/db/sanka_pulse.sqlite"
    db_path = (base_dir / str(db_path_raw)).resolve()
    database_config = DatabaseConfig(engine=db_engine, path=db_path)

    # 2) Data section
    data_section = _section(raw, "data")
    data_dir_raw = data_section.get("directory") or "data"
    data_dir = (base_dir / str(data_dir_raw)).resolve()

    # 3) Reasoning section
    reasoning = _parse_reasoning(_section(raw, "reasoning"))

    # 4) Insights section
    insights_section = _section(raw, "insights")
    try:
        window_days = int(insights_section.get("window_days", DEFAULT_WINDOW_DAYS))
    except (TypeError, ValueError) as exc:
        raise ValueError(
            "Invalid value for 'insights.window_days' in the configuration. "
            "Expected an integer."
        ) from exc
    if window_days < 0:
        raise ValueError("'insights.window_days' cannot be negative.")

    concurrent = insights_section.get("concurrent", False)
    if not isinstance(concurrent, bool):
        raise ValueError(
            "Invalid value for 'insights.concurrent' in the configuration. "
            "Expected true or false."
        )

    return AppConfig(
        database=database_config,
        data_dir=data_dir,
        reasoning=reasoning,
        window_days=window_days,
        concurrent=concurrent,
    )
