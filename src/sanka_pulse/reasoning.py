# Sanka Pulse - Business insights engine for small businesses
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Reasoning capability used by the stage analyzers.

The analyzers do not talk to a language model directly. They depend on a
``Reasoner``: any object exposing ``invoke(prompt, response_schema)`` and
returning a JSON value that conforms to the requested schema. This keeps
the pipeline deterministic under test (a stub reasoner returns canned
answers) while production runs use ``OpenAIReasoner``.

Response contract
-----------------
Every analyzer requests the same response shape::

    {"insights": [{"title": str, "message": str,
                   "action_label": str, "priority": str}, ...]}

``parse_insights_response`` validates a returned value against this shape
and converts it into ``CandidateInsight`` objects. Anything else raises
``MalformedResponseError``.

Errors
------
- ``ReasonerError``          : the capability is unavailable or failed.
- ``MalformedResponseError`` : the capability answered, but with a value
                               that does not match the response contract.
"""

from __future__ import annotations

import json
import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Optional, Protocol

from openai import OpenAI, OpenAIError

from .models import CandidateInsight

logger = logging.getLogger(__name__)

INSIGHTS_RESPONSE_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "insights": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "title": {"type": "string"},
                    "message": {"type": "string"},
                    "action_label": {"type": "string"},
                    "priority": {"type": "string"},
                },
            },
        }
    },
}

SYSTEM_PROMPT = (
    "You are a business analyst for a small business owner. "
    "Answer with JSON only, matching the requested schema. "
    "Each insight needs a short title, a one or two sentence message with "
    "concrete numbers, a short action label, and a priority among "
    "'low', 'medium', 'high' or 'critical'."
)


class ReasonerError(RuntimeError):
    """The reasoning capability could not be reached or failed."""


class MalformedResponseError(ValueError):
    """The reasoning capability returned a value outside the response contract."""


class Reasoner(Protocol):
    def invoke(self, prompt: str, response_schema: Mapping[str, Any]) -> Any:
        ...


@dataclass(frozen=True)
class ReasonerConfig:
    """
    Configuration of the reasoning capability.

    Attributes
    ----------
    provider:
        Provider identifier. Only "openai" is supported for now (any
        OpenAI-compatible endpoint can be used through ``base_url``).
    model:
        Model name sent with each request.
    api_key_env:
        Name of the environment variable holding the API key.
    base_url:
        Optional custom endpoint.
    temperature:
        Sampling temperature.
    timeout_seconds:
        Per-request timeout applied by the client.
    """

    provider: str = "openai"
    model: str = "gpt-4o-mini"
    api_key_env: str = "OPENAI_API_KEY"
    base_url: Optional[str] = None
    temperature: float = 0.2
    timeout_seconds: float = 60.0


def parse_insights_response(value: Any) -> list[CandidateInsight]:
    """
    Validate a reasoner answer and convert it into candidate insights.

    Args:
        value: JSON value returned by ``Reasoner.invoke``.

    Returns:
        The candidate insights, in the order returned by the reasoner.

    Raises:
        MalformedResponseError: if the value is not an object with an
            ``insights`` array of objects carrying string ``title`` and
            ``message`` fields (``action_label`` and ``priority`` are
            optional but must be strings when present).
    """
    if not isinstance(value, Mapping):
        raise MalformedResponseError(
            f"Expected a JSON object, got {type(value).__name__}."
        )

    raw_insights = value.get("insights")
    if not isinstance(raw_insights, list):
        raise MalformedResponseError("Response is missing the 'insights' array.")

    candidates: list[CandidateInsight] = []
    for index, item in enumerate(raw_insights):
        if not isinstance(item, Mapping):
            raise MalformedResponseError(f"Insight #{index} is not a JSON object.")

        for key in ("title", "message"):
            if not isinstance(item.get(key), str):
                raise MalformedResponseError(
                    f"Insight #{index} has a missing or non-string '{key}'."
                )

        for key in ("action_label", "priority"):
            if item.get(key) is not None and not isinstance(item[key], str):
                raise MalformedResponseError(
                    f"Insight #{index} has a non-string '{key}'."
                )

        candidates.append(
            CandidateInsight(
                title=item["title"],
                message=item["message"],
                action_label=item.get("action_label"),
                priority=item.get("priority"),
            )
        )

    return candidates


class OpenAIReasoner:
    """Reasoner backed by the OpenAI chat completions API."""

    def __init__(
        self,
        *,
        model: str,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        temperature: float = 0.2,
        timeout_seconds: float = 60.0,
        client: Any = None,
    ):
        if client is None:
            if not api_key:
                raise ValueError("An API key is required to use the OpenAI reasoner.")
            client_kwargs: dict[str, Any] = {
                "api_key": api_key,
                "timeout": timeout_seconds,
            }
            if base_url:
                client_kwargs["base_url"] = base_url
            client = OpenAI(**client_kwargs)

        self._client = client
        self.model = model
        self.temperature = temperature

    def invoke(self, prompt: str, response_schema: Mapping[str, Any]) -> Any:
        try:
            completion = self._client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {"role": "user", "content": prompt},
                ],
                temperature=self.temperature,
                response_format={
                    "type": "json_schema",
                    "json_schema": {
                        "name": "insights_response",
                        "schema": dict(response_schema),
                    },
                },
            )
        except OpenAIError as exc:
            raise ReasonerError(f"Reasoning request failed: {exc}") from exc

        content = ""
        if completion.choices and completion.choices[0].message:
            content = completion.choices[0].message.content or ""

        try:
            return json.loads(content)
        except json.JSONDecodeError as exc:
            raise MalformedResponseError("Reasoner did not return valid JSON.") from exc


def build_reasoner(config: ReasonerConfig) -> Reasoner:
    """
    Build the reasoner described by the configuration.

    Raises:
        ValueError: if the provider is unknown or the API key is missing.
    """
    provider = config.provider.lower()
    if provider != "openai":
        raise ValueError(
            f"Unsupported reasoning provider: {config.provider!r}. "
            "Only 'openai' is supported for now."
        )

    api_key = os.getenv(config.api_key_env)
    if not api_key:
        raise ValueError(
            f"Environment variable {config.api_key_env} is not set; "
            "it must hold the API key of the reasoning provider."
        )

    logger.info("Using OpenAI reasoner with model %s", config.model)
    return OpenAIReasoner(
        model=config.model,
        api_key=api_key,
        base_url=config.base_url,
        temperature=config.temperature,
        timeout_seconds=config.timeout_seconds,
    )
