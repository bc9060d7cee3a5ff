"""Narrative route summaries from a local Ollama instance.

Summaries are optional decoration: every failure surfaces as
``SummaryServiceError`` and the caller decides to carry on without one.
"""

from __future__ import annotations

import logging
import re
from typing import Optional, Protocol

import httpx

from walkmap.core.config import settings
from walkmap.core.constants import SUMMARY_MAX_CHARS
from walkmap.core.errors import SummaryServiceError
from walkmap.core.time_utils import format_distance, format_duration, format_long_date
from walkmap.schemas.track import SummaryRequest

logger = logging.getLogger(__name__)


class Summarizer(Protocol):
    def is_available(self) -> bool: ...

    def generate(self, request: SummaryRequest) -> str: ...


def build_prompt(request: SummaryRequest, region: str) -> str:
    """Compose the reflection prompt; statistics are woven in, not listed."""
    elevation = ""
    if request.elevation_gain_m:
        elevation += f"Elevation gain: {round(request.elevation_gain_m)}m. "
    if request.elevation_loss_m:
        elevation += f"Elevation loss: {round(request.elevation_loss_m)}m. "

    lines = [
        f"You are recalling a walk you took in {region}. Write a brief, personal "
        "reflection describing the experience of this walk. Your response should be "
        "no more than 50 words and written in past tense, as if you're telling a "
        "friend about it.",
        "",
        "Focus on:",
        "- The vibe and atmosphere of the neighborhood",
        "- What made this walk memorable or notable",
        f"- Any details specific to {region} that stood out",
        "",
        "Keep it conversational and authentic. Don't list statistics - weave them "
        "naturally into the narrative.",
        "",
        "Walk data:",
        f"- Distance: {format_distance(request.distance_km)}",
        f"- Duration: {format_duration(request.duration_minutes)}",
        f"- Date: {format_long_date(request.date)}",
    ]
    if elevation:
        lines.append(f"- {elevation.strip()}")
    lines += ["", "Your reflection:"]
    return "\n".join(lines)


def clean_summary(text: str) -> str:
    """Trim, drop wrapping quotes, ensure final punctuation, cap length."""
    summary = text.strip()
    summary = re.sub(r"^[\"']|[\"']$", "", summary)
    if not re.search(r"[.!?]$", summary):
        summary += "."
    if len(summary) > SUMMARY_MAX_CHARS:
        summary = summary[: SUMMARY_MAX_CHARS - 3] + "..."
    return summary


class OllamaSummarizer:
    """Blocking client for Ollama's ``/api/generate`` endpoint."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        model: Optional[str] = None,
        timeout: Optional[float] = None,
        probe_timeout: Optional[float] = None,
        region: Optional[str] = None,
        client: Optional[httpx.Client] = None,
    ):
        self.base_url = (base_url or settings.ollama_url).rstrip("/")
        self.model = model or settings.ollama_model
        self.timeout = timeout if timeout is not None else settings.ollama_timeout_seconds
        self.probe_timeout = (
            probe_timeout if probe_timeout is not None else settings.ollama_probe_timeout_seconds
        )
        self.region = region or settings.summary_region
        self._client = client
        self._owns_client = client is None

    @property
    def client(self) -> httpx.Client:
        if self._client is None:
            self._client = httpx.Client()
        return self._client

    def close(self) -> None:
        if self._owns_client and self._client is not None:
            self._client.close()
            self._client = None

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.close()

    def is_available(self) -> bool:
        try:
            r = self.client.get(f"{self.base_url}/api/tags", timeout=self.probe_timeout)
        except httpx.HTTPError as e:
            logger.debug("Ollama probe failed: %s", e)
            return False
        return r.status_code == 200

    def generate(self, request: SummaryRequest) -> str:
        payload = {
            "model": self.model,
            "prompt": build_prompt(request, self.region),
            "stream": False,
            "options": {
                "temperature": 0.7,
                "num_predict": 100,  # ~50 words
            },
        }
        try:
            r = self.client.post(f"{self.base_url}/api/generate", json=payload, timeout=self.timeout)
        except httpx.HTTPError as e:
            raise SummaryServiceError(f"Ollama request failed: {e}") from e
        if r.status_code != 200:
            raise SummaryServiceError(f"Ollama request failed: {r.status_code}")
        try:
            data = r.json()
        except ValueError as e:
            raise SummaryServiceError("Ollama returned invalid JSON") from e
        text = data.get("response") if isinstance(data, dict) else None
        if not isinstance(text, str) or not text.strip():
            raise SummaryServiceError("Ollama returned an empty response")
        return clean_summary(text)
