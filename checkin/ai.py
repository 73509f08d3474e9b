# checkin/ai.py
from __future__ import annotations

import json
import logging
from typing import Any

from openai import OpenAI

from checkin.errors import TransientDependencyError
from checkin.models import AIResponse

log = logging.getLogger("checkin.ai")

RISK_LEVELS = ("low", "moderate", "high")

SYSTEM_PROMPT = (
    "You are an assistant helping a human advisor prepare a reply to a client's check-in.\n"
    "Read the client's primary goal and any additional context. Be concise and concrete; "
    "never invent facts that are not in the input.\n"
    'Return JSON: {"summary": str, "suggested_actions": [str, ...], "risk_profile": "low"|"moderate"|"high"}. '
    "Three to five suggested actions, most important first. No extra keys."
)


def _normalize(data: dict[str, Any]) -> AIResponse:
    summary = str(data.get("summary") or "").strip()
    if not summary:
        raise ValueError("analysis returned no summary")
    actions = data.get("suggested_actions") or []
    if isinstance(actions, str):
        actions = [actions]
    risk = str(data.get("risk_profile") or "moderate").strip().lower()
    if risk not in RISK_LEVELS:
        risk = "moderate"
    return AIResponse(
        summary=summary,
        suggested_actions=[str(a).strip() for a in actions if str(a).strip()],
        risk_profile=risk,
    )


class OpenAIAnalyzer:
    """Chat-completions analysis. Any SDK, timeout or parse failure is a TransientDependencyError."""

    def __init__(self, api_key: str, *, model: str = "gpt-4o-mini", timeout: float = 30,
                 temperature: float = 0.3, client: OpenAI | None = None):
        self.model = model
        self.temperature = temperature
        self.client = client or OpenAI(api_key=api_key, timeout=timeout, max_retries=0)

    def analyze(self, primary_goal: str | None, info: Any) -> AIResponse:
        user = json.dumps(
            {"primary_goal": primary_goal, "additional_info": info},
            default=str,
        )
        try:
            resp = self.client.chat.completions.create(
                model=self.model,
                temperature=self.temperature,
                messages=[
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {"role": "user", "content": user},
                ],
                response_format={"type": "json_object"},
            )
            raw = resp.choices[0].message.content or "{}"
            return _normalize(json.loads(raw))
        except Exception as e:
            log.warning("analysis failed (%s): %s", self.model, e)
            raise TransientDependencyError(f"analysis failed: {type(e).__name__}") from e


class PlaceholderAnalyzer:
    """Deterministic stand-in used when no model credentials are configured."""

    def analyze(self, primary_goal: str | None, info: Any) -> AIResponse:
        return AIResponse(
            summary=f"User wants to achieve {primary_goal or 'an unspecified goal'}",
            suggested_actions=[
                "Review current savings",
                "Set up detailed budget",
                "Schedule advisor meeting",
            ],
            risk_profile="moderate",
        )
