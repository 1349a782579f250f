"""Batched question answering through an external language model."""

from __future__ import annotations

import json
import logging
import os
import re
from typing import Any, Dict, List, Mapping, Sequence

from openai import AsyncOpenAI

from formflow_engine.core.errors import OracleError

logger = logging.getLogger(__name__)

_NUMBER_PREFIX = re.compile(r"^\d+[.)]\s*")


def build_batch_prompt(questions: Sequence[str], profile: Mapping[str, Any] | None) -> str:
    numbered = "\n".join(f"{position}. {question}" for position, question in enumerate(questions, start=1))
    return (
        "Answer these job application questions based on the resume data:\n"
        f"{numbered}\n\n"
        f"Resume data: {json.dumps(dict(profile or {}), indent=2)}\n\n"
        "Respond with numbered answers, one per line."
    )


def parse_numbered_answers(text: str, expected: int) -> List[str]:
    """Split a numbered reply into ``expected`` answers, by position.

    Positions the reply does not cover come back as empty strings.
    """

    lines = [line.strip() for line in (text or "").splitlines() if line.strip()]
    answers: List[str] = []
    for position in range(expected):
        line = lines[position] if position < len(lines) else ""
        answers.append(_NUMBER_PREFIX.sub("", line).strip())
    return answers


class OpenAIOracle:
    """Oracle backed by the OpenAI chat completions API."""

    def __init__(
        self,
        *,
        model: str = "gpt-4o-mini",
        api_key: str | None = None,
        temperature: float = 0.2,
        max_tokens: int = 800,
        client: AsyncOpenAI | None = None,
    ) -> None:
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens
        self._client = client or AsyncOpenAI(api_key=api_key or os.getenv("OPENAI_API_KEY"))

    async def answer_batch(self, prompt: str, count: int) -> List[str]:
        try:
            response = await self._client.chat.completions.create(
                model=self.model,
                messages=[{"role": "user", "content": prompt}],
                temperature=self.temperature,
                max_tokens=self.max_tokens,
            )
        except Exception as exc:  # noqa: BLE001
            raise OracleError(f"oracle request failed: {exc}") from exc
        content = response.choices[0].message.content if response.choices else None
        if not content:
            raise OracleError("oracle returned an empty response")
        logger.debug("oracle answered %d questions", count)
        return parse_numbered_answers(content, count)

    @classmethod
    def from_settings(cls, settings: Dict[str, Any]) -> "OpenAIOracle":
        api_key_env = settings.get("api_key_env", "OPENAI_API_KEY")
        return cls(
            model=settings.get("model", "gpt-4o-mini"),
            api_key=os.getenv(api_key_env),
            temperature=float(settings.get("temperature", 0.2)),
            max_tokens=int(settings.get("max_tokens", 800)),
        )


__all__ = ["OpenAIOracle", "build_batch_prompt", "parse_numbered_answers"]
