"""LLM recipe generation with a bounded two-attempt policy.

States: NOT_STARTED -> ATTEMPT_1 -> ATTEMPT_2 -> EXHAUSTED, or SUCCEEDED from
either attempt. Every attempt runs under the same timeout. Failures (timeouts,
upstream errors, unparseable or empty output) move to the next state; nothing
is raised to the caller, who receives a GenerationOutcome either way.
"""
import asyncio
import json
import logging
import math
import re
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from langchain_core.messages import HumanMessage, SystemMessage
from langchain_openai import ChatOpenAI

from stockchef.core.config import get_settings
from stockchef.services.prompt_builder import PromptSpec
from stockchef.services.recipe_models import IngredientLine, RecipeCandidate

logger = logging.getLogger(__name__)

_CODE_FENCE = re.compile(r"```(?:json)?", re.IGNORECASE)
_LEADING_NUMBER = re.compile(r"^\s*(\d+(?:[.,]\d+)?)")


class GenerationState(str, Enum):
    NOT_STARTED = "not_started"
    ATTEMPT_1 = "attempt_1"
    ATTEMPT_2 = "attempt_2"
    SUCCEEDED = "succeeded"
    EXHAUSTED = "exhausted"


_NEXT_STATE = {
    GenerationState.NOT_STARTED: GenerationState.ATTEMPT_1,
    GenerationState.ATTEMPT_1: GenerationState.ATTEMPT_2,
    GenerationState.ATTEMPT_2: GenerationState.EXHAUSTED,
}
_ATTEMPT_NUMBER = {GenerationState.ATTEMPT_1: 1, GenerationState.ATTEMPT_2: 2}


@dataclass(frozen=True)
class AttemptResult:
    number: int
    temperature: float
    candidates: tuple[RecipeCandidate, ...] = ()
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None and bool(self.candidates)


@dataclass(frozen=True)
class GenerationOutcome:
    state: GenerationState
    candidates: tuple[RecipeCandidate, ...] = ()
    attempts: tuple[AttemptResult, ...] = field(default_factory=tuple)

    @property
    def exhausted(self) -> bool:
        return self.state is GenerationState.EXHAUSTED


LLMFactory = Callable[[float], Any]


def openai_llm_factory(temperature: float) -> Any:
    """ChatOpenAI bound to JSON output at the given temperature."""
    settings = get_settings()
    if not settings.openai_api_key:
        raise ValueError("OPENAI_API_KEY is not configured.")
    llm = ChatOpenAI(
        api_key=settings.openai_api_key,
        model=settings.generation_model,
        temperature=temperature,
        timeout=settings.generation_timeout_seconds,
        max_retries=0,
    )
    return llm.bind(response_format={"type": "json_object"})


class GenerationClient:
    """Runs at most two generation attempts: conservative, then exploratory."""

    def __init__(
        self,
        llm_factory: LLMFactory = openai_llm_factory,
        temperatures: Sequence[float] = (0.2, 0.9),
        timeout: float = 20.0,
    ) -> None:
        if len(temperatures) != 2:
            raise ValueError("exactly two attempt temperatures are required")
        self.llm_factory = llm_factory
        self.temperatures = tuple(temperatures)
        self.timeout = timeout

    async def generate(self, prompt_spec: PromptSpec) -> GenerationOutcome:
        attempts: list[AttemptResult] = []
        state = _NEXT_STATE[GenerationState.NOT_STARTED]

        while state in _ATTEMPT_NUMBER:
            result = await self.attempt(prompt_spec, _ATTEMPT_NUMBER[state])
            attempts.append(result)
            if result.ok:
                return GenerationOutcome(GenerationState.SUCCEEDED, result.candidates, tuple(attempts))
            state = _NEXT_STATE[state]

        logger.warning("Generation exhausted after %d attempts", len(attempts))
        return GenerationOutcome(GenerationState.EXHAUSTED, (), tuple(attempts))

    async def attempt(self, prompt_spec: PromptSpec, attempt: int) -> AttemptResult:
        """
        Run one attempt (1-based). Failures are returned, never raised.
        """
        temperature = self.temperatures[attempt - 1]
        messages = [
            SystemMessage(content=prompt_spec.system_prompt),
            HumanMessage(content=prompt_spec.user_prompt),
        ]
        try:
            llm = self.llm_factory(temperature)
            response = await asyncio.wait_for(llm.ainvoke(messages), timeout=self.timeout)
        except asyncio.TimeoutError:
            logger.warning("Generation attempt %d timed out after %ss", attempt, self.timeout)
            return AttemptResult(attempt, temperature, error="timeout")
        except Exception as exc:
            logger.warning("Generation attempt %d failed: %s", attempt, exc)
            return AttemptResult(attempt, temperature, error=f"upstream: {exc}")

        text = getattr(response, "content", response)
        payload = extract_json_payload(text if isinstance(text, str) else str(text))
        if payload is None:
            logger.warning("Generation attempt %d returned no JSON payload", attempt)
            return AttemptResult(attempt, temperature, error="unparseable")

        candidates = parse_candidates(payload)
        if not candidates:
            logger.warning("Generation attempt %d returned no usable recipes", attempt)
            return AttemptResult(attempt, temperature, error="empty")

        logger.info("Generation attempt %d produced %d candidates (temperature=%s)", attempt, len(candidates), temperature)
        return AttemptResult(attempt, temperature, candidates=tuple(candidates))


def extract_json_payload(text: str) -> Any:
    """
    Decode the model output, tolerating chatter around the JSON.

    Tries the whole text first, then returns the longest JSON object or
    array found inside it. None when nothing decodes.
    """
    if not text:
        return None
    cleaned = _CODE_FENCE.sub("", text).strip()
    try:
        return json.loads(cleaned)
    except json.JSONDecodeError:
        pass

    decoder = json.JSONDecoder()
    best: Any = None
    best_length = 0
    index = 0
    while index < len(cleaned):
        if cleaned[index] not in "{[":
            index += 1
            continue
        try:
            value, end = decoder.raw_decode(cleaned, index)
        except json.JSONDecodeError:
            index += 1
            continue
        if end - index > best_length:
            best, best_length = value, end - index
        index = end
    return best


def parse_candidates(payload: Any) -> list[RecipeCandidate]:
    """Read recipe entries from a decoded payload, skipping malformed ones."""
    if isinstance(payload, dict):
        entries = payload.get("recipes", payload.get("foods"))
        if entries is None and "name" in payload:
            entries = [payload]
    else:
        entries = payload
    if not isinstance(entries, list):
        return []

    candidates = []
    for entry in entries:
        candidate = _parse_recipe(entry)
        if candidate is not None:
            candidates.append(candidate)
    return candidates


def _parse_recipe(entry: Any) -> Optional[RecipeCandidate]:
    if not isinstance(entry, dict):
        return None
    name = entry.get("name")
    raw_lines = entry.get("ingredients")
    if not isinstance(name, str) or not name.strip() or not isinstance(raw_lines, list) or not raw_lines:
        return None

    lines = []
    for raw in raw_lines:
        line = _parse_line(raw)
        if line is None:
            return None
        lines.append(line)

    return RecipeCandidate(
        name=name.strip(),
        ingredients=tuple(lines),
        quality=_parse_quality(entry.get("score", entry.get("quality"))),
    )


def _parse_line(raw: Any) -> Optional[IngredientLine]:
    if isinstance(raw, dict):
        name, quantity = raw.get("name"), raw.get("quantity", raw.get("amount"))
    elif isinstance(raw, (list, tuple)) and len(raw) == 2:
        name, quantity = raw
    else:
        return None
    if not isinstance(name, str) or not name.strip():
        return None
    parsed = _parse_number(quantity)
    if parsed is None:
        return None
    return IngredientLine(name=name.strip(), quantity=parsed)


def _parse_number(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        match = _LEADING_NUMBER.match(value)
        if not match:
            return None
        number = float(match.group(1).replace(",", "."))
    else:
        return None
    return number if math.isfinite(number) else None


def _parse_quality(value: Any) -> Optional[float]:
    number = _parse_number(value)
    if number is None:
        return None
    return min(1.0, max(0.0, number))


def get_generation_client() -> GenerationClient:
    """GenerationClient configured from settings."""
    settings = get_settings()
    return GenerationClient(
        temperatures=settings.generation_temperatures,
        timeout=settings.generation_timeout_seconds,
    )
