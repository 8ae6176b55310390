from __future__ import annotations

import asyncio
import json
import random
from collections.abc import Awaitable, Callable
from typing import TypeVar

import structlog
from pydantic import ValidationError

from skillforge.config import settings
from skillforge.connectors.llm import BaseLLMClient, create_llm_client
from skillforge.errors import GenerationError, GenerationErrorCode
from skillforge.schemas.skill import ProjectMetadata, Skill

log = structlog.get_logger()

T = TypeVar("T")

RETRYABLE_MARKERS = ("429", "500", "503", "overloaded")

SYSTEM_PROMPT = """\
You are a senior software architect specializing in AI agent tooling.

Given a product idea, design the set of "skills" (tools/functions) an AI agent \
would need to carry it out.

## Output format
Return ONLY a JSON array, no prose and no markdown fences. Each element:
{
  "id": "<short unique id>",
  "name": "<camelCase function name>",
  "description": "<concise internal description for the blueprint>",
  "toolDescription": "<professional description for the agent's system prompt: when and how to use the tool>",
  "parameters": [
    {
      "name": "<identifier>",
      "type": "string" | "number" | "boolean" | "object" | "array",
      "description": "<what the argument means>",
      "required": true | false
    }
  ],
  "implementation": "<Python body of an async function>"
}

## Rules
1. Produce 4-6 distinct, highly functional skills.
2. Skill names must be unique valid Python identifiers in camelCase.
3. The implementation is the BODY of `async def <name>(args):`. Every parameter is \
already bound to a local variable of the same name. Do not repeat the signature, \
use four-space indentation relative to the body, and always return a JSON-serializable value.
4. Use placeholder logic where external services would be needed, but keep it \
structurally sound.
"""

USER_PROMPT_TEMPLATE = """\
The user has an idea: "{idea}".
The package will be published as "{package_name}"; take the name into account.
Generate the skills now."""


# ---------------------------------------------------------------------------
# Retry
# ---------------------------------------------------------------------------

def is_retryable(exc: BaseException) -> bool:
    msg = str(exc)
    return any(marker in msg for marker in RETRYABLE_MARKERS)


def backoff_delay(attempt: int, base_delay: float) -> float:
    """Exponential delay for a 0-based attempt index, plus up to one base unit of jitter."""
    return (2 ** attempt) * base_delay + random.uniform(0, base_delay)


async def with_retry(
    fn: Callable[[], Awaitable[T]],
    max_retries: int = 2,
    base_delay: float = 1.0,
) -> T:
    """Await ``fn`` until it succeeds, retrying rate-limit and transient server errors.

    At most ``max_retries`` retries follow the first attempt. Non-retryable
    errors and the last failure are re-raised unchanged.
    """
    attempt = 0
    while True:
        try:
            return await fn()
        except Exception as exc:
            if not is_retryable(exc) or attempt >= max_retries:
                raise
            delay = backoff_delay(attempt, base_delay)
            log.warning(
                "generation.retry",
                attempt=attempt + 1,
                delay=round(delay, 2),
                error=str(exc),
            )
            await asyncio.sleep(delay)
            attempt += 1


# ---------------------------------------------------------------------------
# Error taxonomy
# ---------------------------------------------------------------------------

def classify_error(exc: BaseException) -> GenerationError:
    """Map a raw provider or transport error onto a GenerationError."""
    if isinstance(exc, GenerationError):
        return exc

    msg = str(exc)

    if "429" in msg:
        return GenerationError(
            "The model is overloaded or you've hit a rate limit. Please wait 30 seconds and try again.",
            GenerationErrorCode.rate_limit,
        )
    if "403" in msg or "PERMISSION_DENIED" in msg:
        return GenerationError(
            "Access denied. Your API key might not have permission for the configured model "
            "or billing isn't active.",
            GenerationErrorCode.permission_denied,
        )
    if "Requested entity was not found" in msg or "404" in msg:
        return GenerationError(
            "The configured AI model could not be found. Check the model name in your settings.",
            GenerationErrorCode.model_not_found,
        )
    if "quota" in msg or "exhausted" in msg:
        return GenerationError(
            "Your API quota has been exhausted. Check your provider dashboard for remaining credits.",
            GenerationErrorCode.quota_exhausted,
        )
    if "SAFETY" in msg or "blocked" in msg or "candidate" in msg:
        return GenerationError(
            "The request was blocked by safety filters. Try rephrasing your idea to avoid "
            "sensitive or restricted topics.",
            GenerationErrorCode.safety_blocked,
        )
    return GenerationError(
        msg or "An unexpected error occurred while forging your skills. Please try again.",
        GenerationErrorCode.unknown,
    )


# ---------------------------------------------------------------------------
# Response parsing
# ---------------------------------------------------------------------------

def _strip_code_fence(text: str) -> str:
    text = text.strip()
    if text.startswith("```"):
        text = text.split("\n", 1)[1] if "\n" in text else ""
        if text.rstrip().endswith("```"):
            text = text.rstrip()[:-3]
    return text.strip()


def parse_skills(text: str | None) -> list[Skill]:
    if not text or not text.strip():
        raise GenerationError(
            "The AI returned an empty response. This can happen if the content was flagged "
            "or the model timed out.",
            GenerationErrorCode.empty_response,
        )

    try:
        data = json.loads(_strip_code_fence(text))
        if not isinstance(data, list) or not data:
            raise ValueError("expected a non-empty JSON array")
        return [Skill.model_validate(item) for item in data]
    except (ValueError, ValidationError) as exc:
        log.error("generation.parse_failed", error=str(exc), content=text[:500])
        raise GenerationError(
            "The generated code was malformed. Please try again with a slightly different "
            "idea description.",
            GenerationErrorCode.parse_error,
        ) from exc


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------

class SkillGenerationService:
    """Asks the configured model for a skill set and normalizes every failure."""

    def __init__(
        self,
        llm: BaseLLMClient | None = None,
        api_key: str | None = None,
        max_retries: int | None = None,
        base_delay: float | None = None,
    ):
        self._llm = llm
        self._api_key = settings.active_api_key if api_key is None else api_key
        self._max_retries = settings.generation_max_retries if max_retries is None else max_retries
        self._base_delay = (
            settings.generation_base_delay_seconds if base_delay is None else base_delay
        )

    async def generate(self, metadata: ProjectMetadata) -> list[Skill]:
        if not self._api_key:
            raise GenerationError(
                "API key is missing. Please ensure your environment is configured correctly.",
                GenerationErrorCode.missing_key,
            )

        llm = self._llm or create_llm_client()
        user_message = USER_PROMPT_TEMPLATE.format(
            idea=metadata.idea, package_name=metadata.package_name
        )

        try:
            response = await with_retry(
                lambda: llm.complete(SYSTEM_PROMPT, user_message),
                max_retries=self._max_retries,
                base_delay=self._base_delay,
            )
            skills = parse_skills(response.text)
        except GenerationError as exc:
            log.error("generation.failed", code=exc.code, error=exc.message)
            raise
        except Exception as exc:
            classified = classify_error(exc)
            log.error("generation.failed", code=classified.code, error=str(exc))
            raise classified from exc

        log.info("generation.completed", package=metadata.package_name, skills=len(skills))
        return skills
