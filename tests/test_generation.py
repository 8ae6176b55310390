"""Tests for retry, error classification and the generation service."""

import json

import pytest

from skillforge.core.generation import (
    SkillGenerationService,
    backoff_delay,
    classify_error,
    is_retryable,
    parse_skills,
    with_retry,
)
from skillforge.errors import GenerationError, GenerationErrorCode
from skillforge.schemas.skill import ParameterType


class Flaky:
    """Fails with the queued errors, then returns ``result``."""

    def __init__(self, errors, result="ok"):
        self._errors = list(errors)
        self._result = result
        self.calls = 0

    async def __call__(self):
        self.calls += 1
        if self._errors:
            raise self._errors.pop(0)
        return self._result


def _service(fake_llm, outcomes, **kwargs):
    llm = fake_llm(outcomes)
    kwargs.setdefault("api_key", "test-key")
    kwargs.setdefault("base_delay", 0)
    return llm, SkillGenerationService(llm=llm, **kwargs)


# ---------------------------------------------------------------------------
# with_retry
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_retries_transient_errors_until_success():
    fn = Flaky([RuntimeError("HTTP 429 Too Many Requests"), RuntimeError("503 overloaded")])
    assert await with_retry(fn, max_retries=2, base_delay=0) == "ok"
    assert fn.calls == 3


@pytest.mark.asyncio
async def test_retries_stop_after_max_retries():
    fn = Flaky([RuntimeError("500 internal")] * 5)
    with pytest.raises(RuntimeError, match="500 internal"):
        await with_retry(fn, max_retries=2, base_delay=0)
    assert fn.calls == 3


@pytest.mark.asyncio
async def test_non_retryable_error_fails_immediately():
    fn = Flaky([ValueError("bad request")])
    with pytest.raises(ValueError):
        await with_retry(fn, max_retries=2, base_delay=0)
    assert fn.calls == 1


@pytest.mark.asyncio
async def test_zero_retries_means_single_attempt():
    fn = Flaky([RuntimeError("429")])
    with pytest.raises(RuntimeError):
        await with_retry(fn, max_retries=0, base_delay=0)
    assert fn.calls == 1


@pytest.mark.parametrize(
    "message, retryable",
    [
        ("Error 429", True),
        ("500 Internal Server Error", True),
        ("503 Service Unavailable", True),
        ("model is overloaded", True),
        ("Overloaded", False),
        ("404 not found", False),
        ("", False),
    ],
)
def test_is_retryable(message, retryable):
    assert is_retryable(RuntimeError(message)) is retryable


@pytest.mark.parametrize("attempt", [0, 1, 2])
def test_backoff_delay_grows_exponentially(attempt):
    delay = backoff_delay(attempt, 1.0)
    assert 2 ** attempt <= delay <= 2 ** attempt + 1.0


# ---------------------------------------------------------------------------
# classify_error
# ---------------------------------------------------------------------------

@pytest.mark.parametrize(
    "message, code",
    [
        ("429 RESOURCE_EXHAUSTED", GenerationErrorCode.rate_limit),
        ("403 Forbidden", GenerationErrorCode.permission_denied),
        ("PERMISSION_DENIED: key rejected", GenerationErrorCode.permission_denied),
        ("Requested entity was not found.", GenerationErrorCode.model_not_found),
        ("404 model missing", GenerationErrorCode.model_not_found),
        ("You exceeded your current quota", GenerationErrorCode.quota_exhausted),
        ("credits exhausted", GenerationErrorCode.quota_exhausted),
        ("finish reason SAFETY", GenerationErrorCode.safety_blocked),
        ("prompt blocked", GenerationErrorCode.safety_blocked),
        ("no candidate returned", GenerationErrorCode.safety_blocked),
        ("connection reset", GenerationErrorCode.unknown),
    ],
)
def test_classify_error(message, code):
    assert classify_error(RuntimeError(message)).code == code


def test_classification_checks_rate_limit_first():
    # "quota" would also match, but 429 wins.
    assert classify_error(RuntimeError("429 quota exceeded")).code == GenerationErrorCode.rate_limit


def test_unknown_error_keeps_original_message():
    error = classify_error(RuntimeError("socket closed"))
    assert error.code == "UNKNOWN_ERROR"
    assert error.message == "socket closed"


def test_unknown_error_without_message_gets_generic_text():
    assert classify_error(RuntimeError()).message.startswith("An unexpected error occurred")


def test_classified_errors_pass_through():
    original = GenerationError("x", GenerationErrorCode.parse_error)
    assert classify_error(original) is original


# ---------------------------------------------------------------------------
# parse_skills
# ---------------------------------------------------------------------------

def test_parse_skills_reads_camel_case_records(skills_json):
    parsed = parse_skills(skills_json)
    assert [s.name for s in parsed] == ["addNumbers", "formatReport"]
    assert parsed[0].tool_description == "Use this to add two numbers together"
    assert parsed[1].parameters[1].type == ParameterType.array
    assert parsed[1].parameters[1].required is False


def test_parse_skills_strips_code_fences(skills_json):
    parsed = parse_skills(f"```json\n{skills_json}\n```")
    assert len(parsed) == 2


@pytest.mark.parametrize("text", [None, "", "   \n"])
def test_parse_skills_empty_response(text):
    with pytest.raises(GenerationError) as exc_info:
        parse_skills(text)
    assert exc_info.value.code == GenerationErrorCode.empty_response


@pytest.mark.parametrize(
    "text",
    [
        "not json at all",
        "[]",
        '{"name": "solo"}',
        json.dumps([{"name": "x", "parameters": [{"name": "p", "type": "date"}]}]),
    ],
)
def test_parse_skills_malformed(text):
    with pytest.raises(GenerationError) as exc_info:
        parse_skills(text)
    assert exc_info.value.code == GenerationErrorCode.parse_error


# ---------------------------------------------------------------------------
# SkillGenerationService
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_service_fails_fast_without_key(fake_llm, metadata):
    llm, service = _service(fake_llm, [], api_key="")
    with pytest.raises(GenerationError) as exc_info:
        await service.generate(metadata)
    assert exc_info.value.code == GenerationErrorCode.missing_key
    assert llm.calls == 0


@pytest.mark.asyncio
async def test_service_returns_parsed_skills(fake_llm, metadata, skills_json):
    llm, service = _service(fake_llm, [skills_json])
    result = await service.generate(metadata)
    assert [s.name for s in result] == ["addNumbers", "formatReport"]
    assert llm.calls == 1


@pytest.mark.asyncio
async def test_service_retries_then_succeeds(fake_llm, metadata, skills_json):
    llm, service = _service(fake_llm, [RuntimeError("503 unavailable"), skills_json])
    assert len(await service.generate(metadata)) == 2
    assert llm.calls == 2


@pytest.mark.asyncio
async def test_service_classifies_exhausted_rate_limit(fake_llm, metadata):
    llm, service = _service(fake_llm, [RuntimeError("429 slow down")] * 3, max_retries=2)
    with pytest.raises(GenerationError) as exc_info:
        await service.generate(metadata)
    assert exc_info.value.code == GenerationErrorCode.rate_limit
    assert isinstance(exc_info.value.__cause__, RuntimeError)
    assert llm.calls == 3


@pytest.mark.asyncio
async def test_service_does_not_retry_permission_errors(fake_llm, metadata):
    llm, service = _service(fake_llm, [RuntimeError("403 PERMISSION_DENIED")])
    with pytest.raises(GenerationError) as exc_info:
        await service.generate(metadata)
    assert exc_info.value.code == GenerationErrorCode.permission_denied
    assert llm.calls == 1


@pytest.mark.asyncio
async def test_service_reports_empty_response(fake_llm, metadata):
    _, service = _service(fake_llm, [""])
    with pytest.raises(GenerationError) as exc_info:
        await service.generate(metadata)
    assert exc_info.value.code == GenerationErrorCode.empty_response


@pytest.mark.asyncio
async def test_service_reports_parse_error(fake_llm, metadata):
    _, service = _service(fake_llm, ["Sure! Here are your skills: ..."])
    with pytest.raises(GenerationError) as exc_info:
        await service.generate(metadata)
    assert exc_info.value.code == GenerationErrorCode.parse_error
