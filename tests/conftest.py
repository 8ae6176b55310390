import json
import types

import pytest
import structlog

from skillforge.connectors.llm import BaseLLMClient, LLMResponse
from skillforge.schemas.skill import Parameter, ParameterType, ProjectMetadata, Skill


def _load_artifact(text: str) -> types.ModuleType:
    """Execute generated skillset.py source as an in-memory module."""
    module = types.ModuleType("skillset")
    exec(compile(text, "skillset.py", "exec"), module.__dict__)
    return module


class FakeLLM(BaseLLMClient):
    """Replays a scripted list of responses (str) or failures (Exception)."""

    def __init__(self, outcomes):
        self._outcomes = list(outcomes)
        self.calls = 0

    async def complete(self, system_prompt, user_message):
        self.calls += 1
        outcome = self._outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return LLMResponse(text=outcome)


@pytest.fixture(autouse=True)
def _reset_structlog():
    # the CLI points structlog at whatever sys.stderr is, which capsys closes after each test
    yield
    structlog.reset_defaults()


@pytest.fixture
def load_artifact():
    return _load_artifact


@pytest.fixture
def fake_llm():
    return FakeLLM


@pytest.fixture
def metadata():
    return ProjectMetadata(
        idea="A calculator agent",
        package_name="calc-tools",
        version="1.2.0",
        author="Ada",
        description="Arithmetic skills for agents",
    )


@pytest.fixture
def add_numbers():
    return Skill(
        id="s1",
        name="addNumbers",
        description="Adds two numbers",
        tool_description="Use this to add two numbers together",
        parameters=[
            Parameter(name="a", type=ParameterType.number, description="First operand", required=True),
            Parameter(name="b", type=ParameterType.number, description="Second operand", required=True),
        ],
        implementation="return a+b",
    )


@pytest.fixture
def format_report():
    return Skill(
        id="s2",
        name="formatReport",
        description="Formats a report",
        tool_description="",
        parameters=[
            Parameter(name="title", type=ParameterType.string, description="Report title", required=True),
            Parameter(name="rows", type=ParameterType.array, description="Data rows", required=False),
            Parameter(name="options", type=ParameterType.object, description="Layout options", required=False),
            Parameter(name="draft", type=ParameterType.boolean, description="Mark as draft", required=False),
        ],
        implementation=(
            "lines = [title]\n"
            "for row in rows or []:\n"
            "    lines.append(str(row))\n"
            "if draft:\n"
            "    lines.append(\"(draft)\")\n"
            "return {\"text\": \"\\n\".join(lines), \"options\": options or {}}"
        ),
    )


@pytest.fixture
def skills(add_numbers, format_report):
    return [add_numbers, format_report]


@pytest.fixture
def skills_json(skills):
    return json.dumps([s.to_wire() for s in skills])
