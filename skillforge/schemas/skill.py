from __future__ import annotations

import uuid
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


def new_skill_id() -> str:
    return uuid.uuid4().hex[:8]


class ParameterType(StrEnum):
    string = "string"
    number = "number"
    boolean = "boolean"
    object = "object"
    array = "array"


class _WireModel(BaseModel):
    """Accepts and emits the camelCase field names used on the wire."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


class Parameter(_WireModel):
    name: str
    type: ParameterType
    description: str = ""
    required: bool = True


class Skill(_WireModel):
    id: str = Field(default_factory=new_skill_id)
    name: str = Field(..., description="Function name and registry key, e.g. addNumbers")
    description: str = ""
    tool_description: str = Field(
        "", description="Text shown to the consuming agent; falls back to description"
    )
    parameters: list[Parameter] = Field(default_factory=list)
    implementation: str = Field("", description="Function body, carried verbatim")

    @property
    def agent_description(self) -> str:
        return self.tool_description or self.description

    def required_names(self) -> list[str]:
        return [p.name for p in self.parameters if p.required]


class ProjectMetadata(_WireModel):
    idea: str = ""
    package_name: str
    version: str = "1.0.0"
    author: str = "AI Forge"
    description: str = ""


class SkillSet(_WireModel):
    metadata: ProjectMetadata
    skills: list[Skill] = Field(default_factory=list)
