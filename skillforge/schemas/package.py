from __future__ import annotations

from pydantic import BaseModel, Field

from skillforge.schemas.skill import ProjectMetadata, Skill


class GenerateRequest(BaseModel):
    metadata: ProjectMetadata


class GenerateResponse(BaseModel):
    skills: list[Skill] = Field(default_factory=list)


class PreviewResponse(BaseModel):
    index: str = Field(..., description="Generated skillset.py")
    package: str = Field(..., description="Generated pyproject.toml")
    readme: str = Field(..., description="Generated README.md")
    integration: str = Field(..., description="Host integration example")


class ErrorDetail(BaseModel):
    code: str
    message: str
