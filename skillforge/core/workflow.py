"""Forge workflow as an explicit tagged state machine.

Each screen of the forge is a state model discriminated by ``step``.
``transition`` is the only way to move between them; collaborator results
(generation, restore) arrive as events.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Annotated, Literal, Union

import structlog
from pydantic import BaseModel, Field

from skillforge.core.generation import SkillGenerationService
from skillforge.errors import GenerationError, InvalidTransitionError
from skillforge.schemas.skill import ProjectMetadata, Skill, SkillSet

log = structlog.get_logger()


# ---------------------------------------------------------------------------
# States
# ---------------------------------------------------------------------------

class GenerationFailure(BaseModel):
    code: str
    message: str


class InputState(BaseModel):
    step: Literal["input"] = "input"
    metadata: ProjectMetadata | None = None
    error: GenerationFailure | None = None


class GeneratingState(BaseModel):
    step: Literal["generating"] = "generating"
    metadata: ProjectMetadata


class ReviewState(BaseModel):
    step: Literal["review"] = "review"
    metadata: ProjectMetadata
    skills: list[Skill]


class ExportState(BaseModel):
    step: Literal["export"] = "export"
    metadata: ProjectMetadata
    skills: list[Skill]


class DocumentationState(BaseModel):
    step: Literal["documentation"] = "documentation"


class GalleryState(BaseModel):
    step: Literal["gallery"] = "gallery"


WorkflowState = Annotated[
    Union[
        InputState,
        GeneratingState,
        ReviewState,
        ExportState,
        DocumentationState,
        GalleryState,
    ],
    Field(discriminator="step"),
]


# ---------------------------------------------------------------------------
# Events
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class StartGeneration:
    metadata: ProjectMetadata


@dataclass(frozen=True)
class GenerationSucceeded:
    skills: list[Skill]


@dataclass(frozen=True)
class GenerationFailed:
    code: str
    message: str


@dataclass(frozen=True)
class SkillsUpdated:
    skills: list[Skill]


@dataclass(frozen=True)
class ProjectRestored:
    skill_set: SkillSet


@dataclass(frozen=True)
class Approve:
    pass


@dataclass(frozen=True)
class BackToReview:
    pass


@dataclass(frozen=True)
class OpenDocs:
    pass


@dataclass(frozen=True)
class OpenGallery:
    pass


@dataclass(frozen=True)
class Reset:
    pass


Event = Union[
    StartGeneration,
    GenerationSucceeded,
    GenerationFailed,
    SkillsUpdated,
    ProjectRestored,
    Approve,
    BackToReview,
    OpenDocs,
    OpenGallery,
    Reset,
]


# ---------------------------------------------------------------------------
# Transitions
# ---------------------------------------------------------------------------

def transition(state: WorkflowState, event: Event) -> WorkflowState:
    """Return the state that follows ``state`` on ``event``.

    Raises InvalidTransitionError for events the current step does not accept.
    A generation in flight only accepts its own success or failure.
    """
    if isinstance(state, GeneratingState):
        if isinstance(event, GenerationSucceeded):
            return ReviewState(metadata=state.metadata, skills=list(event.skills))
        if isinstance(event, GenerationFailed):
            return InputState(
                metadata=state.metadata,
                error=GenerationFailure(code=event.code, message=event.message),
            )
        raise InvalidTransitionError(state.step, type(event).__name__)

    if isinstance(event, Reset):
        return InputState()
    if isinstance(event, OpenDocs):
        return DocumentationState()
    if isinstance(event, OpenGallery):
        return GalleryState()
    if isinstance(event, ProjectRestored):
        return ReviewState(metadata=event.skill_set.metadata, skills=list(event.skill_set.skills))

    if isinstance(state, InputState) and isinstance(event, StartGeneration):
        return GeneratingState(metadata=event.metadata)
    if isinstance(state, ReviewState):
        if isinstance(event, SkillsUpdated):
            return ReviewState(metadata=state.metadata, skills=list(event.skills))
        if isinstance(event, Approve):
            return ExportState(metadata=state.metadata, skills=state.skills)
    if isinstance(state, ExportState) and isinstance(event, BackToReview):
        return ReviewState(metadata=state.metadata, skills=state.skills)

    raise InvalidTransitionError(state.step, type(event).__name__)


async def run_generation(
    state: WorkflowState,
    metadata: ProjectMetadata,
    service: SkillGenerationService,
) -> WorkflowState:
    """Drive ``state`` through a generation round trip with ``service``.

    Ends in ReviewState on success or back in InputState carrying the
    classified error.
    """
    generating = transition(state, StartGeneration(metadata))
    try:
        skills = await service.generate(metadata)
    except GenerationError as exc:
        log.warning("workflow.generation_failed", code=exc.code, package=metadata.package_name)
        return transition(generating, GenerationFailed(code=str(exc.code), message=exc.message))
    return transition(generating, GenerationSucceeded(skills))
