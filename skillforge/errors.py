"""Exception classes for SkillForge.

Every error carries a stable machine-readable ``code`` next to its
human-readable message so API and CLI layers can report it without
inspecting message text.
"""

from __future__ import annotations

from enum import StrEnum

from skillforge.core.runtime import (  # noqa: F401 - re-exported
    ArgumentValidationError,
    DispatchError,
    MissingParameterError,
    SkillNotFoundError,
    TypeMismatchError,
)


class SkillForgeError(Exception):
    """Base class for all SkillForge errors."""

    code: str = "SKILLFORGE_ERROR"

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


# ---------------------------------------------------------------------------
# Packaging
# ---------------------------------------------------------------------------

class PackageAssemblyError(SkillForgeError):
    code = "ASSEMBLY_FAILED"


class RestoreError(SkillForgeError):
    """Raised when an archive cannot be turned back into a skill set."""

    code = "RESTORE_FAILED"


class MissingArchiveMemberError(RestoreError):
    code = "MISSING_ARCHIVE_MEMBER"

    def __init__(self, member: str):
        self.member = member
        super().__init__(f"Invalid skill package: missing {member}")


class InvalidArchiveError(RestoreError):
    code = "INVALID_ARCHIVE"


class ManifestNotFoundError(RestoreError):
    code = "MANIFEST_NOT_FOUND"

    def __init__(self) -> None:
        super().__init__("Could not find TOOL_MANIFEST in package")


# ---------------------------------------------------------------------------
# Generation
# ---------------------------------------------------------------------------

class GenerationErrorCode(StrEnum):
    rate_limit = "RATE_LIMIT"
    permission_denied = "PERMISSION_DENIED"
    model_not_found = "MODEL_NOT_FOUND"
    quota_exhausted = "QUOTA_EXHAUSTED"
    safety_blocked = "SAFETY_BLOCKED"
    empty_response = "EMPTY_RESPONSE"
    parse_error = "PARSE_ERROR"
    missing_key = "MISSING_KEY"
    unknown = "UNKNOWN_ERROR"


class GenerationError(SkillForgeError):
    """A classified failure of the skill generation call."""

    def __init__(self, message: str, code: GenerationErrorCode = GenerationErrorCode.unknown):
        self.code = code
        super().__init__(message)


# ---------------------------------------------------------------------------
# Workflow
# ---------------------------------------------------------------------------

class InvalidTransitionError(SkillForgeError):
    code = "INVALID_TRANSITION"

    def __init__(self, step: str, event: str):
        self.step = step
        self.event = event
        super().__init__(f"Cannot handle {event} while in step '{step}'")
