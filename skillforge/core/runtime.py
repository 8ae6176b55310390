# Runtime support for generated skill packages.
#
# The source of this module is copied verbatim into every generated
# skillset.py, so it must only import from the standard library and must not
# reference anything else in the skillforge package.

from __future__ import annotations

import asyncio
import inspect
import json
import logging
import sys
import time
from collections.abc import Awaitable, Callable, Mapping, Sequence
from datetime import UTC, datetime
from typing import Any

runtime_log = logging.getLogger("skillforge.runtime")

SkillFunction = Callable[[dict[str, Any]], Awaitable[Any]]


# ---------------------------------------------------------------------------
# Dispatch errors
# ---------------------------------------------------------------------------

class DispatchError(Exception):
    """Raised by the dispatcher before a skill is invoked."""

    code = "DISPATCH_ERROR"

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class SkillNotFoundError(DispatchError):
    code = "NOT_FOUND"

    def __init__(self, skill_name: str, available: Sequence[str]):
        self.skill_name = skill_name
        self.available = list(available)
        super().__init__(
            f'Skill "{skill_name}" not found. Available: {", ".join(self.available)}'
        )


class ArgumentValidationError(DispatchError):
    """A single argument failed validation against the manifest schema."""


class MissingParameterError(ArgumentValidationError):
    code = "MISSING_PARAMETER"

    def __init__(self, parameter: str):
        self.parameter = parameter
        super().__init__(f'Validation Error: Missing required parameter "{parameter}"')


class TypeMismatchError(ArgumentValidationError):
    code = "TYPE_MISMATCH"

    def __init__(self, parameter: str, expected: str, actual: str):
        self.parameter = parameter
        self.expected = expected
        self.actual = actual
        super().__init__(
            f'Validation Error: Parameter "{parameter}" must be {expected}, but received {actual}'
        )


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------

def type_tag(value: Any) -> str:
    """Return the manifest type name describing a JSON-like value.

    ``None`` maps to ``"null"``, which no declared type accepts.
    """
    if isinstance(value, (list, tuple)):
        return "array"
    if value is None:
        return "null"
    # bool is a subclass of int, so it must be checked first
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, Mapping):
        return "object"
    return type(value).__name__


def validate_arguments(
    properties: Mapping[str, Mapping[str, Any]],
    required: Sequence[str],
    args: Mapping[str, Any],
) -> None:
    """Check ``args`` against a manifest parameter schema.

    Required names are checked first, in list order, and the first missing one
    is reported. Then every argument that also appears in ``properties`` is
    type-checked. Arguments the schema does not mention are ignored.
    """
    for name in required or []:
        if name not in args:
            raise MissingParameterError(name)

    for key, value in args.items():
        schema = properties.get(key)
        if not schema:
            continue

        expected = schema.get("type")
        actual = type_tag(value)
        if expected == "array":
            valid = actual == "array"
        elif expected == "object":
            valid = actual == "object"
        else:
            valid = actual == expected

        if not valid:
            raise TypeMismatchError(key, str(expected), actual)


def find_manifest_entry(
    manifest: Sequence[Mapping[str, Any]], skill_name: str
) -> Mapping[str, Any] | None:
    for entry in manifest:
        if entry.get("name") == skill_name:
            return entry
    return None


# ---------------------------------------------------------------------------
# Dispatch
# ---------------------------------------------------------------------------

async def dispatch(
    registry: Mapping[str, SkillFunction],
    manifest: Sequence[Mapping[str, Any]],
    skill_name: str,
    args: dict[str, Any] | None = None,
) -> Any:
    """Validate ``args`` for ``skill_name`` and invoke the registered skill.

    Errors raised by the skill itself are logged and re-raised unchanged.
    """
    args = {} if args is None else args
    started = time.perf_counter()
    timestamp = datetime.now(UTC).isoformat()

    runtime_log.info("[%s] [SkillForge] Dispatching skill: %s", timestamp, skill_name)

    skill = registry.get(skill_name)
    if skill is None:
        err = SkillNotFoundError(skill_name, list(registry))
        runtime_log.error("[%s] [SkillForge] Error: %s", timestamp, err)
        raise err

    entry = find_manifest_entry(manifest, skill_name)
    if entry is not None:
        schema = entry.get("parameters") or {}
        validate_arguments(schema.get("properties") or {}, schema.get("required") or [], args)

    try:
        result = skill(args)
        if inspect.isawaitable(result):
            result = await result
    except Exception as exc:
        runtime_log.error(
            "[%s] [SkillForge] Runtime error in %s: %s", timestamp, skill_name, exc
        )
        raise

    duration_ms = (time.perf_counter() - started) * 1000
    runtime_log.info(
        "[%s] [SkillForge] Success: %s in %.0fms", timestamp, skill_name, duration_ms
    )
    return result


# ---------------------------------------------------------------------------
# Command line
# ---------------------------------------------------------------------------

def configure_logging() -> None:
    logging.basicConfig(level=logging.INFO, format="%(message)s", stream=sys.stderr)


def _load_args(raw: str) -> dict[str, Any]:
    parsed = json.loads(raw)
    if not isinstance(parsed, dict):
        raise ValueError("--args must be a JSON object")
    return parsed


def _print_help(package_name: str, version: str, manifest: Sequence[Mapping[str, Any]]) -> None:
    print(f"\n{package_name} v{version}")
    print("USAGE:")
    print("  python skillset.py                       interactive mode")
    print("  python skillset.py <skillName> --args='{\"key\": \"val\"}'")
    print("\nSKILLS:")
    for entry in manifest:
        print(f"  - {entry.get('name')}: {entry.get('description', '')}")


def _run_interactive(
    package_name: str,
    version: str,
    manifest: Sequence[Mapping[str, Any]],
    execute: Callable[[str, dict[str, Any]], Awaitable[Any]],
    prompt: Callable[[str], str],
) -> int:
    print(f"\nSkillForge interactive mode - {package_name} v{version}")
    print("Available skills:", ", ".join(str(m.get("name")) for m in manifest))

    try:
        skill_name = prompt("\nEnter skill name: ").strip()
        if not skill_name:
            return 0
        raw_args = prompt("Enter JSON arguments (default {}): ").strip() or "{}"
    except EOFError:
        return 0

    try:
        result = asyncio.run(execute(skill_name, _load_args(raw_args)))
    except Exception as exc:
        print(f"\nInteractive error: {exc}")
        return 1

    print("\n[RESULT]:", json.dumps(result, indent=2, default=str))
    return 0


def _run_direct(
    argv: Sequence[str],
    execute: Callable[[str, dict[str, Any]], Awaitable[Any]],
) -> int:
    skill_name = argv[0]
    raw_args = "{}"
    for i, arg in enumerate(argv):
        if arg.startswith("--args="):
            raw_args = arg[len("--args="):]
        elif arg == "--args" and i + 1 < len(argv):
            raw_args = argv[i + 1]

    try:
        result = asyncio.run(execute(skill_name, _load_args(raw_args)))
    except Exception as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    print(json.dumps(result, indent=2, default=str))
    return 0


def run_cli(
    argv: Sequence[str],
    *,
    package_name: str,
    version: str,
    manifest: Sequence[Mapping[str, Any]],
    execute: Callable[[str, dict[str, Any]], Awaitable[Any]],
    prompt: Callable[[str], str] = input,
) -> int:
    """Run one of the three one-shot CLI modes and return the exit status.

    ``--help``/``-h`` prints usage, no arguments starts the interactive
    prompt, anything else is a direct ``<skill> [--args <json>]`` call.
    """
    argv = list(argv)
    if "--help" in argv or "-h" in argv:
        _print_help(package_name, version, manifest)
        return 0
    if not argv:
        return _run_interactive(package_name, version, manifest, execute, prompt)
    return _run_direct(argv, execute)
