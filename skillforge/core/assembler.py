from __future__ import annotations

import asyncio
import io
import json
import zipfile
from typing import Any

import structlog

from skillforge.core.generator import ARTIFACT_FILENAME, ARTIFACT_MODULE, generate
from skillforge.errors import PackageAssemblyError
from skillforge.schemas.skill import ParameterType, ProjectMetadata, Skill

log = structlog.get_logger()

DESCRIPTOR_FILENAME = "pyproject.toml"
README_FILENAME = "README.md"

PACKAGE_SCOPE = "forge"
CLI_ALIAS = "skillforge"
LICENSE = "MIT"

DEPENDENCIES = ["python-dotenv>=1.0"]
DEV_DEPENDENCIES = ["build>=1.0"]
SCRIPTS = {
    "build": "python -m build",
    "start": f"python {ARTIFACT_FILENAME}",
}

_SAMPLE_VALUES: dict[ParameterType, Any] = {
    ParameterType.string: "value",
    ParameterType.number: 0,
    ParameterType.boolean: True,
    ParameterType.array: [],
    ParameterType.object: {},
}


def scoped_name(package_name: str) -> str:
    return f"{PACKAGE_SCOPE}-{package_name}"


def _toml_str(value: str) -> str:
    # JSON string escapes are a subset of TOML basic-string escapes; DEL is
    # the one control character JSON leaves raw and TOML rejects
    return json.dumps(value, ensure_ascii=False).replace("\x7f", "\\u007f")


def _toml_list(values: list[str]) -> str:
    return "[" + ", ".join(_toml_str(v) for v in values) + "]"


def render_descriptor(metadata: ProjectMetadata) -> str:
    """Render the pyproject.toml for the generated package.

    Everything except name, version, description and author is fixed.
    """
    entry = f"{ARTIFACT_MODULE}:main"
    lines = [
        "[build-system]",
        'requires = ["setuptools>=68"]',
        'build-backend = "setuptools.build_meta"',
        "",
        "[project]",
        f"name = {_toml_str(scoped_name(metadata.package_name))}",
        f"version = {_toml_str(metadata.version)}",
        f"description = {_toml_str(metadata.description)}",
        f"authors = [{{ name = {_toml_str(metadata.author)} }}]",
        f"license = {{ text = {_toml_str(LICENSE)} }}",
        'requires-python = ">=3.11"',
        f"dependencies = {_toml_list(DEPENDENCIES)}",
        "",
        "[project.optional-dependencies]",
        f"dev = {_toml_list(DEV_DEPENDENCIES)}",
        "",
        "[project.scripts]",
        f"{_toml_str(metadata.package_name)} = {_toml_str(entry)}",
        f"{_toml_str(CLI_ALIAS)} = {_toml_str(entry)}",
        "",
        "[tool.setuptools]",
        f"py-modules = {_toml_list([ARTIFACT_MODULE])}",
        "",
        "[tool.skillforge.scripts]",
    ]
    lines.extend(f"{name} = {_toml_str(command)}" for name, command in SCRIPTS.items())
    return "\n".join(lines) + "\n"


def sample_arguments(skill: Skill) -> dict[str, Any]:
    return {p.name: _SAMPLE_VALUES[p.type] for p in skill.parameters}


def _render_skill_reference(skill: Skill) -> str:
    rows = "\n".join(
        f"| `{p.name}` | `{p.type.value}` | {'Yes' if p.required else 'No'} | {p.description} |"
        for p in skill.parameters
    )
    return (
        f"### `{skill.name}()`\n"
        f"\n"
        f"{skill.agent_description}\n"
        f"\n"
        f"#### Parameters\n"
        f"| Name | Type | Req | Description |\n"
        f"| :--- | :--- | :--- | :--- |\n"
        f"{rows}\n"
        f"\n"
        f"#### CLI Usage\n"
        f"```bash\n"
        f"{CLI_ALIAS} {skill.name} --args '{json.dumps(sample_arguments(skill))}'\n"
        f"```\n"
    )


def render_readme(metadata: ProjectMetadata, skills: list[Skill]) -> str:
    details = "\n---\n\n".join(_render_skill_reference(s) for s in skills)
    name = scoped_name(metadata.package_name)
    return (
        f"# {metadata.package_name}\n"
        f"\n"
        f"Skillset Blueprint for: {metadata.idea}\n"
        f"\n"
        f"## Quick Start\n"
        f"```bash\n"
        f"pip install {name}\n"
        f"# Or run interactively\n"
        f"python {ARTIFACT_FILENAME}\n"
        f"```\n"
        f"\n"
        f"## Skill Reference\n"
        f"{details}"
    )


def render_integration_snippet(metadata: ProjectMetadata) -> str:
    """Example host code that wires the package into an agent's tool loop."""
    return (
        f"# Dynamic discovery for {scoped_name(metadata.package_name)}\n"
        f"from {ARTIFACT_MODULE} import TOOL_MANIFEST, execute_skill\n"
        f"\n"
        f"\n"
        f"async def agent_bridge(call):\n"
        f'    """Route a model tool call to the matching skill."""\n'
        f'    return await execute_skill(call["name"], call.get("arguments", {{}}))\n'
    )


def build_preview(metadata: ProjectMetadata, skills: list[Skill]) -> dict[str, str]:
    """Return the text of every file shown on the export screen."""
    return {
        "index": generate(metadata, skills),
        "package": render_descriptor(metadata),
        "readme": render_readme(metadata, skills),
        "integration": render_integration_snippet(metadata),
    }


def assemble(metadata: ProjectMetadata, skills: list[Skill], generated_text: str) -> bytes:
    """Bundle the artifact, descriptor and README into zip bytes.

    The archive is built in memory and only returned once complete.
    """
    buffer = io.BytesIO()
    try:
        with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_DEFLATED) as zf:
            zf.writestr(ARTIFACT_FILENAME, generated_text)
            zf.writestr(DESCRIPTOR_FILENAME, render_descriptor(metadata))
            zf.writestr(README_FILENAME, render_readme(metadata, skills))
    except Exception as exc:
        log.exception("assembler.failed", package=metadata.package_name)
        raise PackageAssemblyError(f"Failed to build package archive: {exc}") from exc

    data = buffer.getvalue()
    log.info("assembler.assembled", package=metadata.package_name, skills=len(skills), size=len(data))
    return data


async def assemble_async(
    metadata: ProjectMetadata, skills: list[Skill], generated_text: str | None = None
) -> bytes:
    if generated_text is None:
        generated_text = generate(metadata, skills)
    return await asyncio.to_thread(assemble, metadata, skills, generated_text)
