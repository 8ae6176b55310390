from __future__ import annotations

import inspect
import json
import textwrap

import structlog

from skillforge.core import runtime
from skillforge.schemas.skill import ProjectMetadata, Skill

log = structlog.get_logger()

ARTIFACT_FILENAME = "skillset.py"
ARTIFACT_MODULE = "skillset"

IMPLEMENTATION_MARKER = "# Implementation"

_RULE = "# " + "-" * 75

SKILLS_BANNER = f"{_RULE}\n# Skills\n{_RULE}"
MANIFEST_BANNER = f"{_RULE}\n# Manifest\n{_RULE}"
DISPATCHER_BANNER = f"{_RULE}\n# Dispatcher\n{_RULE}"

_HEADER_TEMPLATE = '''\
#!/usr/bin/env python3
"""{package_name} - AI agent skillset.

Generated by SkillForge. This module is self-contained: run it directly for
the command line interface, or import TOOL_MANIFEST and execute_skill from
it to register the skills with an agent.
"""
'''

_DISPATCHER_TEMPLATE = '''\
async def execute_skill(skill_name, args=None):
    """Validate ``args`` against TOOL_MANIFEST and run the named skill."""
    return await dispatch(SKILL_REGISTRY, TOOL_MANIFEST, skill_name, args)


def main(argv=None):
    configure_logging()
    return run_cli(
        sys.argv[1:] if argv is None else argv,
        package_name=PACKAGE_NAME,
        version=VERSION,
        manifest=TOOL_MANIFEST,
        execute=execute_skill,
    )


if __name__ == "__main__":
    sys.exit(main())
'''


def _literal(text: str) -> str:
    # JSON string literals are valid Python string literals
    return json.dumps(text, ensure_ascii=False)


def _runtime_source() -> str:
    return inspect.getsource(runtime).rstrip("\n")


def render_skill_function(skill: Skill) -> str:
    """Render one ``async def`` for a skill with its body inlined verbatim."""
    lines = [
        f"async def {skill.name}(args):",
        f"    {_literal(skill.agent_description)}",
    ]
    for param in skill.parameters:
        lines.append(f"    {param.name} = args.get({_literal(param.name)})")
    lines.append(f"    {IMPLEMENTATION_MARKER}")

    body = textwrap.indent(skill.implementation, "    ").rstrip("\n")
    if body:
        lines.append(body)
    return "\n".join(lines)


def render_manifest(skills: list[Skill]) -> str:
    """Render TOOL_MANIFEST as a Python literal, one entry per skill in order."""
    lines = ["TOOL_MANIFEST = ["]
    for skill in skills:
        lines.append("    {")
        lines.append(f'        "name": {_literal(skill.name)},')
        lines.append(f'        "description": {_literal(skill.agent_description)},')
        lines.append('        "parameters": {')
        lines.append('            "type": "object",')
        if skill.parameters:
            lines.append('            "properties": {')
            for param in skill.parameters:
                lines.append(
                    f"                {_literal(param.name)}: "
                    f'{{"type": {_literal(param.type.value)}, '
                    f'"description": {_literal(param.description)}}},'
                )
            lines.append("            },")
        else:
            lines.append('            "properties": {},')
        required = ", ".join(_literal(name) for name in skill.required_names())
        lines.append(f'            "required": [{required}],')
        lines.append("        },")
        lines.append("    },")
    lines.append("]")
    return "\n".join(lines)


def render_registry(skills: list[Skill]) -> str:
    lines = ["SKILL_REGISTRY = {"]
    for skill in skills:
        lines.append(f"    {_literal(skill.name)}: {skill.name},")
    lines.append("}")
    return "\n".join(lines)


def generate(metadata: ProjectMetadata, skills: list[Skill]) -> str:
    """Produce the text of the self-contained ``skillset.py`` module.

    Deterministic: the same metadata and skills always yield the same text.
    No skill is rejected; malformed names or bodies produce malformed source.
    """
    functions = "\n\n\n".join(render_skill_function(s) for s in skills)

    sections = [
        _HEADER_TEMPLATE.format(package_name=metadata.package_name),
        _runtime_source(),
        f"PACKAGE_NAME = {_literal(metadata.package_name)}\nVERSION = {_literal(metadata.version)}",
        SKILLS_BANNER,
        functions,
        MANIFEST_BANNER,
        render_manifest(skills),
        DISPATCHER_BANNER,
        render_registry(skills),
        _DISPATCHER_TEMPLATE,
    ]
    text = "\n\n\n".join(s.rstrip("\n") for s in sections if s) + "\n"

    log.debug(
        "generator.generated",
        package=metadata.package_name,
        skills=len(skills),
        size=len(text),
    )
    return text
