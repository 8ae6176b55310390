"""Best-effort recovery of a skill set from a previously exported archive.

Extraction is positional and pattern based, so it only understands text laid
out exactly the way :mod:`skillforge.core.generator` writes it. The round trip
is lossy: ``required`` is not recovered (every parameter comes back required)
and ``description``/``tool_description`` collapse into the single manifest
description.
"""

from __future__ import annotations

import asyncio
import io
import json
import re
import textwrap
import tomllib
import zipfile
from typing import Any

import structlog

from skillforge.core.assembler import DESCRIPTOR_FILENAME, PACKAGE_SCOPE
from skillforge.core.generator import (
    ARTIFACT_FILENAME,
    IMPLEMENTATION_MARKER,
    MANIFEST_BANNER,
    SKILLS_BANNER,
)
from skillforge.errors import InvalidArchiveError, ManifestNotFoundError, MissingArchiveMemberError
from skillforge.schemas.skill import Parameter, ParameterType, ProjectMetadata, Skill, SkillSet

log = structlog.get_logger()

DEFAULT_AUTHOR = "Restored User"

_STRING = r'"((?:[^"\\]|\\.)*)"'

_MANIFEST_RE = re.compile(r"^TOOL_MANIFEST = \[(.*?)^\]", re.MULTILINE | re.DOTALL)
_FUNCTION_SPLIT_RE = re.compile(r"^async def ", re.MULTILINE)
_NAME_RE = re.compile(r"\s*(\w+)\s*\(")
_MARKER_RE = re.compile(r"^    " + re.escape(IMPLEMENTATION_MARKER) + r"$", re.MULTILINE)
_PARAM_RE = re.compile(
    _STRING + r':\s*\{\s*"type":\s*' + _STRING + r',\s*"description":\s*' + _STRING + r"\s*\}"
)


def _unquote(escaped: str) -> str:
    return json.loads(f'"{escaped}"')


def _read_member(zf: zipfile.ZipFile, name: str) -> str:
    try:
        data = zf.read(name)
    except KeyError:
        raise MissingArchiveMemberError(name) from None
    except zipfile.BadZipFile as exc:
        raise InvalidArchiveError(f"Invalid skill package: corrupt {name}: {exc}") from exc
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise InvalidArchiveError(f"Invalid skill package: {name} is not UTF-8 text") from exc


def restore_metadata(descriptor: str, filename: str) -> ProjectMetadata:
    try:
        data = tomllib.loads(descriptor)
    except tomllib.TOMLDecodeError as exc:
        raise InvalidArchiveError(f"Invalid {DESCRIPTOR_FILENAME}: {exc}") from exc

    project: dict[str, Any] = data.get("project", {})
    authors = project.get("authors") or [{}]
    first_author = authors[0] if isinstance(authors, list) and isinstance(authors[0], dict) else {}
    return ProjectMetadata(
        idea=f"Restored project from {filename}",
        package_name=str(project.get("name", "")).removeprefix(f"{PACKAGE_SCOPE}-"),
        version=str(project.get("version", "1.0.0")),
        author=str(first_author.get("name") or DEFAULT_AUTHOR),
        description=str(project.get("description", "")),
    )


def _manifest_info(manifest: str, skill_name: str) -> tuple[str, list[Parameter]]:
    """Pattern-match the manifest entry for ``skill_name``.

    Returns an empty description and no parameters when there is no entry.
    """
    entry_re = re.compile(
        r'\{\s*"name":\s*'
        + re.escape(json.dumps(skill_name, ensure_ascii=False))
        + r',\s*"description":\s*'
        + _STRING
        + r',(.*?)"required":\s*\[',
        re.DOTALL,
    )
    match = entry_re.search(manifest)
    if match is None:
        return "", []

    description = _unquote(match.group(1))
    _, _, properties = match.group(2).partition('"properties":')

    params: list[Parameter] = []
    for p_match in _PARAM_RE.finditer(properties):
        name, type_text, param_description = (_unquote(g) for g in p_match.groups())
        try:
            param_type = ParameterType(type_text)
        except ValueError:
            log.warning("restorer.unknown_parameter_type", skill=skill_name, parameter=name, type=type_text)
            continue
        # required is not recoverable from the manifest text
        params.append(
            Parameter(name=name, type=param_type, description=param_description, required=True)
        )
    return description, params


def _skill_chunks(source: str) -> list[str]:
    start = source.find(SKILLS_BANNER)
    end = source.find(MANIFEST_BANNER)
    if start == -1 or end == -1:
        log.warning("restorer.skills_section_missing")
        return []
    section = source[start + len(SKILLS_BANNER):end]
    return _FUNCTION_SPLIT_RE.split(section)[1:]


def _extract_implementation(chunk: str) -> str:
    marker = _MARKER_RE.search(chunk)
    if marker is None:
        _, _, body = chunk.partition("\n")
    else:
        body = chunk[marker.end():]
    return textwrap.dedent(body).strip()


def restore_skills(source: str) -> list[Skill]:
    manifest_match = _MANIFEST_RE.search(source)
    if manifest_match is None:
        raise ManifestNotFoundError()
    manifest = manifest_match.group(1)

    skills: list[Skill] = []
    for chunk in _skill_chunks(source):
        name_match = _NAME_RE.match(chunk)
        if name_match is None:
            continue
        name = name_match.group(1)
        description, params = _manifest_info(manifest, name)
        skills.append(
            Skill(
                name=name,
                description=description,
                tool_description=description,
                parameters=params,
                implementation=_extract_implementation(chunk),
            )
        )
    return skills


def restore(archive: bytes, filename: str = "package.zip") -> SkillSet:
    """Rebuild metadata and skills from exported zip bytes."""
    try:
        zf = zipfile.ZipFile(io.BytesIO(archive))
    except zipfile.BadZipFile as exc:
        raise InvalidArchiveError(f"Invalid skill package: {exc}") from exc

    with zf:
        descriptor = _read_member(zf, DESCRIPTOR_FILENAME)
        source = _read_member(zf, ARTIFACT_FILENAME)

    skill_set = SkillSet(
        metadata=restore_metadata(descriptor, filename),
        skills=restore_skills(source),
    )
    log.info(
        "restorer.restored",
        package=skill_set.metadata.package_name,
        skills=len(skill_set.skills),
        filename=filename,
    )
    return skill_set


async def restore_async(archive: bytes, filename: str = "package.zip") -> SkillSet:
    return await asyncio.to_thread(restore, archive, filename)
