"""Command line entry point.

* ``skillforge generate`` - ask the model for a skill set and save it as JSON.
* ``skillforge build``    - compile a saved skill set into a package zip.
* ``skillforge restore``  - recover a skill set from a package zip.
* ``skillforge serve``    - run the HTTP API with Uvicorn.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

import structlog
from pydantic import ValidationError

from skillforge.core.assembler import assemble
from skillforge.core.generation import SkillGenerationService
from skillforge.core.generator import generate
from skillforge.core.restorer import restore
from skillforge.errors import SkillForgeError
from skillforge.logging_config import configure_logging
from skillforge.schemas.skill import ProjectMetadata, SkillSet

log = structlog.get_logger()


def _write_output(text: str, output: str | None) -> None:
    if output:
        Path(output).write_text(text, encoding="utf-8")
        log.info("cli.written", path=output)
    else:
        print(text)


def _cmd_generate(args: argparse.Namespace) -> int:
    metadata = ProjectMetadata(
        idea=args.idea,
        package_name=args.package_name,
        version=args.version,
        author=args.author,
        description=args.description or args.idea,
    )
    skills = asyncio.run(SkillGenerationService().generate(metadata))
    skill_set = SkillSet(metadata=metadata, skills=skills)
    _write_output(json.dumps(skill_set.to_wire(), indent=2), args.output)
    return 0


def _cmd_build(args: argparse.Namespace) -> int:
    skill_set = SkillSet.model_validate_json(Path(args.skills_file).read_text(encoding="utf-8"))
    data = assemble(skill_set.metadata, skill_set.skills, generate(skill_set.metadata, skill_set.skills))

    output = Path(args.output or f"{skill_set.metadata.package_name}.zip")
    output.write_bytes(data)
    print(f"Wrote {output} ({len(skill_set.skills)} skills, {len(data)} bytes)")
    return 0


def _cmd_restore(args: argparse.Namespace) -> int:
    archive = Path(args.archive)
    skill_set = restore(archive.read_bytes(), archive.name)
    _write_output(json.dumps(skill_set.to_wire(), indent=2), args.output)
    return 0


def _cmd_serve(args: argparse.Namespace) -> int:
    import uvicorn

    uvicorn.run("skillforge.main:app", host=args.host, port=args.port, reload=args.reload)
    return 0


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="skillforge",
        description="Design, compile and restore AI agent skill packages",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")

    subparsers = parser.add_subparsers(dest="command")

    # ── generate ──────────────────────────────────────────────
    sp_generate = subparsers.add_parser("generate", help="Generate skills for an idea with the configured model")
    sp_generate.add_argument("--idea", required=True, help="What the agent should be able to do")
    sp_generate.add_argument("--package-name", required=True, help="Package slug, e.g. weather-tools")
    sp_generate.add_argument("--version", default="1.0.0")
    sp_generate.add_argument("--author", default="AI Forge")
    sp_generate.add_argument("--description", default="", help="Package description (defaults to the idea)")
    sp_generate.add_argument("-o", "--output", help="Write the skill set JSON here instead of stdout")
    sp_generate.set_defaults(func=_cmd_generate)

    # ── build ─────────────────────────────────────────────────
    sp_build = subparsers.add_parser("build", help="Compile a skill set JSON file into a package zip")
    sp_build.add_argument("skills_file", help="JSON file holding {metadata, skills}")
    sp_build.add_argument("-o", "--output", help="Archive path (default <packageName>.zip)")
    sp_build.set_defaults(func=_cmd_build)

    # ── restore ───────────────────────────────────────────────
    sp_restore = subparsers.add_parser("restore", help="Recover a skill set from a package zip")
    sp_restore.add_argument("archive", help="Previously exported zip")
    sp_restore.add_argument("-o", "--output", help="Write the skill set JSON here instead of stdout")
    sp_restore.set_defaults(func=_cmd_restore)

    # ── serve ─────────────────────────────────────────────────
    sp_serve = subparsers.add_parser("serve", help="Run the HTTP API")
    sp_serve.add_argument("--host", default="127.0.0.1")
    sp_serve.add_argument("--port", type=int, default=8000)
    sp_serve.add_argument("--reload", action="store_true")
    sp_serve.set_defaults(func=_cmd_serve)

    return parser


def main(argv: list[str] | None = None) -> int:
    """Program entry point: parse arguments and dispatch to subcommand."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    configure_logging(logging.DEBUG if args.verbose else logging.INFO)

    if args.command is None:
        parser.print_help()
        return 1

    try:
        return args.func(args)
    except SkillForgeError as exc:
        print(f"Error [{exc.code}]: {exc.message}", file=sys.stderr)
        return 1
    except (OSError, ValidationError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
