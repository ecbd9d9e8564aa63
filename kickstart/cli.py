"""kickstart command line interface.

Usage::

    kickstart ./my-template -o ./projects
    kickstart https://github.com/me/template --no-input --set project_name=demo
    kickstart validate ./my-template/template.toml
"""

from __future__ import annotations

import argparse
import asyncio
import sys
import tempfile
from pathlib import Path
from typing import Any

from kickstart.config import Config
from kickstart.errors import KickstartError
from kickstart.resolver.prompter import RichPrompter
from kickstart.scaffolder.generator import GenerationResult, ProjectGenerator
from kickstart.schema.loader import validate_file
from kickstart.source import Template
from kickstart.utils import (
    load_answers,
    parse_assignments,
    print_error,
    print_header,
    print_success,
    print_summary_table,
    print_warning,
)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="kickstart",
        description="Generate a project from a template directory and its template.toml",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=(
            "Examples:\n"
            "  kickstart ./my-template\n"
            "  kickstart https://github.com/me/template -o ./projects\n"
            "  kickstart ./my-template --no-input --set project_name=demo\n"
            "  kickstart validate ./my-template/template.toml\n"
        ),
    )
    parser.add_argument(
        "template",
        help="Template to use: a local path, a git remote or a .zip/.tar.gz URL "
        "(or `validate` followed by a template.toml path)",
    )
    parser.add_argument(
        "--output-dir", "-o",
        default=None,
        help="Where to write the project (default: current directory)",
    )
    parser.add_argument(
        "--directory", "-d",
        default=None,
        help="Sub-directory of the source that holds template.toml",
    )
    parser.add_argument(
        "--no-input",
        action="store_true",
        default=None,
        help="Do not prompt; use the defaults from template.toml",
    )
    parser.add_argument(
        "--set",
        dest="assignments",
        action="append",
        default=[],
        metavar="NAME=VALUE",
        help="Answer a question up-front (repeatable)",
    )
    parser.add_argument(
        "--answers",
        default=None,
        help="YAML or JSON file with answers keyed by variable name",
    )
    return parser


def build_validate_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="kickstart validate",
        description="Check that a template.toml is valid",
    )
    parser.add_argument("path", help="Path to the template.toml")
    return parser


def run_validate(argv: list[str]) -> int:
    args = build_validate_parser().parse_args(argv)
    try:
        problems = validate_file(args.path)
    except KickstartError as exc:
        print_error(f"Error: {exc}")
        return 1

    if problems:
        print_error("The template.toml is invalid:")
        for problem in problems:
            print_error(f"- {problem}")
        return 1
    print_success("The template.toml file is valid!")
    return 0


def collect_presets(answers_file: str | None, assignments: list[str]) -> dict[str, Any]:
    """Merge answers-file values with ``--set`` values (the latter win)."""
    presets: dict[str, Any] = {}
    if answers_file:
        presets.update(load_answers(answers_file))
    presets.update(parse_assignments(assignments))
    return presets


async def run_generate(args: argparse.Namespace) -> GenerationResult:
    config = Config.from_env(
        output_dir=Path(args.output_dir) if args.output_dir else None,
        directory=args.directory,
        no_input=args.no_input,
    )
    presets = collect_presets(args.answers, args.assignments)

    with tempfile.TemporaryDirectory(prefix="kickstart-") as workdir:
        template = await Template.from_input(
            args.template, config.directory, workdir=workdir, config=config
        )
        print_header(template.definition.name)
        if template.definition.description:
            print_success(template.definition.description)

        generator = ProjectGenerator.from_template(template, config)
        return await generator.generate(prompter=RichPrompter(), presets=presets)


def report(result: GenerationResult) -> None:
    print_summary_table(
        {
            "Destination": str(result.destination),
            "Files written": str(len(result.files_written)),
            "Paths cleaned up": str(len(result.cleanup.deleted)),
        },
        title="Generation",
    )
    for failure in result.cleanup_failures:
        print_warning(f"Cleanup `{failure.rule}` could not delete {failure.path}: {failure.error}")
    print_success("Everything done, ready to go!")


def _print_failure(exc: BaseException) -> None:
    print_error(f"Error: {exc}")
    cause = exc.__cause__
    while cause is not None:
        print_error(f"Reason: {cause}")
        cause = cause.__cause__


def main(argv: list[str] | None = None) -> None:
    """CLI entry point for ``kickstart`` and ``python -m kickstart``."""
    argv = list(sys.argv[1:] if argv is None else argv)
    if argv and argv[0] == "validate":
        sys.exit(run_validate(argv[1:]))

    args = build_parser().parse_args(argv)
    try:
        result = asyncio.run(run_generate(args))
    except (KickstartError, OSError, ValueError) as exc:
        _print_failure(exc)
        sys.exit(1)
    except KeyboardInterrupt:
        print_error("Aborted.")
        sys.exit(130)

    report(result)


if __name__ == "__main__":
    main()
