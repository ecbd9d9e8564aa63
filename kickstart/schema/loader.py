"""Loading and validation of ``template.toml`` documents.

``validate_definition`` walks the variables in declaration order, which is
enough to detect forward references without building a dependency graph:
a condition may only point at a name that has already been seen.
"""

from __future__ import annotations

import re
import tomllib
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from kickstart.errors import SchemaError
from kickstart.schema.models import (
    SUPPORTED_KICKSTART_VERSION,
    TemplateDefinition,
)
from kickstart.values import ValueType, display, value_type


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------


def parse_definition(raw: dict[str, Any], path: str | Path | None = None) -> TemplateDefinition:
    """Build a ``TemplateDefinition`` from an already-decoded document.

    Raises:
        SchemaError: If the document does not match the schema structure.
    """
    try:
        return TemplateDefinition.model_validate(raw)
    except ValidationError as exc:
        raise SchemaError(_format_validation_error(exc), path=path) from exc


def read_document(path: str | Path) -> dict[str, Any]:
    """Read and decode a TOML file, wrapping every failure in ``SchemaError``."""
    file_path = Path(path)
    if not file_path.is_file():
        raise SchemaError(f"{file_path.name} is missing", path=file_path)
    try:
        return tomllib.loads(file_path.read_text(encoding="utf-8"))
    except OSError as exc:
        raise SchemaError(f"could not read file: {exc}", path=file_path) from exc
    except UnicodeDecodeError as exc:
        raise SchemaError("file is not valid UTF-8", path=file_path) from exc
    except tomllib.TOMLDecodeError as exc:
        raise SchemaError(f"Invalid TOML: {exc}", path=file_path) from exc


def load_definition(path: str | Path) -> TemplateDefinition:
    """Load, parse and fully validate a ``template.toml``.

    Raises:
        SchemaError: With every problem found, before any question is asked.
    """
    definition = parse_definition(read_document(path), path=path)
    problems = validate_definition(definition)
    if problems:
        raise SchemaError(problems, path=path)
    return definition


def validate_file(path: str | Path) -> list[str]:
    """Return the list of problems in a ``template.toml`` (empty when valid).

    Only a missing, unreadable or syntactically invalid file raises.
    """
    raw = read_document(path)
    try:
        definition = TemplateDefinition.model_validate(raw)
    except ValidationError as exc:
        return _format_validation_error(exc)
    return validate_definition(definition)


# ---------------------------------------------------------------------------
# Semantic validation
# ---------------------------------------------------------------------------


def validate_definition(definition: TemplateDefinition) -> list[str]:
    """Find every semantic error in a parsed definition.

    Checks globs, regexes, choices, conditions and cleanup rules.  Returns an
    empty list when the definition is valid.
    """
    errs: list[str] = []

    if definition.kickstart_version != SUPPORTED_KICKSTART_VERSION:
        errs.append(
            f"kickstart_version {definition.kickstart_version} is not supported "
            f"(expected {SUPPORTED_KICKSTART_VERSION})"
        )

    for field_name in ("ignore", "copy_without_render"):
        for pattern in getattr(definition, field_name):
            problem = glob_problem(pattern)
            if problem:
                errs.append(f"In {field_name}, `{pattern}` is not a valid pattern: {problem}")

    types: dict[str, ValueType] = {}
    for var in definition.variables:
        if var.name in types:
            errs.append(f"Variable `{var.name}` is declared more than once")

        var_type = var.value_type

        # Variables are ordered, so a condition can only see what came before.
        if var.only_if is not None:
            cond = var.only_if
            if cond.name == var.name:
                errs.append(f"Variable `{var.name}` depends on itself")
            elif cond.name not in types:
                errs.append(
                    f"Variable `{var.name}` depends on `{cond.name}`, which wasn't asked before it"
                )
            elif types[cond.name] is not value_type(cond.value):
                errs.append(
                    f"Variable `{var.name}` depends on `{cond.name}={display(cond.value)}`, "
                    f"but the type of `{cond.name}` is {types[cond.name].value}"
                )

        if var.choices is not None:
            if not var.choices:
                errs.append(f"Variable `{var.name}` has an empty list of choices")
            elif any(value_type(c) is not var_type for c in var.choices):
                errs.append(
                    f"Variable `{var.name}` has choices that are not all of type {var_type.value}"
                )
            elif not any(c == var.default for c in var.choices):
                errs.append(
                    f"Variable `{var.name}` has `{display(var.default)}` as default, "
                    "which isn't in the choices"
                )

        if var.validation is not None:
            if var_type is not ValueType.STRING:
                errs.append(f"Variable `{var.name}` has a validation regex but is not a string")
            elif var.choices is not None:
                errs.append(f"Variable `{var.name}` has both choices and a validation regex")
            else:
                try:
                    regex = re.compile(var.validation)
                except re.error:
                    errs.append(
                        f"Variable `{var.name}` has an invalid validation regex: {var.validation}"
                    )
                else:
                    if not var.has_templated_default and not regex.fullmatch(var.default):
                        errs.append(
                            f"Variable `{var.name}` has a default that doesn't pass "
                            "its validation regex"
                        )

        types.setdefault(var.name, var_type)

    for rule in definition.cleanup:
        if rule.name not in types:
            errs.append(f"Cleanup rule refers to `{rule.name}`, which is not a variable")
        elif types[rule.name] is not value_type(rule.value):
            errs.append(
                f"Cleanup rule `{rule.name}={display(rule.value)}` compares against the wrong "
                f"type: `{rule.name}` is {types[rule.name].value}"
            )
        if not rule.paths:
            errs.append(f"Cleanup rule for `{rule.name}` has no paths")

    return errs


def glob_problem(pattern: str) -> str | None:
    """Return why *pattern* is not a usable glob, or ``None`` if it is fine."""
    if not pattern:
        return "empty pattern"
    i = 0
    while i < len(pattern):
        if pattern[i] == "[":
            j = i + 1
            if j < len(pattern) and pattern[j] == "!":
                j += 1
            # A `]` right after the opening bracket is a literal member.
            if j < len(pattern) and pattern[j] == "]":
                j += 1
            close = pattern.find("]", j)
            if close == -1:
                return f"unclosed character class at position {i}"
            i = close
        i += 1
    return None


def _format_validation_error(exc: ValidationError) -> list[str]:
    problems: list[str] = []
    for err in exc.errors():
        location = ".".join(str(part) for part in err["loc"]) or "<root>"
        problems.append(f"{location}: {err['msg']}")
    return problems
