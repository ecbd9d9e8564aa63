"""Exceptions raised while loading, resolving and generating a template.

Every error carries enough context (variable name, offending path, shell
command) to be actionable from the CLI without a traceback.
"""

from __future__ import annotations

from enum import Enum
from pathlib import Path


class KickstartError(Exception):
    """Base class for every error raised by kickstart."""


class SchemaError(KickstartError):
    """Raised when a ``template.toml`` is missing, unreadable or invalid.

    Always raised before any question is asked.
    """

    def __init__(self, problems: list[str] | str, path: str | Path | None = None) -> None:
        if isinstance(problems, str):
            problems = [problems]
        self.problems = list(problems)
        self.path = Path(path) if path is not None else None
        where = f" ({self.path})" if self.path else ""
        if len(self.problems) == 1:
            message = f"Invalid template definition{where}: {self.problems[0]}"
        else:
            bullet_list = "\n".join(f"  - {p}" for p in self.problems)
            message = f"Invalid template definition{where}:\n{bullet_list}"
        super().__init__(message)


class ResolutionErrorKind(str, Enum):
    BAD_PATTERN = "bad_pattern"
    BAD_REFERENCE = "bad_reference"
    TYPE_MISMATCH = "type_mismatch"
    INVALID_VALUE = "invalid_value"


class ResolutionError(KickstartError):
    """Raised when a variable cannot be resolved to a value."""

    def __init__(self, kind: ResolutionErrorKind, variable: str, message: str) -> None:
        self.kind = kind
        self.variable = variable
        super().__init__(f"Variable `{variable}`: {message}")


class RenderError(KickstartError):
    """Raised when a path or file content fails to render."""

    def __init__(self, path: str | Path | None, message: str) -> None:
        self.path = str(path) if path is not None else None
        where = self.path if self.path is not None else "rendering a one-off template"
        super().__init__(f"{message}: {where}")


class GenerationIOError(KickstartError):
    """Raised when the filesystem refuses a read, write or move."""

    def __init__(self, path: str | Path, message: str) -> None:
        self.path = Path(path)
        super().__init__(f"{message}: {self.path}")


class DestinationConflictError(KickstartError):
    """Raised when the destination already holds entries the template would write."""

    def __init__(self, destination: Path, conflicts: list[str]) -> None:
        self.destination = destination
        self.conflicts = conflicts
        super().__init__(
            f"Refusing to overwrite existing entries in {destination}: "
            + ", ".join(sorted(conflicts))
        )


class AcquisitionError(KickstartError):
    """Raised when a remote template cannot be fetched."""

    def __init__(self, message: str, command: str = "", stderr: str = "") -> None:
        self.command = command
        self.stderr = stderr
        super().__init__(message)
