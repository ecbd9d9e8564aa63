"""Shared pytest fixtures for the kickstart test suite.

Provides reusable fixtures for:
- Writing template directories (template.toml + files) on the fly
- A realistic sample template with conditions, cleanup rules and binary files
- A scripted prompter that replays canned answers
- Mock git helpers
"""

from __future__ import annotations

import textwrap
import tomllib
from pathlib import Path
from typing import Callable
from unittest.mock import AsyncMock, patch

import pytest

from kickstart.resolver.prompter import Prompter
from kickstart.schema.loader import parse_definition
from kickstart.schema.models import TemplateDefinition
from kickstart.values import interpret_bool


# ---------------------------------------------------------------------------
# Scripted prompter
# ---------------------------------------------------------------------------


class ScriptedPrompter(Prompter):
    """Replays answers in order; records every question and error shown.

    Answers are raw strings for ``ask``; ``confirm`` also accepts booleans.
    An empty string means "keep the default" for both.
    """

    def __init__(self, answers: list[str | bool]) -> None:
        self.answers = list(answers)
        self.asked: list[str] = []
        self.choices_shown: list[list[str] | None] = []
        self.errors: list[str] = []

    def _next(self, prompt: str) -> str | bool:
        self.asked.append(prompt)
        if not self.answers:
            raise AssertionError(f"Unexpected question: {prompt}")
        return self.answers.pop(0)

    def ask(self, prompt: str, default: str, choices: list[str] | None = None) -> str:
        self.choices_shown.append(choices)
        return str(self._next(prompt))

    def confirm(self, prompt: str, default: bool) -> bool:
        answer = self._next(prompt)
        if isinstance(answer, bool):
            return answer
        if answer == "":
            return default
        return interpret_bool(answer)

    def error(self, message: str) -> None:
        self.errors.append(message)


@pytest.fixture
def scripted_prompter() -> type[ScriptedPrompter]:
    """The ScriptedPrompter class, so tests can build one per scenario."""
    return ScriptedPrompter


# ---------------------------------------------------------------------------
# Template builders
# ---------------------------------------------------------------------------


def write_template(root: Path, toml_text: str, files: dict[str, str | bytes]) -> Path:
    """Create a template directory with a template.toml and the given files."""
    root.mkdir(parents=True, exist_ok=True)
    (root / "template.toml").write_text(textwrap.dedent(toml_text), encoding="utf-8")
    for relative, content in files.items():
        path = root / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(content, bytes):
            path.write_bytes(content)
        else:
            path.write_text(content, encoding="utf-8")
    return root


@pytest.fixture
def make_template(tmp_path: Path) -> Callable[..., Path]:
    """Factory fixture: ``make_template(toml_text, files, name="tpl")``."""

    def _make(toml_text: str, files: dict[str, str | bytes] | None = None, name: str = "tpl") -> Path:
        return write_template(tmp_path / name, toml_text, files or {})

    return _make


def definition_from_toml(toml_text: str) -> TemplateDefinition:
    """Parse a TOML snippet straight into a TemplateDefinition."""
    return parse_definition(tomllib.loads(textwrap.dedent(toml_text)))


SAMPLE_TOML = """\
name = "Sample"
description = "A sample web project"
kickstart_version = 1
ignore = ["docs/internal", "*.swp"]
copy_without_render = ["{{ project_name | kebab_case }}/static/*"]
cleanup = [
    { name = "auth_method", value = "none", paths = ["{{ project_name | kebab_case }}/docs/auth.md"] },
    { name = "spa", value = false, paths = ["{{ project_name | kebab_case }}/frontend"] },
]

[[variables]]
name = "project_name"
default = "My Project"
prompt = "What's the name of your project?"
validation = "[A-Za-z][A-Za-z0-9 ]*"

[[variables]]
name = "package"
default = "{{ project_name | snake_case }}"
prompt = "Python package name?"

[[variables]]
name = "spa"
default = false
prompt = "Is it a single page application?"

[[variables]]
name = "js_framework"
default = "React"
prompt = "Which JS framework?"
choices = ["React", "Angular", "Vue", "None"]
only_if = { name = "spa", value = true }

[[variables]]
name = "auth_method"
default = "jwt"
prompt = "How are users authenticated?"
choices = ["jwt", "sessions", "none"]

[[variables]]
name = "port"
default = 8080
prompt = "Which port does the server listen on?"
"""

PNG_BYTES = b"\x89PNG\r\n\x1a\n\x00\x00\x00\rIHDR{{ not_a_variable }}"

SAMPLE_FILES: dict[str, str | bytes] = {
    "{{ project_name $$ kebab_case }}/README.md": "# {{ project_name }}\n\nPackage: {{ package }}\n",
    "{{ project_name $$ kebab_case }}/{{ package }}/__init__.py": (
        '__version__ = "0.1.0"\nPORT = {{ port }}\n'
    ),
    "{{ project_name $$ kebab_case }}/docs/auth.md": "Authentication: {{ auth_method }}\n",
    "{{ project_name $$ kebab_case }}/frontend/app.js": (
        "{% if spa %}// Built with {{ js_framework }}{% endif %}\n"
    ),
    "{{ project_name $$ kebab_case }}/static/raw.txt": "{{ kept as is }}\n",
    "{{ project_name $$ kebab_case }}/logo.png": PNG_BYTES,
    "{{ project_name $$ kebab_case }}/.editor.swp": "swap file",
    "docs/internal/notes.md": "{{ undefined_everywhere }}\n",
}


@pytest.fixture
def sample_template(make_template: Callable[..., Path]) -> Path:
    """A template exercising gates, templated defaults, cleanup and binaries."""
    return make_template(SAMPLE_TOML, SAMPLE_FILES, name="sample-template")


# ---------------------------------------------------------------------------
# Mock git
# ---------------------------------------------------------------------------


@pytest.fixture
def mock_git_clone():
    """Patch the command runner used for ``git clone``.

    Usage:
        def test_clone(mock_git_clone):
            with mock_git_clone as run:
                ...
                run.assert_awaited_once()
    """
    return patch(
        "kickstart.source.run_command",
        new=AsyncMock(return_value=(0, "", "")),
    )
