"""Jinja2 rendering for template paths, contents and defaults.

Provides the TemplateRenderer class, the only place kickstart talks to the
template engine.  Undefined variables are errors (``StrictUndefined``) and
every engine failure is re-raised as :class:`~kickstart.errors.RenderError`
naming the path being rendered.

Some filesystems forbid ``|`` in file names, so path templates may use
``$$`` as the filter operator instead: ``{{ name $$ kebab_case }}`` is the
same as ``{{ name | kebab_case }}``.  The rewrite is a textual pre-pass over
the expression blocks of a path and never touches file contents.
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import Any, Mapping

from jinja2 import Environment, StrictUndefined, TemplateError
from jinja2.exceptions import TemplateRuntimeError

from kickstart.errors import RenderError


PATH_FILTER_SEPARATOR = "$$"

_EXPRESSION_BLOCK_RE = re.compile(r"\{\{.*?\}\}|\{%.*?%\}", re.DOTALL)


# ---------------------------------------------------------------------------
# TemplateRenderer
# ---------------------------------------------------------------------------


class TemplateRenderer:
    """Renders Jinja2 template strings against a resolved context.

    Filters for case conversion are registered on construction so that both
    paths and contents can use them.
    """

    def __init__(self) -> None:
        self.env = Environment(
            undefined=StrictUndefined,
            autoescape=False,
            keep_trailing_newline=True,
        )
        self.env.filters.update(CASE_FILTERS)
        self._crlf_env = self.env.overlay(newline_sequence="\r\n")

    def render_string(
        self,
        template_string: str,
        context: Mapping[str, Any],
        path: str | Path | None = None,
        newline: str = "\n",
    ) -> str:
        """Render an inline template string.

        Args:
            template_string: Jinja2 source text.
            context: Variables available inside the template.
            path: What is being rendered, used only in error messages.
            newline: Line ending of the output, ``"\\n"`` or ``"\\r\\n"``.
                Jinja2 rewrites every line ending of the source to it.

        Raises:
            RenderError: On syntax errors, undefined variables or filter
                failures.
        """
        env = self._crlf_env if newline == "\r\n" else self.env
        try:
            template = env.from_string(template_string)
            return template.render(**context)
        except TemplateError as exc:
            raise RenderError(path, _describe(exc)) from exc
        except (TypeError, ValueError, ArithmeticError) as exc:
            raise RenderError(path, f"{type(exc).__name__}: {exc}") from exc

    def render_path(self, relative_path: str, context: Mapping[str, Any]) -> str:
        """Render a source-relative path, honouring the ``$$`` filter syntax."""
        return self.render_string(rewrite_path_filters(relative_path), context, path=relative_path)


def rewrite_path_filters(path_template: str) -> str:
    """Replace ``$$`` with ``|`` inside the expression blocks of a path.

    Text outside ``{{ }}`` and ``{% %}`` is left untouched so a literal
    ``$$`` in a file name survives.
    """
    if PATH_FILTER_SEPARATOR not in path_template:
        return path_template
    return _EXPRESSION_BLOCK_RE.sub(
        lambda m: m.group(0).replace(PATH_FILTER_SEPARATOR, "|"),
        path_template,
    )


def _describe(exc: TemplateError) -> str:
    lineno = getattr(exc, "lineno", None)
    kind = type(exc).__name__
    if lineno:
        return f"{kind} at line {lineno}: {exc.message}"
    return f"{kind}: {exc.message}"


# ---------------------------------------------------------------------------
# Jinja2 custom filters
# ---------------------------------------------------------------------------

# Runs of letters and digits in any script; underscores separate words.
_TOKEN_RE = re.compile(r"[^\W_]+")


def _split_token(token: str) -> list[str]:
    """Split on case changes: "HTTPServer" -> HTTP, Server; "v2Beta" -> v2, Beta."""
    words: list[str] = []
    start = 0
    for i in range(1, len(token)):
        prev, char = token[i - 1], token[i]
        if not char.isupper():
            continue
        next_is_lower = i + 1 < len(token) and token[i + 1].islower()
        if not prev.isupper() or next_is_lower:
            words.append(token[start:i])
            start = i
    words.append(token[start:])
    return words


def _words(filter_name: str, value: Any) -> list[str]:
    if not isinstance(value, str):
        raise TemplateRuntimeError(
            f"Filter `{filter_name}` expected a string but got {type(value).__name__} {value!r}"
        )
    return [word for token in _TOKEN_RE.findall(value) for word in _split_token(token)]


def _upper_camel_case_filter(value: str) -> str:
    """``my project`` -> ``MyProject``."""
    return "".join(word.capitalize() for word in _words("upper_camel_case", value))


def _camel_case_filter(value: str) -> str:
    """``my project`` -> ``myProject``."""
    words = _words("camel_case", value)
    if not words:
        return ""
    return words[0].lower() + "".join(word.capitalize() for word in words[1:])


def _snake_case_filter(value: str) -> str:
    """``MyProject`` -> ``my_project``."""
    return "_".join(word.lower() for word in _words("snake_case", value))


def _kebab_case_filter(value: str) -> str:
    """``My Project`` -> ``my-project``."""
    return "-".join(word.lower() for word in _words("kebab_case", value))


def _shouty_snake_case_filter(value: str) -> str:
    """``my project`` -> ``MY_PROJECT``."""
    return "_".join(word.upper() for word in _words("shouty_snake_case", value))


def _shouty_kebab_case_filter(value: str) -> str:
    """``my project`` -> ``MY-PROJECT``."""
    return "-".join(word.upper() for word in _words("shouty_kebab_case", value))


def _title_case_filter(value: str) -> str:
    """``my_project`` -> ``My Project``."""
    return " ".join(word.capitalize() for word in _words("title_case", value))


def _slugify_filter(value: str) -> str:
    """Convert a string to a URL/filename-safe slug."""
    if not isinstance(value, str):
        raise TemplateRuntimeError(f"Filter `slugify` expected a string but got {value!r}")
    slug = re.sub(r"[\W_]+", "-", value.lower().strip())
    return slug.strip("-")


CASE_FILTERS = {
    "upper_camel_case": _upper_camel_case_filter,
    "camel_case": _camel_case_filter,
    "snake_case": _snake_case_filter,
    "kebab_case": _kebab_case_filter,
    "shouty_snake_case": _shouty_snake_case_filter,
    "shouty_kebab_case": _shouty_kebab_case_filter,
    "title_case": _title_case_filter,
    "slugify": _slugify_filter,
}
