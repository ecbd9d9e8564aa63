"""Variable resolution: turns the ordered question list into a Context.

Variables are resolved in a single pass in declaration order.  A variable's
``only_if`` gate and templated default can therefore only see variables that
came before it, and a gated-out variable never enters the context (so every
variable gated on it is skipped too).

Answers come from three places, in order of precedence:

1. presets (``--set name=value`` or an answers file), coerced and validated
   with no chance to retry;
2. the prompter, when running interactively, re-asking on invalid input;
3. the effective default, when running unattended.
"""

from __future__ import annotations

import re
from typing import Any, Mapping, Sequence

from kickstart.errors import ResolutionError, ResolutionErrorKind
from kickstart.resolver.context import Context
from kickstart.resolver.prompter import Prompter
from kickstart.schema.models import Variable
from kickstart.templates import TemplateRenderer
from kickstart.values import (
    CoercionError,
    ValueType,
    coerce,
    display,
    values_equal,
)


class VariableResolver:
    """Resolves template variables into a :class:`Context`.

    Args:
        variables: The schema's variables, in declaration order.
        renderer: Used to render templated defaults.
        prompter: Asks the user; ``None`` means unattended (defaults only).
        presets: Answers supplied up-front, keyed by variable name.
    """

    def __init__(
        self,
        variables: Sequence[Variable],
        renderer: TemplateRenderer | None = None,
        prompter: Prompter | None = None,
        presets: Mapping[str, Any] | None = None,
    ) -> None:
        self.variables = list(variables)
        self.renderer = renderer or TemplateRenderer()
        self.prompter = prompter
        self.presets = dict(presets or {})
        self._patterns: dict[str, re.Pattern[str]] = {}

    @property
    def interactive(self) -> bool:
        return self.prompter is not None

    # -- Public API --------------------------------------------------------

    def resolve(self) -> Context:
        """Resolve every variable whose gate is open.

        Raises:
            ResolutionError: On a bad regex or reference (before anything is
                asked), or on an unusable preset/default when no human can
                retry.
            RenderError: If a templated default fails to render.
        """
        self._check_references()
        self._compile_patterns()

        context = Context()
        for var in self.variables:
            if not self.should_ask(var, context):
                continue

            default = self.effective_default(var, context)
            if var.name in self.presets:
                value = self._from_preset(var, self.presets[var.name])
            elif self.prompter is None:
                value = self._unattended(var, default)
            else:
                value = self._ask(self.prompter, var, default)
            context.insert(var.name, value)

        return context

    @staticmethod
    def should_ask(var: Variable, context: Mapping[str, Any]) -> bool:
        """Evaluate the ``only_if`` gate of *var* against the partial context.

        A referenced variable that is absent from the context was itself
        skipped, so the gate is closed.
        """
        cond = var.only_if
        if cond is None:
            return True
        if cond.name not in context:
            return False
        return values_equal(context[cond.name], cond.value)

    def effective_default(self, var: Variable, context: Context) -> bool | int | str:
        """Render a string default against the variables resolved so far."""
        if var.value_type is not ValueType.STRING:
            return var.default
        return self.renderer.render_string(
            var.default,
            context.as_dict(),
            path=f"default value of variable `{var.name}`",
        )

    # -- Up-front checks ---------------------------------------------------

    def _check_references(self) -> None:
        seen: set[str] = set()
        for var in self.variables:
            cond = var.only_if
            if cond is not None and cond.name not in seen:
                raise ResolutionError(
                    ResolutionErrorKind.BAD_REFERENCE,
                    var.name,
                    f"depends on `{cond.name}`, which is not declared before it",
                )
            seen.add(var.name)

        unknown = sorted(set(self.presets) - seen)
        if unknown:
            raise ResolutionError(
                ResolutionErrorKind.BAD_REFERENCE,
                unknown[0],
                "an answer was supplied but the template declares no such variable",
            )

    def _compile_patterns(self) -> None:
        for var in self.variables:
            if var.validation is None:
                continue
            try:
                self._patterns[var.name] = re.compile(var.validation)
            except re.error as exc:
                raise ResolutionError(
                    ResolutionErrorKind.BAD_PATTERN,
                    var.name,
                    f"invalid validation regex `{var.validation}`: {exc}",
                ) from exc

    # -- Answer sources ----------------------------------------------------

    def _from_preset(self, var: Variable, raw: Any) -> bool | int | str:
        try:
            value = coerce(raw, var.value_type)
        except (CoercionError, TypeError) as exc:
            raise ResolutionError(ResolutionErrorKind.TYPE_MISMATCH, var.name, str(exc)) from exc
        self._check_final(var, value, source="supplied value")
        return value

    def _unattended(self, var: Variable, default: bool | int | str) -> bool | int | str:
        self._check_final(var, default, source="default")
        return default

    def _check_final(self, var: Variable, value: bool | int | str, source: str) -> None:
        if var.choices is not None and not any(values_equal(value, c) for c in var.choices):
            raise ResolutionError(
                ResolutionErrorKind.INVALID_VALUE,
                var.name,
                f"{source} `{display(value)}` is not one of the choices "
                f"({', '.join(display(c) for c in var.choices)})",
            )
        pattern = self._patterns.get(var.name)
        if pattern is not None and not pattern.fullmatch(str(value)):
            raise ResolutionError(
                ResolutionErrorKind.INVALID_VALUE,
                var.name,
                f"{source} `{display(value)}` does not pass the regex: {var.validation}",
            )

    def _ask(
        self, prompter: Prompter, var: Variable, default: bool | int | str
    ) -> bool | int | str:
        if var.choices is not None:
            return self._ask_choice(prompter, var, var.choices, default)
        if var.value_type is ValueType.BOOLEAN:
            return prompter.confirm(var.prompt, bool(default))

        pattern = self._patterns.get(var.name)
        while True:
            raw = prompter.ask(var.prompt, display(default))
            if raw == "":
                return default
            try:
                value = coerce(raw, var.value_type)
            except CoercionError as exc:
                prompter.error(str(exc))
                continue
            if pattern is not None and not pattern.fullmatch(str(value)):
                prompter.error(f"The value needs to pass the regex: {var.validation}")
                continue
            return value

    def _ask_choice(
        self,
        prompter: Prompter,
        var: Variable,
        choices: Sequence[bool | int | str],
        default: bool | int | str,
    ) -> bool | int | str:
        labels = [display(c) for c in choices]
        while True:
            raw = prompter.ask(var.prompt, display(default), labels).strip()
            if not raw:
                return default
            picked = pick_choice(raw, choices)
            if picked is not None:
                return picked
            prompter.error(f"Invalid choice: '{raw}'")


def pick_choice(raw: str, choices: Sequence[bool | int | str]) -> bool | int | str | None:
    """Map user input to a choice: a 1-based index first, then the exact label."""
    if raw.isdigit():
        index = int(raw)
        if 1 <= index <= len(choices):
            return choices[index - 1]
    for choice in choices:
        if display(choice) == raw:
            return choice
    return None


def resolve_variables(
    variables: Sequence[Variable],
    *,
    prompter: Prompter | None = None,
    presets: Mapping[str, Any] | None = None,
    renderer: TemplateRenderer | None = None,
) -> Context:
    """Convenience wrapper around :class:`VariableResolver`."""
    return VariableResolver(variables, renderer=renderer, prompter=prompter, presets=presets).resolve()
