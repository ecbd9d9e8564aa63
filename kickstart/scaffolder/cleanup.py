"""Post-generation cleanup of paths made irrelevant by the answers.

Each cleanup rule is checked against the final context in declaration order.
When it matches, its paths are rendered and deleted from the generated
project.  Cleanup is best-effort: a failure on one path is recorded and the
engine moves on, because generation itself has already succeeded.
"""

from __future__ import annotations

import asyncio
import os
import shutil
from pathlib import Path
from typing import Any, Mapping, Sequence

from pydantic import BaseModel, Field, computed_field

from kickstart.errors import KickstartError
from kickstart.schema.models import CleanupRule
from kickstart.templates import TemplateRenderer
from kickstart.values import display, values_equal


class CleanupFailure(BaseModel):
    """A cleanup path that could not be deleted."""

    rule: str = Field(..., description="`name=value` of the rule that matched")
    path: str = Field(..., description="Path template, or its rendered form when available")
    error: str = Field(..., description="Why the deletion failed")


class CleanupReport(BaseModel):
    """What the cleanup pass did."""

    deleted: list[Path] = Field(default_factory=list, description="Paths removed")
    skipped: list[Path] = Field(default_factory=list, description="Paths that did not exist")
    failures: list[CleanupFailure] = Field(default_factory=list)

    @computed_field  # type: ignore[misc]
    @property
    def ok(self) -> bool:
        return not self.failures


class CleanupEngine:
    """Applies cleanup rules to a generated project directory."""

    def __init__(
        self,
        rules: Sequence[CleanupRule],
        renderer: TemplateRenderer | None = None,
    ) -> None:
        self.rules = list(rules)
        self.renderer = renderer or TemplateRenderer()

    @staticmethod
    def rule_applies(rule: CleanupRule, context: Mapping[str, Any]) -> bool:
        """A rule applies when its variable was resolved to exactly its value."""
        if rule.name not in context:
            return False
        return values_equal(context[rule.name], rule.value)

    async def run(self, context: Mapping[str, Any], destination: str | Path) -> CleanupReport:
        """Delete the paths of every matching rule under *destination*."""
        root = Path(destination).resolve()
        report = CleanupReport()

        for rule in self.rules:
            if not self.rule_applies(rule, context):
                continue
            label = f"{rule.name}={display(rule.value)}"

            for path_template in rule.paths:
                try:
                    rendered = self.renderer.render_path(path_template, context)
                except KickstartError as exc:
                    report.failures.append(
                        CleanupFailure(rule=label, path=path_template, error=str(exc))
                    )
                    continue

                target = root / rendered
                resolved = target.resolve()
                if resolved == root or not resolved.is_relative_to(root):
                    report.failures.append(
                        CleanupFailure(
                            rule=label,
                            path=rendered,
                            error="refusing to delete a path outside the generated project",
                        )
                    )
                    continue

                if not os.path.lexists(target):
                    report.skipped.append(Path(rendered))
                    continue

                try:
                    await asyncio.to_thread(_delete, target)
                except OSError as exc:
                    report.failures.append(CleanupFailure(rule=label, path=rendered, error=str(exc)))
                    continue
                report.deleted.append(Path(rendered))

        return report


def _delete(path: Path) -> None:
    if path.is_dir() and not path.is_symlink():
        shutil.rmtree(path)
    else:
        path.unlink()
