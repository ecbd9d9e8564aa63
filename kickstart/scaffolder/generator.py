"""Main generation orchestrator.

Runs the three stages of a kickstart run strictly in order:

1. resolve the variables into a context (prompting unless unattended);
2. render the template tree into a staging directory;
3. apply the cleanup rules to the staged project.

The staged project is committed to the destination only after cleanup, so
cleanup can only ever delete what was rendered, never what the destination
already held.  A failure in stage 1 or 2 aborts the run before cleanup;
cleanup failures are reported in the result but do not fail the run.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Mapping, Optional

from pydantic import BaseModel, Field, computed_field

from kickstart.config import Config
from kickstart.resolver.context import Context
from kickstart.resolver.prompter import Prompter
from kickstart.resolver.resolver import VariableResolver
from kickstart.schema.models import TemplateDefinition
from kickstart.source import Template
from kickstart.templates import TemplateRenderer
from kickstart.utils import console

from .cleanup import CleanupEngine, CleanupFailure, CleanupReport
from .tree import StagingArea, TreeRenderer


# ---------------------------------------------------------------------------
# Result model
# ---------------------------------------------------------------------------


class GenerationResult(BaseModel):
    """Outcome of a successful generation run."""

    destination: Path = Field(..., description="Directory the project was written to")
    context: dict[str, Any] = Field(default_factory=dict, description="Resolved variables")
    files_written: list[Path] = Field(
        default_factory=list, description="Generated files, relative to the destination"
    )
    cleanup: CleanupReport = Field(default_factory=CleanupReport)
    success: bool = Field(default=True, description="True once the rendered tree was committed")

    @computed_field  # type: ignore[misc]
    @property
    def cleanup_failures(self) -> list[CleanupFailure]:
        return list(self.cleanup.failures)


# ---------------------------------------------------------------------------
# Main generator
# ---------------------------------------------------------------------------


class ProjectGenerator:
    """Generates a project from a loaded template.

    Args:
        definition: The template's parsed schema.
        template_root: Directory whose content is rendered.
        base: Directory output paths are relative to.  With a ``directory``
            sub-root this is the template's root, so the sub-root name is
            kept in the output.  Defaults to *template_root*.
        schema_path: The ``template.toml`` file, always excluded from output.
        config: Run configuration (destination, unattended mode, ...).
    """

    def __init__(
        self,
        definition: TemplateDefinition,
        template_root: str | Path,
        *,
        base: str | Path | None = None,
        schema_path: str | Path | None = None,
        config: Config | None = None,
    ) -> None:
        self.definition = definition
        self.template_root = Path(template_root).resolve()
        self.base = Path(base).resolve() if base else self.template_root
        self.schema_path = Path(schema_path) if schema_path else None
        self.config = config or Config()
        self.renderer = TemplateRenderer()

    @classmethod
    def from_template(cls, template: Template, config: Config | None = None) -> "ProjectGenerator":
        return cls(
            template.definition,
            template.template_root,
            base=template.root,
            schema_path=template.schema_path,
            config=config,
        )

    # -- Public API --------------------------------------------------------

    async def generate(
        self,
        prompter: Optional[Prompter] = None,
        presets: Optional[Mapping[str, Any]] = None,
    ) -> GenerationResult:
        """Resolve, render, clean up and commit.

        Args:
            prompter: Asks the questions.  Ignored (defaults are used) when
                ``config.no_input`` is set or when ``None``.
            presets: Answers supplied up-front, keyed by variable name.

        Raises:
            ResolutionError, RenderError: From stages 1 and 2.
            GenerationIOError, DestinationConflictError: When the project
                cannot be written; the destination is left untouched.
        """
        context = self.resolve(prompter, presets)
        destination = self.config.destination

        area = StagingArea(destination)
        with area as staging:
            files = await self.render(context, staging)
            report = await self.cleanup(context, staging)
            area.commit()

        files = [f for f in files if not _under_any(f, report.deleted)]
        console.print(f"  [green]+[/green] {len(files)} files written to {destination}")
        return GenerationResult(
            destination=destination,
            context=context.as_dict(),
            files_written=files,
            cleanup=report,
        )

    def resolve(
        self,
        prompter: Optional[Prompter] = None,
        presets: Optional[Mapping[str, Any]] = None,
    ) -> Context:
        """Stage 1: ask the questions (or take the defaults)."""
        resolver = VariableResolver(
            self.definition.variables,
            renderer=self.renderer,
            prompter=None if self.config.no_input else prompter,
            presets=presets,
        )
        return resolver.resolve()

    async def render(self, context: Context, output_dir: str | Path) -> list[Path]:
        """Stage 2: render the tree into *output_dir* (the staging area)."""
        output_dir = Path(output_dir).resolve()
        destination = self.config.destination
        exclude = [output_dir]
        if destination != self.base and destination.is_relative_to(self.base):
            exclude.append(destination)
        tree = TreeRenderer(
            self.template_root,
            self.renderer,
            base=self.base,
            ignore=self.definition.ignore,
            copy_without_render=self.definition.copy_without_render,
            schema_path=self.schema_path,
            exclude=exclude,
        )
        console.print(f"[cyan]Rendering[/cyan] [bold]{self.definition.name}[/bold]...")
        return await tree.render_tree(context.as_dict(), output_dir)

    async def cleanup(self, context: Context, output_dir: str | Path) -> CleanupReport:
        """Stage 3: delete rendered paths made irrelevant by the answers."""
        engine = CleanupEngine(self.definition.cleanup, self.renderer)
        report = await engine.run(context.as_dict(), output_dir)
        if report.deleted:
            console.print(f"  [green]+[/green] Cleaned up {len(report.deleted)} paths")
        return report


def _under_any(path: Path, roots: list[Path]) -> bool:
    return any(path == root or path.is_relative_to(root) for root in roots)
