"""kickstart scaffolder -- renders a template tree into a project.

Quick usage::

    from kickstart.config import Config
    from kickstart.scaffolder import ProjectGenerator
    from kickstart.source import Template

    template = Template.from_local("./my-template")
    generator = ProjectGenerator.from_template(template, Config(no_input=True))
    result = await generator.generate()
"""

from kickstart.scaffolder.cleanup import CleanupEngine, CleanupFailure, CleanupReport
from kickstart.scaffolder.generator import GenerationResult, ProjectGenerator
from kickstart.templates import TemplateRenderer, rewrite_path_filters
from kickstart.scaffolder.tree import StagingArea, TemplateNode, TreeRenderer

__all__ = [
    "CleanupEngine",
    "CleanupFailure",
    "CleanupReport",
    "GenerationResult",
    "ProjectGenerator",
    "StagingArea",
    "TemplateNode",
    "TemplateRenderer",
    "TreeRenderer",
    "rewrite_path_filters",
]
