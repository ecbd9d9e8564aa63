"""Pydantic models for the ``template.toml`` schema document.

The models mirror the document one-to-one.  They are immutable once parsed:
the resolver, renderer and cleanup engine only ever read them.
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from kickstart.values import TemplateValue, ValueType, value_type

SUPPORTED_KICKSTART_VERSION = 1
TEMPLATE_FILE_NAME = "template.toml"


class _SchemaModel(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)


class Condition(_SchemaModel):
    """Only ask a question when an earlier variable has ``value``."""

    name: str
    value: TemplateValue


class CleanupRule(_SchemaModel):
    """Delete ``paths`` after generation when ``name`` resolved to ``value``."""

    name: str
    value: TemplateValue
    paths: list[str] = Field(default_factory=list)


class Variable(_SchemaModel):
    """A single question asked to the user."""

    name: str = Field(..., min_length=1, description="Key in the rendering context")
    default: TemplateValue = Field(..., description="Literal or template string; fixes the type")
    prompt: str = Field(..., description="Text shown when asking the question")
    choices: Optional[list[TemplateValue]] = Field(default=None)
    validation: Optional[str] = Field(default=None, description="Regex the answer must fully match")
    only_if: Optional[Condition] = Field(default=None)

    @property
    def value_type(self) -> ValueType:
        return value_type(self.default)

    @property
    def has_templated_default(self) -> bool:
        return isinstance(self.default, str) and ("{{" in self.default or "{%" in self.default)


class TemplateDefinition(_SchemaModel):
    """The full content of a ``template.toml`` file."""

    name: str
    description: Optional[str] = None
    version: Optional[str] = None
    kickstart_version: int = Field(..., description="Version of the template schema")
    url: Optional[str] = None
    authors: list[str] = Field(default_factory=list)
    keywords: list[str] = Field(default_factory=list)
    directory: Optional[str] = Field(
        default=None,
        description="Sub-directory holding the template files, if not the root",
    )
    ignore: list[str] = Field(default_factory=list)
    cleanup: list[CleanupRule] = Field(default_factory=list)
    copy_without_render: list[str] = Field(default_factory=list)
    variables: list[Variable] = Field(default_factory=list)

    def get_variable(self, name: str) -> Optional[Variable]:
        for variable in self.variables:
            if variable.name == name:
                return variable
        return None
