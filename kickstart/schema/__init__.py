"""Schema model for ``template.toml`` documents.

Quick usage::

    from kickstart.schema import load_definition

    definition = load_definition("my-template/template.toml")
    for variable in definition.variables:
        print(variable.name, variable.default)
"""

from kickstart.schema.loader import (
    load_definition,
    parse_definition,
    validate_definition,
    validate_file,
)
from kickstart.schema.models import (
    TEMPLATE_FILE_NAME,
    CleanupRule,
    Condition,
    TemplateDefinition,
    Variable,
)

__all__ = [
    "TEMPLATE_FILE_NAME",
    "CleanupRule",
    "Condition",
    "TemplateDefinition",
    "Variable",
    "load_definition",
    "parse_definition",
    "validate_definition",
    "validate_file",
]
