"""Variable resolution -- asks the questions and builds the rendering context.

Quick usage::

    from kickstart.resolver import RichPrompter, VariableResolver

    context = VariableResolver(definition.variables, prompter=RichPrompter()).resolve()
    print(context.as_dict())
"""

from kickstart.resolver.context import Context
from kickstart.resolver.prompter import Prompter, RichPrompter
from kickstart.resolver.resolver import VariableResolver, pick_choice, resolve_variables

__all__ = [
    "Context",
    "Prompter",
    "RichPrompter",
    "VariableResolver",
    "pick_choice",
    "resolve_variables",
]
