"""kickstart -- generate projects from a template directory and a template.toml.

The pipeline has three stages, always run in this order:

1. the resolver asks the questions declared in ``template.toml`` (some gated
   on earlier answers) and builds the rendering context;
2. the tree renderer renders every path and file of the template into a
   staging directory, then moves the result into the destination;
3. the cleanup engine deletes the paths made irrelevant by the answers.
"""

__version__ = "0.5.0"
