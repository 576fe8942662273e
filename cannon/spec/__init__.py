"""
cannon/spec - Deployment definitions and their dependency graph.

Usage:
    from cannon.spec import load_definition, topological_order

    definition = load_definition(Path("cannonfile.yaml"))
    for step in topological_order(definition):
        print(step.name, sorted(step.all_depends))
"""

from .types import (
    Definition,
    SettingSpec,
    StepSpec,
)

from .loader import (
    definition_from_dict,
    lint_definition,
    lint_document,
    list_step_kinds,
    load_definition,
    load_schema,
    parse,
    read_definition_file,
)

from .graph import (
    dependency_closure,
    topological_order,
)

from .templating import (
    find_references,
    render,
)

__all__ = [
    # Types
    "Definition",
    "SettingSpec",
    "StepSpec",
    # Loader
    "definition_from_dict",
    "lint_definition",
    "lint_document",
    "list_step_kinds",
    "load_definition",
    "load_schema",
    "parse",
    "read_definition_file",
    # Graph
    "dependency_closure",
    "topological_order",
    # Templating
    "find_references",
    "render",
]
