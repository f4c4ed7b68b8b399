"""Typed placeholder templates and escaping rules."""

from safesql.template.escaper import (
    Dialect,
    Escaped,
    Raw,
    create_in,
    create_set,
    escape_ident,
    escape_int,
    escape_param,
    escape_string,
)
from safesql.template.compiler import (
    PLACEHOLDER_PATTERN,
    PreparedTemplate,
    TemplateCompiler,
    compile_template,
)

__all__ = [
    # Escaping
    "Dialect",
    "Escaped",
    "Raw",
    "create_in",
    "create_set",
    "escape_ident",
    "escape_int",
    "escape_param",
    "escape_string",
    # Compilation
    "PLACEHOLDER_PATTERN",
    "PreparedTemplate",
    "TemplateCompiler",
    "compile_template",
]
