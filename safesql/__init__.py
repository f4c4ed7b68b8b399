"""SafeSQL: typed placeholder queries over a single self-healing connection.

SafeSQL provides:
- Placeholder templates (?n ?s ?i ?a ?u ?p) with type-specific escaping
- Lazy connection with idle liveness checks and bounded reconnects
- One retry of statements interrupted by a lost connection
- Bounded execution statistics and optional SQL/error journals
- YAML-based configuration and a small CLI
"""

__version__ = "0.1.0"
__license__ = "MIT"

# Core exports
from safesql.exceptions import (
    SafeSQLError,
    ConfigurationError,
    TemplateError,
    ArityError,
    EmptyIdentifierError,
    EmptyPayloadError,
    PlaceholderTypeError,
    DatabaseError,
    ConnectError,
    QueryError,
)
from safesql.template import Escaped, Raw, TemplateCompiler, compile_template
from safesql.db import Database, DatabaseRegistry

__all__ = [
    "__version__",
    "SafeSQLError",
    "ConfigurationError",
    "TemplateError",
    "ArityError",
    "EmptyIdentifierError",
    "EmptyPayloadError",
    "PlaceholderTypeError",
    "DatabaseError",
    "ConnectError",
    "QueryError",
    "Escaped",
    "Raw",
    "TemplateCompiler",
    "compile_template",
    "Database",
    "DatabaseRegistry",
]
