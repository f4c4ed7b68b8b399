"""Placeholder template compiler.

Templates are split on the two-character placeholder tokens and each argument
is escaped according to the token that consumes it::

    compiler = TemplateCompiler()
    compiler.compile("SELECT * FROM ?n WHERE id=?i", ["users", 5])
    # SELECT * FROM `users` WHERE id=5

The scan works on the raw template text and knows nothing about SQL quoting,
so a literal ``?s`` inside a quoted string in the template is still treated
as a placeholder. Pass such text through a placeholder instead of writing it
into the template.
"""

import re
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Sequence, Tuple

from safesql.exceptions import ArityError
from safesql.template.escaper import (
    Dialect,
    create_in,
    create_set,
    escape_ident,
    escape_int,
    escape_raw,
    escape_string,
)

PLACEHOLDER_PATTERN = re.compile(r'(\?[nsiuap])')

ESCAPERS: Dict[str, Callable[[Any, Dialect], str]] = {
    '?n': escape_ident,
    '?s': escape_string,
    '?i': escape_int,
    '?a': create_in,
    '?u': create_set,
    '?p': escape_raw,
}


@dataclass(frozen=True)
class PreparedTemplate:
    """A template split once into literal and placeholder segments.

    Literal segments sit at even positions and placeholder tokens at odd ones.
    """
    template: str
    segments: Tuple[str, ...]
    dialect: Dialect = Dialect.MYSQL

    @property
    def placeholders(self) -> List[str]:
        return list(self.segments[1::2])

    def render(self, args: Sequence[Any] = ()) -> str:
        """Substitute ``args`` left to right.

        Raises:
            ArityError: If the argument count differs from the placeholder count.
        """
        args = list(args)
        expected = len(self.segments) // 2
        if expected != len(args):
            raise ArityError(self.template, expected, len(args))

        parts = []
        remaining = iter(args)
        for i, segment in enumerate(self.segments):
            if i % 2 == 0:
                parts.append(segment)
            else:
                parts.append(ESCAPERS[segment](next(remaining), self.dialect))
        return ''.join(parts)

    def __call__(self, *args: Any) -> str:
        return self.render(args)


class TemplateCompiler:
    """Compiles placeholder templates into final SQL for one dialect."""

    def __init__(self, dialect: Dialect = Dialect.MYSQL) -> None:
        self.dialect = Dialect(dialect)

    def prepare(self, template: str) -> PreparedTemplate:
        """Split ``template`` into a reusable :class:`PreparedTemplate`."""
        segments = tuple(PLACEHOLDER_PATTERN.split(template))
        return PreparedTemplate(template, segments, self.dialect)

    def compile(self, template: str, args: Sequence[Any] = ()) -> str:
        """Compile ``template`` with ``args`` into a SQL string.

        Raises:
            ArityError: Placeholder and argument counts differ.
            EmptyIdentifierError: An identifier argument is empty.
            EmptyPayloadError: A SET argument is an empty mapping.
            PlaceholderTypeError: An argument has the wrong type for its placeholder.
        """
        return self.prepare(template).render(args)

    def parse(self, template: str, *args: Any) -> str:
        """Variadic form of :meth:`compile`, handy for building query parts."""
        return self.compile(template, args)

    @staticmethod
    def count_placeholders(template: str) -> int:
        return len(PLACEHOLDER_PATTERN.findall(template))


def compile_template(template: str, *args: Any, dialect: Dialect = Dialect.MYSQL) -> str:
    """Compile a template without keeping a compiler around."""
    return TemplateCompiler(dialect).compile(template, args)
