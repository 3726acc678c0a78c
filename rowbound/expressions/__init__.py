"""SQL fragment types for query building.

Each builder clause is an ordered sequence of fragments. Safe fragments
(``SafeQuery``, ``In``) carry bound values rendered as driver placeholders;
unsafe fragments (``Ident``, ``Safe``) carry trusted text. A ``Formatter``
renders fragments for one dialect into ``(sql, params)``.
"""

from ._bases import (
    NAMED_PLACEHOLDERS,
    ColumnRef,
    Fragment,
    Ident,
    In,
    Safe,
    SafeQuery,
    WhereGroup,
    append_conditions,
    count_placeholders,
    tokenize,
)
from .formatter import Formatter

__all__ = [
    "NAMED_PLACEHOLDERS",
    "ColumnRef",
    "Fragment",
    "Formatter",
    "Ident",
    "In",
    "Safe",
    "SafeQuery",
    "WhereGroup",
    "append_conditions",
    "count_placeholders",
    "tokenize",
]
