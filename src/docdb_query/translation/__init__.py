from .native import NativeQuery, QueryParameter
from .translator import ALIAS, RESERVED_WORDS, SqlQueryTranslator, render_path

__all__ = [
    "ALIAS",
    "RESERVED_WORDS",
    "NativeQuery",
    "QueryParameter",
    "SqlQueryTranslator",
    "render_path",
]
