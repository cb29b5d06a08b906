"""Parser and evaluator for the native SQL dialect emitted by the translator."""

from .ast import UNDEFINED, SelectStatement
from .evaluator import Evaluator, FunctionRegistry, compare_keys, sort_key
from .parser import parse

__all__ = [
    "UNDEFINED",
    "Evaluator",
    "FunctionRegistry",
    "SelectStatement",
    "compare_keys",
    "parse",
    "sort_key",
]
