from .builder import CriteriaBuilder
from .nodes import (
    Combinator,
    CriteriaNode,
    Leaf,
    and_,
    combine,
    criteria_from_dict,
    criteria_from_json,
    leaf,
    or_,
)
from .operators import (
    LEAF_OPERATORS,
    VALUE_ARITY,
    CriteriaType,
    Proximity,
    arity_matches,
)

__all__ = [
    "CriteriaType",
    "Proximity",
    "VALUE_ARITY",
    "LEAF_OPERATORS",
    "arity_matches",
    "Combinator",
    "Leaf",
    "CriteriaNode",
    "combine",
    "and_",
    "or_",
    "leaf",
    "criteria_from_dict",
    "criteria_from_json",
    "CriteriaBuilder",
]
