"""
Comparison operators and their default SQL keywords.
"""

from __future__ import annotations

import enum
from types import MappingProxyType
from typing import Mapping


class Operator(str, enum.Enum):
    EQ = "eq"
    NE = "ne"
    GT = "gt"
    GTE = "gte"
    LT = "lt"
    LTE = "lte"
    LIKE = "like"
    NOT_LIKE = "not_like"
    IN = "in"
    NOT_IN = "not_in"
    IS = "is"
    IS_NOT = "is_not"
    REGEXP = "regexp"
    NOT_REGEXP = "not_regexp"


DEFAULT_OPERATOR_KEYWORDS: Mapping[Operator, str] = MappingProxyType(
    {
        Operator.EQ: "=",
        Operator.NE: "!=",
        Operator.GT: ">",
        Operator.GTE: ">=",
        Operator.LT: "<",
        Operator.LTE: "<=",
        Operator.LIKE: "LIKE",
        Operator.NOT_LIKE: "NOT LIKE",
        Operator.IN: "IN",
        Operator.NOT_IN: "NOT IN",
        Operator.IS: "IS",
        Operator.IS_NOT: "IS NOT",
    }
)


def build_operator_keywords(**overrides: str) -> Mapping[Operator, str]:
    """
    Build an immutable keyword table from the defaults plus dialect overrides,
    e.g. ``build_operator_keywords(regexp="~", not_regexp="!~")``.
    """

    table = dict(DEFAULT_OPERATOR_KEYWORDS)
    for name, keyword in overrides.items():
        table[Operator(name)] = keyword
    return MappingProxyType(table)
