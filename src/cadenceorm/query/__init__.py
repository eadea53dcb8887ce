"""
SQL composition: fragments, option validation, table references, operators
and the query generator contract.
"""

from .fragments import join_sql_fragments
from .generator import SUPPORTABLE_OPTIONS, QueryGenerator, SQLToolkit
from .operators import DEFAULT_OPERATOR_KEYWORDS, Operator, build_operator_keywords
from .options import reject_invalid_options, supplied_option_keys
from .tables import SupportsTableRef, TableLike, TableRef, resolve_table

__all__ = [
    "DEFAULT_OPERATOR_KEYWORDS",
    "Operator",
    "QueryGenerator",
    "SQLToolkit",
    "SUPPORTABLE_OPTIONS",
    "SupportsTableRef",
    "TableLike",
    "TableRef",
    "build_operator_keywords",
    "join_sql_fragments",
    "reject_invalid_options",
    "resolve_table",
    "supplied_option_keys",
]
