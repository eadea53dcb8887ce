"""
SQL fragment assembly.
"""

from __future__ import annotations

import re
from typing import Iterable, Iterator, Optional, Sequence, Union

Fragment = Union[str, None, Sequence[Optional[str]]]

_TRAILING_TERMINATORS = re.compile(r"(?:\s*;)+$")


def _flatten(fragments: Iterable[Fragment]) -> Iterator[str]:
    for fragment in fragments:
        if fragment is None:
            continue
        if isinstance(fragment, str):
            yield fragment
            continue
        # nested sequences are flattened one level only
        for nested in fragment:
            if isinstance(nested, str):
                yield nested


def join_sql_fragments(fragments: Iterable[Fragment]) -> str:
    """
    Join SQL fragments into a single statement.

    Empty strings and ``None`` are dropped, so optional clauses can be passed
    inline without producing double spaces or stray separators. A trailing
    run of semicolons collapses into one.

    >>> join_sql_fragments(["SELECT 1", "", None, "FROM t"])
    'SELECT 1 FROM t'
    """

    parts = [piece.strip() for piece in _flatten(fragments)]
    sql = " ".join(piece for piece in parts if piece).strip()
    if _TRAILING_TERMINATORS.search(sql):
        sql = _TRAILING_TERMINATORS.sub("", sql)
        return f"{sql};" if sql else ""
    return sql
