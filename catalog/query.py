"""Compile a :class:`FilterSpec` into parameterised SQL.

A plan is a list of tagged clause fragments, each carrying its own bound
values, plus the association-table joins the facet clauses need. Rendering
only ever joins fixed SQL text; every user-supplied value travels as a
parameter.
"""
from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from core.db import escape_like, placeholders

from .models import FilterSpec
from .schema import FACET_TABLES, FacetTable

VIDEO_COLUMNS = (
    "id",
    "path",
    "filename",
    "folder_path",
    "size",
    "duration",
    "thumbnail_path",
    "created_at",
    "updated_at",
)

SORT_COLUMNS: Dict[str, str] = {
    "filename": "v.filename",
    "size": "v.size",
    "created": "v.created_at",
    "created_at": "v.created_at",
    "updated": "v.updated_at",
    "updated_at": "v.updated_at",
}
DEFAULT_SORT_COLUMN = SORT_COLUMNS["filename"]
_DESCENDING_TOKENS = {"desc", "descending"}

_SELECT_LIST = ", ".join(f"v.{column}" for column in VIDEO_COLUMNS)


@dataclass(frozen=True, slots=True)
class Clause:
    kind: str
    sql: str
    params: Tuple[Any, ...] = ()


@dataclass(frozen=True, slots=True)
class FacetJoin:
    table: FacetTable

    def sql(self) -> str:
        alias = self.table.alias
        return f"INNER JOIN {self.table.link_table} {alias} ON {alias}.video_id = v.id"


@dataclass(slots=True)
class QueryPlan:
    joins: List[FacetJoin] = field(default_factory=list)
    clauses: List[Clause] = field(default_factory=list)
    order_column: str = DEFAULT_SORT_COLUMN
    descending: bool = False
    limit: int = 100
    offset: int = 0

    def clause_kinds(self) -> List[str]:
        return [clause.kind for clause in self.clauses]

    def _from_where(self) -> Tuple[str, List[Any]]:
        parts = ["FROM videos v"]
        parts.extend(join.sql() for join in self.joins)
        params: List[Any] = []
        if self.clauses:
            parts.append("WHERE " + " AND ".join(clause.sql for clause in self.clauses))
            for clause in self.clauses:
                params.extend(clause.params)
        return " ".join(parts), params

    def select_sql(self) -> Tuple[str, List[Any]]:
        """Page query over distinct records, ordered with ``id`` as tiebreaker."""

        body, params = self._from_where()
        direction = "DESC" if self.descending else "ASC"
        sql = (
            f"SELECT DISTINCT {_SELECT_LIST} {body} "
            f"ORDER BY {self.order_column} {direction}, v.id {direction} "
            "LIMIT ? OFFSET ?"
        )
        return sql, params + [self.limit, self.offset]

    def count_sql(self) -> Tuple[str, List[Any]]:
        body, params = self._from_where()
        return f"SELECT COUNT(DISTINCT v.id) {body}", params


def folder_prefix_clause(prefix: str, *, mode: str = "textual", column: str = "v.folder_path") -> Clause:
    """Match rows whose folder starts with *prefix*.

    ``textual`` compares the leading characters exactly (case-sensitive, no
    LIKE wildcards), so ``/a/foo`` also matches ``/a/foobar``. ``segment``
    requires the folder itself or a path below it.
    """

    if mode == "segment":
        base = prefix.rstrip(os.sep) or prefix
        nested = base if base.endswith(os.sep) else base + os.sep
        return Clause(
            "folder",
            f"({column} = ? OR substr({column}, 1, ?) = ?)",
            (base, len(nested), nested),
        )
    return Clause("folder", f"substr({column}, 1, ?) = ?", (len(prefix), prefix))


def facet_clause(table: FacetTable, ids: Sequence[str]) -> Clause:
    return Clause(
        table.facet,
        f"{table.alias}.{table.link_column} IN ({placeholders(len(ids))})",
        tuple(ids),
    )


def filename_clause(query: str) -> Clause:
    return Clause("search", "v.filename LIKE ? ESCAPE '\\'", (f"%{escape_like(query)}%",))


def resolve_sort(sort_by: Optional[str], sort_order: Optional[str]) -> Tuple[str, bool]:
    """Unknown sort keys fall back to filename; only desc/descending flips order."""

    column = SORT_COLUMNS.get(str(sort_by or "").strip().lower(), DEFAULT_SORT_COLUMN)
    descending = str(sort_order or "").strip().lower() in _DESCENDING_TOKENS
    return column, descending


def clamp_page(limit: Any, offset: Any, *, default_limit: int = 100, max_page_size: int = 500) -> Tuple[int, int]:
    try:
        lim = int(limit) if limit is not None else default_limit
    except (TypeError, ValueError):
        lim = default_limit
    try:
        off = int(offset or 0)
    except (TypeError, ValueError):
        off = 0
    return max(1, min(lim, max_page_size)), max(0, off)


def _unique_ids(values: Iterable[Any]) -> List[str]:
    seen: Dict[str, None] = {}
    for value in values or ():
        token = str(value).strip()
        if token:
            seen.setdefault(token, None)
    return list(seen)


def compile_filter(
    spec: FilterSpec,
    *,
    prefix_mode: str = "textual",
    default_limit: int = 100,
    max_page_size: int = 500,
) -> QueryPlan:
    plan = QueryPlan()
    if spec.folder_path:
        plan.clauses.append(folder_prefix_clause(spec.folder_path, mode=prefix_mode))

    for facet, ids in (
        ("tags", spec.tag_ids),
        ("participants", spec.participant_ids),
        ("languages", spec.language_ids),
    ):
        wanted = _unique_ids(ids)
        if not wanted:
            continue
        table = FACET_TABLES[facet]
        plan.joins.append(FacetJoin(table))
        plan.clauses.append(facet_clause(table, wanted))

    if spec.search_query:
        plan.clauses.append(filename_clause(spec.search_query))

    plan.order_column, plan.descending = resolve_sort(spec.sort_by, spec.sort_order)
    plan.limit, plan.offset = clamp_page(
        spec.limit, spec.offset, default_limit=default_limit, max_page_size=max_page_size
    )
    return plan


__all__ = [
    "Clause",
    "FacetJoin",
    "QueryPlan",
    "SORT_COLUMNS",
    "VIDEO_COLUMNS",
    "clamp_page",
    "compile_filter",
    "facet_clause",
    "filename_clause",
    "folder_prefix_clause",
    "resolve_sort",
]
