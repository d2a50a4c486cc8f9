"""Small SQL helpers shared by the service modules."""

from __future__ import annotations

from typing import Any


def build_update(
    table: str,
    fields: dict[str, Any],
    allowed: set[str],
    *,
    touch_updated_at: bool = True,
) -> tuple[str, list[Any]]:
    """Build ``UPDATE <table> SET ... WHERE id = $1 RETURNING *`` for *fields*.

    The caller passes the row id as the first parameter; the returned
    parameter list holds only the new values, in placeholder order.
    """
    invalid = set(fields) - allowed
    if invalid:
        raise ValueError(f"Invalid fields: {sorted(invalid)}")

    set_clauses = []
    params: list[Any] = []
    idx = 2
    for key, value in fields.items():
        set_clauses.append(f"{key} = ${idx}")
        params.append(value)
        idx += 1
    if touch_updated_at:
        set_clauses.append("updated_at = now()")

    query = f"UPDATE {table} SET {', '.join(set_clauses)} WHERE id = $1 RETURNING *"
    return query, params
