from __future__ import annotations

from typing import Any, Iterable


class OwnerScopeRequiredError(ValueError):
    """Raised when an owner-scoped repository is built without a user and without admin access."""


class BaseRepository:
    @staticmethod
    def rows_to_dicts(rows: Iterable[Any]) -> list[dict]:
        return [dict(row) for row in rows]

    @staticmethod
    def row_to_dict(row: Any) -> dict | None:
        return dict(row) if row else None

    @staticmethod
    def placeholders(values: Iterable[Any]) -> str:
        return ",".join("?" for _ in values)


class OwnerScopedRepository(BaseRepository):
    """Repository whose reads are limited to rows owned by ``user_id`` unless ``unrestricted``."""

    def __init__(self, *, user_id: str | None = None, unrestricted: bool = False) -> None:
        scope = str(user_id or "").strip()
        if not scope and not unrestricted:
            raise OwnerScopeRequiredError("user_id is required for repository access")
        self.user_id = scope or None
        self.unrestricted = bool(unrestricted)

    def owner_clause(self, *, table_alias: str | None = None, column_name: str = "user_id") -> tuple[str, tuple]:
        if self.unrestricted:
            return "", ()
        prefix = f"{table_alias.strip()}." if table_alias and str(table_alias).strip() else ""
        return f" AND {prefix}{column_name} = ?", (self.user_id,)
