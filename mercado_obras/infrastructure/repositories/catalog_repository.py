from __future__ import annotations

from typing import Any, Dict, List, Sequence

from mercado_obras.infrastructure.repositories.base import BaseRepository


_ENTITY_TABLES = {
    "fase": "fases",
    "servico": "servicos",
    "grupo": "grupos_insumo",
    "material": "materiais",
}

# (table, left column, right column) per link kind.
_LINK_TABLES = {
    "servico_fase": ("servico_fase", "servico_id", "fase_id"),
    "servico_grupo": ("servico_grupo", "servico_id", "grupo_id"),
    "material_grupo": ("material_grupo", "material_id", "grupo_id"),
    "fornecedor_grupo": ("fornecedor_grupo", "fornecedor_id", "grupo_id"),
}

# Junction rows detached when an entity is deleted; the other endpoint survives.
_DETACH_ON_DELETE = {
    "fase": (("servico_fase", "fase_id"),),
    "servico": (("servico_fase", "servico_id"), ("servico_grupo", "servico_id")),
    "grupo": (("servico_grupo", "grupo_id"), ("material_grupo", "grupo_id"), ("fornecedor_grupo", "grupo_id")),
    "material": (("material_grupo", "material_id"),),
}


class CatalogRepository(BaseRepository):
    def load_rows(self, db) -> Dict[str, List[dict]]:
        """Every catalog table in one pass; callers build the graph from the result."""
        return {
            "fases": self.rows_to_dicts(
                db.execute("SELECT id, cronologia, nome, descricao FROM fases ORDER BY cronologia, id").fetchall()
            ),
            "servicos": self.rows_to_dicts(
                db.execute("SELECT id, nome, ordem, descricao FROM servicos ORDER BY ordem, nome, id").fetchall()
            ),
            "grupos": self.rows_to_dicts(
                db.execute("SELECT id, nome, descricao FROM grupos_insumo ORDER BY nome, id").fetchall()
            ),
            "materiais": self.rows_to_dicts(
                db.execute("SELECT id, nome, unidade, descricao FROM materiais ORDER BY nome, id").fetchall()
            ),
            "servico_fase": self.rows_to_dicts(db.execute("SELECT servico_id, fase_id FROM servico_fase").fetchall()),
            "servico_grupo": self.rows_to_dicts(
                db.execute("SELECT servico_id, grupo_id FROM servico_grupo").fetchall()
            ),
            "material_grupo": self.rows_to_dicts(
                db.execute("SELECT material_id, grupo_id FROM material_grupo").fetchall()
            ),
        }

    def get(self, db, entity: str, entity_id: str) -> dict | None:
        table = _ENTITY_TABLES[entity]
        row = db.execute(f"SELECT * FROM {table} WHERE id = ? LIMIT 1", (entity_id,)).fetchone()
        return self.row_to_dict(row)

    def exists(self, db, entity: str, entity_id: str) -> bool:
        table = _ENTITY_TABLES[entity]
        return db.execute(f"SELECT 1 FROM {table} WHERE id = ? LIMIT 1", (entity_id,)).fetchone() is not None

    def fase_id_by_cronologia(self, db, cronologia: int) -> str | None:
        row = db.execute("SELECT id FROM fases WHERE cronologia = ? LIMIT 1", (cronologia,)).fetchone()
        return str(dict(row)["id"]) if row else None

    def next_cronologia(self, db) -> int:
        row = db.execute("SELECT COALESCE(MAX(cronologia), 0) AS ultima FROM fases").fetchone()
        return int(dict(row)["ultima"] or 0) + 1

    def upsert_fase(self, db, *, fase_id: str, cronologia: int, nome: str, descricao: str | None) -> None:
        db.execute(
            """
            INSERT INTO fases (id, cronologia, nome, descricao)
            VALUES (?, ?, ?, ?)
            ON CONFLICT (id) DO UPDATE SET
                cronologia = excluded.cronologia,
                nome = excluded.nome,
                descricao = excluded.descricao,
                updated_at = CURRENT_TIMESTAMP
            """,
            (fase_id, cronologia, nome, descricao),
        )

    def upsert_servico(self, db, *, servico_id: str, nome: str, ordem: int, descricao: str | None) -> None:
        db.execute(
            """
            INSERT INTO servicos (id, nome, ordem, descricao)
            VALUES (?, ?, ?, ?)
            ON CONFLICT (id) DO UPDATE SET
                nome = excluded.nome,
                ordem = excluded.ordem,
                descricao = excluded.descricao,
                updated_at = CURRENT_TIMESTAMP
            """,
            (servico_id, nome, ordem, descricao),
        )

    def upsert_grupo(self, db, *, grupo_id: str, nome: str, descricao: str | None) -> None:
        db.execute(
            """
            INSERT INTO grupos_insumo (id, nome, descricao)
            VALUES (?, ?, ?)
            ON CONFLICT (id) DO UPDATE SET
                nome = excluded.nome,
                descricao = excluded.descricao,
                updated_at = CURRENT_TIMESTAMP
            """,
            (grupo_id, nome, descricao),
        )

    def upsert_material(self, db, *, material_id: str, nome: str, unidade: str, descricao: str | None) -> None:
        db.execute(
            """
            INSERT INTO materiais (id, nome, unidade, descricao)
            VALUES (?, ?, ?, ?)
            ON CONFLICT (id) DO UPDATE SET
                nome = excluded.nome,
                unidade = excluded.unidade,
                descricao = excluded.descricao,
                updated_at = CURRENT_TIMESTAMP
            """,
            (material_id, nome, unidade, descricao),
        )

    def link(self, db, kind: str, left_id: str, right_id: str) -> None:
        table, left, right = _LINK_TABLES[kind]
        db.execute(
            f"INSERT INTO {table} ({left}, {right}) VALUES (?, ?) ON CONFLICT DO NOTHING",
            (left_id, right_id),
        )

    def unlink(self, db, kind: str, left_id: str, right_id: str) -> int:
        table, left, right = _LINK_TABLES[kind]
        cursor = db.execute(f"DELETE FROM {table} WHERE {left} = ? AND {right} = ?", (left_id, right_id))
        return int(getattr(cursor, "rowcount", 0) or 0)

    def replace_links(self, db, kind: str, left_id: str, right_ids: Sequence[str]) -> None:
        table, left, _right = _LINK_TABLES[kind]
        db.execute(f"DELETE FROM {table} WHERE {left} = ?", (left_id,))
        for right_id in right_ids:
            self.link(db, kind, left_id, right_id)

    def linked_ids(self, db, kind: str, left_id: str) -> List[str]:
        table, left, right = _LINK_TABLES[kind]
        rows = db.execute(f"SELECT {right} AS linked_id FROM {table} WHERE {left} = ?", (left_id,)).fetchall()
        return [str(dict(row)["linked_id"]) for row in rows]

    def delete(self, db, entity: str, entity_id: str) -> Dict[str, Any]:
        """Delete an entity and detach it from every junction; linked entities are kept."""
        detached: Dict[str, int] = {}
        for table, column in _DETACH_ON_DELETE[entity]:
            cursor = db.execute(f"DELETE FROM {table} WHERE {column} = ?", (entity_id,))
            detached[table] = int(getattr(cursor, "rowcount", 0) or 0)
        if entity == "fase":
            db.execute("UPDATE obra_etapas SET fase_id = NULL WHERE fase_id = ?", (entity_id,))
        cursor = db.execute(f"DELETE FROM {_ENTITY_TABLES[entity]} WHERE id = ?", (entity_id,))
        return {"deleted": int(getattr(cursor, "rowcount", 0) or 0), "detached": detached}

    def reorder_fases(self, db, fase_ids: Sequence[str]) -> None:
        # Two passes keep the UNIQUE(cronologia) constraint satisfied mid-update.
        for position, fase_id in enumerate(fase_ids, start=1):
            db.execute("UPDATE fases SET cronologia = ? WHERE id = ?", (-position, fase_id))
        for position, fase_id in enumerate(fase_ids, start=1):
            db.execute(
                "UPDATE fases SET cronologia = ?, updated_at = CURRENT_TIMESTAMP WHERE id = ?",
                (position, fase_id),
            )

    def all_fase_ids(self, db) -> List[str]:
        rows = db.execute("SELECT id FROM fases ORDER BY cronologia, id").fetchall()
        return [str(dict(row)["id"]) for row in rows]
