from __future__ import annotations

from typing import Any, Dict, List, Sequence

from mercado_obras.infrastructure.repositories.base import OwnerScopedRepository


class CotacaoRepository(OwnerScopedRepository):
    def get_by_id(self, db, cotacao_id: str) -> dict | None:
        clause, params = self.owner_clause()
        row = db.execute(
            f"SELECT * FROM cotacoes WHERE id = ?{clause} LIMIT 1",
            (cotacao_id, *params),
        ).fetchone()
        return self.row_to_dict(row)

    def exists_any_owner(self, db, cotacao_id: str) -> bool:
        return db.execute("SELECT 1 FROM cotacoes WHERE id = ? LIMIT 1", (cotacao_id,)).fetchone() is not None

    def list_all(self, db, *, obra_id: str | None = None) -> list[dict]:
        clause, params = self.owner_clause()
        if obra_id:
            clause = f"{clause} AND obra_id = ?"
            params = (*params, obra_id)
        rows = db.execute(
            f"""
            SELECT *
            FROM cotacoes
            WHERE 1 = 1{clause}
            ORDER BY created_at DESC, id ASC
            """,
            params,
        ).fetchall()
        return self.rows_to_dicts(rows)

    def list_items(self, db, cotacao_ids: Sequence[str]) -> List[dict]:
        if not cotacao_ids:
            return []
        rows = db.execute(
            f"""
            SELECT *
            FROM cotacao_itens
            WHERE cotacao_id IN ({self.placeholders(cotacao_ids)})
            ORDER BY cotacao_id, posicao, id
            """,
            tuple(cotacao_ids),
        ).fetchall()
        return self.rows_to_dicts(rows)

    def insert_with_items(
        self,
        db,
        *,
        cotacao_id: str,
        user_id: str,
        obra_id: str,
        items: Sequence[Dict[str, Any]],
    ) -> bool:
        """Insert the cotacao and its items; False when ``cotacao_id`` was already stored."""
        cursor = db.execute(
            """
            INSERT INTO cotacoes (id, user_id, obra_id, status)
            VALUES (?, ?, ?, 'enviada')
            ON CONFLICT (id) DO NOTHING
            """,
            (cotacao_id, user_id, obra_id),
        )
        if not int(getattr(cursor, "rowcount", 0) or 0):
            return False
        for position, item in enumerate(items):
            db.execute(
                """
                INSERT INTO cotacao_itens (
                    id, cotacao_id, posicao, material_id, nome, quantidade,
                    unidade, grupo, fase_id, servico_id, observacao
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    item["id"],
                    cotacao_id,
                    position,
                    item.get("material_id"),
                    item["nome"],
                    item["quantidade"],
                    item["unidade"],
                    item.get("grupo"),
                    item.get("fase_id"),
                    item.get("servico_id"),
                    item.get("observacao"),
                ),
            )
        return True

    def list_sent_candidates(self, db, grupo_ids: Sequence[str]) -> List[dict]:
        """Sent cotacoes with an item in one of the groups or naming any group.

        Group names are compared by the caller; SQL ``LOWER`` only folds ASCII.
        """
        if not grupo_ids:
            return []
        rows = db.execute(
            f"""
            SELECT c.*
            FROM cotacoes c
            WHERE c.status = 'enviada'
              AND EXISTS (
                SELECT 1
                FROM cotacao_itens i
                WHERE i.cotacao_id = c.id
                  AND (
                    i.material_id IN (
                        SELECT mg.material_id FROM material_grupo mg WHERE mg.grupo_id IN ({self.placeholders(grupo_ids)})
                    )
                    OR TRIM(COALESCE(i.grupo, '')) <> ''
                  )
              )
            ORDER BY c.created_at DESC, c.id ASC
            """,
            tuple(grupo_ids),
        ).fetchall()
        return self.rows_to_dicts(rows)
