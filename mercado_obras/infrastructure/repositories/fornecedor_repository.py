from __future__ import annotations

from typing import List

from mercado_obras.infrastructure.repositories.base import BaseRepository


class FornecedorRepository(BaseRepository):
    def get_by_id(self, db, fornecedor_id: str) -> dict | None:
        row = db.execute("SELECT * FROM fornecedores WHERE id = ? LIMIT 1", (fornecedor_id,)).fetchone()
        return self.row_to_dict(row)

    def list_all(self, db) -> list[dict]:
        rows = db.execute(
            """
            SELECT id, razao_social, cnpj, email, status
            FROM fornecedores
            ORDER BY razao_social ASC, id ASC
            """
        ).fetchall()
        return self.rows_to_dicts(rows)

    def upsert(self, db, *, fornecedor_id: str, razao_social: str, cnpj, email, status: str) -> None:
        db.execute(
            """
            INSERT INTO fornecedores (id, razao_social, cnpj, email, status)
            VALUES (?, ?, ?, ?, ?)
            ON CONFLICT (id) DO UPDATE SET
                razao_social = excluded.razao_social,
                cnpj = excluded.cnpj,
                email = excluded.email,
                status = excluded.status,
                updated_at = CURRENT_TIMESTAMP
            """,
            (fornecedor_id, razao_social, cnpj, email, status),
        )

    def grupos_of(self, db, fornecedor_id: str) -> List[dict]:
        rows = db.execute(
            """
            SELECT g.id, g.nome
            FROM fornecedor_grupo fg
            JOIN grupos_insumo g ON g.id = fg.grupo_id
            WHERE fg.fornecedor_id = ?
            ORDER BY g.nome ASC, g.id ASC
            """,
            (fornecedor_id,),
        ).fetchall()
        return self.rows_to_dicts(rows)

    def grupo_ids_by_fornecedor(self, db) -> dict:
        rows = db.execute("SELECT fornecedor_id, grupo_id FROM fornecedor_grupo").fetchall()
        result: dict = {}
        for row in rows:
            item = dict(row)
            result.setdefault(str(item["fornecedor_id"]), []).append(str(item["grupo_id"]))
        return result
