from __future__ import annotations

from typing import Any, Dict, List, Sequence

from mercado_obras.infrastructure.repositories.base import OwnerScopedRepository


_OBRA_COLUMNS = (
    "nome",
    "etapa",
    "inicio_recebimento_oferta",
    "status",
    "cep",
    "logradouro",
    "numero",
    "complemento",
    "bairro",
    "cidade",
    "estado",
)


class ObraRepository(OwnerScopedRepository):
    def get_by_id(self, db, obra_id: str) -> dict | None:
        clause, params = self.owner_clause()
        row = db.execute(
            f"""
            SELECT *
            FROM obras
            WHERE id = ?{clause}
            LIMIT 1
            """,
            (obra_id, *params),
        ).fetchone()
        return self.row_to_dict(row)

    def list_all(self, db) -> list[dict]:
        clause, params = self.owner_clause()
        rows = db.execute(
            f"""
            SELECT *
            FROM obras
            WHERE 1 = 1{clause}
            ORDER BY created_at DESC, id ASC
            """,
            params,
        ).fetchall()
        return self.rows_to_dicts(rows)

    def upsert(self, db, *, obra_id: str, user_id: str, values: Dict[str, Any]) -> None:
        columns = ["id", "user_id", *(column for column in _OBRA_COLUMNS if column in values)]
        params = [obra_id, user_id, *(values[column] for column in _OBRA_COLUMNS if column in values)]
        updates = ",\n                ".join(
            f"{column} = excluded.{column}" for column in columns[2:]
        ) or "user_id = obras.user_id"
        db.execute(
            f"""
            INSERT INTO obras ({", ".join(columns)})
            VALUES ({self.placeholders(columns)})
            ON CONFLICT (id) DO UPDATE SET
                {updates},
                updated_at = CURRENT_TIMESTAMP
            """,
            params,
        )

    def list_etapas(self, db, obra_ids: Sequence[str]) -> List[dict]:
        if not obra_ids:
            return []
        rows = db.execute(
            f"""
            SELECT *
            FROM obra_etapas
            WHERE obra_id IN ({self.placeholders(obra_ids)})
            ORDER BY obra_id, posicao, id
            """,
            tuple(obra_ids),
        ).fetchall()
        return self.rows_to_dicts(rows)

    def replace_etapas(self, db, obra_id: str, etapas: Sequence[Dict[str, Any]]) -> None:
        db.execute("DELETE FROM obra_etapas WHERE obra_id = ?", (obra_id,))
        for position, etapa in enumerate(etapas):
            db.execute(
                """
                INSERT INTO obra_etapas (
                    id, obra_id, fase_id, nome, posicao, data_prevista,
                    dias_antecedencia_cotacao, is_completed, data_conclusao
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    etapa["id"],
                    obra_id,
                    etapa.get("fase_id"),
                    etapa["nome"],
                    position,
                    etapa.get("data_prevista"),
                    etapa.get("dias_antecedencia_cotacao"),
                    1 if etapa.get("is_completed") else 0,
                    etapa.get("data_conclusao"),
                ),
            )

    def complete_etapa(self, db, obra_id: str, etapa_id: str, data_conclusao: str) -> int:
        cursor = db.execute(
            """
            UPDATE obra_etapas
            SET is_completed = 1, data_conclusao = COALESCE(data_conclusao, ?)
            WHERE id = ? AND obra_id = ?
            """,
            (data_conclusao, etapa_id, obra_id),
        )
        return int(getattr(cursor, "rowcount", 0) or 0)
