from __future__ import annotations

import os
import sys

import psycopg2

BASE_DIR = os.path.dirname(os.path.dirname(__file__))
if BASE_DIR not in sys.path:
    sys.path.insert(0, BASE_DIR)

from mercado_obras.db import SCHEMA_TABLES


def main() -> int:
    db_url = os.environ.get("DATABASE_URL")
    if not db_url:
        raise RuntimeError("Defina DATABASE_URL para o Postgres.")

    conn = psycopg2.connect(db_url)
    conn.autocommit = True
    try:
        with conn.cursor() as cur:
            cur.execute(
                """
                SELECT table_name
                FROM information_schema.tables
                WHERE table_schema = 'public'
                """
            )
            present = {row[0] for row in cur.fetchall()}
            missing = [table for table in SCHEMA_TABLES if table not in present]
            if missing:
                print("Tabelas ausentes:", ", ".join(sorted(missing)))
                return 1
            cur.execute("SELECT COUNT(*) FROM fases")
            fases = cur.fetchone()[0]
            print(f"Postgres OK. {len(SCHEMA_TABLES)} tabelas, {fases} fases no catalogo.")
            return 0
    finally:
        conn.close()


if __name__ == "__main__":
    try:
        sys.exit(main())
    except Exception as exc:
        print(f"Health check falhou: {exc}")
        sys.exit(1)
