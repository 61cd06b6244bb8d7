"""Catalog, obras and cotacoes baseline from mercado_obras.db

Revision ID: 20261001_000001
Revises:
Create Date: 2026-10-01 00:00:01
"""

from __future__ import annotations

from typing import Sequence, Union

from alembic import op
from sqlalchemy.engine import Connection

from mercado_obras.db import SCHEMA_TABLES, _schema_statements


# revision identifiers, used by Alembic.
revision: str = "20261001_000001"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _resolve_backend(connection: Connection) -> str:
    dialect = (connection.dialect.name or "").lower()
    if dialect.startswith("postgres"):
        return "postgres"
    return "sqlite"


def upgrade() -> None:
    connection = op.get_bind()
    for statement in _schema_statements(_resolve_backend(connection)):
        connection.exec_driver_sql(statement)


def downgrade() -> None:
    for table in SCHEMA_TABLES:
        op.execute(f"DROP TABLE IF EXISTS {table}")
