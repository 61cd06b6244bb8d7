import sqlite3
from typing import Iterable, List

try:
    import psycopg2
    import psycopg2.extras
except ImportError:  # pragma: no cover - optional dependency for postgres
    psycopg2 = None

from flask import current_app, g


class Database:
    def __init__(self, backend: str, connection):
        self.backend = backend
        self._conn = connection

    def execute(self, sql: str, params: Iterable | None = None):
        if self.backend == "postgres":
            cursor = self._conn.cursor(cursor_factory=psycopg2.extras.RealDictCursor)
            if params:
                sql = _convert_qmark_to_pg(sql)
                cursor.execute(sql, list(params))
            else:
                cursor.execute(sql)
            return cursor
        return self._conn.execute(sql, params or ())

    def executescript(self, sql: str):
        if self.backend != "postgres":
            return self._conn.executescript(sql)
        for statement in _split_sql_statements(sql):
            if statement.strip():
                self.execute(statement)

    def commit(self):
        self._conn.commit()

    def rollback(self):
        self._conn.rollback()

    def close(self):
        self._conn.close()


def _split_sql_statements(sql: str) -> List[str]:
    statements = []
    current = []
    in_single = False
    in_double = False
    for ch in sql:
        if ch == "'" and not in_double:
            in_single = not in_single
        elif ch == '"' and not in_single:
            in_double = not in_double
        elif ch == ";" and not in_single and not in_double:
            statements.append("".join(current))
            current = []
            continue
        current.append(ch)
    if current:
        statements.append("".join(current))
    return statements


def _convert_qmark_to_pg(sql: str) -> str:
    return sql.replace("?", "%s")


def _connect_database(db_path: str) -> Database:
    if db_path.lower().startswith("postgres"):
        if psycopg2 is None:
            raise RuntimeError("psycopg2 nao instalado.")
        conn = psycopg2.connect(db_path)
        conn.autocommit = True
        return Database("postgres", conn)

    conn = sqlite3.connect(db_path)
    conn.row_factory = sqlite3.Row
    return Database("sqlite", conn)


def get_db():
    if "db" not in g:
        db_path = current_app.config["DB_PATH"]
        g.db = _connect_database(db_path)
    return g.db


def get_read_db():
    if "db_read" not in g:
        db_path = current_app.config.get("DATABASE_READ_URL") or current_app.config["DB_PATH"]
        g.db_read = _connect_database(db_path)
    return g.db_read


def close_db(_error=None):
    db = g.pop("db", None)
    if db is not None:
        db.close()
    db_read = g.pop("db_read", None)
    if db_read is not None:
        db_read.close()


def init_db():
    db = get_db()
    if db.backend == "postgres":
        _init_db_postgres(db)
        return

    _init_db_sqlite(db)
    db.commit()


SCHEMA_TABLES = (
    "cotacao_itens",
    "cotacoes",
    "obra_etapas",
    "obras",
    "fornecedor_grupo",
    "fornecedores",
    "material_grupo",
    "servico_grupo",
    "servico_fase",
    "materiais",
    "grupos_insumo",
    "servicos",
    "fases",
)


# Placeholders: {ts} timestamp column type, {now} its default, {real} floating point.
_SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS fases (
        id TEXT PRIMARY KEY,
        cronologia INTEGER NOT NULL UNIQUE,
        nome TEXT NOT NULL,
        descricao TEXT,
        created_at {ts} NOT NULL DEFAULT {now},
        updated_at {ts} NOT NULL DEFAULT {now}
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS servicos (
        id TEXT PRIMARY KEY,
        nome TEXT NOT NULL,
        ordem INTEGER NOT NULL DEFAULT 0,
        descricao TEXT,
        created_at {ts} NOT NULL DEFAULT {now},
        updated_at {ts} NOT NULL DEFAULT {now}
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS grupos_insumo (
        id TEXT PRIMARY KEY,
        nome TEXT NOT NULL,
        descricao TEXT,
        created_at {ts} NOT NULL DEFAULT {now},
        updated_at {ts} NOT NULL DEFAULT {now}
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS materiais (
        id TEXT PRIMARY KEY,
        nome TEXT NOT NULL,
        unidade TEXT NOT NULL,
        descricao TEXT,
        created_at {ts} NOT NULL DEFAULT {now},
        updated_at {ts} NOT NULL DEFAULT {now}
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS servico_fase (
        servico_id TEXT NOT NULL,
        fase_id TEXT NOT NULL,
        PRIMARY KEY (servico_id, fase_id)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS servico_grupo (
        servico_id TEXT NOT NULL,
        grupo_id TEXT NOT NULL,
        PRIMARY KEY (servico_id, grupo_id)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS material_grupo (
        material_id TEXT NOT NULL,
        grupo_id TEXT NOT NULL,
        PRIMARY KEY (material_id, grupo_id)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS fornecedores (
        id TEXT PRIMARY KEY,
        razao_social TEXT NOT NULL,
        cnpj TEXT,
        email TEXT,
        status TEXT NOT NULL DEFAULT 'pendente' CHECK (status IN ('ativo','pendente','suspenso')),
        created_at {ts} NOT NULL DEFAULT {now},
        updated_at {ts} NOT NULL DEFAULT {now}
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS fornecedor_grupo (
        fornecedor_id TEXT NOT NULL,
        grupo_id TEXT NOT NULL,
        PRIMARY KEY (fornecedor_id, grupo_id)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS obras (
        id TEXT PRIMARY KEY,
        user_id TEXT NOT NULL,
        nome TEXT NOT NULL,
        etapa TEXT,
        inicio_recebimento_oferta TEXT,
        status TEXT NOT NULL DEFAULT 'ativa' CHECK (status IN ('ativa','pausada','concluida','cancelada')),
        cep TEXT,
        logradouro TEXT,
        numero TEXT,
        complemento TEXT,
        bairro TEXT,
        cidade TEXT,
        estado TEXT,
        created_at {ts} NOT NULL DEFAULT {now},
        updated_at {ts} NOT NULL DEFAULT {now}
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS obra_etapas (
        id TEXT PRIMARY KEY,
        obra_id TEXT NOT NULL,
        fase_id TEXT,
        nome TEXT NOT NULL,
        posicao INTEGER NOT NULL DEFAULT 0,
        data_prevista TEXT,
        dias_antecedencia_cotacao INTEGER,
        is_completed INTEGER NOT NULL DEFAULT 0,
        data_conclusao TEXT
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS cotacoes (
        id TEXT PRIMARY KEY,
        user_id TEXT NOT NULL,
        obra_id TEXT NOT NULL,
        status TEXT NOT NULL DEFAULT 'enviada' CHECK (status IN ('enviada','fechada','cancelada')),
        created_at {ts} NOT NULL DEFAULT {now}
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS cotacao_itens (
        id TEXT PRIMARY KEY,
        cotacao_id TEXT NOT NULL,
        posicao INTEGER NOT NULL DEFAULT 0,
        material_id TEXT,
        nome TEXT NOT NULL,
        quantidade {real} NOT NULL CHECK (quantidade > 0),
        unidade TEXT NOT NULL,
        grupo TEXT,
        fase_id TEXT,
        servico_id TEXT,
        observacao TEXT
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_servico_fase_fase ON servico_fase (fase_id)",
    "CREATE INDEX IF NOT EXISTS idx_servico_grupo_grupo ON servico_grupo (grupo_id)",
    "CREATE INDEX IF NOT EXISTS idx_material_grupo_grupo ON material_grupo (grupo_id)",
    "CREATE INDEX IF NOT EXISTS idx_fornecedor_grupo_grupo ON fornecedor_grupo (grupo_id)",
    "CREATE INDEX IF NOT EXISTS idx_obras_user ON obras (user_id)",
    "CREATE INDEX IF NOT EXISTS idx_obra_etapas_obra ON obra_etapas (obra_id, posicao)",
    "CREATE INDEX IF NOT EXISTS idx_cotacoes_obra ON cotacoes (obra_id)",
    "CREATE INDEX IF NOT EXISTS idx_cotacoes_user ON cotacoes (user_id)",
    "CREATE INDEX IF NOT EXISTS idx_cotacao_itens_cotacao ON cotacao_itens (cotacao_id, posicao)",
)


def _schema_statements(backend: str) -> List[str]:
    if backend == "postgres":
        types = {"ts": "TIMESTAMPTZ", "now": "NOW()", "real": "DOUBLE PRECISION"}
    else:
        types = {"ts": "TEXT", "now": "CURRENT_TIMESTAMP", "real": "REAL"}
    return [statement.format(**types) for statement in _SCHEMA]


def _init_db_sqlite(db) -> None:
    for statement in _schema_statements("sqlite"):
        db.execute(statement)


def _init_db_postgres(db) -> None:
    for statement in _schema_statements("postgres"):
        db.execute(statement)
