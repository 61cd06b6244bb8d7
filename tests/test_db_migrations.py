import os
import shutil
import sqlite3
import tempfile
import unittest
import uuid

from mercado_obras import create_app
from mercado_obras.config import Config
from mercado_obras.db import SCHEMA_TABLES, close_db
from mercado_obras.db_migrations import to_sqlalchemy_url


def _table_exists(db_path: str, table_name: str) -> bool:
    conn = sqlite3.connect(db_path)
    try:
        row = conn.execute(
            "SELECT name FROM sqlite_master WHERE type='table' AND name = ?",
            (table_name,),
        ).fetchone()
        return row is not None
    finally:
        conn.close()


class DbMigrationsTest(unittest.TestCase):
    def setUp(self) -> None:
        base_tmp = tempfile.gettempdir()
        self._tmpdir_path = os.path.join(base_tmp, f"mo_migrations_test_{uuid.uuid4().hex}")
        os.makedirs(self._tmpdir_path, exist_ok=True)
        self.db_path = os.path.join(self._tmpdir_path, "mercado_obras_test.db")
        self._prev_env = os.environ.get("FLASK_ENV")
        os.environ["FLASK_ENV"] = "development"

    def tearDown(self) -> None:
        if self._prev_env is None:
            os.environ.pop("FLASK_ENV", None)
        else:
            os.environ["FLASK_ENV"] = self._prev_env
        shutil.rmtree(self._tmpdir_path, ignore_errors=True)

    def _build_app(self, *, testing: bool, db_auto_init: bool):
        db_path = self.db_path

        class TempConfig(Config):
            DATABASE_DIR = self._tmpdir_path
            DB_PATH = db_path
            TESTING = testing
            DB_AUTO_INIT = db_auto_init
            AUTH_ENABLED = False

        return create_app(TempConfig)

    def test_schema_not_created_without_flag(self) -> None:
        app = self._build_app(testing=False, db_auto_init=False)
        with app.app_context():
            close_db()

        self.assertFalse(_table_exists(self.db_path, "fases"))

    def test_schema_created_with_explicit_dev_flag(self) -> None:
        app = self._build_app(testing=False, db_auto_init=True)
        with app.app_context():
            close_db()

        for table in SCHEMA_TABLES:
            self.assertTrue(_table_exists(self.db_path, table), table)

    def test_flask_db_upgrade_and_downgrade(self) -> None:
        app = self._build_app(testing=False, db_auto_init=False)
        runner = app.test_cli_runner()

        upgrade_result = runner.invoke(args=["db", "upgrade"])
        self.assertEqual(upgrade_result.exit_code, 0, msg=upgrade_result.output)
        self.assertTrue(_table_exists(self.db_path, "servico_grupo"))
        self.assertTrue(_table_exists(self.db_path, "alembic_version"))

        downgrade_result = runner.invoke(args=["db", "downgrade", "base"])
        self.assertEqual(downgrade_result.exit_code, 0, msg=downgrade_result.output)
        self.assertFalse(_table_exists(self.db_path, "servico_grupo"))

        reupgrade_result = runner.invoke(args=["db", "upgrade"])
        self.assertEqual(reupgrade_result.exit_code, 0, msg=reupgrade_result.output)
        self.assertTrue(_table_exists(self.db_path, "cotacao_itens"))

    def test_flask_db_init_creates_tables(self) -> None:
        app = self._build_app(testing=False, db_auto_init=False)
        result = app.test_cli_runner().invoke(args=["db", "init"])

        self.assertEqual(result.exit_code, 0, msg=result.output)
        self.assertTrue(_table_exists(self.db_path, "obra_etapas"))

    def test_seed_command_loads_demo_catalog(self) -> None:
        app = self._build_app(testing=False, db_auto_init=True)
        runner = app.test_cli_runner()

        result = runner.invoke(args=["catalogo", "seed"])
        self.assertEqual(result.exit_code, 0, msg=result.output)
        self.assertIn("fases=5", result.output)

        conn = sqlite3.connect(self.db_path)
        try:
            total = conn.execute("SELECT COUNT(*) FROM materiais").fetchone()[0]
        finally:
            conn.close()
        self.assertGreater(total, 0)

    def test_sqlalchemy_url_normalization(self) -> None:
        self.assertEqual(to_sqlalchemy_url("postgres://u:p@h/db"), "postgresql://u:p@h/db")
        self.assertTrue(to_sqlalchemy_url(self.db_path).startswith("sqlite:///"))
        with self.assertRaises(RuntimeError):
            to_sqlalchemy_url("  ")


if __name__ == "__main__":
    unittest.main()
