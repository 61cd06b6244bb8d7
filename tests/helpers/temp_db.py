from __future__ import annotations

import shutil
import sqlite3
import tempfile
import uuid
from dataclasses import dataclass
from pathlib import Path


_REPO_ROOT = Path(__file__).resolve().parents[2]
_TEMP_ROOT = Path(tempfile.gettempdir()).resolve()


def assert_safe_temp_db_path(db_path: str) -> None:
    """Test databases live under the system temp dir and never inside the checkout."""
    resolved = Path(db_path).resolve()
    if _TEMP_ROOT not in resolved.parents:
        raise ValueError(f"Temporary DB must live under TEMP: {resolved}")
    if _REPO_ROOT == resolved or _REPO_ROOT in resolved.parents:
        raise ValueError(f"Temporary DB cannot live inside repository: {resolved}")


def open_sqlite_temp_connection(db_path: str) -> sqlite3.Connection:
    assert_safe_temp_db_path(db_path)
    return sqlite3.connect(db_path, isolation_level=None)


@dataclass
class TempDbSandbox:
    """Throwaway SQLite file for one test case, wired in through ``make_config``."""

    prefix: str = "mercado_obras_tests"
    db_name: str = "mercado_obras_test.db"

    def __post_init__(self) -> None:
        folder = _TEMP_ROOT / f"{self.prefix}_{uuid.uuid4().hex}"
        folder.mkdir(parents=True)
        self.temp_dir = str(folder)
        self.db_path = str(folder / self.db_name)
        open_sqlite_temp_connection(self.db_path).close()

    def make_config(self, base_config, **overrides):
        attrs = {"DATABASE_DIR": self.temp_dir, "DB_PATH": self.db_path}
        attrs.update(overrides)
        return type("TempConfig", (base_config,), attrs)

    def cleanup(self) -> None:
        shutil.rmtree(self.temp_dir, ignore_errors=True)
