import argparse
import os
import sys

BASE_DIR = os.path.dirname(os.path.dirname(__file__))
if BASE_DIR not in sys.path:
    sys.path.insert(0, BASE_DIR)

from mercado_obras import create_app
from mercado_obras.db import get_db, init_db
from mercado_obras.seed import seed_demo_catalog


def _parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Cria o schema do Mercado de Obras.")
    parser.add_argument(
        "--seed",
        action="store_true",
        default=os.environ.get("CATALOG_SEED", "0").strip().lower() in {"1", "true", "yes", "sim"},
        help="carrega o catalogo demo depois de criar as tabelas",
    )
    return parser.parse_args(argv)


if __name__ == "__main__":
    args = _parse_args()
    app = create_app()
    with app.app_context():
        init_db()
        if args.seed:
            counts = seed_demo_catalog(get_db())
            print("Catalogo demo:", ", ".join(f"{key}={value}" for key, value in counts.items()))
    print("Database initialized.")
