import os


def _bool_env(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _int_env(name: str, default: int) -> int:
    value = os.environ.get(name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default


class Config:
    BASE_DIR = os.path.dirname(os.path.dirname(__file__))
    DATABASE_URL = os.environ.get("DATABASE_URL")
    DATABASE_READ_URL = os.environ.get("DATABASE_READ_URL")
    DATABASE_DIR = None if DATABASE_URL else os.path.join(BASE_DIR, "database")
    DB_PATH = DATABASE_URL or os.path.join(DATABASE_DIR, "mercado_obras.db")
    DB_AUTO_INIT = _bool_env("DB_AUTO_INIT", True)

    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-mercado-obras")
    AUTH_ENABLED = _bool_env("AUTH_ENABLED", True)
    APP_USERS = os.environ.get(
        "APP_USERS",
        "admin@demo.com:admin123:admin:Administrador,cliente@demo.com:cliente123:cliente:Cliente Demo",
    )
    APP_TIMEZONE = os.environ.get("APP_TIMEZONE", "America/Sao_Paulo")

    CATALOG_CACHE_TTL_SECONDS = _int_env("CATALOG_CACHE_TTL_SECONDS", 60)

    LOG_JSON = _bool_env("LOG_JSON", True)
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    RATE_LIMIT_ENABLED = _bool_env("RATE_LIMIT_ENABLED", True)
    RATE_LIMIT_WINDOW_SECONDS = _int_env("RATE_LIMIT_WINDOW_SECONDS", 60)
    RATE_LIMIT_MAX_REQUESTS = _int_env("RATE_LIMIT_MAX_REQUESTS", 300)
    SECURITY_HEADERS_ENABLED = _bool_env("SECURITY_HEADERS_ENABLED", True)

    def __init__(self):
        env = os.environ.get("FLASK_ENV", "development").lower()
        if env == "production" and not self.DATABASE_URL:
            raise RuntimeError("DATABASE_URL nao definida para ambiente de producao.")
        if env == "production" and self.SECRET_KEY == "dev-secret-mercado-obras":
            raise RuntimeError("SECRET_KEY insegura para producao.")
