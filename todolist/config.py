import os

from dotenv import load_dotenv


def _env_int(name, default):
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_bool(name, default=False):
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


class Settings:
    """Application settings read from the environment (and a local .env)."""

    def __init__(self, **overrides):
        self.database_url = os.getenv("DATABASE_URL", "")
        self.sqlite_path = os.getenv(
            "SQLITE_PATH",
            os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), "data", "todolist.db"),
        )
        self.db_pool_min_size = _env_int("DB_POOL_MIN_SIZE", 1)
        self.db_pool_max_size = _env_int("DB_POOL_MAX_SIZE", 20)
        self.default_page_size = _env_int("DEFAULT_PAGE_SIZE", 20)
        self.max_page_size = _env_int("MAX_PAGE_SIZE", 100)
        self.auth_jwt_secret = os.getenv("AUTH_JWT_SECRET", "dev-jwt-secret")
        self.auth_access_token_ttl_minutes = _env_int("AUTH_ACCESS_TOKEN_TTL_MINUTES", 15)
        self.skip_auth = _env_bool("SKIP_AUTH", False)
        self.dev_user_id = _env_int("DEV_USER_ID", 1)
        self.log_level = os.getenv("LOG_LEVEL", "INFO").upper()
        for key, value in overrides.items():
            if not hasattr(self, key):
                raise AttributeError(f"Unknown setting: {key}")
            setattr(self, key, value)

    def to_flask_config(self):
        return {
            "DATABASE_URL": self.database_url,
            "SQLITE_PATH": self.sqlite_path,
            "DEFAULT_PAGE_SIZE": self.default_page_size,
            "MAX_PAGE_SIZE": self.max_page_size,
            "AUTH_JWT_SECRET": self.auth_jwt_secret,
            "AUTH_ACCESS_TOKEN_TTL_MINUTES": self.auth_access_token_ttl_minutes,
            "SKIP_AUTH": self.skip_auth,
            "DEV_USER_ID": self.dev_user_id,
        }


def load_settings(**overrides):
    load_dotenv()
    return Settings(**overrides)
