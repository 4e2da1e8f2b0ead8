import os
from functools import lru_cache

from dotenv import load_dotenv
from pydantic import BaseModel

# Load environment variables from project root .env explicitly
_project_root = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
_env_path = os.path.join(_project_root, ".env")


class Settings(BaseModel):
    database_url: str = "sqlite:///consentledger.db"
    session_secret: str = "change_me_dev_only"
    code_ttl_seconds: int = 300
    log_level: str = "INFO"
    log_json: bool = True


def _int_env(name: str, default: int) -> int:
    try:
        return int(os.environ.get(name, str(default)))
    except ValueError:
        return default


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    load_dotenv(dotenv_path=_env_path, override=False)
    return Settings(
        database_url=os.getenv("DATABASE_URL", "sqlite:///consentledger.db"),
        session_secret=os.getenv("SESSION_SECRET", "change_me_dev_only"),
        code_ttl_seconds=_int_env("CODE_TTL_SECONDS", 300),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        log_json=os.getenv("LOG_JSON", "true").lower() not in ("0", "false", "no"),
    )
