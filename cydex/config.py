"""
Runtime configuration.

Settings are read from CYDEX_* environment variables, optionally seeded
from a .env file in the working directory.
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from .errors import ConfigError

DEFAULT_USER_AGENT = "CyDex-Scraper/1.0 (Federal CI Mapping; security research)"


@dataclass(frozen=True)
class Settings:
    db_path: Path = Path("data/cydex.db")
    blob_dir: Path = Path("data/raw")
    index_path: Path = Path("data/vector_index.json")
    model_url: str = "http://localhost:11434"
    model_api_key: Optional[str] = None
    embed_model: str = "nomic-embed-text"
    generate_model: str = "llama3.1:8b"
    embed_dim: int = 768
    fetch_timeout: float = 10.0
    model_timeout: float = 30.0
    fetch_retries: int = 2
    source_delay: float = 2.0
    user_agent: str = DEFAULT_USER_AGENT
    log_level: str = "INFO"
    log_dir: Path = Path("logs")


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigError(f"{name} must be an integer, got {raw!r}")


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        raise ConfigError(f"{name} must be a number, got {raw!r}")


def load_settings(env_file: Optional[Path] = None) -> Settings:
    """
    Build Settings from the environment.

    Args:
        env_file: Optional .env path (default: ./.env if present)

    Returns:
        Settings instance

    Raises:
        ConfigError: If a numeric variable cannot be parsed
    """
    env_path = env_file or (Path.cwd() / ".env")
    if env_path.exists():
        load_dotenv(dotenv_path=env_path)

    defaults = Settings()
    return Settings(
        db_path=Path(os.getenv("CYDEX_DB_PATH", str(defaults.db_path))),
        blob_dir=Path(os.getenv("CYDEX_BLOB_DIR", str(defaults.blob_dir))),
        index_path=Path(os.getenv("CYDEX_INDEX_PATH", str(defaults.index_path))),
        model_url=os.getenv("CYDEX_MODEL_URL", defaults.model_url).rstrip("/"),
        model_api_key=os.getenv("CYDEX_MODEL_API_KEY") or None,
        embed_model=os.getenv("CYDEX_EMBED_MODEL", defaults.embed_model),
        generate_model=os.getenv("CYDEX_GENERATE_MODEL", defaults.generate_model),
        embed_dim=_env_int("CYDEX_EMBED_DIM", defaults.embed_dim),
        fetch_timeout=_env_float("CYDEX_FETCH_TIMEOUT", defaults.fetch_timeout),
        model_timeout=_env_float("CYDEX_MODEL_TIMEOUT", defaults.model_timeout),
        fetch_retries=_env_int("CYDEX_FETCH_RETRIES", defaults.fetch_retries),
        source_delay=_env_float("CYDEX_SOURCE_DELAY", defaults.source_delay),
        user_agent=os.getenv("CYDEX_USER_AGENT", defaults.user_agent),
        log_level=os.getenv("CYDEX_LOG_LEVEL", defaults.log_level),
        log_dir=Path(os.getenv("CYDEX_LOG_DIR", str(defaults.log_dir))),
    )
