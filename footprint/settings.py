import logging
import os
import sys
from typing import List

from dotenv import load_dotenv
from pydantic import BaseModel, Field

BASE_DIR = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
load_dotenv(os.path.join(BASE_DIR, ".env"))


class Settings(BaseModel):
    database_url: str = Field(default="sqlite:///./footprint_dev.db", alias="DATABASE_URL")
    gemini_api_key: str | None = Field(default=None, alias="GEMINI_API_KEY")
    gemini_model: str = Field(default="gemini-2.5-flash", alias="GEMINI_MODEL")
    token_ttl_days: int = Field(default=7, alias="TOKEN_TTL_DAYS")
    emission_factors_file: str | None = Field(default=None, alias="EMISSION_FACTORS_FILE")
    cors_origins: List[str] = Field(default_factory=lambda: ["*"], alias="CORS_ORIGINS")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    @classmethod
    def from_env(cls):
        data = {
            "DATABASE_URL": os.getenv("DATABASE_URL", "sqlite:///./footprint_dev.db"),
            "GEMINI_API_KEY": os.getenv("GEMINI_API_KEY") or None,
            "GEMINI_MODEL": os.getenv("GEMINI_MODEL", "gemini-2.5-flash"),
            "TOKEN_TTL_DAYS": os.getenv("TOKEN_TTL_DAYS", "7"),
            "EMISSION_FACTORS_FILE": os.getenv("EMISSION_FACTORS_FILE") or None,
            "CORS_ORIGINS": [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()],
            "LOG_LEVEL": os.getenv("LOG_LEVEL", "INFO"),
        }
        return cls.model_validate(data)


settings = Settings.from_env()


def setup_logging(level: str = "INFO") -> None:
    """Install a single stdout handler on the root logger."""
    root = logging.getLogger()
    if not any(getattr(h, "_footprint", False) for h in root.handlers):
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(
            logging.Formatter(
                "[%(asctime)s] %(levelname)s %(name)s - %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            )
        )
        handler._footprint = True
        root.addHandler(handler)
    root.setLevel(level.upper())
