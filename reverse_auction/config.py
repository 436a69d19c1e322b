import os
from dataclasses import dataclass, field

from dotenv import load_dotenv

load_dotenv()


def _schemes(raw: str):
    return tuple(s.strip() for s in raw.split(",") if s.strip())


@dataclass(frozen=True)
class Settings:
    """Runtime configuration, read from the environment (or a local .env)."""

    DATABASE_URL: str = field(
        default_factory=lambda: os.getenv("DATABASE_URL", "sqlite+aiosqlite:///./reverse_auction.db")
    )

    # One shared signing secret for every token the process issues.
    JWT_SECRET: str = field(default_factory=lambda: os.getenv("JWT_SECRET", "CHANGE_THIS_SECRET"))
    TOKEN_EXPIRE_HOURS: int = field(default_factory=lambda: int(os.getenv("TOKEN_EXPIRE_HOURS", "24")))

    # "plaintext" stores passwords as given. Set e.g. "bcrypt" to hash them.
    PASSWORD_SCHEMES: tuple = field(
        default_factory=lambda: _schemes(os.getenv("PASSWORD_SCHEMES", "plaintext"))
    )

    LOG_LEVEL: str = field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO"))

    API_HOST: str = field(default_factory=lambda: os.getenv("API_HOST", "0.0.0.0"))
    API_PORT: int = field(default_factory=lambda: int(os.getenv("API_PORT", "8080")))
    CORS_ALLOW_ORIGINS: str = field(default_factory=lambda: os.getenv("CORS_ALLOW_ORIGINS", ""))


def load_settings(**overrides) -> Settings:
    return Settings(**overrides)
