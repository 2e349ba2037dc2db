from functools import lru_cache
from typing import List, Union
import enum

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class AnchorPolicy(str, enum.Enum):
    BEST_EFFORT = "best_effort"
    REQUIRED = "required"


class Settings(BaseSettings):
    PROJECT_NAME: str = "Whistlebox"
    ENVIRONMENT: str = "development"
    API_V1_STR: str = "/api/v1"

    CORS_ORIGINS: List[str] = ["http://localhost:3000", "http://127.0.0.1:3000"]

    @field_validator("CORS_ORIGINS", mode="before")
    @classmethod
    def assemble_cors_origins(cls, v: Union[str, List[str]]) -> List[str]:
        if isinstance(v, str):
            v = v.strip("[").strip("]").strip('"').strip("'")
            if not v:
                return []
            return [i.strip() for i in v.split(",")]
        elif isinstance(v, list):
            return v
        raise ValueError(v)

    # Database
    DATABASE_URL: str = "sqlite+aiosqlite:///./whistlebox.db"

    # Encryption at rest. Either a Fernet key or a passphrase to derive one from.
    ENCRYPTION_KEY: str

    # Admin authentication: local HS256 tokens, or a remote verifier endpoint
    ADMIN_TOKEN_SECRET: str = ""
    ADMIN_TOKEN_EXPIRE_MINUTES: int = 60
    AUTH_VERIFIER_URL: str = ""

    # Ledger anchoring
    LEDGER_RPC_URL: str = ""
    LEDGER_PRIVATE_KEY: str = ""
    LEDGER_CONTRACT_ADDRESS: str = ""
    LEDGER_CHAIN_ID: int = 11155111  # Sepolia
    ANCHOR_POLICY: AnchorPolicy = AnchorPolicy.BEST_EFFORT
    ANCHOR_TIMEOUT_SECONDS: float = 15.0

    # Tracking: misses per complaint id before it is locked, and the window
    TRACK_MAX_FAILURES: int = 5
    TRACK_FAILURE_WINDOW_SECONDS: float = 900.0

    # Logging
    LOG_LEVEL: str = "INFO"

    model_config = SettingsConfigDict(
        case_sensitive=True,
        env_file="backend_config.env",
        env_file_encoding="utf-8"
    )

    @property
    def ledger_enabled(self) -> bool:
        return bool(self.LEDGER_RPC_URL and self.LEDGER_PRIVATE_KEY)


@lru_cache
def get_settings() -> Settings:
    """
    Load settings once per process. Only the application entrypoints call this;
    everything below them receives the values it needs explicitly.
    """
    return Settings()
