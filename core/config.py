"""
core/config.py -- Centralized application configuration via pydantic-settings.

All environment variable reads for Roster happen here. No module should
call os.getenv() or os.environ.get() directly -- import get_settings() instead.

Design patterns used:
  Singleton via lru_cache: get_settings() instantiates Settings once at first
      call and returns the cached instance on every subsequent call.

  BaseSettings (pydantic-settings): Reads values from environment variables
      and an optional .env file automatically. Field names map to env var names
      (e.g. secret_key -> SECRET_KEY). Type coercion and validation are built in.

  Injection, not ambient reads: the settings object is read once in the API
      lifespan (or the CLI) and its values are handed to PasswordHasher,
      TokenAuthority and UserStore constructors. auth/ never imports this module.

Security notes:
  SECRET_KEY is mandatory. There is no generated fallback: a process without a
  signing key refuses to start rather than issue tokens nobody can verify after
  a restart. Keys shorter than 32 characters are rejected outright.

  SECRET_KEY is held as a SecretStr so it never appears in reprs, logs, or
  validation error messages.

  DATABASE_URL is mandatory for the same reason -- no partially configured
  process is allowed to serve requests.

Layer rule: core/ is the kernel. This module may not import from api/ or auth/.
"""

from functools import lru_cache

from pydantic import SecretStr, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Session lifetime fixed by product decision: 2 hours, no refresh.
DEFAULT_TOKEN_EXPIRE_SECONDS = 2 * 60 * 60


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file.

    secret_key and database_url have empty-string sentinels so the
    model_validator can raise a single readable error instead of pydantic's
    generic "field required" message.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ------------------------------------------------------------------
    # Core
    # ------------------------------------------------------------------

    log_level: str = "INFO"
    secret_key: SecretStr = SecretStr("")
    database_url: str = ""

    # ------------------------------------------------------------------
    # Auth
    # ------------------------------------------------------------------

    token_expire_seconds: int = DEFAULT_TOKEN_EXPIRE_SECONDS
    bcrypt_rounds: int = 10

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @field_validator("token_expire_seconds")
    @classmethod
    def validate_token_expire_seconds(cls, v: int) -> int:
        if v < 1 or v > 7 * 24 * 60 * 60:
            raise ValueError("TOKEN_EXPIRE_SECONDS must be between 1 and 604800 (1 second to 7 days)")
        return v

    @field_validator("bcrypt_rounds")
    @classmethod
    def validate_bcrypt_rounds(cls, v: int) -> int:
        # bcrypt.gensalt() only accepts 4..31; above 16 a login takes seconds.
        if v < 4 or v > 16:
            raise ValueError("BCRYPT_ROUNDS must be between 4 and 16")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.strip().upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError("LOG_LEVEL must be one of DEBUG, INFO, WARNING, ERROR, CRITICAL")
        return level

    @model_validator(mode="after")
    def validate_required(self) -> "Settings":
        """Refuse to build a Settings object that cannot run the service.

        Both the signing key and the store location are required; there is
        no development fallback. Keys shorter than 32 characters are rejected:
        HMAC-SHA256 token signing relies on key entropy.
        """
        secret = self.secret_key.get_secret_value()
        if not secret or not secret.strip():
            raise ValueError(
                "SECRET_KEY is required. Set SECRET_KEY in your environment or .env file "
                "(generate one with: python -c 'import secrets; print(secrets.token_hex(32))')."
            )
        if len(secret) < 32:
            raise ValueError("SECRET_KEY must be at least 32 characters.")
        if not self.database_url or not self.database_url.strip():
            raise ValueError("DATABASE_URL is required (e.g. sqlite:///roster.db or postgresql://...).")
        self.database_url = self.database_url.strip()
        return self


@lru_cache
def get_settings() -> Settings:
    """Return the application Settings singleton.

    In tests: call get_settings.cache_clear() between test cases if you need
    to inject different environment variables.
    """
    return Settings()
