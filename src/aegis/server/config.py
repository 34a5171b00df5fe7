# Local vault server settings (database URL, token signing, hashing cost)
from functools import lru_cache
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # --- Basics ---
    PROJECT_NAME: str = "Aegis Vault Core"
    LOG_LEVEL: str = "INFO"

    # --- Session tokens (JWT) ---
    # Signs every session token. Must be long, random and kept off the client.
    # The default only exists for development.
    SECRET_KEY: str = "INSECURE_DEFAULT_KEY_PLEASE_CHANGE_ME"
    ALGORITHM: str = "HS256"

    # Session lifetime in minutes (2 hours)
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 120

    # Lifetime of the temporary id handed out while a 2FA code is pending
    SECOND_FACTOR_TOKEN_EXPIRE_MINUTES: int = 5

    # --- Password hashing ---
    BCRYPT_ROUNDS: int = 10
    ENCRYPTION_SALT_BYTES: int = 16

    # --- Second factor (TOTP) ---
    TOTP_ISSUER: str = "Aegis"
    TOTP_DIGITS: int = 6
    TOTP_INTERVAL: int = 30
    # Accepted clock skew, in time steps either side of now
    TOTP_VALID_WINDOW: int = 1

    # --- Database ---
    DATABASE_URL: str = "sqlite:///./aegis.db"
    SQL_ECHO: bool = False

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    @property
    def uses_default_secret(self) -> bool:
        return self.SECRET_KEY == Settings.model_fields["SECRET_KEY"].default


# Cached so the .env file is read once per process
@lru_cache
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
