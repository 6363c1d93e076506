from typing import List, Optional
from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    SECRET_KEY: str
    REFRESH_SECRET_KEY: str
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 15
    REFRESH_TOKEN_EXPIRE_DAYS: int = 7

    BCRYPT_ROUNDS: int = Field(default=10, ge=4, le=31)

    # Session policy
    AUTO_LOGIN_ON_REGISTER: bool = False
    SINGLE_SESSION_PER_USER: bool = True

    # Password policy (letters and digits are always required)
    PASSWORD_MIN_LENGTH: int = 6
    PASSWORD_MAX_LENGTH: int = 20

    DEFAULT_AVATAR_URL: str = "https://ui-avatars.com/api/?name=User"

    REFRESH_COOKIE_NAME: str = "refresh-token"
    ENVIRONMENT: str = "development"  # "development" or "production"
    COOKIE_CROSS_SITE: bool = False
    COOKIE_DOMAIN: Optional[str] = None

    CORS_ORIGINS: List[str] = ["http://localhost:3000"]
    LOG_LEVEL: str = "INFO"

    @model_validator(mode="after")
    def check_distinct_secrets(self):
        if self.SECRET_KEY == self.REFRESH_SECRET_KEY:
            raise ValueError("SECRET_KEY and REFRESH_SECRET_KEY must be different")
        return self

    @property
    def cookie_secure(self):
        return self.ENVIRONMENT == "production" or self.COOKIE_CROSS_SITE

    @property
    def cookie_samesite(self):
        return "none" if self.COOKIE_CROSS_SITE else "lax"

    @property
    def cookie_max_age(self):
        return self.REFRESH_TOKEN_EXPIRE_DAYS * 24 * 60 * 60

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

settings = Settings()
