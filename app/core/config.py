from typing import List
from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    # Database settings
    DATABASE_USER: str = "postgres"
    DATABASE_PASSWORD: str = "postgres"
    DATABASE_HOST: str = "localhost"
    DATABASE_PORT: int = 5432
    DATABASE_NAME: str = "points_ledger"
    # Full URL, takes precedence over the parts above (sqlite for local runs and tests)
    SQLALCHEMY_DATABASE_URI: str | None = None

    # Bearer token verification. Tokens are issued elsewhere.
    SECRET_KEY: str
    ALGORITHM: str = "HS256"

    # Currency units per base point: 0.25 means 4 points per unit spent
    POINTS_BASE_RATE: float = 0.25
    DEFAULT_PAGE_SIZE: int = 10

    CORS_ORIGINS_STR: str = "http://localhost:3000"

    @property
    def CORS_ORIGINS(self) -> List[str]:
        return [origin.strip() for origin in self.CORS_ORIGINS_STR.split(',') if origin.strip()]

    @property
    def DATABASE_URL(self) -> str:
        if self.SQLALCHEMY_DATABASE_URI:
            return self.SQLALCHEMY_DATABASE_URI
        return f"postgresql+psycopg2://{self.DATABASE_USER}:{self.DATABASE_PASSWORD}@{self.DATABASE_HOST}:{self.DATABASE_PORT}/{self.DATABASE_NAME}"

    model_config = SettingsConfigDict(env_file=".env")

settings = Settings()
