from typing import Optional

from pydantic_settings import BaseSettings

class Settings(BaseSettings):
    SERVER_ADDRESS: str = "0.0.0.0:8080"
    POSTGRES_USERNAME: str = "postgres"
    POSTGRES_PASSWORD: str = "postgres"
    POSTGRES_HOST: str = "localhost"
    POSTGRES_PORT: int = 5432
    POSTGRES_DATABASE: str = "storefront"
    DATABASE_URL: Optional[str] = None
    AUTH_JWT_SECRET: str
    AUTH_JWT_ALGORITHM: str = "HS256"
    LOG_LEVEL: str = "INFO"
    SQL_ECHO: bool = False

    @property
    def database_url(self) -> str:
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return (
            f"postgresql+asyncpg://{self.POSTGRES_USERNAME}:{self.POSTGRES_PASSWORD}"
            f"@{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/{self.POSTGRES_DATABASE}"
        )

    class Config:
        env_file = ".env"
        case_sensitive = True

settings = Settings()
