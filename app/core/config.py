from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    PROJECT_NAME: str = "Blog API"
    API_V1_STR: str = "/api"
    LOG_LEVEL: str = "INFO"

    # Session / JWT secret. Also the fallback signing key for preview links.
    SECRET_KEY: str = ""
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24
    PREVIEW_TOKEN_SECRET: Optional[str] = None

    # Seed admin account, created on startup when missing
    ADMIN_USERNAME: str = "admin"
    ADMIN_PASSWORD: str = "123456"
    ADMIN_EMAIL: Optional[str] = None

    # Public site
    SITE_BASE_URL: str = "http://localhost:8000"
    POST_ROUTE_PREFIX: str = "/posts"

    # Database
    POSTGRES_SERVER: str = "localhost"
    POSTGRES_USER: str = "postgres"
    POSTGRES_PASSWORD: str = "postgres"
    POSTGRES_DB: str = "blog"
    POSTGRES_PORT: int = 5432
    DATABASE_URL: str = ""

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore"
    )

    def assemble_db_url(self) -> str:
        if self.DATABASE_URL:
            # Hosted Postgres providers often hand out postgres:// URLs
            if self.DATABASE_URL.startswith("postgres://"):
                return self.DATABASE_URL.replace("postgres://", "postgresql://", 1)
            return self.DATABASE_URL
        return f"postgresql://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}@{self.POSTGRES_SERVER}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"

    @property
    def post_route_prefix(self) -> str:
        prefix = self.POST_ROUTE_PREFIX.strip().rstrip("/")
        if prefix and not prefix.startswith("/"):
            prefix = f"/{prefix}"
        return prefix


settings = Settings()
settings.DATABASE_URL = settings.assemble_db_url()
