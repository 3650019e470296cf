"""
Configuration management using Pydantic BaseSettings.
All values can be overridden via environment variables or a .env file.
"""
from typing import Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # ── TiDB (MySQL-protocol compatible) ───────────────────────────────────
    tidb_host: str = "tidb"
    tidb_port: int = 4000
    tidb_user: str = "root"
    tidb_password: str = ""
    tidb_database: str = "social_content"

    # Full SQLAlchemy URL; when set it wins over the tidb_* fields
    # (e.g. sqlite+aiosqlite:///./local.db for local runs and tests)
    database_url: Optional[str] = None

    db_pool_size: int = 20
    db_max_overflow: int = 10
    db_echo: bool = False

    @property
    def tidb_url(self) -> str:
        return (
            f"mysql+aiomysql://{self.tidb_user}:{self.tidb_password}"
            f"@{self.tidb_host}:{self.tidb_port}/{self.tidb_database}"
        )

    @property
    def sqlalchemy_url(self) -> str:
        return self.database_url or self.tidb_url

    # ── Pagination ─────────────────────────────────────────────────────────
    default_page_size: int = 20
    max_page_size: int = 100

    # ── View assembly ──────────────────────────────────────────────────────
    assembly_concurrency: int = 8        # max views assembled at once per listing

    # ── Auth (bearer tokens) ───────────────────────────────────────────────
    jwt_secret: str = "change-me-in-production"
    jwt_algorithm: str = "HS256"
    access_token_ttl_minutes: int = 60 * 24

    # ── Observability ──────────────────────────────────────────────────────
    otel_exporter_otlp_endpoint: str = "http://jaeger:4317"
    otel_enabled: bool = True
    service_name: str = "content-api"
    environment: str = "development"
    log_level: str = "INFO"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


settings = Settings()
