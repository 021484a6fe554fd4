"""
Application configuration.

Loads settings from environment variables and .env file.
All configuration is centralized here, including the execution and
connection rules the workflow engine runs with.
"""

from typing import Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment.

    Attributes:
        project_name: Display name for the API.
        version: Current API version string.
        debug: Enable debug mode. Must be False in production.
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR).
        rate_limit_default: Default rate limit for all endpoints.
        rate_limit_heavy: Rate limit for run submission.
        rate_limit_enabled: Turn rate limiting on or off.
        database_url: Explicit SQLAlchemy URL. Overrides the postgres_* parts.
        execution_ordering: "topological" (dependency order, role tie-break)
            or "category" (fixed role order).
        connection_policy: "target" (target inputs decide) or
            "bidirectional" (both schemas must agree).
        enforce_port_arity: Reject edges that overload a SINGLE port.
        run_base_capital: Capital the profit percentage is relative to.
        run_worker_enabled: Start the run queue worker with the app.
        simulation_seed: Seed for the simulated node services.
        simulation_latency_seconds: Artificial delay per simulated call.
    """

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    project_name: str = "SigFlow"
    version: str = "0.1.0"
    debug: bool = False
    log_level: str = "INFO"
    rate_limit_default: str = "60/minute"
    rate_limit_heavy: str = "10/minute"
    rate_limit_enabled: bool = True

    database_url: Optional[str] = None
    postgres_user: str = "postgres"
    postgres_password: str = "postgres"
    postgres_host: str = "localhost"
    postgres_port: int = 5432
    postgres_db: str = "sigflow"

    execution_ordering: Literal["topological", "category"] = "topological"
    connection_policy: Literal["target", "bidirectional"] = "target"
    enforce_port_arity: bool = False

    run_base_capital: float = Field(default=1000.0, gt=0)
    run_worker_enabled: bool = True
    simulation_seed: Optional[int] = None
    simulation_latency_seconds: float = Field(default=0.0, ge=0)

    def get_database_url(self) -> str:
        """Return the effective SQLAlchemy database URL.

        Priority:
        1. Explicit `DATABASE_URL`
        2. Build a Postgres URL from postgres_* values
        """
        if self.database_url:
            return self.database_url
        return (
            f"postgresql://{self.postgres_user}:{self.postgres_password}@"
            f"{self.postgres_host}:{self.postgres_port}/{self.postgres_db}"
        )


settings = Settings()
