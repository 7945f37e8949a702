"""
FieldOps Configuration — pydantic-settings based.

All settings are read from environment variables or .env file.
Nothing is required: every value has a working default so the engine can run
against injected registry clients without any environment at all.
"""

from pydantic_settings import BaseSettings
from pydantic import Field


class Settings(BaseSettings):
    """Application-wide settings sourced from environment variables."""

    # ── Refresh ──
    refresh_interval_seconds: float = Field(
        default=900.0, description="Default period for interval-triggered refreshes"
    )
    refresh_max_concurrency: int = Field(
        default=4,
        description="Max buildings refreshed concurrently (semaphore-gated fan-out)",
    )
    source_fetch_timeout: float = Field(
        default=10.0, description="Per-registry fetch timeout in seconds"
    )

    # ── Escalation ──
    escalation_hysteresis_cycles: int = Field(
        default=2,
        description="Consecutive critical refresh cycles before emergency protocol is allowed",
    )

    # ── Financial exposure ──
    daily_penalty_rates: dict[str, float] = Field(
        default={"critical": 250.0, "high": 100.0, "medium": 25.0, "advisory": 0.0},
        description="Daily penalty accrual per open violation, keyed by severity class",
    )
    accruing_severity_classes: list[str] = Field(
        default=["critical", "high"],
        description="Severity classes whose open violations accrue daily penalties",
    )

    # ── Maintenance prediction ──
    prediction_top_n: int = Field(
        default=3, description="Number of building forecasts returned by the predictor"
    )

    # ── Audit ──
    audit_enabled: bool = Field(default=True, description="Write the JSON-lines audit trail")
    audit_log_path: str = Field(
        default="audit.jsonl", description="Path to JSON-lines audit log file"
    )

    # ── Server ──
    port: int = Field(default=5001, description="Server port")
    host: str = Field(default="0.0.0.0", description="Server bind host")
    cors_origins: list[str] = Field(
        default=["*"], description="Allowed CORS origins"
    )

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
    }


# Singleton instance — imported by other modules
settings = Settings()
