"""
Configuration management using Pydantic Settings.
Reads from environment variables.
"""

from pydantic import BaseModel, ConfigDict, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class OrchestratorConfig(BaseModel):
    """
    Connection details and job constants for the remote automation service.

    Built once from Settings and handed to the client, so tests can run the
    pipeline against mock credentials without touching the environment.
    """

    model_config = ConfigDict(frozen=True)

    base_url: str
    tenancy_name: str
    username: str
    password: str = Field(repr=False)
    release_key: str
    robot_ids: tuple[int, ...]
    timeout_seconds: float = 90.0
    start_job_wait_seconds: float = 20.0
    poll_wait_seconds: float = 3.0


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore")

    # Session memory controls
    max_sessions: int = Field(default=1000, alias="MAX_SESSIONS")
    session_ttl_seconds: int = Field(default=1800, alias="SESSION_TTL_SECONDS")

    # Remote automation service
    orchestrator_url: str = Field(default="https://platform.uipath.com", alias="ORCHESTRATOR_URL")
    orchestrator_tenancy_name: str = Field(default="", alias="ORCHESTRATOR_TENANCY_NAME")
    orchestrator_username: str = Field(default="", alias="ORCHESTRATOR_USERNAME")
    orchestrator_password: str = Field(default="", alias="ORCHESTRATOR_PASSWORD")
    orchestrator_release_key: str = Field(
        default="30a75006-fd84-42e0-87ad-0ce347018683", alias="ORCHESTRATOR_RELEASE_KEY"
    )
    orchestrator_robot_ids: list[int] = Field(default=[74213], alias="ORCHESTRATOR_ROBOT_IDS")
    orchestrator_timeout_seconds: float = Field(default=90.0, alias="ORCHESTRATOR_TIMEOUT_SECONDS")
    start_job_wait_seconds: float = Field(default=20.0, alias="START_JOB_WAIT_SECONDS")
    queue_poll_wait_seconds: float = Field(default=3.0, alias="QUEUE_POLL_WAIT_SECONDS")

    # Application Configuration
    environment: str = Field(default="development", alias="ENVIRONMENT")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    # Circuit Breaker Configuration
    circuit_breaker_failure_threshold: int = Field(
        default=5, alias="CIRCUIT_BREAKER_FAILURE_THRESHOLD"
    )
    circuit_breaker_timeout: int = Field(default=60, alias="CIRCUIT_BREAKER_TIMEOUT")

    @property
    def use_mock_orchestrator(self) -> bool:
        """No tenancy configured means there is nothing real to talk to."""
        return not bool(self.orchestrator_tenancy_name)

    def orchestrator_config(self) -> OrchestratorConfig:
        return OrchestratorConfig(
            base_url=self.orchestrator_url,
            tenancy_name=self.orchestrator_tenancy_name,
            username=self.orchestrator_username,
            password=self.orchestrator_password,
            release_key=self.orchestrator_release_key,
            robot_ids=tuple(self.orchestrator_robot_ids),
            timeout_seconds=self.orchestrator_timeout_seconds,
            start_job_wait_seconds=self.start_job_wait_seconds,
            poll_wait_seconds=self.queue_poll_wait_seconds,
        )


# Global settings instance
settings = Settings()
