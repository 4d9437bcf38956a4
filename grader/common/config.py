"""
Configuration module using Pydantic Settings.

CRITICAL: This module uses lazy loading pattern.
No environment variables are loaded at import time.
Each service must call get_settings() explicitly and hand the
derived config structs down to the grading components.
"""

from pathlib import Path
from typing import Optional

from pydantic import Field, computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict

from grading.types import PipelineConfig, ReviewerConfig, ScoringPolicy


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    IMPORTANT: Do NOT set env_file in Config.
    Environment variables must be loaded externally by the service.
    """

    model_config = SettingsConfigDict(
        env_file=None,
        case_sensitive=False,
        extra="ignore"
    )

    # Database
    database_url: str = Field(
        default="sqlite:///./grader.db",
        description="SQLAlchemy connection URL for the submission store"
    )

    # Redis
    redis_url: str = Field(
        default="redis://localhost:6379/0",
        description="Redis URL used as Celery broker and notification bus"
    )

    # Authentication
    static_token: str = Field(
        ...,
        description="Static bearer token for API authentication"
    )

    # LLM (any OpenAI-compatible chat completion endpoint)
    llm_api_key: str = Field(
        ...,
        description="API key for the chat completion provider"
    )
    llm_base_url: str = Field(
        default="https://api.openai.com/v1",
        description="Chat completion API base URL"
    )
    llm_model: str = Field(
        default="gpt-4o",
        description="Model used for code quality review"
    )
    llm_temperature: float = Field(
        default=0.2,
        ge=0.0,
        le=2.0,
        description="Sampling temperature, kept low for stable scores"
    )
    llm_max_tokens: int = Field(
        default=2000,
        description="Completion token limit"
    )
    llm_timeout_seconds: float = Field(
        default=120.0,
        description="Timeout for a single completion request"
    )
    llm_max_retries: int = Field(
        default=2,
        description="Client-side retries on transient LLM errors"
    )

    # Langfuse
    langfuse_secret_key: Optional[str] = Field(
        default=None,
        description="Langfuse secret key (tracing disabled if unset)"
    )
    langfuse_public_key: Optional[str] = Field(
        default=None,
        description="Langfuse public key"
    )
    langfuse_base_url: str = Field(
        default="https://cloud.langfuse.com",
        description="Langfuse base URL"
    )

    # Sentry
    sentry_dsn: Optional[str] = Field(
        default=None,
        description="Sentry DSN for error tracking"
    )
    sentry_environment: str = Field(
        default="development",
        description="Sentry environment name"
    )
    sentry_traces_sample_rate: float = Field(
        default=0.1,
        description="Sentry traces sample rate"
    )
    sentry_profiles_sample_rate: float = Field(
        default=1.0,
        description="Sentry profiles sample rate"
    )

    # Grading pipeline
    workdir_root: Path = Field(
        default=Path("./tmp"),
        description="Parent directory of per-submission working dirs"
    )
    git_binary: str = Field(
        default="git",
        description="git executable used to clone repositories"
    )
    install_command: str = Field(
        default="npm install",
        description="Dependency install command for executable projects"
    )
    test_command: str = Field(
        default="npm test",
        description="Test command for executable projects"
    )
    clone_timeout_seconds: float = Field(default=300.0)
    install_timeout_seconds: float = Field(default=600.0)
    test_timeout_seconds: float = Field(default=300.0)
    registry_url: str = Field(
        default="https://registry.npmjs.org",
        description="Package registry used for latest-version lookups"
    )
    registry_timeout_seconds: float = Field(default=10.0)
    max_file_chars: int = Field(
        default=10_000,
        description="Per-file character cap for collected sources"
    )
    test_weight: float = Field(
        default=0.8,
        ge=0.0,
        le=1.0,
        description="Weight of the test score for executable projects"
    )
    pass_threshold: float = Field(
        default=70.0,
        description="Minimum total score for a passing grade"
    )
    max_concurrent_pipelines: int = Field(
        default=4,
        ge=1,
        description="Worker concurrency, i.e. pipelines run at once"
    )

    # Application
    app_name: str = Field(
        default="Repo Grader API",
        description="Application name"
    )
    debug: bool = Field(
        default=False,
        description="Debug mode flag"
    )

    @computed_field  # type: ignore[misc]
    @property
    def langfuse_enabled(self) -> bool:
        """Langfuse tracing needs both keys."""
        return bool(self.langfuse_secret_key and self.langfuse_public_key)

    def reviewer_config(self) -> ReviewerConfig:
        """
        Build the explicit LLM configuration for the quality reviewer.

        Returns:
            ReviewerConfig: Reviewer configuration
        """
        return ReviewerConfig(
            api_key=self.llm_api_key,
            base_url=self.llm_base_url,
            model=self.llm_model,
            temperature=self.llm_temperature,
            max_tokens=self.llm_max_tokens,
            timeout=self.llm_timeout_seconds,
            max_retries=self.llm_max_retries,
        )

    def scoring_policy(self) -> ScoringPolicy:
        """
        Build the score composition policy.

        Returns:
            ScoringPolicy: Weights and pass threshold
        """
        return ScoringPolicy(
            test_weight=self.test_weight,
            pass_threshold=self.pass_threshold,
        )

    def pipeline_config(self) -> PipelineConfig:
        """
        Build the per-run pipeline limits.

        Returns:
            PipelineConfig: Commands, timeouts and scoring policy
        """
        return PipelineConfig(
            workdir_root=self.workdir_root,
            git_binary=self.git_binary,
            install_command=self.install_command,
            test_command=self.test_command,
            clone_timeout=self.clone_timeout_seconds,
            install_timeout=self.install_timeout_seconds,
            test_timeout=self.test_timeout_seconds,
            registry_url=self.registry_url,
            registry_timeout=self.registry_timeout_seconds,
            max_file_chars=self.max_file_chars,
            scoring=self.scoring_policy(),
        )


def get_settings() -> Settings:
    """
    Factory function to create Settings instance.

    This function should be called by each service explicitly.
    DO NOT call this at module level.

    Returns:
        Settings: Configured settings instance

    Note:
        Settings() will automatically load values from environment
        variables. Required fields must be set in the environment
        before calling this function.
    """
    return Settings()  # type: ignore[call-arg]
