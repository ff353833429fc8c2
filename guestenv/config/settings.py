"""Typed runtime settings with dotenv support and startup validation."""

from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class SettingsLoadError(RuntimeError):
    """Raised when runtime settings cannot be loaded or validated."""


class GuestEnvSettings(BaseSettings):
    """Runtime settings for engine access and lifecycle defaults.

    Environment variable names map directly to field names in uppercase.
    Example: `docker_host` reads from `DOCKER_HOST`.

    Attributes:
        docker_host: Engine address (`unix://`, `tcp://`, `http://` or `https://`).
        docker_api_version: Engine API version prefix.
        docker_request_timeout_seconds: Timeout of regular engine requests.
        docker_image_request_timeout_seconds: Timeout of image pull and build requests.
        docker_published_host: Host name used in host-side resource URIs.
        guestenv_health_poll_interval_seconds: Delay between two health status queries.
        guestenv_health_timeout_seconds: Default health-wait bound for services.
        guestenv_log_level: Root log level used by the CLI.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    docker_host: str = Field(default="unix:///var/run/docker.sock", min_length=1)
    docker_api_version: str = Field(default="v1.43", min_length=1)
    docker_request_timeout_seconds: float = Field(default=30.0, gt=0)
    docker_image_request_timeout_seconds: float = Field(default=600.0, gt=0)
    docker_published_host: str = Field(default="localhost", min_length=1)
    guestenv_health_poll_interval_seconds: float = Field(default=0.05, gt=0)
    guestenv_health_timeout_seconds: float = Field(default=30.0, gt=0)
    guestenv_log_level: str = Field(default="INFO")

    @field_validator("docker_host", "docker_api_version", "docker_published_host")
    @classmethod
    def _validate_non_empty_string(cls, value: str) -> str:
        stripped_value = value.strip()
        if not stripped_value:
            raise ValueError("value must not be blank")
        return stripped_value

    @field_validator("docker_host")
    @classmethod
    def _validate_docker_host_scheme(cls, value: str) -> str:
        if not value.startswith(("unix://", "tcp://", "http://", "https://")):
            raise ValueError("docker_host must start with unix://, tcp://, http:// or https://")
        return value

    @field_validator("guestenv_log_level")
    @classmethod
    def _validate_log_level(cls, value: str) -> str:
        normalized_value = value.strip().upper()
        if normalized_value not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError("guestenv_log_level must be one of DEBUG, INFO, WARNING, ERROR, CRITICAL")
        return normalized_value


def config_load_settings() -> GuestEnvSettings:
    """Load and validate runtime settings from environment and dotenv.

    Returns:
        GuestEnvSettings: Validated runtime settings object.

    Raises:
        SettingsLoadError: Raised when settings are invalid.
    """

    try:
        return GuestEnvSettings()
    except ValidationError as error:
        raise SettingsLoadError(
            f"Startup configuration validation failed. Update .env or environment variables. Details: {error}"
        ) from error
