"""JSON environment-file parsing into environment descriptors."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Mapping

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from guestenv.domain import (
    BuildSpec,
    EnvironmentConfigurationError,
    EnvironmentDescriptor,
    HealthCheckSpec,
    NetworkAliasBinding,
    NetworkDescriptor,
    PullPolicy,
    RunDeclaration,
    ServiceDescriptor,
)


class _FileModel(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)


class _RunModel(_FileModel):
    id: str | None = None
    teardown_on_complete: bool = True


class _NetworkModel(_FileModel):
    name: str = Field(min_length=1)


class _HealthCheckModel(_FileModel):
    command: str | None = None
    interval_seconds: int = Field(default=0, ge=0)
    timeout_seconds: int = Field(default=0, ge=0)
    start_period_seconds: int = Field(default=0, ge=0)
    retries: int = Field(default=0, ge=0)
    disabled: bool = False


class _BuildModel(_FileModel):
    context: str = Field(min_length=1)
    dockerfile_path: str = Field(default="Dockerfile", min_length=1)
    target: str | None = None
    pull_dependency_images: bool = False
    arguments: dict[str, str] = Field(default_factory=dict)


class _NetworkAliasModel(_FileModel):
    network: str = Field(min_length=1)
    alias: str = Field(min_length=1)
    external: bool = False


class _ServiceModel(_FileModel):
    name: str = Field(min_length=1)
    image: str | None = None
    command: str | None = None
    environment: dict[str, str] = Field(default_factory=dict)
    health_check: _HealthCheckModel | None = None
    network_aliases: list[_NetworkAliasModel] = Field(default_factory=list)
    depends_on: list[str] = Field(default_factory=list)
    build: _BuildModel | None = None
    pull_policy: PullPolicy = PullPolicy.MISSING
    hostname: str | None = None
    ready_timeout_seconds: float | None = Field(default=None, gt=0)

    @field_validator("environment", mode="before")
    @classmethod
    def _validate_environment_values(cls, value: Any) -> Any:
        if isinstance(value, Mapping):
            return {str(key): str(item) for key, item in value.items()}
        return value


class _EnvironmentFileModel(_FileModel):
    run: _RunModel | None = None
    networks: list[_NetworkModel] = Field(default_factory=list)
    services: list[_ServiceModel] = Field(default_factory=list)


def environment_parse_descriptor(payload: Mapping[str, Any], base_directory: Path | None = None) -> EnvironmentDescriptor:
    """Parse one decoded environment document into a descriptor.

    Args:
        payload: Decoded JSON document.
        base_directory: Directory relative build contexts are resolved against.

    Returns:
        EnvironmentDescriptor: Explicit environment structure.

    Raises:
        EnvironmentConfigurationError: Raised when the document is invalid.
    """

    try:
        file_model = _EnvironmentFileModel.model_validate(payload)
    except ValidationError as error:
        raise EnvironmentConfigurationError(f"invalid environment document: {error}") from error

    return EnvironmentDescriptor(
        services=tuple(_descriptor_build_service(service, base_directory) for service in file_model.services),
        networks=tuple(NetworkDescriptor(name=network.name) for network in file_model.networks),
        run=(
            RunDeclaration(id=file_model.run.id, teardown_on_complete=file_model.run.teardown_on_complete)
            if file_model.run is not None
            else None
        ),
    )


def environment_load_descriptor_file(path: str | Path) -> EnvironmentDescriptor:
    """Load one JSON environment file.

    Relative build contexts resolve against the directory of the file.

    Args:
        path: Environment file path.

    Returns:
        EnvironmentDescriptor: Explicit environment structure.

    Raises:
        EnvironmentConfigurationError: Raised when the file cannot be read or is invalid.
    """

    file_path = Path(path)
    try:
        payload = json.loads(file_path.read_text(encoding="utf-8"))
    except OSError as error:
        raise EnvironmentConfigurationError(f"cannot read environment file {file_path}: {error}") from error
    except json.JSONDecodeError as error:
        raise EnvironmentConfigurationError(f"environment file {file_path} is not valid JSON: {error}") from error

    if not isinstance(payload, dict):
        raise EnvironmentConfigurationError(f"environment file {file_path} must contain a JSON object")
    return environment_parse_descriptor(payload, base_directory=file_path.parent)


def _descriptor_build_service(service: _ServiceModel, base_directory: Path | None) -> ServiceDescriptor:
    build_spec = None
    if service.build is not None:
        context_path = Path(service.build.context)
        if base_directory is not None and not context_path.is_absolute():
            context_path = base_directory / context_path
        build_spec = BuildSpec(
            dockerfile_path=service.build.dockerfile_path,
            context=str(context_path),
            target=service.build.target,
            pull_dependency_images=service.build.pull_dependency_images,
            arguments=dict(service.build.arguments),
        )

    health_check = None
    if service.health_check is not None:
        health_check = HealthCheckSpec(**service.health_check.model_dump())

    return ServiceDescriptor(
        name=service.name,
        image=service.image,
        command=service.command,
        health_check=health_check,
        environment=dict(service.environment),
        network_aliases=tuple(
            NetworkAliasBinding(network_name=binding.network, alias=binding.alias, external=binding.external)
            for binding in service.network_aliases
        ),
        depends_on=tuple(service.depends_on),
        build=build_spec,
        pull_policy=service.pull_policy,
        hostname=service.hostname,
        ready_timeout_seconds=service.ready_timeout_seconds,
    )
