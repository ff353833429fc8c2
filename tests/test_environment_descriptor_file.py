"""Regression tests for JSON environment-file parsing."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

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
from guestenv.environment import environment_load_descriptor_file, environment_parse_descriptor


def _write_environment_file(tmp_path: Path, payload: object) -> Path:
    environment_file = tmp_path / "environment.json"
    environment_file.write_text(json.dumps(payload), encoding="utf-8")
    return environment_file


def test_environment_descriptor_file_produces_explicit_descriptor(tmp_path: Path) -> None:
    """Parse a complete environment file into the explicit structure.

    Args:
        tmp_path: Pytest temporary directory fixture.

    Returns:
        None: Assertions validate descriptor equality.

    Raises:
        AssertionError: Raised when parsing differs.
    """

    environment_file = _write_environment_file(
        tmp_path,
        {
            "run": {"id": "${CI_JOB_ID}", "teardown_on_complete": False},
            "networks": [{"name": "backend"}],
            "services": [
                {
                    "name": "database",
                    "image": "postgres:16",
                    "environment": {"POSTGRES_PASSWORD": "secret", "POSTGRES_PORT": 5432},
                    "health_check": {"command": "pg_isready", "interval_seconds": 2, "retries": 5},
                    "network_aliases": [{"network": "backend", "alias": "db"}],
                    "pull_policy": "always",
                },
                {
                    "name": "api",
                    "command": "serve --port 8080",
                    "build": {"context": "api", "target": "test", "arguments": {"VERSION": "1"}},
                    "depends_on": ["database"],
                    "network_aliases": [{"network": "ci-bridge", "alias": "api", "external": True}],
                    "hostname": "api",
                    "ready_timeout_seconds": 45,
                },
            ],
        },
    )

    descriptor = environment_load_descriptor_file(environment_file)

    assert descriptor == EnvironmentDescriptor(
        services=(
            ServiceDescriptor(
                name="database",
                image="postgres:16",
                environment={"POSTGRES_PASSWORD": "secret", "POSTGRES_PORT": "5432"},
                health_check=HealthCheckSpec(command="pg_isready", interval_seconds=2, retries=5),
                network_aliases=(NetworkAliasBinding(network_name="backend", alias="db"),),
                pull_policy=PullPolicy.ALWAYS,
            ),
            ServiceDescriptor(
                name="api",
                command="serve --port 8080",
                build=BuildSpec(
                    dockerfile_path="Dockerfile",
                    context=str(tmp_path / "api"),
                    target="test",
                    arguments={"VERSION": "1"},
                ),
                depends_on=("database",),
                network_aliases=(NetworkAliasBinding(network_name="ci-bridge", alias="api", external=True),),
                hostname="api",
                ready_timeout_seconds=45,
            ),
        ),
        networks=(NetworkDescriptor(name="backend"),),
        run=RunDeclaration(id="${CI_JOB_ID}", teardown_on_complete=False),
    )


def test_environment_descriptor_file_defaults_to_empty_environment() -> None:
    assert environment_parse_descriptor({}) == EnvironmentDescriptor()


@pytest.mark.parametrize(
    "payload",
    [
        {"services": [{"image": "redis:7"}]},
        {"services": [{"name": "cache", "image": "redis:7", "pull_policy": "sometimes"}]},
        {"services": [{"name": "cache", "image": "redis:7", "ready_timeout_seconds": 0}]},
        {"services": [{"name": "cache", "image": "redis:7", "health_check": {"retries": -1}}]},
        {"networks": [{"name": ""}]},
        {"volumes": []},
    ],
    ids=["missing-name", "unknown-pull-policy", "zero-timeout", "negative-retries", "blank-network", "unknown-key"],
)
def test_environment_descriptor_file_rejects_invalid_documents(payload: dict[str, object]) -> None:
    """Wrap validation failures in configuration errors.

    Args:
        payload: Invalid environment document.

    Returns:
        None: Assertions validate configuration error.

    Raises:
        AssertionError: Raised when an invalid document is accepted.
    """

    with pytest.raises(EnvironmentConfigurationError, match="invalid environment document"):
        environment_parse_descriptor(payload)


def test_environment_descriptor_file_rejects_unreadable_or_malformed_files(tmp_path: Path) -> None:
    malformed_file = tmp_path / "malformed.json"
    malformed_file.write_text("{not json", encoding="utf-8")
    list_file = _write_environment_file(tmp_path, [])

    with pytest.raises(EnvironmentConfigurationError, match="cannot read"):
        environment_load_descriptor_file(tmp_path / "missing.json")
    with pytest.raises(EnvironmentConfigurationError, match="not valid JSON"):
        environment_load_descriptor_file(malformed_file)
    with pytest.raises(EnvironmentConfigurationError, match="JSON object"):
        environment_load_descriptor_file(list_file)
