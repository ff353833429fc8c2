"""Regression tests for declarative environment classes."""

from __future__ import annotations

import pytest

from gateway_stubs import RecordingGateway
from guestenv.domain import (
    EnvironmentConfigurationError,
    EnvironmentDescriptor,
    HealthCheckSpec,
    LifecycleState,
    NetworkAliasBinding,
    NetworkDescriptor,
    RunDeclaration,
    ServiceDescriptor,
)
from guestenv.environment import (
    GuestEnvironment,
    NetworkField,
    ServiceField,
    environment_descriptor_from_class,
    instance_registry_create_default,
)
from guestenv.gateways import GatewayRequestError
from guestenv.lifecycle import LifecycleConfig, NetworkInstance, ServiceInstance


class _OrderEnvironment(GuestEnvironment):
    """Two services on one declared network plus one external alias."""

    run = RunDeclaration(id="orders-suite", teardown_on_complete=True)
    backend = NetworkField()
    database = ServiceField(
        "postgres:16",
        environment={"POSTGRES_PASSWORD": "secret"},
        health_check=HealthCheckSpec(command="pg_isready", interval_seconds=1, retries=5),
        network_aliases=[(backend, "db")],
    )
    api = ServiceField(
        "orders-api:latest",
        name="orders-api",
        depends_on=[database],
        network_aliases=[(backend, "api"), ("ci-bridge", "orders")],
    )


def _registry(gateway: RecordingGateway):
    return instance_registry_create_default(
        gateway,
        gateway,
        lifecycle_config=LifecycleConfig(health_poll_interval_seconds=0.005),
    )


def test_environment_declarative_translation_matches_explicit_descriptor() -> None:
    """Translate class attributes into the explicit descriptor structure.

    Returns:
        None: Assertions validate descriptor equality.

    Raises:
        AssertionError: Raised when the translation differs.
    """

    expected_descriptor = EnvironmentDescriptor(
        services=(
            ServiceDescriptor(
                name="database",
                image="postgres:16",
                environment={"POSTGRES_PASSWORD": "secret"},
                health_check=HealthCheckSpec(command="pg_isready", interval_seconds=1, retries=5),
                network_aliases=(NetworkAliasBinding(network_name="backend", alias="db"),),
            ),
            ServiceDescriptor(
                name="orders-api",
                image="orders-api:latest",
                depends_on=("database",),
                network_aliases=(
                    NetworkAliasBinding(network_name="backend", alias="api"),
                    NetworkAliasBinding(network_name="ci-bridge", alias="orders", external=True),
                ),
            ),
        ),
        networks=(NetworkDescriptor(name="backend"),),
        run=RunDeclaration(id="orders-suite"),
    )

    assert environment_descriptor_from_class(_OrderEnvironment) == expected_descriptor


def test_environment_declarative_subclass_overrides_inherited_fields() -> None:
    class _SlowOrderEnvironment(_OrderEnvironment):
        api = ServiceField("orders-api:debug", name="orders-api", ready_timeout_seconds=120)

    descriptor = environment_descriptor_from_class(_SlowOrderEnvironment)

    assert [service.name for service in descriptor.services] == ["database", "orders-api"]
    assert descriptor.services[1].image == "orders-api:debug"
    assert descriptor.services[1].ready_timeout_seconds == 120


def test_environment_declarative_rejects_malformed_declarations() -> None:
    class _BadRunEnvironment(GuestEnvironment):
        run = "not-a-declaration"

    class _BadAliasEnvironment(GuestEnvironment):
        api = ServiceField("api:1", network_aliases=["backend"])

    with pytest.raises(EnvironmentConfigurationError, match="RunDeclaration"):
        environment_descriptor_from_class(_BadRunEnvironment)
    with pytest.raises(EnvironmentConfigurationError, match="pairs"):
        environment_descriptor_from_class(_BadAliasEnvironment)


@pytest.mark.asyncio
async def test_environment_declarative_context_binds_live_instances_and_disposes() -> None:
    """Initialize on enter, bind instances to attributes and dispose on exit.

    Returns:
        None: Assertions validate bound instances and removals.

    Raises:
        AssertionError: Raised when lifecycle or binding deviates.
    """

    gateway = RecordingGateway()

    async with _OrderEnvironment(_registry(gateway)) as environment:
        assert isinstance(environment.database, ServiceInstance)
        assert isinstance(environment.api, ServiceInstance)
        assert isinstance(environment.backend, NetworkInstance)
        assert environment.api.name == "orders-api"
        assert environment.api.state == LifecycleState.READY
        assert environment.composer.run_scope.id == "orders-suite"
        assert ("ci-bridge", environment.api.id, "orders") in gateway.connections

    assert sorted(gateway.removed_service_ids) == ["svc-1", "svc-2"]
    assert gateway.removed_network_ids == ["net-backend"]


@pytest.mark.asyncio
async def test_environment_declarative_context_disposes_after_failed_initialization() -> None:
    gateway = RecordingGateway(failing_images=["orders-api:latest"])
    environment = _OrderEnvironment(_registry(gateway))

    with pytest.raises(GatewayRequestError, match="orders-api:latest"):
        async with environment:
            pytest.fail("environment body must not run")

    assert gateway.removed_service_ids == ["svc-1"]
    assert gateway.removed_network_ids == ["net-backend"]
    assert environment.database.state == LifecycleState.DISPOSED


def test_environment_declarative_fields_read_as_none_before_initialization() -> None:
    environment = _OrderEnvironment(_registry(RecordingGateway()))

    assert environment.database is None
    assert isinstance(_OrderEnvironment.database, ServiceField)
