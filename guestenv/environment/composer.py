"""Environment composer: dependency-ordered initialize and dispose of one environment."""

from __future__ import annotations

import asyncio
import logging
from collections import Counter
from typing import Awaitable, Iterable

from guestenv.domain import (
    DEFAULT_RUN_ID,
    EnvironmentConfigurationError,
    EnvironmentDescriptor,
    EnvironmentDisposalError,
    LifecycleStateError,
    RunScope,
    ServiceDescriptor,
    run_scope_resolve,
)
from guestenv.graph import graph_build
from guestenv.lifecycle import NetworkInstance, ResolvedNetworkAlias, ServiceInstance

from .registry import InstanceRegistry

logger = logging.getLogger(__name__)


class EnvironmentComposer:
    """Own every instance of one environment and expose a single initialize/dispose pair."""

    def __init__(
        self,
        descriptor: EnvironmentDescriptor,
        registry: InstanceRegistry,
        default_run_id: str = DEFAULT_RUN_ID,
    ):
        """Initialize composer.

        Args:
            descriptor: Complete declarative environment.
            registry: Factory registry building lifecycle instances.
            default_run_id: Run id used when the descriptor declares none.

        Returns:
            None: Initializer does not return a value.

        Raises:
            ValueError: Raised when the registry is missing or the default run id is blank.
            EnvironmentConfigurationError: Raised for duplicate network or service names.
        """

        if registry is None:
            raise ValueError("registry must not be None")
        if not default_run_id.strip():
            raise ValueError("default_run_id must not be blank")

        _composer_reject_duplicates("network", (network.name for network in descriptor.networks))
        _composer_reject_duplicates("service", (service.name for service in descriptor.services))

        self._descriptor = descriptor
        self._registry = registry
        self._default_run_id = default_run_id
        self._run_scope: RunScope | None = None
        self._services: dict[str, ServiceInstance] = {}
        self._networks: dict[str, NetworkInstance] = {}

    @property
    def descriptor(self) -> EnvironmentDescriptor:
        return self._descriptor

    @property
    def run_scope(self) -> RunScope | None:
        """Resolved run scope, None until initialization started."""

        return self._run_scope

    @property
    def services(self) -> tuple[ServiceInstance, ...]:
        return tuple(self._services.values())

    @property
    def networks(self) -> tuple[NetworkInstance, ...]:
        return tuple(self._networks.values())

    def environment_service(self, name: str) -> ServiceInstance:
        """Return the service instance of one declared name.

        Args:
            name: Declared service name.

        Returns:
            ServiceInstance: Tracked instance.

        Raises:
            KeyError: Raised when no instance was created for the name.
        """

        try:
            return self._services[name]
        except KeyError as error:
            raise KeyError(f"unknown service: {name}") from error

    def environment_network(self, name: str) -> NetworkInstance:
        """Return the network instance of one declared name.

        Args:
            name: Declared network name.

        Returns:
            NetworkInstance: Tracked instance.

        Raises:
            KeyError: Raised when no instance was created for the name.
        """

        try:
            return self._networks[name]
        except KeyError as error:
            raise KeyError(f"unknown network: {name}") from error

    async def environment_initialize(self, cancellation: asyncio.Event | None = None) -> RunScope:
        """Create, await and wire every declared network and service.

        Networks are created concurrently first. Services follow wave by
        wave, each wave concurrently; a service joins its aliased networks
        as soon as it is ready. The first failure of a step cancels its
        pending siblings and is raised once they settled; instances created
        so far stay tracked for `environment_dispose`.

        Args:
            cancellation: Optional cancellation signal.

        Returns:
            RunScope: Run scope shared by every created resource.

        Raises:
            LifecycleStateError: Raised when initialization was already started.
            EnvironmentConfigurationError: Raised for invalid descriptors before anything is created.
            CircularDependencyError: Raised for cyclic or dangling dependencies before anything is created.
            HealthTimeoutError: Raised when a service did not become ready in time.
            OperationCancelledError: Raised when the cancellation signal fired.
            GatewayError: Raised when a gateway operation failed.
        """

        if self._run_scope is not None:
            raise LifecycleStateError("environment initialization was already started")

        run_scope = run_scope_resolve(self._descriptor.run, default_run_id=self._default_run_id)
        self._environment_validate()
        service_waves = graph_build(
            self._descriptor.services,
            name_of=lambda service: service.name,
            dependencies_of=lambda service: service.depends_on,
        ).graph_build_waves()
        self._run_scope = run_scope

        logger.info(
            "initializing environment for run %s: %d networks, %d services in %d waves",
            run_scope.id,
            len(self._descriptor.networks),
            len(self._descriptor.services),
            len(service_waves),
        )

        network_instances: list[NetworkInstance] = []
        for network_descriptor in self._descriptor.networks:
            network_instance = self._registry.registry_create(network_descriptor, run_scope)
            self._networks[network_descriptor.name] = network_instance
            network_instances.append(network_instance)
        await _composer_run_step(
            network_instance.lifecycle_initialize(cancellation) for network_instance in network_instances
        )

        for wave_index, wave in enumerate(service_waves):
            wave_instances: list[ServiceInstance] = []
            for service_descriptor in wave:
                service_instance = self._registry.registry_create(service_descriptor, run_scope)
                self._services[service_descriptor.name] = service_instance
                self._environment_resolve_aliases(service_instance, service_descriptor)
                wave_instances.append(service_instance)
            logger.debug("initializing service wave %d: %s", wave_index, [item.name for item in wave_instances])
            await _composer_run_step(
                self._environment_initialize_service(service_instance, cancellation)
                for service_instance in wave_instances
            )

        logger.info("environment for run %s ready", run_scope.id)
        return run_scope

    async def environment_dispose(self, cancellation: asyncio.Event | None = None) -> None:
        """Dispose every service concurrently, then every network concurrently.

        Every tracked instance is attempted even when siblings fail.

        Args:
            cancellation: Optional cancellation signal.

        Returns:
            None: Disposes as side effect.

        Raises:
            EnvironmentDisposalError: Raised after all attempts when any disposal failed.
        """

        failures: list[tuple[str, BaseException]] = []
        for instance_group in (list(self._services.values()), list(self._networks.values())):
            dispose_results = await asyncio.gather(
                *(instance.lifecycle_dispose(cancellation) for instance in instance_group),
                return_exceptions=True,
            )
            for instance, dispose_result in zip(instance_group, dispose_results):
                if isinstance(dispose_result, BaseException):
                    logger.warning("failed to dispose %s: %s", instance.name, dispose_result)
                    failures.append((instance.name, dispose_result))

        if failures:
            raise EnvironmentDisposalError(failures)

    async def _environment_initialize_service(
        self,
        service_instance: ServiceInstance,
        cancellation: asyncio.Event | None,
    ) -> None:
        await service_instance.lifecycle_initialize(cancellation)
        for network_alias in service_instance.network_aliases:
            await network_alias.network_alias_connect(self._registry.network_gateway, cancellation=cancellation)

    def _environment_resolve_aliases(self, service_instance: ServiceInstance, descriptor: ServiceDescriptor) -> None:
        for binding in descriptor.network_aliases:
            network_instance = None if binding.external else self._networks[binding.network_name]
            service_instance.service_register_network_alias(
                ResolvedNetworkAlias(
                    service=service_instance,
                    network_name=binding.network_name,
                    alias=binding.alias,
                    network=network_instance,
                )
            )

    def _environment_validate(self) -> None:
        """Validate descriptors before any external resource is created.

        Returns:
            None: Returns only when every descriptor is valid.

        Raises:
            EnvironmentConfigurationError: Raised for the first invalid descriptor.
        """

        declared_network_names = set()
        for network_descriptor in self._descriptor.networks:
            if not network_descriptor.name.strip():
                raise EnvironmentConfigurationError("network name must not be blank")
            declared_network_names.add(network_descriptor.name)

        for service_descriptor in self._descriptor.services:
            service_name = service_descriptor.name
            if not service_name.strip():
                raise EnvironmentConfigurationError("service name must not be blank")
            if service_descriptor.build is None and not (service_descriptor.image or "").strip():
                raise EnvironmentConfigurationError(f"service {service_name} declares neither an image nor a build")
            if service_descriptor.ready_timeout_seconds is not None and service_descriptor.ready_timeout_seconds <= 0:
                raise EnvironmentConfigurationError(f"service {service_name} ready timeout must be > 0")
            for binding in service_descriptor.network_aliases:
                if not binding.alias.strip():
                    raise EnvironmentConfigurationError(f"service {service_name} declares a blank network alias")
                if not binding.network_name.strip():
                    raise EnvironmentConfigurationError(f"service {service_name} declares an alias without network")
                if binding.external:
                    if self._registry.network_gateway is None:
                        raise EnvironmentConfigurationError(
                            f"service {service_name} joins external network {binding.network_name} "
                            "but the registry has no network gateway"
                        )
                elif binding.network_name not in declared_network_names:
                    raise EnvironmentConfigurationError(
                        f"service {service_name} references undeclared network {binding.network_name}"
                    )

        for descriptor in (*self._descriptor.networks, *self._descriptor.services):
            if not self._registry.registry_supports(type(descriptor)):
                raise EnvironmentConfigurationError(f"no instance factory registered for {type(descriptor).__name__}")


def _composer_reject_duplicates(kind: str, names: Iterable[str]) -> None:
    duplicate_names = sorted(name for name, count in Counter(names).items() if count > 1)
    if duplicate_names:
        raise EnvironmentConfigurationError(f"duplicate {kind} names: {', '.join(duplicate_names)}")


async def _composer_run_step(operations: Iterable[Awaitable[object]]) -> None:
    """Run the operations of one step concurrently, aborting the step on the first failure.

    Siblings still pending when an operation fails are cancelled and awaited
    before the failure is raised. Cancelled services keep any id they
    obtained, so `environment_dispose` still removes them.

    Args:
        operations: Awaitables of one step.

    Returns:
        None: Returns when every operation succeeded.

    Raises:
        BaseException: The first failure in operation order, unchanged.
    """

    step_tasks = [asyncio.ensure_future(operation) for operation in operations]
    if not step_tasks:
        return

    try:
        done, pending = await asyncio.wait(step_tasks, return_when=asyncio.FIRST_EXCEPTION)
    except asyncio.CancelledError:
        await _composer_cancel_tasks(step_tasks)
        raise

    if pending:
        logger.debug("aborting %d pending operations after a failed sibling", len(pending))
        await _composer_cancel_tasks(pending)

    failures = [task.exception() for task in step_tasks if task in done and not task.cancelled()]
    for failure in failures:
        if failure is not None:
            raise failure


async def _composer_cancel_tasks(tasks: Iterable[asyncio.Future]) -> None:
    pending_tasks = list(tasks)
    for task in pending_tasks:
        task.cancel()
    await asyncio.gather(*pending_tasks, return_exceptions=True)
