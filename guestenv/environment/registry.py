"""Descriptor-type to instance-factory registry used by the composer."""

from __future__ import annotations

from typing import Any, Callable

from guestenv.domain import EnvironmentConfigurationError, NetworkDescriptor, RunScope, ServiceDescriptor
from guestenv.gateways import NetworkGatewayPort, ServiceGatewayPort
from guestenv.lifecycle import LifecycleConfig, NetworkInstance, ServiceInstance

InstanceFactory = Callable[[Any, RunScope], Any]


class InstanceRegistry:
    """Map descriptor types to factories building lifecycle instances.

    Attributes:
        network_gateway: Optional gateway used to join external networks by name.
    """

    def __init__(self, network_gateway: NetworkGatewayPort | None = None):
        self._factories: dict[type, InstanceFactory] = {}
        self.network_gateway = network_gateway

    def registry_register(self, descriptor_type: type, factory: InstanceFactory) -> None:
        """Register or replace the factory of one descriptor type.

        Args:
            descriptor_type: Descriptor class.
            factory: Callable building an instance from `(descriptor, run_scope)`.

        Returns:
            None: Stores the factory as side effect.

        Raises:
            ValueError: Raised when the factory is not callable.
        """

        if not callable(factory):
            raise ValueError("factory must be callable")
        self._factories[descriptor_type] = factory

    def registry_supports(self, descriptor_type: type) -> bool:
        return any(candidate in self._factories for candidate in descriptor_type.__mro__)

    def registry_create(self, descriptor: object, run_scope: RunScope) -> Any:
        """Build one lifecycle instance for a descriptor.

        Factories registered for a base class apply to subclasses.

        Args:
            descriptor: Service or network descriptor.
            run_scope: Run scope shared by the environment.

        Returns:
            Any: Uninitialized lifecycle instance.

        Raises:
            EnvironmentConfigurationError: Raised when no factory is registered.
        """

        for candidate in type(descriptor).__mro__:
            factory = self._factories.get(candidate)
            if factory is not None:
                return factory(descriptor, run_scope)
        raise EnvironmentConfigurationError(f"no instance factory registered for {type(descriptor).__name__}")


def instance_registry_create_default(
    gateway: ServiceGatewayPort,
    network_gateway: NetworkGatewayPort,
    lifecycle_config: LifecycleConfig | None = None,
) -> InstanceRegistry:
    """Create a registry wired to concrete gateways.

    Args:
        gateway: Gateway used by service instances.
        network_gateway: Gateway used by network instances and external aliases.
        lifecycle_config: Optional lifecycle configuration for service instances.

    Returns:
        InstanceRegistry: Registry with service and network factories.

    Raises:
        ValueError: Raised when a gateway is missing.
    """

    if gateway is None:
        raise ValueError("gateway must not be None")
    if network_gateway is None:
        raise ValueError("network_gateway must not be None")

    config = lifecycle_config or LifecycleConfig()
    registry = InstanceRegistry(network_gateway=network_gateway)
    registry.registry_register(
        ServiceDescriptor,
        lambda descriptor, run_scope: ServiceInstance(descriptor, run_scope, gateway, config=config),
    )
    registry.registry_register(
        NetworkDescriptor,
        lambda descriptor, run_scope: NetworkInstance(descriptor, run_scope, network_gateway),
    )
    return registry
