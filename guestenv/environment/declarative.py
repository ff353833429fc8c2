"""Declarative environment classes translated into environment descriptors.

A subclass of `GuestEnvironment` declares its services and networks as class
attributes::

    class OrderEnvironment(GuestEnvironment):
        run = RunDeclaration(id="${CI_PIPELINE_ID}")
        backend = NetworkField()
        database = ServiceField(
            "postgres:16",
            environment={"POSTGRES_PASSWORD": "secret"},
            network_aliases=[(backend, "db")],
        )
        api = ServiceField("orders-api:latest", depends_on=[database], network_aliases=[(backend, "api")])

`environment_descriptor_from_class` is the only place that reads these
attributes; everything downstream works on the resulting descriptor.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, ClassVar, Iterable, Mapping

from guestenv.domain import (
    DEFAULT_RUN_ID,
    BuildSpec,
    EnvironmentConfigurationError,
    EnvironmentDescriptor,
    EnvironmentDisposalError,
    HealthCheckSpec,
    NetworkAliasBinding,
    NetworkDescriptor,
    PullPolicy,
    RunDeclaration,
    ServiceDescriptor,
)

from .composer import EnvironmentComposer
from .registry import InstanceRegistry

logger = logging.getLogger(__name__)


class _EnvironmentField:
    """Class attribute placeholder replaced by a live instance once initialized."""

    def __init__(self, name: str | None = None):
        self._declared_name = name
        self.attribute_name: str | None = None

    def __set_name__(self, owner: type, attribute_name: str) -> None:
        self.attribute_name = attribute_name

    def __get__(self, instance: object, owner: type | None = None) -> Any:
        if instance is None:
            return self
        return None

    @property
    def resource_name(self) -> str:
        """Declared resource name; defaults to the attribute name."""

        resource_name = self._declared_name or self.attribute_name
        if not resource_name:
            raise EnvironmentConfigurationError("field is not bound to an environment class attribute")
        return resource_name


class NetworkField(_EnvironmentField):
    """Declared guest network."""

    def field_build_descriptor(self) -> NetworkDescriptor:
        return NetworkDescriptor(name=self.resource_name)


class ServiceField(_EnvironmentField):
    """Declared guest service.

    Network aliases are `(network, alias)` pairs, where the network is a
    `NetworkField` of the same class or the name of an external network,
    or explicit `NetworkAliasBinding` values. Dependencies are `ServiceField`
    references or service names.
    """

    def __init__(
        self,
        image: str | None = None,
        *,
        name: str | None = None,
        command: str | None = None,
        health_check: HealthCheckSpec | None = None,
        environment: Mapping[str, str] | None = None,
        network_aliases: Iterable[NetworkAliasBinding | tuple[NetworkField | str, str]] = (),
        depends_on: Iterable[ServiceField | str] = (),
        build: BuildSpec | None = None,
        pull_policy: PullPolicy = PullPolicy.MISSING,
        hostname: str | None = None,
        ready_timeout_seconds: float | None = None,
    ):
        super().__init__(name=name)
        self._image = image
        self._command = command
        self._health_check = health_check
        self._environment = dict(environment or {})
        self._network_aliases = tuple(network_aliases)
        self._depends_on = tuple(depends_on)
        self._build = build
        self._pull_policy = pull_policy
        self._hostname = hostname
        self._ready_timeout_seconds = ready_timeout_seconds

    def field_build_descriptor(self) -> ServiceDescriptor:
        """Translate this field into a service descriptor.

        Returns:
            ServiceDescriptor: Descriptor with references resolved to names.

        Raises:
            EnvironmentConfigurationError: Raised for malformed alias or dependency entries.
        """

        return ServiceDescriptor(
            name=self.resource_name,
            image=self._image,
            command=self._command,
            health_check=self._health_check,
            environment=dict(self._environment),
            network_aliases=tuple(self._field_resolve_alias(entry) for entry in self._network_aliases),
            depends_on=tuple(self._field_resolve_dependency(entry) for entry in self._depends_on),
            build=self._build,
            pull_policy=self._pull_policy,
            hostname=self._hostname,
            ready_timeout_seconds=self._ready_timeout_seconds,
        )

    def _field_resolve_alias(self, entry: NetworkAliasBinding | tuple[NetworkField | str, str]) -> NetworkAliasBinding:
        if isinstance(entry, NetworkAliasBinding):
            return entry
        if not isinstance(entry, tuple) or len(entry) != 2:
            raise EnvironmentConfigurationError(
                f"service {self.resource_name} network aliases must be (network, alias) pairs"
            )
        network, alias = entry
        if isinstance(network, NetworkField):
            return NetworkAliasBinding(network_name=network.resource_name, alias=alias)
        return NetworkAliasBinding(network_name=str(network), alias=alias, external=True)

    def _field_resolve_dependency(self, entry: ServiceField | str) -> str:
        if isinstance(entry, ServiceField):
            return entry.resource_name
        if isinstance(entry, str):
            return entry
        raise EnvironmentConfigurationError(
            f"service {self.resource_name} dependencies must be service fields or names"
        )


def environment_descriptor_from_class(environment_class: type) -> EnvironmentDescriptor:
    """Translate a declarative environment class into a descriptor.

    Fields are collected in definition order; a subclass attribute replaces
    the inherited attribute of the same name.

    Args:
        environment_class: Class declaring `ServiceField` and `NetworkField` attributes.

    Returns:
        EnvironmentDescriptor: Explicit environment structure.

    Raises:
        EnvironmentConfigurationError: Raised when the run declaration or a field is malformed.
    """

    fields: dict[str, _EnvironmentField] = {}
    for klass in reversed(environment_class.__mro__):
        for attribute_name, attribute_value in vars(klass).items():
            if isinstance(attribute_value, _EnvironmentField):
                fields[attribute_name] = attribute_value
            elif attribute_name in fields:
                del fields[attribute_name]

    run_declaration = getattr(environment_class, "run", None)
    if run_declaration is not None and not isinstance(run_declaration, RunDeclaration):
        raise EnvironmentConfigurationError(f"{environment_class.__name__}.run must be a RunDeclaration")

    return EnvironmentDescriptor(
        services=tuple(
            field.field_build_descriptor() for field in fields.values() if isinstance(field, ServiceField)
        ),
        networks=tuple(
            field.field_build_descriptor() for field in fields.values() if isinstance(field, NetworkField)
        ),
        run=run_declaration,
    )


class GuestEnvironment:
    """Base class of declarative environments.

    Once initialized, every field attribute of an instance holds the live
    `ServiceInstance` or `NetworkInstance`.
    """

    run: ClassVar[RunDeclaration | None] = None

    def __init__(self, registry: InstanceRegistry, default_run_id: str = DEFAULT_RUN_ID):
        """Initialize declarative environment.

        Args:
            registry: Factory registry building lifecycle instances.
            default_run_id: Run id used when the class declares none.

        Returns:
            None: Initializer does not return a value.

        Raises:
            EnvironmentConfigurationError: Raised when the class declaration is invalid.
        """

        self._composer = EnvironmentComposer(
            environment_descriptor_from_class(type(self)),
            registry,
            default_run_id=default_run_id,
        )

    @property
    def composer(self) -> EnvironmentComposer:
        return self._composer

    async def environment_initialize(self, cancellation: asyncio.Event | None = None) -> None:
        """Initialize the environment and bind live instances to field attributes.

        Args:
            cancellation: Optional cancellation signal.

        Returns:
            None: Initializes as side effect.

        Raises:
            EnvironmentConfigurationError: Raised for invalid declarations.
            HealthTimeoutError: Raised when a service did not become ready in time.
            OperationCancelledError: Raised when the cancellation signal fired.
            GatewayError: Raised when a gateway operation failed.
        """

        try:
            await self._composer.environment_initialize(cancellation)
        finally:
            self._environment_bind_instances()

    async def environment_dispose(self, cancellation: asyncio.Event | None = None) -> None:
        """Dispose every instance of the environment.

        Args:
            cancellation: Optional cancellation signal.

        Returns:
            None: Disposes as side effect.

        Raises:
            EnvironmentDisposalError: Raised when any disposal failed.
        """

        await self._composer.environment_dispose(cancellation)

    async def __aenter__(self) -> GuestEnvironment:
        try:
            await self.environment_initialize()
        except (Exception, asyncio.CancelledError):
            try:
                await self.environment_dispose()
            except EnvironmentDisposalError as disposal_error:
                logger.warning("disposal after failed initialization also failed: %s", disposal_error)
            raise
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.environment_dispose()

    def _environment_bind_instances(self) -> None:
        for klass in reversed(type(self).__mro__):
            for attribute_name, attribute_value in vars(klass).items():
                if isinstance(attribute_value, ServiceField):
                    instances = {instance.name: instance for instance in self._composer.services}
                elif isinstance(attribute_value, NetworkField):
                    instances = {instance.name: instance for instance in self._composer.networks}
                else:
                    continue
                if attribute_value.resource_name in instances:
                    setattr(self, attribute_name, instances[attribute_value.resource_name])
