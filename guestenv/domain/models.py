"""Typed domain models shared across orchestration layers.

Descriptors are declared once by the caller and stay read-only while an
environment is composed. Runtime values (run scope, resources, health status)
are produced by the lifecycle and gateway layers.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Mapping


class HealthStatus(str, Enum):
    """Observed health of one guest service, re-queried on every poll."""

    UNKNOWN = "unknown"
    RUNNING = "running"
    HEALTHY = "healthy"
    UNHEALTHY = "unhealthy"

    def health_is_ready(self) -> bool:
        """Return whether this status allows the service to proceed.

        Returns:
            bool: True for `running` and `healthy`.

        Raises:
            RuntimeError: This helper does not raise runtime errors.
        """

        return self in (HealthStatus.RUNNING, HealthStatus.HEALTHY)


class LifecycleState(str, Enum):
    """Lifecycle states of one service or network instance."""

    UNINITIALIZED = "uninitialized"
    CREATING = "creating"
    AWAITING_HEALTH = "awaiting_health"
    READY = "ready"
    DISPOSED = "disposed"
    FAILED = "failed"


class PullPolicy(str, Enum):
    """Image pull behavior applied before a service is created."""

    ALWAYS = "always"
    MISSING = "missing"
    NEVER = "never"


@dataclass(frozen=True)
class RunScope:
    """Logical test run shared by every resource of one environment.

    Attributes:
        id: Run identifier attached to every created resource as `run.id`.
        teardown_on_complete: Whether resources are removed on disposal.
    """

    id: str
    teardown_on_complete: bool = True


@dataclass(frozen=True)
class RunDeclaration:
    """Descriptor-side run override.

    Attributes:
        id: Literal run id or `${VAR}` template; None selects the default id.
        teardown_on_complete: Whether resources are removed on disposal.
    """

    id: str | None = None
    teardown_on_complete: bool = True


@dataclass(frozen=True)
class Resource:
    """Reachable endpoint pair exposed by a running service.

    Attributes:
        guest_uri: Address other guests use to reach the endpoint.
        host_uri: Address the orchestrating process uses to reach the endpoint.
    """

    guest_uri: str
    host_uri: str


@dataclass(frozen=True)
class HealthCheckSpec:
    """Guest-side health check parameters passed through to the engine.

    Zero values leave the engine default (or the image default) in place.

    Attributes:
        command: Shell command executed inside the guest.
        interval_seconds: Delay between check runs.
        timeout_seconds: Check run timeout.
        start_period_seconds: Grace period before failures count.
        retries: Consecutive failures before the guest is unhealthy.
        disabled: Disable any health check inherited from the image.
    """

    command: str | None = None
    interval_seconds: int = 0
    timeout_seconds: int = 0
    start_period_seconds: int = 0
    retries: int = 0
    disabled: bool = False

    def health_check_minimum_seconds(self) -> float:
        """Return the minimum time the engine needs to report a verdict.

        Returns:
            float: `start_period + interval * retries`, zero when disabled.

        Raises:
            RuntimeError: This helper does not raise runtime errors.
        """

        if self.disabled:
            return 0.0
        return float(self.start_period_seconds + (self.interval_seconds * self.retries))


@dataclass(frozen=True)
class BuildSpec:
    """Image build parameters for services built from a Dockerfile.

    Attributes:
        dockerfile_path: Dockerfile path relative to the build context.
        context: Build context directory.
        target: Optional multi-stage build target.
        pull_dependency_images: Always attempt to pull newer base images.
        arguments: Build-time arguments.
    """

    dockerfile_path: str
    context: str
    target: str | None = None
    pull_dependency_images: bool = False
    arguments: Mapping[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class NetworkAliasBinding:
    """Declared alias of a service inside one network.

    Attributes:
        network_name: Declared name of the network to join.
        alias: Name other guests use to reach the service on that network.
        external: Network is not declared by the environment and is joined by name.
    """

    network_name: str
    alias: str
    external: bool = False


@dataclass(frozen=True)
class ServiceDescriptor:
    """Declarative shape of one guest service.

    Attributes:
        name: Unique service name inside the environment.
        image: Image reference; optional only when `build` is declared.
        command: Optional command override.
        health_check: Optional health check parameters.
        environment: Environment variables passed to the guest.
        network_aliases: Network alias bindings applied once the service is ready.
        depends_on: Names of services that must be ready first.
        build: Optional image build parameters.
        pull_policy: Image pull behavior.
        hostname: Optional guest hostname.
        ready_timeout_seconds: Optional override of the health-wait bound.
    """

    name: str
    image: str | None = None
    command: str | None = None
    health_check: HealthCheckSpec | None = None
    environment: Mapping[str, str] = field(default_factory=dict)
    network_aliases: tuple[NetworkAliasBinding, ...] = ()
    depends_on: tuple[str, ...] = ()
    build: BuildSpec | None = None
    pull_policy: PullPolicy = PullPolicy.MISSING
    hostname: str | None = None
    ready_timeout_seconds: float | None = None


@dataclass(frozen=True)
class NetworkDescriptor:
    """Declarative shape of one guest network.

    Attributes:
        name: Unique network name inside the environment.
    """

    name: str


@dataclass(frozen=True)
class EnvironmentDescriptor:
    """Complete declarative environment.

    Attributes:
        services: Declared services.
        networks: Declared networks.
        run: Optional run-scope override.
    """

    services: tuple[ServiceDescriptor, ...] = ()
    networks: tuple[NetworkDescriptor, ...] = ()
    run: RunDeclaration | None = None
