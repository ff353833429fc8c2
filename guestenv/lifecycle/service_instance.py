"""Lifecycle state machine of one guest service."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from guestenv.domain import (
    LifecycleStage,
    LifecycleState,
    LifecycleStateError,
    LifecycleTimeline,
    Resource,
    RunScope,
    ServiceDescriptor,
    run_scope_labels,
)
from guestenv.gateways import ServiceGatewayPort

from .health import LifecycleConfig, lifecycle_await_healthy, lifecycle_resolve_ready_timeout

if TYPE_CHECKING:
    from .network_instance import ResolvedNetworkAlias

logger = logging.getLogger(__name__)


class ServiceInstance:
    """Drive one guest service through create, health wait, ready and dispose."""

    def __init__(
        self,
        descriptor: ServiceDescriptor,
        run_scope: RunScope,
        gateway: ServiceGatewayPort,
        config: LifecycleConfig | None = None,
    ):
        """Initialize service instance.

        Args:
            descriptor: Declarative service shape.
            run_scope: Run scope shared by the environment.
            gateway: Gateway used for every service operation.
            config: Optional lifecycle configuration.

        Returns:
            None: Initializer does not return a value.

        Raises:
            ValueError: Raised when dependencies or descriptor values are invalid.
        """

        if gateway is None:
            raise ValueError("gateway must not be None")
        if not descriptor.name.strip():
            raise ValueError("descriptor.name must not be blank")

        self._descriptor = descriptor
        self._run_scope = run_scope
        self._gateway = gateway
        self._config = config or LifecycleConfig()
        self._state = LifecycleState.UNINITIALIZED
        self._id: str | None = None
        self._resources: tuple[Resource, ...] = ()
        self._network_aliases: list[ResolvedNetworkAlias] = []
        self._timeline = LifecycleTimeline(descriptor.name)

    @property
    def name(self) -> str:
        return self._descriptor.name

    @property
    def descriptor(self) -> ServiceDescriptor:
        return self._descriptor

    @property
    def run_scope(self) -> RunScope:
        return self._run_scope

    @property
    def state(self) -> LifecycleState:
        return self._state

    @property
    def id(self) -> str | None:
        """Engine service id, None until creation succeeded."""

        return self._id

    @property
    def resources(self) -> tuple[Resource, ...]:
        return self._resources

    @property
    def network_aliases(self) -> tuple[ResolvedNetworkAlias, ...]:
        return tuple(self._network_aliases)

    @property
    def timeline(self) -> list[dict[str, object]]:
        return self._timeline.timeline_events()

    def service_register_network_alias(self, network_alias: ResolvedNetworkAlias) -> None:
        """Attach one resolved alias binding to this service.

        Args:
            network_alias: Resolved binding owned by this service.

        Returns:
            None: Stores the binding as side effect.

        Raises:
            ValueError: Raised when the binding belongs to another service.
        """

        if network_alias.service is not self:
            raise ValueError(f"network alias {network_alias.alias} does not belong to service {self.name}")
        self._network_aliases.append(network_alias)

    async def lifecycle_initialize(self, cancellation: asyncio.Event | None = None) -> str:
        """Create the service and block until it is ready.

        Args:
            cancellation: Optional cancellation signal.

        Returns:
            str: Engine service id.

        Raises:
            LifecycleStateError: Raised when the instance was already initialized.
            HealthTimeoutError: Raised when the service did not become ready in time.
            OperationCancelledError: Raised when the cancellation signal fired.
            GatewayError: Raised when a gateway operation failed.
        """

        if self._state != LifecycleState.UNINITIALIZED:
            raise LifecycleStateError(f"service {self.name} cannot initialize from state {self._state.value}")

        labels = run_scope_labels(self._run_scope)
        self._state = LifecycleState.CREATING
        stage: LifecycleStage = "create"
        try:
            image = self._descriptor.image
            if self._descriptor.build is not None:
                stage = "build"
                self._timeline.timeline_record(stage=stage, status="started")
                image = await self._gateway.gateway_build_image(
                    self._descriptor.build,
                    labels=labels,
                    cancellation=cancellation,
                )
                self._timeline.timeline_record(stage=stage, status="completed", details={"image": image})

            stage = "create"
            self._timeline.timeline_record(stage=stage, status="started")

            self._id = await self._gateway.gateway_create_service(
                image=image or "",
                command=self._descriptor.command,
                labels=labels,
                environment=dict(self._descriptor.environment),
                health_check=self._descriptor.health_check,
                pull_policy=self._descriptor.pull_policy,
                hostname=self._descriptor.hostname,
                cancellation=cancellation,
            )
            self._timeline.timeline_record(stage=stage, status="completed", details={"service_id": self._id})

            self._state = LifecycleState.AWAITING_HEALTH
            stage = "health"
            self._timeline.timeline_record(stage=stage, status="started")

            await lifecycle_await_healthy(
                self._gateway,
                self._id,
                timeout_seconds=lifecycle_resolve_ready_timeout(
                    self._descriptor,
                    default_timeout_seconds=self._config.health_timeout_seconds,
                ),
                cancellation=cancellation,
                poll_interval_seconds=self._config.health_poll_interval_seconds,
                service_label=self.name,
            )
            self._timeline.timeline_record(stage=stage, status="completed")

            stage = "resources"
            self._resources = tuple(await self._gateway.gateway_get_resources(self._id, cancellation=cancellation))
        except (Exception, asyncio.CancelledError) as error:
            self._state = LifecycleState.FAILED
            self._timeline.timeline_record(
                stage=stage,
                status="failed",
                details={"error_type": type(error).__name__, "error_message": str(error)},
            )
            logger.warning("service %s failed to initialize: %s", self.name, error)
            raise

        self._timeline.timeline_record(stage=stage, status="completed", details={"resource_count": len(self._resources)})
        self._state = LifecycleState.READY
        logger.info("service %s ready as %s", self.name, self._id)
        return self._id

    async def lifecycle_dispose(self, cancellation: asyncio.Event | None = None) -> None:
        """Remove the service when the run scope requests teardown.

        Disposal is idempotent; instances that never received an id make no
        gateway call.

        Args:
            cancellation: Optional cancellation signal.

        Returns:
            None: Removes as side effect.

        Raises:
            GatewayError: Raised when removal failed; the state is left unchanged.
            OperationCancelledError: Raised when the cancellation signal fired.
        """

        if self._state == LifecycleState.DISPOSED:
            return

        if not self._run_scope.teardown_on_complete or self._id is None:
            self._state = LifecycleState.DISPOSED
            self._timeline.timeline_record(stage="dispose", status="skipped")
            return

        await self._gateway.gateway_remove_service(self._id, cancellation=cancellation)
        self._state = LifecycleState.DISPOSED
        self._timeline.timeline_record(stage="dispose", status="completed", details={"service_id": self._id})
        logger.info("service %s removed", self.name)
