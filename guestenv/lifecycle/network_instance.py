"""Lifecycle state machine of one guest network and alias wiring."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass

from guestenv.domain import (
    LifecycleState,
    LifecycleStateError,
    LifecycleTimeline,
    NetworkDescriptor,
    RunScope,
    run_scope_labels,
)
from guestenv.gateways import NetworkGatewayPort

from .service_instance import ServiceInstance

logger = logging.getLogger(__name__)


class NetworkInstance:
    """Drive one guest network through create, ready and dispose."""

    def __init__(self, descriptor: NetworkDescriptor, run_scope: RunScope, gateway: NetworkGatewayPort):
        """Initialize network instance.

        Args:
            descriptor: Declarative network shape.
            run_scope: Run scope shared by the environment.
            gateway: Gateway used for every network operation.

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
        self._state = LifecycleState.UNINITIALIZED
        self._id: str | None = None
        self._timeline = LifecycleTimeline(descriptor.name)

    @property
    def name(self) -> str:
        return self._descriptor.name

    @property
    def descriptor(self) -> NetworkDescriptor:
        return self._descriptor

    @property
    def run_scope(self) -> RunScope:
        return self._run_scope

    @property
    def state(self) -> LifecycleState:
        return self._state

    @property
    def id(self) -> str | None:
        """Engine network id, None until creation succeeded."""

        return self._id

    @property
    def timeline(self) -> list[dict[str, object]]:
        return self._timeline.timeline_events()

    async def lifecycle_initialize(self, cancellation: asyncio.Event | None = None) -> str:
        """Create the network; networks are ready as soon as they exist.

        Args:
            cancellation: Optional cancellation signal.

        Returns:
            str: Engine network id.

        Raises:
            LifecycleStateError: Raised when the instance was already initialized.
            OperationCancelledError: Raised when the cancellation signal fired.
            GatewayError: Raised when creation failed.
        """

        if self._state != LifecycleState.UNINITIALIZED:
            raise LifecycleStateError(f"network {self.name} cannot initialize from state {self._state.value}")

        self._state = LifecycleState.CREATING
        self._timeline.timeline_record(stage="create", status="started")
        try:
            self._id = await self._gateway.gateway_create_network(
                self.name,
                labels=run_scope_labels(self._run_scope),
                cancellation=cancellation,
            )
        except (Exception, asyncio.CancelledError) as error:
            self._state = LifecycleState.FAILED
            self._timeline.timeline_record(
                stage="create",
                status="failed",
                details={"error_type": type(error).__name__, "error_message": str(error)},
            )
            logger.warning("network %s failed to initialize: %s", self.name, error)
            raise

        self._state = LifecycleState.READY
        self._timeline.timeline_record(stage="create", status="completed", details={"network_id": self._id})
        logger.info("network %s ready as %s", self.name, self._id)
        return self._id

    async def network_connect(
        self,
        service: ServiceInstance,
        alias: str,
        cancellation: asyncio.Event | None = None,
    ) -> None:
        """Attach one ready service to this network under an alias.

        Args:
            service: Ready service instance.
            alias: Alias passed to the gateway verbatim.
            cancellation: Optional cancellation signal.

        Returns:
            None: Connects as side effect.

        Raises:
            LifecycleStateError: Raised when the network or the service is not ready.
            OperationCancelledError: Raised when the cancellation signal fired.
            GatewayError: Raised when the connection failed.
        """

        if self._state != LifecycleState.READY or self._id is None:
            raise LifecycleStateError(f"network {self.name} is not ready (state {self._state.value})")
        if service.state != LifecycleState.READY or service.id is None:
            raise LifecycleStateError(f"service {service.name} is not ready (state {service.state.value})")

        await self._gateway.gateway_connect_service(self._id, service.id, alias, cancellation=cancellation)
        self._timeline.timeline_record(
            stage="connect",
            status="completed",
            details={"service": service.name, "alias": alias},
        )
        logger.debug("service %s joined network %s as %s", service.name, self.name, alias)

    async def lifecycle_dispose(self, cancellation: asyncio.Event | None = None) -> None:
        """Remove the network when the run scope requests teardown.

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

        await self._gateway.gateway_remove_network(self._id, cancellation=cancellation)
        self._state = LifecycleState.DISPOSED
        self._timeline.timeline_record(stage="dispose", status="completed", details={"network_id": self._id})
        logger.info("network %s removed", self.name)


@dataclass(frozen=True)
class ResolvedNetworkAlias:
    """Alias binding resolved against live instances.

    Attributes:
        service: Owning service instance.
        network_name: Declared network name, or engine-side name for external networks.
        alias: Alias the service is reachable by.
        network: Non-owning reference to the declared network; None when external.
    """

    service: ServiceInstance
    network_name: str
    alias: str
    network: NetworkInstance | None = None

    @property
    def external(self) -> bool:
        return self.network is None

    async def network_alias_connect(
        self,
        network_gateway: NetworkGatewayPort,
        cancellation: asyncio.Event | None = None,
    ) -> None:
        """Connect the owning service to the bound network.

        Declared networks connect through their instance; external networks
        connect by name directly through the gateway.

        Args:
            network_gateway: Gateway used for external networks.
            cancellation: Optional cancellation signal.

        Returns:
            None: Connects as side effect.

        Raises:
            LifecycleStateError: Raised when the service or network is not ready.
            OperationCancelledError: Raised when the cancellation signal fired.
            GatewayError: Raised when the connection failed.
        """

        if self.network is not None:
            await self.network.network_connect(self.service, self.alias, cancellation=cancellation)
            return

        if self.service.state != LifecycleState.READY or self.service.id is None:
            raise LifecycleStateError(f"service {self.service.name} is not ready (state {self.service.state.value})")
        await network_gateway.gateway_connect_service(
            self.network_name,
            self.service.id,
            self.alias,
            cancellation=cancellation,
        )
        logger.debug("service %s joined external network %s as %s", self.service.name, self.network_name, self.alias)
