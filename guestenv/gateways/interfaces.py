"""Typed interfaces for container-host gateway responsibilities.

All operations may suspend and accept the cancellation signal of the caller.
Retries, if any, are the responsibility of the implementation.
"""

from __future__ import annotations

import asyncio
from typing import Mapping, Protocol

from guestenv.domain import BuildSpec, HealthCheckSpec, HealthStatus, PullPolicy, Resource


class ServiceGatewayPort(Protocol):
    """Port definition for guest service creation, health and removal."""

    async def gateway_create_service(
        self,
        image: str,
        command: str | None,
        labels: Mapping[str, str],
        environment: Mapping[str, str],
        health_check: HealthCheckSpec | None,
        pull_policy: PullPolicy = PullPolicy.MISSING,
        hostname: str | None = None,
        cancellation: asyncio.Event | None = None,
    ) -> str:
        """Create and start one guest service.

        Args:
            image: Image reference.
            command: Optional command override.
            labels: Labels attached to the service, including `run.id`.
            environment: Environment variables passed to the guest.
            health_check: Optional health check parameters.
            pull_policy: Image pull behavior.
            hostname: Optional guest hostname.
            cancellation: Optional cancellation signal.

        Returns:
            str: Engine service id.

        Raises:
            GatewayError: Raised when the engine rejects or fails the request.
        """

    async def gateway_remove_service(self, service_id: str, cancellation: asyncio.Event | None = None) -> None:
        """Remove one guest service.

        Args:
            service_id: Engine service id.
            cancellation: Optional cancellation signal.

        Returns:
            None: Removal has no result payload.

        Raises:
            GatewayError: Raised when removal fails.
        """

    async def gateway_get_health_status(
        self,
        service_id: str,
        cancellation: asyncio.Event | None = None,
    ) -> HealthStatus:
        """Query the current health status of one guest service.

        Args:
            service_id: Engine service id.
            cancellation: Optional cancellation signal.

        Returns:
            HealthStatus: Current status.

        Raises:
            GatewayError: Raised when the status cannot be queried.
        """

    async def gateway_get_resources(
        self,
        service_id: str,
        cancellation: asyncio.Event | None = None,
    ) -> list[Resource]:
        """Discover endpoints exposed by one running guest service.

        Args:
            service_id: Engine service id.
            cancellation: Optional cancellation signal.

        Returns:
            list[Resource]: Exposed endpoint pairs.

        Raises:
            GatewayError: Raised when discovery fails.
        """

    async def gateway_build_image(
        self,
        build: BuildSpec,
        labels: Mapping[str, str],
        cancellation: asyncio.Event | None = None,
    ) -> str:
        """Build an image from a Dockerfile context.

        Args:
            build: Build parameters.
            labels: Labels attached to the built image, including `run.id`.
            cancellation: Optional cancellation signal.

        Returns:
            str: Image reference usable by `gateway_create_service`.

        Raises:
            GatewayError: Raised when the build fails.
        """


class NetworkGatewayPort(Protocol):
    """Port definition for guest network creation, wiring and removal."""

    async def gateway_create_network(
        self,
        name: str,
        labels: Mapping[str, str],
        cancellation: asyncio.Event | None = None,
    ) -> str:
        """Create one guest network.

        Args:
            name: Declared network name.
            labels: Labels attached to the network, including `run.id`.
            cancellation: Optional cancellation signal.

        Returns:
            str: Engine network id.

        Raises:
            GatewayError: Raised when creation fails.
        """

    async def gateway_remove_network(self, network_id: str, cancellation: asyncio.Event | None = None) -> None:
        """Remove one guest network.

        Args:
            network_id: Engine network id.
            cancellation: Optional cancellation signal.

        Returns:
            None: Removal has no result payload.

        Raises:
            GatewayError: Raised when removal fails.
        """

    async def gateway_connect_service(
        self,
        network_id: str,
        service_id: str,
        alias: str,
        cancellation: asyncio.Event | None = None,
    ) -> None:
        """Attach one service to a network under an alias.

        Args:
            network_id: Engine network id or name.
            service_id: Engine service id.
            alias: Alias the service is reachable by inside the network.
            cancellation: Optional cancellation signal.

        Returns:
            None: Connection has no result payload.

        Raises:
            GatewayError: Raised when the connection fails.
        """


class ResourceInventoryPort(Protocol):
    """Port definition for label-based discovery of host resources."""

    async def gateway_list_services(
        self,
        labels: Mapping[str, str],
        cancellation: asyncio.Event | None = None,
    ) -> list[str]:
        """List service ids carrying every given label.

        Args:
            labels: Required label values.
            cancellation: Optional cancellation signal.

        Returns:
            list[str]: Matching service ids.

        Raises:
            GatewayError: Raised when listing fails.
        """

    async def gateway_list_networks(
        self,
        labels: Mapping[str, str],
        cancellation: asyncio.Event | None = None,
    ) -> list[str]:
        """List network ids carrying every given label.

        Args:
            labels: Required label values.
            cancellation: Optional cancellation signal.

        Returns:
            list[str]: Matching network ids.

        Raises:
            GatewayError: Raised when listing fails.
        """
