"""Recording gateway stub shared by lifecycle and environment tests."""

from __future__ import annotations

import asyncio
from typing import Iterable, Mapping

from guestenv.domain import BuildSpec, HealthCheckSpec, HealthStatus, PullPolicy, Resource
from guestenv.gateways import GatewayRequestError


class RecordingGateway:
    """In-memory gateway implementing every port and recording each call."""

    def __init__(
        self,
        health_statuses: Mapping[str, Iterable[HealthStatus]] | None = None,
        default_health_status: HealthStatus = HealthStatus.HEALTHY,
        resources: Mapping[str, Iterable[Resource]] | None = None,
        failing_images: Iterable[str] = (),
        failing_removal_ids: Iterable[str] = (),
        operation_delay_seconds: float = 0.0,
    ):
        """Initialize recording gateway state.

        Args:
            health_statuses: Per-image status sequences; the last status repeats.
            default_health_status: Status reported for images without a sequence.
            resources: Per-image resources returned once ready.
            failing_images: Images whose service creation fails.
            failing_removal_ids: Service or network ids whose removal fails.
            operation_delay_seconds: Delay applied to create operations.

        Returns:
            None: Initializer does not return values.

        Raises:
            RuntimeError: This stub does not raise runtime errors.
        """

        self.calls: list[tuple[str, tuple[object, ...]]] = []
        self.service_labels: dict[str, dict[str, str]] = {}
        self.service_images: dict[str, str] = {}
        self.service_requests: dict[str, dict[str, object]] = {}
        self.network_labels: dict[str, dict[str, str]] = {}
        self.removed_service_ids: list[str] = []
        self.removed_network_ids: list[str] = []
        self.connections: list[tuple[str, str, str]] = []
        self.built_images: list[BuildSpec] = []
        self.active_creates = 0
        self.max_active_creates = 0
        self._health_statuses = {image: list(statuses) for image, statuses in (health_statuses or {}).items()}
        self._default_health_status = default_health_status
        self._resources = {image: list(items) for image, items in (resources or {}).items()}
        self._failing_images = set(failing_images)
        self._failing_removal_ids = set(failing_removal_ids)
        self._operation_delay_seconds = operation_delay_seconds
        self._service_counter = 0

    def calls_named(self, operation: str) -> list[tuple[object, ...]]:
        return [arguments for name, arguments in self.calls if name == operation]

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
        self.calls.append(("create_service", (image, command, dict(labels))))
        self.active_creates += 1
        self.max_active_creates = max(self.max_active_creates, self.active_creates)
        try:
            await asyncio.sleep(self._operation_delay_seconds)
        finally:
            self.active_creates -= 1

        if image in self._failing_images:
            raise GatewayRequestError(f"cannot create service from {image}", status_code=500)

        self._service_counter += 1
        service_id = f"svc-{self._service_counter}"
        self.service_labels[service_id] = dict(labels)
        self.service_images[service_id] = image
        self.service_requests[service_id] = {
            "command": command,
            "environment": dict(environment),
            "health_check": health_check,
            "pull_policy": pull_policy,
            "hostname": hostname,
        }
        return service_id

    async def gateway_remove_service(self, service_id: str, cancellation: asyncio.Event | None = None) -> None:
        self.calls.append(("remove_service", (service_id,)))
        await asyncio.sleep(0)
        if service_id in self._failing_removal_ids:
            raise GatewayRequestError(f"cannot remove service {service_id}", status_code=409)
        self.removed_service_ids.append(service_id)
        self.service_labels.pop(service_id, None)

    async def gateway_get_health_status(
        self,
        service_id: str,
        cancellation: asyncio.Event | None = None,
    ) -> HealthStatus:
        self.calls.append(("get_health_status", (service_id,)))
        await asyncio.sleep(0)
        statuses = self._health_statuses.get(self.service_images.get(service_id, service_id))
        if not statuses:
            return self._default_health_status
        if len(statuses) > 1:
            return statuses.pop(0)
        return statuses[0]

    async def gateway_get_resources(
        self,
        service_id: str,
        cancellation: asyncio.Event | None = None,
    ) -> list[Resource]:
        self.calls.append(("get_resources", (service_id,)))
        await asyncio.sleep(0)
        return list(self._resources.get(self.service_images.get(service_id, ""), []))

    async def gateway_build_image(
        self,
        build: BuildSpec,
        labels: Mapping[str, str],
        cancellation: asyncio.Event | None = None,
    ) -> str:
        self.calls.append(("build_image", (build.context, dict(labels))))
        await asyncio.sleep(0)
        self.built_images.append(build)
        return f"built-{len(self.built_images)}"

    async def gateway_create_network(
        self,
        name: str,
        labels: Mapping[str, str],
        cancellation: asyncio.Event | None = None,
    ) -> str:
        self.calls.append(("create_network", (name, dict(labels))))
        await asyncio.sleep(self._operation_delay_seconds)
        network_id = f"net-{name}"
        self.network_labels[network_id] = dict(labels)
        return network_id

    async def gateway_remove_network(self, network_id: str, cancellation: asyncio.Event | None = None) -> None:
        self.calls.append(("remove_network", (network_id,)))
        await asyncio.sleep(0)
        if network_id in self._failing_removal_ids:
            raise GatewayRequestError(f"cannot remove network {network_id}", status_code=409)
        self.removed_network_ids.append(network_id)
        self.network_labels.pop(network_id, None)

    async def gateway_connect_service(
        self,
        network_id: str,
        service_id: str,
        alias: str,
        cancellation: asyncio.Event | None = None,
    ) -> None:
        self.calls.append(("connect_service", (network_id, service_id, alias)))
        await asyncio.sleep(0)
        self.connections.append((network_id, service_id, alias))

    async def gateway_list_services(
        self,
        labels: Mapping[str, str],
        cancellation: asyncio.Event | None = None,
    ) -> list[str]:
        self.calls.append(("list_services", (dict(labels),)))
        return [
            service_id
            for service_id, service_labels in self.service_labels.items()
            if all(service_labels.get(key) == value for key, value in labels.items())
        ]

    async def gateway_list_networks(
        self,
        labels: Mapping[str, str],
        cancellation: asyncio.Event | None = None,
    ) -> list[str]:
        self.calls.append(("list_networks", (dict(labels),)))
        return [
            network_id
            for network_id, network_labels in self.network_labels.items()
            if all(network_labels.get(key) == value for key, value in labels.items())
        ]
