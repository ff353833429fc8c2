"""Docker Engine HTTP API gateway implementation."""

from __future__ import annotations

import asyncio
import io
import json
import logging
import shlex
import tarfile
import uuid
from pathlib import Path
from typing import Any, Final, Mapping
from urllib.parse import urlsplit

import httpx

from guestenv.domain import (
    BuildSpec,
    HealthCheckSpec,
    HealthStatus,
    PullPolicy,
    Resource,
    domain_run_cancellable,
)

from .errors import (
    GatewayConnectionError,
    GatewayError,
    GatewayNotFoundError,
    GatewayRequestError,
    GatewayTimeoutError,
)
from .interfaces import NetworkGatewayPort, ResourceInventoryPort, ServiceGatewayPort

logger = logging.getLogger(__name__)

_NANOSECONDS_PER_SECOND: Final[int] = 1_000_000_000


class DockerEngineGateway(ServiceGatewayPort, NetworkGatewayPort, ResourceInventoryPort):
    """Gateway implementation speaking the Docker Engine API through `httpx`."""

    _UNIX_SOCKET_BASE_URL: Final[str] = "http://docker"
    _HEALTH_STATUS_MAP: Final[dict[str, HealthStatus]] = {
        "healthy": HealthStatus.HEALTHY,
        "unhealthy": HealthStatus.UNHEALTHY,
        "starting": HealthStatus.UNKNOWN,
    }

    def __init__(
        self,
        docker_host: str = "unix:///var/run/docker.sock",
        api_version: str = "v1.43",
        request_timeout_seconds: float = 30.0,
        image_request_timeout_seconds: float = 600.0,
        published_host: str = "localhost",
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize Docker Engine gateway.

        Args:
            docker_host: Engine address (`unix://`, `tcp://`, `http://` or `https://`).
            api_version: Engine API version prefix, for example `v1.43`.
            request_timeout_seconds: Timeout applied to regular engine requests.
            image_request_timeout_seconds: Timeout applied to image pull and build requests.
            published_host: Host name used in host-side resource URIs.
            transport: Optional transport override, used by tests.

        Returns:
            None: Initializer does not return a value.

        Raises:
            ValueError: Raised when required config values are invalid.
        """

        normalized_docker_host = docker_host.strip()
        normalized_api_version = api_version.strip().strip("/")
        normalized_published_host = published_host.strip()

        if not normalized_docker_host:
            raise ValueError("docker_host must not be blank")
        if not normalized_api_version:
            raise ValueError("api_version must not be blank")
        if not normalized_published_host:
            raise ValueError("published_host must not be blank")
        if request_timeout_seconds <= 0:
            raise ValueError("request_timeout_seconds must be > 0")
        if image_request_timeout_seconds <= 0:
            raise ValueError("image_request_timeout_seconds must be > 0")

        base_url, default_transport = self._gateway_resolve_endpoint(normalized_docker_host)
        self._published_host = normalized_published_host
        self._image_request_timeout_seconds = image_request_timeout_seconds
        self._client = httpx.AsyncClient(
            base_url=f"{base_url}/{normalized_api_version}",
            transport=transport or default_transport,
            timeout=request_timeout_seconds,
        )

    async def __aenter__(self) -> DockerEngineGateway:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.gateway_close()

    async def gateway_close(self) -> None:
        """Close the underlying HTTP client.

        Returns:
            None: Releases connections as side effect.

        Raises:
            RuntimeError: This helper does not raise runtime errors.
        """

        await self._client.aclose()

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
        """Pull the image as required, then create and start one container.

        A container that was created but failed to start is removed before the
        start error is re-raised.

        Args:
            image: Image reference.
            command: Optional command override, split with shell rules.
            labels: Labels attached to the container.
            environment: Environment variables passed to the container.
            health_check: Optional health check parameters.
            pull_policy: Image pull behavior.
            hostname: Optional container hostname.
            cancellation: Optional cancellation signal.

        Returns:
            str: Container id.

        Raises:
            GatewayError: Raised when the engine rejects or fails the request.
            OperationCancelledError: Raised when the cancellation signal fires.
        """

        normalized_image = image.strip()
        if not normalized_image:
            raise ValueError("image must not be blank")

        await self._gateway_ensure_image(normalized_image, pull_policy=pull_policy, cancellation=cancellation)

        create_body: dict[str, Any] = {
            "Image": normalized_image,
            "Labels": dict(labels),
            "Env": [f"{key}={value}" for key, value in environment.items()],
            "HostConfig": {"PublishAllPorts": True},
        }
        if command:
            create_body["Cmd"] = shlex.split(command)
        if hostname:
            create_body["Hostname"] = hostname
        healthcheck_body = self._gateway_build_healthcheck(health_check)
        if healthcheck_body is not None:
            create_body["Healthcheck"] = healthcheck_body

        create_response = await self._gateway_request(
            "POST",
            "/containers/create",
            json_body=create_body,
            cancellation=cancellation,
            operation_label=f"create service from {normalized_image}",
        )
        service_id = str(create_response.json()["Id"])

        try:
            await self._gateway_request(
                "POST",
                f"/containers/{service_id}/start",
                cancellation=cancellation,
                operation_label=f"start service {service_id}",
            )
        except Exception:
            try:
                await self.gateway_remove_service(service_id)
            except GatewayError as remove_error:
                logger.warning("failed to remove service %s after start failure: %s", service_id, remove_error)
            raise

        logger.debug("created service %s from image %s", service_id, normalized_image)
        return service_id

    async def gateway_remove_service(self, service_id: str, cancellation: asyncio.Event | None = None) -> None:
        """Force-remove one container together with its anonymous volumes.

        Args:
            service_id: Container id.
            cancellation: Optional cancellation signal.

        Returns:
            None: Removal has no result payload.

        Raises:
            GatewayError: Raised when removal fails.
            OperationCancelledError: Raised when the cancellation signal fires.
        """

        await self._gateway_request(
            "DELETE",
            f"/containers/{service_id}",
            params={"force": "true", "v": "true"},
            cancellation=cancellation,
            operation_label=f"remove service {service_id}",
        )
        logger.debug("removed service %s", service_id)

    async def gateway_get_health_status(
        self,
        service_id: str,
        cancellation: asyncio.Event | None = None,
    ) -> HealthStatus:
        """Map container state to a health status.

        Containers with a health check report their health verdict; containers
        without one report `running` once the engine says they run.

        Args:
            service_id: Container id.
            cancellation: Optional cancellation signal.

        Returns:
            HealthStatus: Current status.

        Raises:
            GatewayError: Raised when the container cannot be inspected.
            OperationCancelledError: Raised when the cancellation signal fires.
        """

        inspect_payload = await self._gateway_inspect_container(service_id, cancellation=cancellation)
        state_payload = inspect_payload.get("State") or {}
        health_payload = state_payload.get("Health")
        if health_payload:
            return self._HEALTH_STATUS_MAP.get(str(health_payload.get("Status", "")), HealthStatus.UNKNOWN)
        if state_payload.get("Status") == "running":
            return HealthStatus.RUNNING
        return HealthStatus.UNKNOWN

    async def gateway_get_resources(
        self,
        service_id: str,
        cancellation: asyncio.Event | None = None,
    ) -> list[Resource]:
        """Discover published ports and mounts of one container.

        Args:
            service_id: Container id.
            cancellation: Optional cancellation signal.

        Returns:
            list[Resource]: Port resources ordered by port key, then mount resources.

        Raises:
            GatewayError: Raised when the container cannot be inspected.
            OperationCancelledError: Raised when the cancellation signal fires.
        """

        inspect_payload = await self._gateway_inspect_container(service_id, cancellation=cancellation)
        guest_hostname = str((inspect_payload.get("Config") or {}).get("Hostname") or service_id[:12])
        port_payload = (inspect_payload.get("NetworkSettings") or {}).get("Ports") or {}

        resources: list[Resource] = []
        for port_key in sorted(port_payload):
            bindings = port_payload[port_key] or []
            if not bindings:
                continue
            guest_port, _, protocol = port_key.partition("/")
            protocol = protocol or "tcp"
            resources.append(
                Resource(
                    guest_uri=f"{protocol}://{guest_hostname}:{guest_port}",
                    host_uri=f"{protocol}://{self._published_host}:{bindings[0]['HostPort']}",
                )
            )

        for mount_payload in inspect_payload.get("Mounts") or []:
            destination = str(mount_payload.get("Destination", ""))
            if not destination:
                continue
            resources.append(
                Resource(
                    guest_uri=f"file://{destination}",
                    host_uri=f"file://container.{service_id}{destination}",
                )
            )
        return resources

    async def gateway_build_image(
        self,
        build: BuildSpec,
        labels: Mapping[str, str],
        cancellation: asyncio.Event | None = None,
    ) -> str:
        """Build an image from a local Dockerfile context.

        Args:
            build: Build parameters.
            labels: Labels attached to the built image.
            cancellation: Optional cancellation signal.

        Returns:
            str: Generated image tag.

        Raises:
            GatewayRequestError: Raised when the context is missing or the build fails.
            OperationCancelledError: Raised when the cancellation signal fires.
        """

        context_path = Path(build.context)
        if not context_path.is_dir():
            raise GatewayRequestError(f"build context is not a directory: {build.context}")

        image_tag = f"guestenv-{uuid.uuid4().hex}"
        build_parameters = {
            "t": image_tag,
            "dockerfile": build.dockerfile_path,
            "rm": "1",
            "buildargs": json.dumps(dict(build.arguments)),
            "labels": json.dumps(dict(labels)),
        }
        if build.target:
            build_parameters["target"] = build.target
        if build.pull_dependency_images:
            build_parameters["pull"] = "1"

        context_archive = await asyncio.to_thread(_gateway_archive_build_context, context_path)
        build_response = await self._gateway_request(
            "POST",
            "/build",
            params=build_parameters,
            content=context_archive,
            headers={"Content-Type": "application/x-tar"},
            timeout=self._image_request_timeout_seconds,
            cancellation=cancellation,
            operation_label=f"build image {image_tag}",
        )
        self._gateway_raise_for_stream_error(build_response, context_label=f"build {image_tag}")
        logger.info("built image %s from %s", image_tag, build.context)
        return image_tag

    async def gateway_create_network(
        self,
        name: str,
        labels: Mapping[str, str],
        cancellation: asyncio.Event | None = None,
    ) -> str:
        """Create one bridge network with a unique engine-side name.

        Args:
            name: Declared network name, suffixed with a random hex id.
            labels: Labels attached to the network.
            cancellation: Optional cancellation signal.

        Returns:
            str: Network id.

        Raises:
            GatewayError: Raised when creation fails.
            OperationCancelledError: Raised when the cancellation signal fires.
        """

        engine_name = f"{name}-{uuid.uuid4().hex}"
        create_response = await self._gateway_request(
            "POST",
            "/networks/create",
            json_body={"Name": engine_name, "Labels": dict(labels)},
            cancellation=cancellation,
            operation_label=f"create network {name}",
        )
        network_id = str(create_response.json()["Id"])
        logger.debug("created network %s as %s", network_id, engine_name)
        return network_id

    async def gateway_remove_network(self, network_id: str, cancellation: asyncio.Event | None = None) -> None:
        """Disconnect every attached container, then remove one network.

        Args:
            network_id: Network id.
            cancellation: Optional cancellation signal.

        Returns:
            None: Removal has no result payload.

        Raises:
            GatewayError: Raised when disconnection or removal fails.
            OperationCancelledError: Raised when the cancellation signal fires.
        """

        inspect_response = await self._gateway_request(
            "GET",
            f"/networks/{network_id}",
            cancellation=cancellation,
            operation_label=f"inspect network {network_id}",
        )
        attached_service_ids = sorted((inspect_response.json().get("Containers") or {}).keys())
        await asyncio.gather(
            *(
                self._gateway_request(
                    "POST",
                    f"/networks/{network_id}/disconnect",
                    json_body={"Container": service_id, "Force": True},
                    cancellation=cancellation,
                    operation_label=f"disconnect {service_id} from network {network_id}",
                )
                for service_id in attached_service_ids
            )
        )
        await self._gateway_request(
            "DELETE",
            f"/networks/{network_id}",
            cancellation=cancellation,
            operation_label=f"remove network {network_id}",
        )
        logger.debug("removed network %s", network_id)

    async def gateway_connect_service(
        self,
        network_id: str,
        service_id: str,
        alias: str,
        cancellation: asyncio.Event | None = None,
    ) -> None:
        """Attach one container to a network under an alias.

        Args:
            network_id: Network id or engine-side name.
            service_id: Container id.
            alias: Alias used verbatim.
            cancellation: Optional cancellation signal.

        Returns:
            None: Connection has no result payload.

        Raises:
            GatewayError: Raised when the connection fails.
            OperationCancelledError: Raised when the cancellation signal fires.
        """

        await self._gateway_request(
            "POST",
            f"/networks/{network_id}/connect",
            json_body={"Container": service_id, "EndpointConfig": {"Aliases": [alias]}},
            cancellation=cancellation,
            operation_label=f"connect {service_id} to network {network_id}",
        )
        logger.debug("connected service %s to network %s as %s", service_id, network_id, alias)

    async def gateway_list_services(
        self,
        labels: Mapping[str, str],
        cancellation: asyncio.Event | None = None,
    ) -> list[str]:
        """List ids of containers, running or not, carrying every label.

        Args:
            labels: Required label values.
            cancellation: Optional cancellation signal.

        Returns:
            list[str]: Matching container ids.

        Raises:
            GatewayError: Raised when listing fails.
            OperationCancelledError: Raised when the cancellation signal fires.
        """

        list_response = await self._gateway_request(
            "GET",
            "/containers/json",
            params={"all": "true", "filters": self._gateway_label_filters(labels)},
            cancellation=cancellation,
            operation_label="list services",
        )
        return [str(item["Id"]) for item in list_response.json()]

    async def gateway_list_networks(
        self,
        labels: Mapping[str, str],
        cancellation: asyncio.Event | None = None,
    ) -> list[str]:
        """List ids of networks carrying every label.

        Args:
            labels: Required label values.
            cancellation: Optional cancellation signal.

        Returns:
            list[str]: Matching network ids.

        Raises:
            GatewayError: Raised when listing fails.
            OperationCancelledError: Raised when the cancellation signal fires.
        """

        list_response = await self._gateway_request(
            "GET",
            "/networks",
            params={"filters": self._gateway_label_filters(labels)},
            cancellation=cancellation,
            operation_label="list networks",
        )
        return [str(item["Id"]) for item in list_response.json()]

    async def _gateway_ensure_image(
        self,
        image: str,
        pull_policy: PullPolicy,
        cancellation: asyncio.Event | None,
    ) -> None:
        """Apply pull policy for one image reference.

        Args:
            image: Image reference.
            pull_policy: Image pull behavior.
            cancellation: Optional cancellation signal.

        Returns:
            None: Pulls as side effect.

        Raises:
            GatewayError: Raised when inspection or pull fails.
        """

        if pull_policy == PullPolicy.NEVER:
            return

        if pull_policy == PullPolicy.MISSING:
            try:
                await self._gateway_request(
                    "GET",
                    f"/images/{image}/json",
                    cancellation=cancellation,
                    operation_label=f"inspect image {image}",
                )
                return
            except GatewayNotFoundError:
                logger.info("image %s not present, pulling", image)

        repository, tag = _gateway_split_image_reference(image)
        pull_parameters = {"fromImage": repository}
        if tag:
            pull_parameters["tag"] = tag
        pull_response = await self._gateway_request(
            "POST",
            "/images/create",
            params=pull_parameters,
            timeout=self._image_request_timeout_seconds,
            cancellation=cancellation,
            operation_label=f"pull image {image}",
        )
        self._gateway_raise_for_stream_error(pull_response, context_label=f"pull {image}")

    async def _gateway_inspect_container(
        self,
        service_id: str,
        cancellation: asyncio.Event | None,
    ) -> dict[str, Any]:
        inspect_response = await self._gateway_request(
            "GET",
            f"/containers/{service_id}/json",
            cancellation=cancellation,
            operation_label=f"inspect service {service_id}",
        )
        return dict(inspect_response.json())

    async def _gateway_request(
        self,
        method: str,
        path: str,
        cancellation: asyncio.Event | None,
        operation_label: str,
        params: Mapping[str, str] | None = None,
        json_body: object | None = None,
        content: bytes | None = None,
        headers: Mapping[str, str] | None = None,
        timeout: float | None = None,
    ) -> httpx.Response:
        """Execute one engine request raced against the cancellation signal.

        Args:
            method: HTTP method.
            path: Path relative to the versioned base URL.
            cancellation: Optional cancellation signal.
            operation_label: Operation name used in cancellation errors.
            params: Optional query parameters.
            json_body: Optional JSON request body.
            content: Optional raw request body.
            headers: Optional request headers.
            timeout: Optional per-request timeout override.

        Returns:
            httpx.Response: Successful engine response.

        Raises:
            GatewayTimeoutError: Raised when the transport times out.
            GatewayConnectionError: Raised for transport failures.
            GatewayNotFoundError: Raised for HTTP 404.
            GatewayRequestError: Raised for other HTTP error statuses.
            OperationCancelledError: Raised when the cancellation signal fires.
        """

        async def _gateway_send() -> httpx.Response:
            request_options: dict[str, Any] = {"params": params, "json": json_body, "content": content, "headers": headers}
            if timeout is not None:
                request_options["timeout"] = timeout
            try:
                response = await self._client.request(method, path, **request_options)
            except httpx.TimeoutException as error:
                raise GatewayTimeoutError(f"engine request timed out: {method} {path}") from error
            except httpx.TransportError as error:
                raise GatewayConnectionError(f"engine request failed: {method} {path}") from error
            self._gateway_raise_for_status(response, method=method, path=path)
            return response

        return await domain_run_cancellable(_gateway_send(), cancellation, operation_label)

    def _gateway_raise_for_status(self, response: httpx.Response, method: str, path: str) -> None:
        """Map engine error statuses to typed gateway errors.

        Args:
            response: Engine response.
            method: HTTP method used for the request.
            path: Request path used for the request.

        Returns:
            None: Returns only for non-error statuses.

        Raises:
            GatewayNotFoundError: Raised for HTTP 404.
            GatewayRequestError: Raised for other HTTP error statuses.
        """

        if response.status_code < 400:
            return

        engine_message = response.text.strip()
        try:
            error_payload = response.json()
        except ValueError:
            error_payload = None
        if isinstance(error_payload, dict) and error_payload.get("message"):
            engine_message = str(error_payload["message"])

        message = f"engine returned HTTP {response.status_code} for {method} {path}: {engine_message}"
        if response.status_code == 404:
            raise GatewayNotFoundError(message, status_code=404)
        raise GatewayRequestError(message, status_code=response.status_code)

    def _gateway_raise_for_stream_error(self, response: httpx.Response, context_label: str) -> None:
        """Raise when a streamed pull or build response reports an error line.

        Args:
            response: Completed streaming response.
            context_label: Context label for error messages.

        Returns:
            None: Returns when no error line was reported.

        Raises:
            GatewayRequestError: Raised for the first error line.
        """

        for line in response.text.splitlines():
            stream_event = _gateway_try_parse_json_line(line)
            if stream_event is None:
                continue
            if stream_event.get("error"):
                raise GatewayRequestError(f"engine {context_label} failed: {str(stream_event['error']).strip()}")

    def _gateway_build_healthcheck(self, health_check: HealthCheckSpec | None) -> dict[str, Any] | None:
        """Translate health check parameters into the engine healthcheck body.

        Args:
            health_check: Optional health check parameters.

        Returns:
            dict[str, Any] | None: Engine healthcheck body, None when nothing is set.

        Raises:
            RuntimeError: This helper does not raise runtime errors.
        """

        if health_check is None:
            return None
        if health_check.disabled:
            return {"Test": ["NONE"]}

        healthcheck_body: dict[str, Any] = {}
        if health_check.command:
            healthcheck_body["Test"] = ["CMD-SHELL", health_check.command]
        if health_check.interval_seconds > 0:
            healthcheck_body["Interval"] = health_check.interval_seconds * _NANOSECONDS_PER_SECOND
        if health_check.timeout_seconds > 0:
            healthcheck_body["Timeout"] = health_check.timeout_seconds * _NANOSECONDS_PER_SECOND
        if health_check.start_period_seconds > 0:
            healthcheck_body["StartPeriod"] = health_check.start_period_seconds * _NANOSECONDS_PER_SECOND
        if health_check.retries > 0:
            healthcheck_body["Retries"] = health_check.retries
        return healthcheck_body or None

    def _gateway_label_filters(self, labels: Mapping[str, str]) -> str:
        return json.dumps({"label": [f"{key}={value}" for key, value in sorted(labels.items())]})

    def _gateway_resolve_endpoint(self, docker_host: str) -> tuple[str, httpx.AsyncBaseTransport | None]:
        """Resolve base URL and default transport for one engine address.

        Args:
            docker_host: Engine address.

        Returns:
            tuple[str, httpx.AsyncBaseTransport | None]: Base URL and optional transport.

        Raises:
            ValueError: Raised when the address scheme is unsupported.
        """

        parsed_host = urlsplit(docker_host)
        if parsed_host.scheme == "unix":
            return self._UNIX_SOCKET_BASE_URL, httpx.AsyncHTTPTransport(uds=parsed_host.path)
        if parsed_host.scheme == "tcp":
            return f"http://{parsed_host.netloc}", None
        if parsed_host.scheme in ("http", "https"):
            return docker_host.rstrip("/"), None
        raise ValueError(f"unsupported docker_host scheme: {parsed_host.scheme or docker_host}")


def _gateway_split_image_reference(image: str) -> tuple[str, str | None]:
    """Split an image reference into repository and tag.

    Args:
        image: Image reference.

    Returns:
        tuple[str, str | None]: Repository and tag; tag is None for digests.

    Raises:
        RuntimeError: This helper does not raise runtime errors.
    """

    if "@" in image:
        return image, None
    last_segment = image.rsplit("/", 1)[-1]
    if ":" in last_segment:
        repository, _, tag = image.rpartition(":")
        return repository, tag
    return image, "latest"


def _gateway_try_parse_json_line(line: str) -> dict[str, Any] | None:
    stripped_line = line.strip()
    if not stripped_line:
        return None
    try:
        parsed_line = json.loads(stripped_line)
    except json.JSONDecodeError:
        return None
    return parsed_line if isinstance(parsed_line, dict) else None


def _gateway_archive_build_context(context_path: Path) -> bytes:
    archive_buffer = io.BytesIO()
    with tarfile.open(fileobj=archive_buffer, mode="w") as archive:
        archive.add(str(context_path), arcname=".")
    return archive_buffer.getvalue()
