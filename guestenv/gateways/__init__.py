"""Container-host gateway ports, errors and the Docker Engine implementation."""

from .docker_engine import DockerEngineGateway
from .errors import (
	GatewayConnectionError,
	GatewayError,
	GatewayNotFoundError,
	GatewayRequestError,
	GatewayTimeoutError,
)
from .interfaces import NetworkGatewayPort, ResourceInventoryPort, ServiceGatewayPort

__all__ = [
	"DockerEngineGateway",
	"GatewayConnectionError",
	"GatewayError",
	"GatewayNotFoundError",
	"GatewayRequestError",
	"GatewayTimeoutError",
	"NetworkGatewayPort",
	"ResourceInventoryPort",
	"ServiceGatewayPort",
]
