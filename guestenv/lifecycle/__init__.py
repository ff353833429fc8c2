"""Lifecycle state machines and health-wait loop for guest resources."""

from .health import LifecycleConfig, lifecycle_await_healthy, lifecycle_resolve_ready_timeout
from .network_instance import NetworkInstance, ResolvedNetworkAlias
from .service_instance import ServiceInstance

__all__ = [
	"LifecycleConfig",
	"NetworkInstance",
	"ResolvedNetworkAlias",
	"ServiceInstance",
	"lifecycle_await_healthy",
	"lifecycle_resolve_ready_timeout",
]
