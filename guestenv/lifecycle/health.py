"""Health-wait loop and ready-timeout resolution for guest services."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass

from guestenv.domain import (
    HealthTimeoutError,
    ServiceDescriptor,
    domain_raise_if_cancelled,
    domain_run_cancellable,
    domain_sleep_cancellable,
)
from guestenv.gateways import ServiceGatewayPort

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LifecycleConfig:
    """Configuration values shared by lifecycle instances.

    Attributes:
        health_poll_interval_seconds: Delay between two health status queries.
        health_timeout_seconds: Default health-wait bound for services.
    """

    health_poll_interval_seconds: float = 0.05
    health_timeout_seconds: float = 30.0


def lifecycle_resolve_ready_timeout(descriptor: ServiceDescriptor, default_timeout_seconds: float) -> float:
    """Resolve the health-wait bound of one service.

    Args:
        descriptor: Service descriptor.
        default_timeout_seconds: Configured default bound.

    Returns:
        float: Declared bound, or the larger of the default and the minimum the
            declared health check needs to report a verdict.

    Raises:
        ValueError: Raised when the declared bound is not positive.
    """

    if descriptor.ready_timeout_seconds is not None:
        if descriptor.ready_timeout_seconds <= 0:
            raise ValueError(f"ready_timeout_seconds must be > 0 for service {descriptor.name}")
        return float(descriptor.ready_timeout_seconds)

    health_check_minimum_seconds = 0.0
    if descriptor.health_check is not None:
        health_check_minimum_seconds = descriptor.health_check.health_check_minimum_seconds()
    return max(float(default_timeout_seconds), health_check_minimum_seconds)


async def lifecycle_await_healthy(
    gateway: ServiceGatewayPort,
    service_id: str,
    timeout_seconds: float,
    cancellation: asyncio.Event | None = None,
    poll_interval_seconds: float = 0.05,
    service_label: str | None = None,
) -> str:
    """Poll a service until it reports `healthy` or `running`.

    The deadline and the cancellation signal race each other; whichever fires
    first ends the wait, including while a status query or a poll sleep is in
    flight. `unknown` and `unhealthy` keep the loop polling.

    Args:
        gateway: Gateway used for health status queries.
        service_id: Engine service id.
        timeout_seconds: Health-wait bound.
        cancellation: Optional cancellation signal.
        poll_interval_seconds: Delay between two status queries.
        service_label: Optional name used in errors; defaults to the service id.

    Returns:
        str: The service id, once the service is ready.

    Raises:
        ValueError: Raised when the bound or the interval is not positive.
        HealthTimeoutError: Raised when the bound elapsed first.
        OperationCancelledError: Raised when the cancellation signal fired first.
        GatewayError: Raised when a status query fails.
    """

    if timeout_seconds <= 0:
        raise ValueError("timeout_seconds must be > 0")
    if poll_interval_seconds <= 0:
        raise ValueError("poll_interval_seconds must be > 0")

    label = service_label or service_id
    operation_label = f"await health of service {label}"
    poll_count = 0
    try:
        async with asyncio.timeout(timeout_seconds) as deadline:
            while True:
                domain_raise_if_cancelled(cancellation, operation_label)
                health_status = await domain_run_cancellable(
                    gateway.gateway_get_health_status(service_id, cancellation=cancellation),
                    cancellation,
                    operation_label,
                )
                poll_count += 1
                if health_status.health_is_ready():
                    logger.debug("service %s reported %s after %d polls", label, health_status.value, poll_count)
                    return service_id
                await domain_sleep_cancellable(poll_interval_seconds, cancellation, operation_label)
    except TimeoutError as error:
        if deadline.expired():
            raise HealthTimeoutError(label, timeout_seconds) from error
        raise
