"""Removal of resources left behind by crashed or non-teardown runs."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Sequence

from guestenv.domain import RUN_ID_LABEL
from guestenv.gateways import NetworkGatewayPort, ResourceInventoryPort, ServiceGatewayPort

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CleanupResult:
    """Outcome of one run cleanup.

    Attributes:
        run_id: Cleaned run id.
        removed_service_ids: Services removed successfully.
        removed_network_ids: Networks removed successfully.
        failures: Resource id and error of each failed removal.
    """

    run_id: str
    removed_service_ids: tuple[str, ...] = ()
    removed_network_ids: tuple[str, ...] = ()
    failures: tuple[tuple[str, BaseException], ...] = ()

    def cleanup_succeeded(self) -> bool:
        return not self.failures


async def environment_cleanup_run(
    inventory: ResourceInventoryPort,
    service_gateway: ServiceGatewayPort,
    network_gateway: NetworkGatewayPort,
    run_id: str,
    cancellation: asyncio.Event | None = None,
) -> CleanupResult:
    """Remove every service, then every network, labeled with one run id.

    Removals of one resource kind run concurrently; failed removals are
    reported in the result and do not stop the others.

    Args:
        inventory: Label-based resource discovery.
        service_gateway: Gateway removing services.
        network_gateway: Gateway removing networks.
        run_id: Run id whose resources are removed.
        cancellation: Optional cancellation signal.

    Returns:
        CleanupResult: Removed ids and failures.

    Raises:
        ValueError: Raised when the run id is blank.
        GatewayError: Raised when listing resources fails.
        OperationCancelledError: Raised when the cancellation signal fired while listing.
    """

    normalized_run_id = run_id.strip()
    if not normalized_run_id:
        raise ValueError("run_id must not be blank")

    labels = {RUN_ID_LABEL: normalized_run_id}
    failures: list[tuple[str, BaseException]] = []

    service_ids = await inventory.gateway_list_services(labels, cancellation=cancellation)
    removed_service_ids = await _cleanup_remove_all(
        service_ids,
        lambda service_id: service_gateway.gateway_remove_service(service_id, cancellation=cancellation),
        failures,
    )

    network_ids = await inventory.gateway_list_networks(labels, cancellation=cancellation)
    removed_network_ids = await _cleanup_remove_all(
        network_ids,
        lambda network_id: network_gateway.gateway_remove_network(network_id, cancellation=cancellation),
        failures,
    )

    logger.info(
        "cleaned run %s: %d services, %d networks removed, %d failures",
        normalized_run_id,
        len(removed_service_ids),
        len(removed_network_ids),
        len(failures),
    )
    return CleanupResult(
        run_id=normalized_run_id,
        removed_service_ids=tuple(removed_service_ids),
        removed_network_ids=tuple(removed_network_ids),
        failures=tuple(failures),
    )


async def _cleanup_remove_all(
    resource_ids: Sequence[str],
    remove: Callable[[str], Awaitable[None]],
    failures: list[tuple[str, BaseException]],
) -> list[str]:
    results = await asyncio.gather(*(remove(resource_id) for resource_id in resource_ids), return_exceptions=True)
    removed_ids: list[str] = []
    for resource_id, result in zip(resource_ids, results):
        if isinstance(result, BaseException):
            logger.warning("failed to remove %s: %s", resource_id, result)
            failures.append((resource_id, result))
        else:
            removed_ids.append(resource_id)
    return removed_ids
