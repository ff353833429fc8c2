"""Regression tests for the health-wait loop and ready-timeout resolution."""

from __future__ import annotations

import asyncio

import pytest

from gateway_stubs import RecordingGateway
from guestenv.domain import HealthCheckSpec, HealthStatus, HealthTimeoutError, OperationCancelledError, ServiceDescriptor
from guestenv.gateways import GatewayConnectionError
from guestenv.lifecycle import lifecycle_await_healthy, lifecycle_resolve_ready_timeout


class _HangingHealthGateway:
    """Gateway stub whose health query never completes."""

    def __init__(self):
        """Initialize hanging gateway state.

        Returns:
            None: Initializer does not return values.

        Raises:
            RuntimeError: This stub does not raise runtime errors.
        """

        self.query_cancelled = False

    async def gateway_get_health_status(self, service_id: str, cancellation=None) -> HealthStatus:
        """Block until cancelled.

        Args:
            service_id: Service id.
            cancellation: Ignored cancellation signal.

        Returns:
            HealthStatus: Never returns.

        Raises:
            asyncio.CancelledError: Raised when the caller stops waiting.
        """

        _ = (service_id, cancellation)
        try:
            await asyncio.sleep(3600)
        except asyncio.CancelledError:
            self.query_cancelled = True
            raise
        return HealthStatus.HEALTHY


class _FailingHealthGateway:
    """Gateway stub whose health query fails at transport level."""

    async def gateway_get_health_status(self, service_id: str, cancellation=None) -> HealthStatus:
        """Raise a transport failure.

        Args:
            service_id: Service id.
            cancellation: Ignored cancellation signal.

        Returns:
            HealthStatus: Never returns.

        Raises:
            GatewayConnectionError: Always raised.
        """

        _ = (service_id, cancellation)
        raise GatewayConnectionError("engine unreachable")


@pytest.mark.asyncio
@pytest.mark.parametrize("ready_status", [HealthStatus.RUNNING, HealthStatus.HEALTHY])
async def test_lifecycle_health_returns_on_first_ready_status(ready_status: HealthStatus) -> None:
    """Return immediately for ready statuses.

    Args:
        ready_status: Status accepted as ready.

    Returns:
        None: Assertions validate single poll.

    Raises:
        AssertionError: Raised when more than one poll happens.
    """

    gateway = RecordingGateway(health_statuses={"svc-x": [ready_status]})

    service_id = await lifecycle_await_healthy(gateway, "svc-x", timeout_seconds=5)

    assert service_id == "svc-x"
    assert len(gateway.calls_named("get_health_status")) == 1


@pytest.mark.asyncio
async def test_lifecycle_health_polls_until_status_turns_healthy() -> None:
    """Keep polling through unknown statuses and wait at least one interval.

    Returns:
        None: Assertions validate poll count and elapsed time.

    Raises:
        AssertionError: Raised when the loop does not poll.
    """

    gateway = RecordingGateway(
        health_statuses={"svc-x": [HealthStatus.UNKNOWN, HealthStatus.UNKNOWN, HealthStatus.HEALTHY]}
    )
    event_loop = asyncio.get_running_loop()
    started_at = event_loop.time()

    await lifecycle_await_healthy(gateway, "svc-x", timeout_seconds=5, poll_interval_seconds=0.02)

    assert len(gateway.calls_named("get_health_status")) == 3
    assert event_loop.time() - started_at >= 0.02


@pytest.mark.asyncio
async def test_lifecycle_health_keeps_polling_unhealthy_services() -> None:
    gateway = RecordingGateway(health_statuses={"svc-x": [HealthStatus.UNHEALTHY, HealthStatus.HEALTHY]})

    await lifecycle_await_healthy(gateway, "svc-x", timeout_seconds=5, poll_interval_seconds=0.01)

    assert len(gateway.calls_named("get_health_status")) == 2


@pytest.mark.asyncio
async def test_lifecycle_health_times_out_close_to_bound() -> None:
    """Fail with a timeout naming the service after roughly the bound.

    Returns:
        None: Assertions validate timeout error and elapsed time.

    Raises:
        AssertionError: Raised when the timeout fires too early or too late.
    """

    gateway = RecordingGateway(health_statuses={"svc-x": [HealthStatus.UNKNOWN]})
    event_loop = asyncio.get_running_loop()
    started_at = event_loop.time()

    with pytest.raises(HealthTimeoutError) as error_info:
        await lifecycle_await_healthy(
            gateway,
            "svc-x",
            timeout_seconds=0.01,
            poll_interval_seconds=0.001,
            service_label="database",
        )

    elapsed_seconds = event_loop.time() - started_at
    assert 0.005 <= elapsed_seconds < 1.0
    assert error_info.value.service_label == "database"
    assert error_info.value.timeout_seconds == 0.01
    assert "database" in str(error_info.value)
    assert isinstance(error_info.value, TimeoutError)
    assert not isinstance(error_info.value, OperationCancelledError)


@pytest.mark.asyncio
async def test_lifecycle_health_cancellation_interrupts_long_wait() -> None:
    """Fail with cancellation well before a long timeout.

    Returns:
        None: Assertions validate cancelled outcome and elapsed time.

    Raises:
        AssertionError: Raised when cancellation is not honored promptly.
    """

    gateway = RecordingGateway(health_statuses={"svc-x": [HealthStatus.UNKNOWN]})
    cancellation = asyncio.Event()
    event_loop = asyncio.get_running_loop()
    event_loop.call_later(0.03, cancellation.set)
    started_at = event_loop.time()

    with pytest.raises(OperationCancelledError):
        await lifecycle_await_healthy(
            gateway,
            "svc-x",
            timeout_seconds=30,
            cancellation=cancellation,
            poll_interval_seconds=0.5,
        )

    assert event_loop.time() - started_at < 0.4


@pytest.mark.asyncio
async def test_lifecycle_health_cancellation_interrupts_in_flight_query() -> None:
    gateway = _HangingHealthGateway()
    cancellation = asyncio.Event()
    asyncio.get_running_loop().call_later(0.01, cancellation.set)

    with pytest.raises(OperationCancelledError):
        await lifecycle_await_healthy(gateway, "svc-x", timeout_seconds=30, cancellation=cancellation)

    assert gateway.query_cancelled is True


@pytest.mark.asyncio
async def test_lifecycle_health_deadline_interrupts_in_flight_query() -> None:
    gateway = _HangingHealthGateway()

    with pytest.raises(HealthTimeoutError):
        await lifecycle_await_healthy(gateway, "svc-x", timeout_seconds=0.02)

    assert gateway.query_cancelled is True


@pytest.mark.asyncio
async def test_lifecycle_health_propagates_gateway_errors() -> None:
    with pytest.raises(GatewayConnectionError, match="unreachable"):
        await lifecycle_await_healthy(_FailingHealthGateway(), "svc-x", timeout_seconds=5)


@pytest.mark.asyncio
async def test_lifecycle_health_rejects_non_positive_bounds() -> None:
    gateway = RecordingGateway()

    with pytest.raises(ValueError, match="timeout_seconds"):
        await lifecycle_await_healthy(gateway, "svc-x", timeout_seconds=0)
    with pytest.raises(ValueError, match="poll_interval_seconds"):
        await lifecycle_await_healthy(gateway, "svc-x", timeout_seconds=1, poll_interval_seconds=0)


def test_lifecycle_health_ready_timeout_prefers_declared_bound() -> None:
    """Resolve the health-wait bound from declaration, default and health check.

    Returns:
        None: Assertions validate bound resolution.

    Raises:
        AssertionError: Raised when resolution differs.
    """

    slow_health_check = HealthCheckSpec(command="pg_isready", interval_seconds=5, retries=10, start_period_seconds=20)

    assert lifecycle_resolve_ready_timeout(ServiceDescriptor(name="a", image="x", ready_timeout_seconds=3), 30) == 3
    assert lifecycle_resolve_ready_timeout(ServiceDescriptor(name="a", image="x"), 30) == 30
    assert lifecycle_resolve_ready_timeout(ServiceDescriptor(name="a", image="x", health_check=slow_health_check), 30) == 70
    assert (
        lifecycle_resolve_ready_timeout(
            ServiceDescriptor(name="a", image="x", health_check=HealthCheckSpec(disabled=True, retries=99, interval_seconds=9)),
            30,
        )
        == 30
    )
