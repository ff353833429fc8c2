"""Project-native typed exceptions for composition and lifecycle failures."""

from __future__ import annotations


class EnvironmentConfigurationError(ValueError):
    """Invalid descriptor detected before any external resource is created."""


class OperationCancelledError(Exception):
    """Caller-supplied cancellation signal fired while an operation was pending.

    Attributes:
        operation_label: Human-readable name of the interrupted operation.
    """

    def __init__(self, operation_label: str):
        super().__init__(f"operation cancelled: {operation_label}")
        self.operation_label = operation_label


class LifecycleStateError(RuntimeError):
    """Operation requested from a lifecycle state that does not allow it."""


class HealthTimeoutError(TimeoutError):
    """Service did not report a ready status within its health-wait bound.

    Attributes:
        service_label: Service name or id that timed out.
        timeout_seconds: Elapsed bound that was exceeded.
    """

    def __init__(self, service_label: str, timeout_seconds: float):
        super().__init__(f"service {service_label} was not healthy after {timeout_seconds:g}s")
        self.service_label = service_label
        self.timeout_seconds = timeout_seconds


class EnvironmentDisposalError(RuntimeError):
    """One or more instances failed to dispose.

    Every instance removal is attempted before this error is raised.

    Attributes:
        failures: Instance name and error for each failed disposal.
    """

    def __init__(self, failures: list[tuple[str, BaseException]]):
        failed_names = ", ".join(name for name, _ in failures)
        super().__init__(f"environment disposal failed for: {failed_names}")
        self.failures = tuple(failures)
