"""Domain models, run scope and cancellation primitives shared across layers."""

from .cancellation import domain_raise_if_cancelled, domain_run_cancellable, domain_sleep_cancellable
from .errors import (
	EnvironmentConfigurationError,
	EnvironmentDisposalError,
	HealthTimeoutError,
	LifecycleStateError,
	OperationCancelledError,
)
from .models import (
	BuildSpec,
	EnvironmentDescriptor,
	HealthCheckSpec,
	HealthStatus,
	LifecycleState,
	NetworkAliasBinding,
	NetworkDescriptor,
	PullPolicy,
	Resource,
	RunDeclaration,
	RunScope,
	ServiceDescriptor,
)
from .run_scope import (
	DEFAULT_RUN_ID,
	RUN_ID_LABEL,
	run_scope_expand_environment_variables,
	run_scope_labels,
	run_scope_resolve,
)
from .timeline import LifecycleStage, LifecycleStageStatus, LifecycleTimeline

__all__ = [
	"BuildSpec",
	"DEFAULT_RUN_ID",
	"EnvironmentConfigurationError",
	"EnvironmentDescriptor",
	"EnvironmentDisposalError",
	"HealthCheckSpec",
	"HealthStatus",
	"HealthTimeoutError",
	"LifecycleStage",
	"LifecycleStageStatus",
	"LifecycleState",
	"LifecycleStateError",
	"LifecycleTimeline",
	"NetworkAliasBinding",
	"NetworkDescriptor",
	"OperationCancelledError",
	"PullPolicy",
	"RUN_ID_LABEL",
	"Resource",
	"RunDeclaration",
	"RunScope",
	"ServiceDescriptor",
	"domain_raise_if_cancelled",
	"domain_run_cancellable",
	"domain_sleep_cancellable",
	"run_scope_expand_environment_variables",
	"run_scope_labels",
	"run_scope_resolve",
]
