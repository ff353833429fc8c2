"""Environment composition, declarative classes, environment files and run cleanup."""

from .cleanup import CleanupResult, environment_cleanup_run
from .composer import EnvironmentComposer
from .declarative import GuestEnvironment, NetworkField, ServiceField, environment_descriptor_from_class
from .descriptor_file import environment_load_descriptor_file, environment_parse_descriptor
from .registry import InstanceFactory, InstanceRegistry, instance_registry_create_default

__all__ = [
	"CleanupResult",
	"EnvironmentComposer",
	"GuestEnvironment",
	"InstanceFactory",
	"InstanceRegistry",
	"NetworkField",
	"ServiceField",
	"environment_cleanup_run",
	"environment_descriptor_from_class",
	"environment_load_descriptor_file",
	"environment_parse_descriptor",
	"instance_registry_create_default",
]
