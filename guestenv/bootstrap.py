"""Bootstrap wiring from validated settings to gateway, registry and composer."""

from __future__ import annotations

from guestenv.config import GuestEnvSettings, config_load_settings
from guestenv.domain import DEFAULT_RUN_ID, EnvironmentDescriptor
from guestenv.environment import EnvironmentComposer, InstanceRegistry, instance_registry_create_default
from guestenv.gateways import DockerEngineGateway
from guestenv.lifecycle import LifecycleConfig


def bootstrap_create_gateway(settings: GuestEnvSettings | None = None) -> DockerEngineGateway:
    """Create the Docker Engine gateway from runtime settings.

    Args:
        settings: Optional validated settings; loaded from the environment when omitted.

    Returns:
        DockerEngineGateway: Gateway implementing every gateway port.

    Raises:
        SettingsLoadError: Raised when settings validation fails.
    """

    runtime_settings = settings or config_load_settings()
    return DockerEngineGateway(
        docker_host=runtime_settings.docker_host,
        api_version=runtime_settings.docker_api_version,
        request_timeout_seconds=runtime_settings.docker_request_timeout_seconds,
        image_request_timeout_seconds=runtime_settings.docker_image_request_timeout_seconds,
        published_host=runtime_settings.docker_published_host,
    )


def bootstrap_create_registry(gateway: DockerEngineGateway, settings: GuestEnvSettings) -> InstanceRegistry:
    """Create the default instance registry bound to one gateway.

    Args:
        gateway: Gateway shared by services and networks.
        settings: Validated settings supplying lifecycle defaults.

    Returns:
        InstanceRegistry: Registry with service and network factories.

    Raises:
        ValueError: Raised when the gateway is missing.
    """

    return instance_registry_create_default(
        gateway=gateway,
        network_gateway=gateway,
        lifecycle_config=LifecycleConfig(
            health_poll_interval_seconds=settings.guestenv_health_poll_interval_seconds,
            health_timeout_seconds=settings.guestenv_health_timeout_seconds,
        ),
    )


def bootstrap_create_composer(
    descriptor: EnvironmentDescriptor,
    gateway: DockerEngineGateway,
    settings: GuestEnvSettings,
    default_run_id: str = DEFAULT_RUN_ID,
) -> EnvironmentComposer:
    """Assemble one environment composer.

    Args:
        descriptor: Environment to compose.
        gateway: Gateway shared by services and networks.
        settings: Validated settings supplying lifecycle defaults.
        default_run_id: Run id used when the descriptor declares none.

    Returns:
        EnvironmentComposer: Composer ready for `environment_initialize`.

    Raises:
        EnvironmentConfigurationError: Raised for duplicate names.
    """

    return EnvironmentComposer(
        descriptor,
        bootstrap_create_registry(gateway, settings),
        default_run_id=default_run_id,
    )
