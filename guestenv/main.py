"""Main module entrypoint for command-line environment control.

`up` composes an environment file and leaves it running; `cleanup` removes
everything labeled with one run id.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import signal
import sys

from guestenv.bootstrap import bootstrap_create_composer, bootstrap_create_gateway
from guestenv.config import GuestEnvSettings, config_load_settings
from guestenv.domain import EnvironmentConfigurationError, EnvironmentDisposalError
from guestenv.environment import EnvironmentComposer, environment_cleanup_run, environment_load_descriptor_file

logger = logging.getLogger(__name__)


def main(argv: list[str] | None = None) -> None:
    """Run selected command with validated startup configuration.

    Args:
        argv: Optional argument list; defaults to process arguments.

    Returns:
        None: This function does not return a runtime value.

    Raises:
        SettingsLoadError: Raised when configuration validation fails.
        SystemExit: Raised with status 1 when the command failed.
    """

    argument_parser = argparse.ArgumentParser(description="Guest environment orchestration entrypoint")
    subcommand_parsers = argument_parser.add_subparsers(dest="command", required=True)

    up_parser = subcommand_parsers.add_parser(
        "up",
        help="Compose an environment file, print its run id and resources, and leave it running",
    )
    up_parser.add_argument("environment_file", type=str, help="Path of the JSON environment file")

    cleanup_parser = subcommand_parsers.add_parser(
        "cleanup",
        help="Remove every service and network labeled with one run id",
    )
    cleanup_parser.add_argument("--run-id", dest="run_id", required=True, type=str, help="Run id to clean up")
    parsed_arguments = argument_parser.parse_args(argv)

    settings = config_load_settings()
    logging.basicConfig(
        level=settings.guestenv_log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    if parsed_arguments.command == "cleanup":
        exit_code = asyncio.run(main_run_cleanup(settings, parsed_arguments.run_id))
    else:
        exit_code = asyncio.run(main_run_up(settings, parsed_arguments.environment_file))
    if exit_code:
        raise SystemExit(exit_code)


async def main_run_up(settings: GuestEnvSettings, environment_file: str) -> int:
    """Compose one environment file and print its summary.

    Invalid environment files and failed initializations are logged and
    reported through the exit code; a failed initialization first disposes
    whatever was created.

    Args:
        settings: Validated runtime settings.
        environment_file: Path of the JSON environment file.

    Returns:
        int: Process exit code.

    Raises:
        RuntimeError: This command reports failures through the exit code instead of raising.
    """

    try:
        descriptor = environment_load_descriptor_file(environment_file)
    except EnvironmentConfigurationError as error:
        logger.error("environment file rejected: %s", error)
        return 1

    cancellation = asyncio.Event()
    main_install_cancellation_handlers(cancellation)

    async with bootstrap_create_gateway(settings) as gateway:
        try:
            composer = bootstrap_create_composer(descriptor, gateway, settings)
        except EnvironmentConfigurationError as error:
            logger.error("environment file rejected: %s", error)
            return 1
        try:
            await composer.environment_initialize(cancellation)
        except Exception as error:
            logger.error("environment initialization failed: %s", error)
            try:
                await composer.environment_dispose()
            except EnvironmentDisposalError as disposal_error:
                logger.error("%s", disposal_error)
            return 1

    print(json.dumps(main_build_environment_summary(composer), indent=2))
    return 0


async def main_run_cleanup(settings: GuestEnvSettings, run_id: str) -> int:
    """Remove every resource of one run and print the outcome.

    Args:
        settings: Validated runtime settings.
        run_id: Run id to clean up.

    Returns:
        int: Process exit code, 1 when any removal failed.

    Raises:
        GatewayError: Raised when listing resources fails.
    """

    cancellation = asyncio.Event()
    main_install_cancellation_handlers(cancellation)

    async with bootstrap_create_gateway(settings) as gateway:
        cleanup_result = await environment_cleanup_run(
            inventory=gateway,
            service_gateway=gateway,
            network_gateway=gateway,
            run_id=run_id,
            cancellation=cancellation,
        )

    print(
        json.dumps(
            {
                "run_id": cleanup_result.run_id,
                "removed_services": list(cleanup_result.removed_service_ids),
                "removed_networks": list(cleanup_result.removed_network_ids),
                "failures": [
                    {"id": resource_id, "error": str(error)} for resource_id, error in cleanup_result.failures
                ],
            },
            indent=2,
        )
    )
    return 0 if cleanup_result.cleanup_succeeded() else 1


def main_build_environment_summary(composer: EnvironmentComposer) -> dict[str, object]:
    """Build the JSON-serializable summary of one composed environment.

    Args:
        composer: Initialized composer.

    Returns:
        dict[str, object]: Run id, network ids and service ids with resources.

    Raises:
        RuntimeError: This helper does not raise runtime errors.
    """

    run_scope = composer.run_scope
    return {
        "run_id": run_scope.id if run_scope is not None else None,
        "teardown_on_complete": run_scope.teardown_on_complete if run_scope is not None else None,
        "networks": [{"name": network.name, "id": network.id} for network in composer.networks],
        "services": [
            {
                "name": service.name,
                "id": service.id,
                "resources": [
                    {"guest_uri": resource.guest_uri, "host_uri": resource.host_uri}
                    for resource in service.resources
                ],
            }
            for service in composer.services
        ],
    }


def main_install_cancellation_handlers(cancellation: asyncio.Event) -> None:
    """Set the cancellation signal on SIGINT and SIGTERM where supported.

    Args:
        cancellation: Cancellation signal of the running command.

    Returns:
        None: Installs handlers as side effect.

    Raises:
        RuntimeError: This helper does not raise runtime errors.
    """

    event_loop = asyncio.get_running_loop()
    for signal_number in (signal.SIGINT, signal.SIGTERM):
        try:
            event_loop.add_signal_handler(signal_number, cancellation.set)
        except NotImplementedError:
            logger.debug("signal handlers are not supported on this platform")
            return


if __name__ == "__main__":
    main()
