import logging
import os
import shlex

import click
from rich.logging import RichHandler

from .constants import (
    DEFAULT_CONFIG_FILE,
    DEFAULT_POLL_INITIAL_INTERVAL,
    DEFAULT_POLL_MAX_INTERVAL,
    DEFAULT_POLL_MULTIPLIER,
    DEFAULT_POLL_TIMEOUT,
    DEFAULT_STACK_NAME_TEMPLATE,
    DEFAULT_STORE_FILE,
)
from .core import EnvUpgrader, UpgraderError, console
from .models import PollPolicy
from .services.command_runner import CommandRunner
from .services.config_loader import ConfigLoader
from .services.directory import YamlEnvironmentDirectory
from .services.invoker import CommandUpgradeInvoker
from .services.report import ReportService
from .services.selector import PromptSelector
from .services.status_reader import CloudFormationStatusReader


def _resolve_option(cli_value, config, key, default=None):
    if cli_value is not None:
        return cli_value
    if key in config:
        return config[key]
    return default


def _split_command(value):
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return [str(part) for part in value]
    return shlex.split(str(value))


logging.basicConfig(
    level="INFO",
    format="%(message)s",
    datefmt="[%X]",
    handlers=[RichHandler(rich_tracebacks=True, show_level=False, show_path=False)],
)


@click.command()
@click.option("--app", "-a", "app_name", required=False, help="Name of the application.")
@click.option("--name", "-n", required=False, help="Name of the environment to upgrade.")
@click.option(
    "--all",
    "all_envs",
    is_flag=True,
    default=None,
    help="Upgrade all environments of the application.",
)
@click.option(
    "--config",
    required=False,
    type=click.Path(),
    help=f"Path to a YAML configuration file. Defaults to {DEFAULT_CONFIG_FILE} if present.",
)
@click.option(
    "--store-file",
    required=False,
    type=click.Path(),
    help=f"YAML file listing applications and environments (default: {DEFAULT_STORE_FILE}).",
)
@click.option(
    "--upgrade-command",
    required=False,
    help="Command that redeploys an environment template. Supports {app}, {env} and {stack}.",
)
@click.option(
    "--stack-name-template",
    required=False,
    help=f"Stack name pattern for an environment (default: {DEFAULT_STACK_NAME_TEMPLATE}).",
)
@click.option("--region", required=False, help="AWS region passed to the AWS CLI.")
@click.option(
    "--poll-initial-interval",
    required=False,
    type=float,
    default=None,
    help="Seconds to wait before re-checking a busy stack.",
)
@click.option(
    "--poll-multiplier",
    required=False,
    type=float,
    default=None,
    help="Growth factor applied to the wait between busy stack checks.",
)
@click.option(
    "--poll-max-interval",
    required=False,
    type=float,
    default=None,
    help="Upper bound in seconds for the wait between busy stack checks.",
)
@click.option(
    "--poll-timeout",
    required=False,
    type=float,
    default=None,
    help="Maximum seconds to wait for a busy stack before giving up.",
)
@click.option(
    "--deadline-minutes",
    required=False,
    type=float,
    default=None,
    help="Cancel the whole run once this many minutes have passed.",
)
@click.option("--report-file", type=click.Path(), help="Path for the JSON run report.")
@click.option("--verbose", is_flag=True, default=None, help="Enable verbose logging")
@click.option("--log-file", type=click.Path(), help="Path to log file")
def main(
    app_name,
    name,
    all_envs,
    config,
    store_file,
    upgrade_command,
    stack_name_template,
    region,
    poll_initial_interval,
    poll_multiplier,
    poll_max_interval,
    poll_timeout,
    deadline_minutes,
    report_file,
    verbose,
    log_file,
):
    """Upgrade the template of an environment to the latest version."""
    logger = logging.getLogger("envupgrader")

    try:
        config_loader = ConfigLoader()
        resolved_config = config
        if resolved_config is None:
            default_config_path = os.path.join(os.getcwd(), DEFAULT_CONFIG_FILE)
            if os.path.exists(default_config_path):
                resolved_config = default_config_path

        config_values = config_loader.load(resolved_config)
    except UpgraderError as exc:
        raise click.ClickException(str(exc)) from exc

    app_name = _resolve_option(app_name, config_values, "app")
    name = _resolve_option(name, config_values, "name")
    all_envs = bool(_resolve_option(all_envs, config_values, "all", default=False))
    store_file = _resolve_option(store_file, config_values, "store_file", default=DEFAULT_STORE_FILE)
    upgrade_command = _split_command(_resolve_option(upgrade_command, config_values, "upgrade_command"))
    stack_name_template = _resolve_option(
        stack_name_template,
        config_values,
        "stack_name_template",
        default=DEFAULT_STACK_NAME_TEMPLATE,
    )
    region = _resolve_option(region, config_values, "region")
    verbose = bool(_resolve_option(verbose, config_values, "verbose", default=False))
    log_file = _resolve_option(log_file, config_values, "log_file")
    report_file = _resolve_option(report_file, config_values, "report_file")
    deadline_minutes = _resolve_option(deadline_minutes, config_values, "deadline_minutes")

    if not upgrade_command:
        raise click.ClickException(
            "Missing required option '--upgrade-command' (or provide it in config)."
        )

    if verbose:
        logging.getLogger().setLevel(logging.DEBUG)
        logger.setLevel(logging.DEBUG)
    else:
        logger.setLevel(logging.INFO)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(logging.DEBUG if verbose else logging.INFO)
        file_handler.setFormatter(logging.Formatter("%(asctime)s [%(levelname)s] %(message)s"))
        logger.addHandler(file_handler)

    try:
        poll_policy = PollPolicy(
            initial_interval=float(
                _resolve_option(
                    poll_initial_interval,
                    config_values,
                    "poll_initial_interval",
                    default=DEFAULT_POLL_INITIAL_INTERVAL,
                )
            ),
            multiplier=float(
                _resolve_option(poll_multiplier, config_values, "poll_multiplier", default=DEFAULT_POLL_MULTIPLIER)
            ),
            max_interval=float(
                _resolve_option(
                    poll_max_interval,
                    config_values,
                    "poll_max_interval",
                    default=DEFAULT_POLL_MAX_INTERVAL,
                )
            ),
            timeout=float(_resolve_option(poll_timeout, config_values, "poll_timeout", default=DEFAULT_POLL_TIMEOUT)),
        )
    except ValueError as exc:
        raise click.ClickException(str(exc)) from exc

    try:
        command_runner = CommandRunner(logger=logger)
        directory = YamlEnvironmentDirectory(store_file)
        upgrader = EnvUpgrader(
            directory=directory,
            status_reader=CloudFormationStatusReader(
                command_runner=command_runner,
                logger=logger,
                stack_name_template=stack_name_template,
                region=region,
            ),
            invoker=CommandUpgradeInvoker(
                command=upgrade_command,
                command_runner=command_runner,
                logger=logger,
                stack_name_template=stack_name_template,
            ),
            app_name=app_name,
            name=name,
            all_envs=all_envs,
            selector=PromptSelector(directory=directory, console=console),
            poll_policy=poll_policy,
            deadline_seconds=float(deadline_minutes) * 60 if deadline_minutes is not None else None,
            report_service=ReportService(logger=logger, report_file=report_file),
        )
    except UpgraderError as exc:
        raise click.ClickException(str(exc)) from exc

    raise SystemExit(upgrader.run())


if __name__ == "__main__":
    main()
