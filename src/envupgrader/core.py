import logging
from typing import List, Optional

from rich.console import Console

from .constants import LATEST_ENV_TEMPLATE_VERSION
from .errors import (
    BlockedError,
    EnvironmentNotFound,
    InvalidVersionFormat,
    ReadError,
    UpgradeCancelled,
    UpgraderError,
    ValidationError,
)
from .errors_catalog import actionable_error
from .models import (
    EnvironmentOutcome,
    EnvironmentRecord,
    PollPolicy,
    RunResult,
    RunState,
    UpgradeDecision,
    VersionOrder,
)
from .services.guard import CompatibilityGuard
from .services.report import ReportService
from .services.scheduler import Cancellation, UpgradeScheduler
from .services.version import compare_versions, is_legacy_version, parse_version

console = Console()
logger = logging.getLogger("envupgrader")

ENV_UPGRADE_APP_PROMPT = "In which application is your environment?"
ENV_UPGRADE_ENV_PROMPT = "Which environment do you want to upgrade?"
ENV_UPGRADE_ENV_HELP = (
    "Upgrades the AWS CloudFormation template for your environment\n"
    "to support the latest features."
)


class EnvUpgrader:
    """Upgrades the template of one or every environment of an application.

    Environments are evaluated strictly in the order they were resolved. The
    first blocked or failed environment stops the run; later environments are
    left untouched and reported as pending.
    """

    def __init__(
        self,
        directory,
        status_reader,
        invoker,
        app_name: Optional[str] = None,
        name: Optional[str] = None,
        all_envs: bool = False,
        selector=None,
        guard: Optional[CompatibilityGuard] = None,
        poll_policy: Optional[PollPolicy] = None,
        latest_version: str = LATEST_ENV_TEMPLATE_VERSION,
        deadline_seconds: Optional[float] = None,
        cancellation: Optional[Cancellation] = None,
        report_service: Optional[ReportService] = None,
    ):
        self.directory = directory
        self.status_reader = status_reader
        self.invoker = invoker
        self.app_name = app_name
        self.name = name
        self.all_envs = all_envs
        self.selector = selector
        self.latest_version = latest_version
        self.deadline_seconds = deadline_seconds
        self.cancellation = cancellation

        self.guard = guard or CompatibilityGuard(logger=logger)
        self.scheduler = UpgradeScheduler(
            status_reader=status_reader,
            invoker=invoker,
            logger=logger,
            policy=poll_policy,
        )
        self.report_service = report_service or ReportService(logger=logger)
        self.result: Optional[RunResult] = None

    def validate(self):
        """Rejects conflicting flags and unknown environment names."""
        if self.all_envs and self.name:
            raise ValidationError(actionable_error("conflicting_targets"), app=self.app_name, stage="validate")
        if self.all_envs or not self.name or not self.app_name:
            return

        try:
            self.directory.get_environment(self.app_name, self.name)
        except EnvironmentNotFound:
            raise
        except UpgraderError as exc:
            raise ReadError(
                f"get environment {self.name} configuration from application {self.app_name}: {exc}",
                app=self.app_name,
                env=self.name,
                stage="validate",
            ) from exc

    def ask(self):
        """Prompts for the application and environment when they were not given."""
        if not self.app_name:
            if self.selector is None:
                raise ValidationError("Missing required option '--app'.", stage="ask")
            self.app_name = self.selector.choose_application(ENV_UPGRADE_APP_PROMPT)

        if not self.all_envs and not self.name:
            if self.selector is None:
                raise ValidationError("Missing required option '--name' or '--all'.", app=self.app_name, stage="ask")
            self.name = self.selector.choose_environment(
                ENV_UPGRADE_ENV_PROMPT,
                ENV_UPGRADE_ENV_HELP,
                self.app_name,
            )

    def execute(self) -> RunResult:
        """Runs the upgrade state machine and returns its result."""
        if not self.app_name:
            raise ValidationError("Missing required option '--app'.", stage="validate")
        if self.all_envs and self.name:
            raise ValidationError(actionable_error("conflicting_targets"), app=self.app_name, stage="validate")
        if not self.all_envs and not self.name:
            raise ValidationError("Missing required option '--name' or '--all'.", app=self.app_name, stage="validate")

        try:
            parse_version(self.latest_version)
        except InvalidVersionFormat as exc:
            raise ValidationError(
                f"Invalid latest template version {self.latest_version!r}.",
                app=self.app_name,
                stage="validate",
            ) from exc

        result = RunResult(app=self.app_name)
        self.result = result
        cancellation = self.cancellation or Cancellation(deadline_seconds=self.deadline_seconds)

        try:
            result.state = RunState.RESOLVING
            records = self._resolve_targets()
            result.targets = [record.name for record in records]
            self.report_service.set_targets(result.targets)
            logger.info("Environments to evaluate in app %s: %s", self.app_name, ", ".join(result.targets) or "<none>")

            result.state = RunState.ITERATING
            for record in records:
                if cancellation.is_cancelled():
                    raise UpgradeCancelled(cancellation.reason, app=self.app_name, env=record.name, stage="iterate")
                self._upgrade_environment(record, result, cancellation)

            result.state = RunState.COMPLETED
        except KeyboardInterrupt:
            cancellation.cancel()
            result.state = RunState.CANCELLED
            result.error = UpgradeCancelled(cancellation.reason, app=self.app_name, stage="iterate")
        except UpgradeCancelled as exc:
            result.state = RunState.CANCELLED
            result.error = exc
        except UpgraderError as exc:
            result.state = RunState.FAILED
            result.error = exc
        except Exception as exc:
            result.state = RunState.FAILED
            result.error = exc
            raise

        return result

    def decide(self, env: str, deployed_version: str) -> UpgradeDecision:
        if is_legacy_version(deployed_version):
            logger.debug("Environment %s is on a legacy template version, upgrade required.", env)
            return UpgradeDecision.UPGRADE

        try:
            order = compare_versions(deployed_version, self.latest_version)
        except InvalidVersionFormat as exc:
            if exc.value != deployed_version:
                raise
            raise InvalidVersionFormat(deployed_version, app=self.app_name, env=env) from exc

        if order == VersionOrder.OLDER:
            return UpgradeDecision.UPGRADE

        if order == VersionOrder.EQUAL:
            logger.debug(
                "Environment %s is already on the latest version %s, skip upgrade.",
                env,
                self.latest_version,
            )
            return UpgradeDecision.SKIP_UP_TO_DATE

        # A teammate may have upgraded with a newer release of this tool.
        logger.warning(
            actionable_error(
                "tool_outdated",
                env=env,
                latest=self.latest_version,
                version=deployed_version,
            )
        )
        return UpgradeDecision.SKIP_AHEAD_OF_KNOWN

    def _resolve_targets(self) -> List[EnvironmentRecord]:
        if not self.all_envs:
            try:
                return [self.directory.get_environment(self.app_name, self.name)]
            except ValidationError:
                raise
            except UpgraderError as exc:
                raise ReadError(
                    f"get environment {self.name} configuration from application {self.app_name}: {exc}",
                    app=self.app_name,
                    env=self.name,
                    stage="resolve",
                ) from exc

        try:
            records = self.directory.list_environments(self.app_name)
        except UpgraderError as exc:
            raise ReadError(
                f"list environments in app {self.app_name}: {exc}",
                app=self.app_name,
                stage="resolve",
            ) from exc
        return list(records)

    def _upgrade_environment(self, record: EnvironmentRecord, result: RunResult, cancellation: Cancellation):
        outcome = EnvironmentOutcome(name=record.name)
        result.outcomes.append(outcome)
        self.report_service.environment_started(record.name)

        try:
            self._evaluate(record, outcome, cancellation)
        except KeyboardInterrupt:
            outcome.error = "Operation cancelled by user."
            self._finish(outcome, "cancelled")
            raise
        except UpgradeCancelled as exc:
            outcome.error = str(exc)
            self._finish(outcome, "cancelled")
            raise
        except Exception as exc:
            outcome.error = str(exc)
            self._finish(outcome, "failed")
            raise

        self._finish(outcome, "upgraded" if outcome.upgraded else "skipped")

    def _evaluate(self, record: EnvironmentRecord, outcome: EnvironmentOutcome, cancellation: Cancellation):
        try:
            deployed_version = self.status_reader.current_version(self.app_name, record.name)
        except ReadError:
            raise
        except UpgraderError as exc:
            raise ReadError(
                f"get template version of environment {record.name} in app {self.app_name}: {exc}",
                app=self.app_name,
                env=record.name,
                stage="read_version",
            ) from exc

        outcome.deployed_version = deployed_version
        outcome.decision = self.decide(record.name, deployed_version)
        if outcome.decision != UpgradeDecision.UPGRADE:
            return

        guard_result = self.guard.check(record, deployed_version)
        if not guard_result.allowed:
            outcome.decision = UpgradeDecision.BLOCKED
            raise BlockedError(
                guard_result.reason,
                app=self.app_name,
                env=record.name,
                stage="compatibility_check",
            )

        console.print(f"[blue]Upgrading environment {record.name} to {self.latest_version}...[/blue]")
        self.scheduler.upgrade_when_ready(self.app_name, record.name, cancellation)
        outcome.upgraded = True
        console.print(f"[green]Environment {record.name} upgraded.[/green]")

    def _finish(self, outcome: EnvironmentOutcome, status: str):
        self.report_service.environment_finished(
            outcome.name,
            status,
            deployed_version=outcome.deployed_version,
            decision=outcome.decision.value if outcome.decision else None,
            upgraded=outcome.upgraded,
            error=outcome.error,
        )

    def _print_summary(self, result: RunResult):
        for outcome in result.outcomes:
            if outcome.upgraded:
                console.print(f"[green]{outcome.name}: upgraded from {outcome.deployed_version}[/green]")
            elif outcome.error:
                console.print(f"[red]{outcome.name}: {outcome.decision.value if outcome.decision else 'error'}[/red]")
            elif outcome.decision:
                console.print(f"[dim]{outcome.name}: {outcome.decision.value} ({outcome.deployed_version})[/dim]")
        if result.pending:
            console.print(f"[yellow]Not evaluated: {', '.join(result.pending)}[/yellow]")

    def run(self) -> int:
        exit_code = 1
        report_status = "failed"
        report_error: Optional[str] = None

        try:
            logger.info("Starting envupgrader...")
            self.validate()
            self.ask()
            self.report_service.start_run(self.app_name, self.latest_version)

            result = self.execute()
            self._print_summary(result)

            if result.state == RunState.COMPLETED:
                console.print("[bold green]Environment upgrade completed.[/bold green]")
                report_status = "success"
                exit_code = 0
                return exit_code

            report_error = str(result.error)
            if result.state == RunState.CANCELLED:
                console.print(f"[bold red]{result.error}[/bold red]")
                logger.info("Upgrade cancelled: %s", result.error)
                report_status = "cancelled"
            else:
                console.print(f"[bold red]Error:[/bold red] {result.error}")
                logger.error(str(result.error))
            return exit_code

        except KeyboardInterrupt:
            console.print("[bold red]Operation cancelled by user.[/bold red]")
            logger.info("Operation cancelled by user")
            report_status = "cancelled"
            report_error = "Operation cancelled by user."
            return exit_code
        except UpgraderError as exc:
            console.print(f"[bold red]Error:[/bold red] {exc}")
            logger.error(str(exc))
            report_error = str(exc)
            return exit_code
        except Exception as exc:
            console.print(f"[bold red]Unexpected error:[/bold red] {exc}")
            logger.exception("Unexpected error")
            report_error = str(exc)
            return exit_code
        finally:
            self.report_service.finalize(report_status, error=report_error)


def run_upgrade(
    app_name: str,
    directory,
    status_reader,
    invoker,
    name: Optional[str] = None,
    all_envs: bool = False,
    **kwargs,
) -> RunResult:
    """Upgrades ``name`` or every environment of ``app_name``.

    Raises the error that stopped the run. Exactly one of ``name`` and
    ``all_envs`` must be given.
    """
    upgrader = EnvUpgrader(
        directory=directory,
        status_reader=status_reader,
        invoker=invoker,
        app_name=app_name,
        name=name,
        all_envs=all_envs,
        **kwargs,
    )
    upgrader.validate()
    result = upgrader.execute()
    if result.error is not None:
        raise result.error
    return result
