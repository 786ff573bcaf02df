"""Upgrade invoker that delegates the template re-deployment to a command."""

from typing import List, Optional, Sequence

from envupgrader.constants import DEFAULT_STACK_NAME_TEMPLATE
from envupgrader.errors import UpgradeInvocationError, UpgraderError, ValidationError


class CommandUpgradeInvoker:
    """Runs a configured argv to redeploy an environment's template.

    Arguments may use the ``{app}``, ``{env}`` and ``{stack}`` placeholders.
    """

    PLACEHOLDERS = ("app", "env", "stack")

    def __init__(
        self,
        command: Sequence[str],
        command_runner,
        logger,
        stack_name_template: str = DEFAULT_STACK_NAME_TEMPLATE,
        timeout: Optional[float] = None,
    ):
        if not command:
            raise ValidationError("An upgrade command is required to upgrade environments.")
        self.command = list(command)
        self.command_runner = command_runner
        self.logger = logger
        self.stack_name_template = stack_name_template
        self.timeout = timeout
        self.build_command("app", "env")

    def build_command(self, app: str, env: str) -> List[str]:
        try:
            values = {
                "app": app,
                "env": env,
                "stack": self.stack_name_template.format(app=app, env=env),
            }
            return [part.format(**values) for part in self.command]
        except (KeyError, IndexError) as exc:
            raise ValidationError(
                f"Unsupported placeholder in upgrade command: {exc}. "
                f"Supported placeholders: {', '.join(self.PLACEHOLDERS)}."
            ) from exc

    def upgrade(self, app: str, env: str):
        cmd = self.build_command(app, env)
        try:
            self.command_runner.run(cmd, check=True, capture_output=True, timeout=self.timeout)
        except UpgraderError as exc:
            raise UpgradeInvocationError(
                f"Upgrade environment {env} in app {app}: {exc}",
                app=app,
                env=env,
                stage="upgrade",
            ) from exc
        self.logger.info("Upgrade command finished for environment %s.", env)
