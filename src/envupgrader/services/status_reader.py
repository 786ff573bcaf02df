"""Environment status readers backed by the deployment backend."""

import json
from typing import Any, Dict, List, Optional, Protocol

import yaml

from envupgrader.constants import DEFAULT_STACK_NAME_TEMPLATE, LEGACY_ENV_TEMPLATE_VERSION
from envupgrader.errors import ReadError, UpgraderError
from envupgrader.models import StackStatus


class EnvironmentStatusReader(Protocol):
    def current_version(self, app: str, env: str) -> str:
        ...

    def stack_status(self, app: str, env: str) -> StackStatus:
        ...


class CloudFormationStatusReader:
    """Reads template version and stack status through the AWS CLI."""

    FAILED_STATUSES = {
        "ROLLBACK_COMPLETE",
        "DELETE_COMPLETE",
    }

    def __init__(
        self,
        command_runner,
        logger,
        stack_name_template: str = DEFAULT_STACK_NAME_TEMPLATE,
        region: Optional[str] = None,
    ):
        self.command_runner = command_runner
        self.logger = logger
        self.stack_name_template = stack_name_template
        self.region = region

    def stack_name(self, app: str, env: str) -> str:
        return self.stack_name_template.format(app=app, env=env)

    def current_version(self, app: str, env: str) -> str:
        summary = self._aws_json(
            ["cloudformation", "get-template-summary", "--stack-name", self.stack_name(app, env)],
            app=app,
            env=env,
            what="template summary",
            stage="read_version",
        )
        raw_metadata = summary.get("Metadata")
        if not raw_metadata:
            self.logger.debug("Stack for %s has no template metadata, assuming legacy version.", env)
            return LEGACY_ENV_TEMPLATE_VERSION

        try:
            metadata = yaml.safe_load(raw_metadata)
        except yaml.YAMLError as exc:
            raise ReadError(
                f"Invalid template metadata for environment {env} in app {app}: {exc}",
                app=app,
                env=env,
                stage="read_version",
            ) from exc

        if not isinstance(metadata, dict) or not metadata.get("Version"):
            return LEGACY_ENV_TEMPLATE_VERSION
        return str(metadata["Version"])

    def stack_status(self, app: str, env: str) -> StackStatus:
        described = self._aws_json(
            ["cloudformation", "describe-stacks", "--stack-name", self.stack_name(app, env)],
            app=app,
            env=env,
            what="stack status",
            stage="read_status",
        )
        stacks = described.get("Stacks") or []
        if not stacks:
            raise ReadError(
                f"Stack {self.stack_name(app, env)} for environment {env} was not found.",
                app=app,
                env=env,
                stage="read_status",
            )
        stack = stacks[0] if isinstance(stacks, list) else None
        if not isinstance(stack, dict):
            raise ReadError(
                f"Unexpected stack status output for environment {env} in app {app}.",
                app=app,
                env=env,
                stage="read_status",
            )
        return self.map_status(stack.get("StackStatus", ""))

    @classmethod
    def map_status(cls, raw_status: str) -> StackStatus:
        status = (raw_status or "").upper()
        if status.endswith("_IN_PROGRESS"):
            return StackStatus.BUSY
        if status.endswith("_FAILED") or status in cls.FAILED_STATUSES:
            return StackStatus.FAILED
        if status.endswith("_COMPLETE"):
            return StackStatus.IDLE
        return StackStatus.UNKNOWN

    def _aws_json(self, args: List[str], app: str, env: str, what: str, stage: str) -> Dict[str, Any]:
        cmd = ["aws"] + args + ["--output", "json"]
        if self.region:
            cmd += ["--region", self.region]

        try:
            result = self.command_runner.run(cmd, check=True, capture_output=True)
        except UpgraderError as exc:
            raise ReadError(
                f"get {what} of environment {env} in app {app}: {exc}",
                app=app,
                env=env,
                stage=stage,
            ) from exc

        try:
            data = json.loads(result.stdout or "{}")
        except json.JSONDecodeError as exc:
            raise ReadError(
                f"Unexpected {what} output for environment {env} in app {app}: {exc}",
                app=app,
                env=env,
                stage=stage,
            ) from exc

        if not isinstance(data, dict):
            raise ReadError(
                f"Unexpected {what} output for environment {env} in app {app}.",
                app=app,
                env=env,
                stage=stage,
            )
        return data
