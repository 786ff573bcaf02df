"""YAML-backed application and environment directory."""

from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from envupgrader.errors import EnvironmentNotFound, ReadError
from envupgrader.models import EnvironmentRecord


class YamlEnvironmentDirectory:
    """Reads application/environment records from a YAML store file.

    Expected layout::

        applications:
          my-app:
            environments:
              test:
                region: us-west-2
                customized_vpc: true
                vpc_config_persisted: false
    """

    def __init__(self, store_file: str):
        self.store_file = store_file

    def list_applications(self) -> List[str]:
        return list(self._applications().keys())

    def get_environment(self, app: str, name: str) -> EnvironmentRecord:
        environments = self._environments(app)
        if name not in environments:
            raise EnvironmentNotFound(app, name)
        return self._to_record(app, name, environments[name])

    def list_environments(self, app: str) -> List[EnvironmentRecord]:
        return [
            self._to_record(app, name, values)
            for name, values in self._environments(app).items()
        ]

    def _applications(self) -> Dict[str, Any]:
        path = Path(self.store_file)
        if not path.exists():
            raise ReadError(f"Environment store not found: {self.store_file}", stage="resolve")

        try:
            parsed = yaml.safe_load(path.read_text(encoding="utf-8"))
        except (yaml.YAMLError, OSError) as exc:
            raise ReadError(f"Invalid environment store '{self.store_file}': {exc}", stage="resolve") from exc

        if parsed is None:
            return {}
        if not isinstance(parsed, dict):
            raise ReadError("Environment store must contain a YAML mapping at the root.", stage="resolve")

        applications = parsed.get("applications") or {}
        if not isinstance(applications, dict):
            raise ReadError("`applications` in the environment store must be a mapping.", stage="resolve")
        return applications

    def _environments(self, app: str) -> Dict[str, Any]:
        applications = self._applications()
        if app not in applications:
            raise ReadError(f"Couldn't find application {app} in the environment store.", app=app, stage="resolve")

        application = applications[app] or {}
        if not isinstance(application, dict):
            raise ReadError(f"Application {app} in the environment store must be a mapping.", app=app, stage="resolve")

        environments = application.get("environments") or {}
        if not isinstance(environments, dict):
            raise ReadError(
                f"Environments of application {app} must be a mapping.",
                app=app,
                stage="resolve",
            )
        return environments

    @staticmethod
    def _to_record(app: str, name: str, values: Optional[Dict[str, Any]]) -> EnvironmentRecord:
        values = values or {}
        if not isinstance(values, dict):
            raise ReadError(
                f"Environment {name} of application {app} must be a mapping.",
                app=app,
                env=str(name),
                stage="resolve",
            )
        return EnvironmentRecord(
            app=app,
            name=str(name),
            region=values.get("region"),
            customized_vpc=values.get("customized_vpc"),
            vpc_config_persisted=values.get("vpc_config_persisted"),
        )
