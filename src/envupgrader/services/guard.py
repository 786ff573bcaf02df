"""Compatibility checks that run before an environment template is upgraded."""

from envupgrader.errors_catalog import actionable_error
from envupgrader.models import EnvironmentRecord, GuardResult
from envupgrader.services.version import is_legacy_version


class CompatibilityGuard:
    """Refuses upgrades that would drop a customized VPC configuration.

    Legacy environment templates accepted VPC customization as inline
    parameters only. Upgrading such a stack without the stored configuration
    would regenerate the default VPC, so the guard blocks when all of the
    following hold:

    * the deployed template version is a legacy version,
    * the environment was created with a customized VPC,
    * the customization is not stored in the parameter store.

    The guard never prompts and never mutates; it only reports.
    """

    def __init__(self, logger):
        self.logger = logger

    def check(self, record: EnvironmentRecord, deployed_version: str) -> GuardResult:
        if not is_legacy_version(deployed_version):
            return GuardResult(allowed=True)
        if not record.customized_vpc:
            return GuardResult(allowed=True)
        if record.vpc_config_persisted:
            return GuardResult(allowed=True)

        self.logger.debug(
            "Environment %s in app %s has a customized VPC with no stored configuration.",
            record.name,
            record.app,
        )
        return GuardResult(
            allowed=False,
            reason=actionable_error(
                "legacy_vpc_not_persisted",
                app=record.app,
                env=record.name,
                version=deployed_version or "<none>",
            ),
        )
