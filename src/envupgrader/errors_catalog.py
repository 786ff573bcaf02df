"""Actionable error catalog for envupgrader."""

from typing import Dict

_ERROR_MESSAGES: Dict[str, Dict[str, str]] = {
    "conflicting_targets": {
        "what": "Cannot specify both --name and --all flags.",
        "next": "Pass a single environment with `--name` or every environment with `--all`.",
    },
    "environment_not_found": {
        "what": "Couldn't find environment {env} in the application {app}.",
        "next": "Run with `--all` or pick one of the environments registered in the store file.",
    },
    "legacy_vpc_not_persisted": {
        "what": (
            "Environment {env} in application {app} is on legacy template version {version} "
            "and was created with a customized VPC whose configuration is not stored."
        ),
        "next": "Re-supply the VPC configuration for {env} and store it before upgrading.",
    },
    "stack_failed": {
        "what": "Stack for environment {env} in application {app} is in a failed state.",
        "next": "Fix or roll back the stack in CloudFormation, then run the upgrade again.",
    },
    "upgrade_timed_out": {
        "what": "Stack for environment {env} was still busy after {timeout} seconds.",
        "next": "Wait for the in-flight update to finish or raise `--poll-timeout`.",
    },
    "tool_outdated": {
        "what": "Skip upgrading environment {env} to version {latest} since it's on version {version}.",
        "next": "Make sure you are using the latest version of envupgrader.",
    },
}


def actionable_error(code: str, **kwargs: str) -> str:
    if code not in _ERROR_MESSAGES:
        raise KeyError(f"Unknown error catalog key: {code}")

    template = _ERROR_MESSAGES[code]
    what = template["what"].format(**kwargs)
    next_step = template["next"].format(**kwargs)
    return f"{what} Suggested action: {next_step}"
