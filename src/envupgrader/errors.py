"""Domain errors for envupgrader."""

from typing import Optional


class UpgraderError(RuntimeError):
    """Raised when the upgrade cannot continue safely."""

    def __init__(
        self,
        message: str,
        app: Optional[str] = None,
        env: Optional[str] = None,
        stage: Optional[str] = None,
    ):
        super().__init__(message)
        self.app = app
        self.env = env
        self.stage = stage


class ValidationError(UpgraderError):
    """Conflicting, missing or unknown inputs. Raised before any mutation."""


class EnvironmentNotFound(ValidationError):
    def __init__(self, app: str, env: str):
        super().__init__(
            f"Couldn't find environment {env} in the application {app}.",
            app=app,
            env=env,
            stage="resolve",
        )


class ReadError(UpgraderError):
    """A directory, version or status lookup failed."""


class InvalidVersionFormat(UpgraderError):
    def __init__(self, value: str, app: Optional[str] = None, env: Optional[str] = None):
        message = f"Invalid template version format: {value!r}"
        if env:
            message = f"{message} for environment {env} in app {app}"
        super().__init__(message, app=app, env=env, stage="compare")
        self.value = value


class BlockedError(UpgraderError):
    """The compatibility guard refused to upgrade an environment."""


class StackInFailedState(UpgraderError):
    pass


class UpgradeTimedOut(UpgraderError):
    pass


class UpgradeCancelled(UpgraderError):
    pass


class UpgradeInvocationError(UpgraderError):
    pass
