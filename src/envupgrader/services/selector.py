"""Interactive selection of missing application and environment names."""

from typing import List

from rich.console import Console
from rich.prompt import Prompt

from envupgrader.errors import ReadError, ValidationError


class PromptSelector:
    """Asks the user to pick an application or environment from the directory."""

    def __init__(self, directory, console: Console, prompt_cls=Prompt):
        self.directory = directory
        self.console = console
        self.prompt_cls = prompt_cls

    def choose_application(self, prompt: str) -> str:
        try:
            applications = self.directory.list_applications()
        except ReadError as exc:
            raise ReadError(f"select application: {exc}", stage="ask") from exc

        return self._choose(prompt, applications, kind="application")

    def choose_environment(self, prompt: str, help_text: str, app: str) -> str:
        try:
            environments = [record.name for record in self.directory.list_environments(app)]
        except ReadError as exc:
            raise ReadError(f"select environment: {exc}", app=app, stage="ask") from exc

        if help_text:
            self.console.print(f"[dim]{help_text}[/dim]")
        return self._choose(prompt, environments, kind="environment")

    def _choose(self, prompt: str, choices: List[str], kind: str) -> str:
        if not choices:
            raise ValidationError(f"No {kind} found to select from.", stage="ask")
        if len(choices) == 1:
            self.console.print(f"Only found one {kind}, defaulting to: [bold]{choices[0]}[/bold]")
            return choices[0]
        return self.prompt_cls.ask(prompt, choices=choices, console=self.console)
