import pytest

from envupgrader.errors import ValidationError
from envupgrader.models import EnvironmentRecord
from envupgrader.services.selector import PromptSelector


class DummyConsole:
    def __init__(self):
        self.printed = []

    def print(self, *args, **_kwargs):
        self.printed.extend(args)


class FakeDirectory:
    def __init__(self, applications, environments):
        self.applications = applications
        self.environments = environments

    def list_applications(self):
        return list(self.applications)

    def list_environments(self, app):
        return [EnvironmentRecord(app=app, name=name) for name in self.environments]


class FakePrompt:
    asked = []

    @classmethod
    def ask(cls, prompt, choices=None, console=None):
        cls.asked.append((prompt, list(choices)))
        return choices[-1]


def test_choose_environment_prompts_with_directory_choices():
    FakePrompt.asked = []
    console = DummyConsole()
    selector = PromptSelector(FakeDirectory(["shop"], ["test", "prod"]), console, prompt_cls=FakePrompt)

    chosen = selector.choose_environment("Which environment?", "Some help.", "shop")

    assert chosen == "prod"
    assert FakePrompt.asked == [("Which environment?", ["test", "prod"])]
    assert "[dim]Some help.[/dim]" in console.printed


def test_single_application_is_selected_without_prompting():
    FakePrompt.asked = []
    selector = PromptSelector(FakeDirectory(["shop"], []), DummyConsole(), prompt_cls=FakePrompt)

    assert selector.choose_application("Which application?") == "shop"
    assert FakePrompt.asked == []


def test_empty_choices_raise_validation_error():
    selector = PromptSelector(FakeDirectory([], []), DummyConsole(), prompt_cls=FakePrompt)

    with pytest.raises(ValidationError, match="No environment found"):
        selector.choose_environment("Which environment?", "", "shop")
