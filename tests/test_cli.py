from click.testing import CliRunner

import envupgrader.cli as cli_module


def _install_fake_upgrader(monkeypatch, captured, exit_code=0):
    class FakeUpgrader:
        def __init__(self, **kwargs):
            captured.update(kwargs)

        def run(self):
            return exit_code

    monkeypatch.setattr(cli_module, "EnvUpgrader", FakeUpgrader)


def test_cli_uses_config_and_allows_cli_override(tmp_path, monkeypatch):
    config_file = tmp_path / ".envupgrader.yml"
    config_file.write_text(
        "app: config-app\n"
        "all: true\n"
        "upgrade_command: deployer env deploy --name {env}\n"
        "poll_timeout: 45\n"
        "deadline_minutes: 2\n",
        encoding="utf-8",
    )

    captured = {}
    _install_fake_upgrader(monkeypatch, captured)

    runner = CliRunner()
    result = runner.invoke(
        cli_module.main,
        [
            "--config",
            str(config_file),
            "--app",
            "cli-app",
            "--poll-initial-interval",
            "0.5",
        ],
    )

    assert result.exit_code == 0, result.output
    assert captured["app_name"] == "cli-app"
    assert captured["all_envs"] is True
    assert captured["name"] is None
    assert captured["poll_policy"].timeout == 45.0
    assert captured["poll_policy"].initial_interval == 0.5
    assert captured["deadline_seconds"] == 120.0
    assert captured["invoker"].command == ["deployer", "env", "deploy", "--name", "{env}"]


def test_cli_uses_default_config_file_when_present(tmp_path, monkeypatch):
    default_config = tmp_path / ".envupgrader.yml"
    default_config.write_text(
        "app: default-app\nname: test\nupgrade_command: [deployer, '{app}', '{env}']\n",
        encoding="utf-8",
    )

    captured = {}
    _install_fake_upgrader(monkeypatch, captured)
    monkeypatch.chdir(tmp_path)

    runner = CliRunner()
    result = runner.invoke(cli_module.main, [])

    assert result.exit_code == 0, result.output
    assert captured["app_name"] == "default-app"
    assert captured["name"] == "test"
    assert captured["all_envs"] is False
    assert captured["status_reader"].stack_name("default-app", "test") == "default-app-test"


def test_cli_requires_upgrade_command(tmp_path, monkeypatch):
    captured = {}
    _install_fake_upgrader(monkeypatch, captured)
    monkeypatch.chdir(tmp_path)

    runner = CliRunner()
    result = runner.invoke(cli_module.main, ["--app", "shop", "--all"])

    assert result.exit_code != 0
    assert "--upgrade-command" in result.output
    assert captured == {}


def test_cli_rejects_unknown_config_keys(tmp_path):
    config_file = tmp_path / "bad.yml"
    config_file.write_text("nope: 1\n", encoding="utf-8")

    runner = CliRunner()
    result = runner.invoke(cli_module.main, ["--config", str(config_file)])

    assert result.exit_code != 0
    assert "Unknown configuration keys: nope" in result.output


def test_cli_rejects_name_and_all_without_touching_the_store(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)

    runner = CliRunner()
    result = runner.invoke(
        cli_module.main,
        [
            "--app",
            "shop",
            "--name",
            "test",
            "--all",
            "--upgrade-command",
            "deployer {env}",
            "--store-file",
            str(tmp_path / "missing-store.yml"),
        ],
    )

    assert result.exit_code == 1
    assert not (tmp_path / "missing-store.yml").exists()


def test_cli_propagates_upgrader_exit_code(tmp_path, monkeypatch):
    captured = {}
    _install_fake_upgrader(monkeypatch, captured, exit_code=1)
    monkeypatch.chdir(tmp_path)

    runner = CliRunner()
    result = runner.invoke(cli_module.main, ["--app", "shop", "--all", "--upgrade-command", "deployer {env}"])

    assert result.exit_code == 1
