import json

from envupgrader.services.report import ReportService


class DummyLogger:
    def warning(self, *_args, **_kwargs):
        return None


def test_report_service_writes_environment_outcomes(tmp_path):
    report_file = tmp_path / "reports" / "upgrade-report.json"
    service = ReportService(logger=DummyLogger(), report_file=str(report_file))

    service.start_run("shop", "v1.0.0")
    service.set_targets(["test", "prod"])
    service.environment_started("test")
    service.environment_finished("test", "upgraded", deployed_version="v0.9.0", decision="upgrade", upgraded=True)
    service.environment_started("prod")
    service.environment_finished("prod", "failed", deployed_version="v0.0.0", decision="blocked", error="blocked")
    service.finalize("failed", error="blocked")

    data = json.loads(report_file.read_text(encoding="utf-8"))

    assert data["app"] == "shop"
    assert data["status"] == "failed"
    assert data["latest_version"] == "v1.0.0"
    assert data["targets"] == ["test", "prod"]
    assert data["environments"][0]["upgraded"] is True
    assert data["environments"][1]["decision"] == "blocked"
    assert data["duration_seconds"] is not None


def test_report_service_without_file_keeps_report_in_memory(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    service = ReportService(logger=DummyLogger())

    service.start_run("shop", "v1.0.0")
    service.finalize("success")

    assert service.report["status"] == "success"
    assert list(tmp_path.iterdir()) == []
