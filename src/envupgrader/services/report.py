"""Run report generation service."""

import json
import os
import tempfile
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional


class ReportService:
    """Collects per-environment outcomes and writes the run report JSON."""

    def __init__(self, logger, report_file: Optional[str] = None):
        self.report_file = report_file
        self.logger = logger
        self.report: Dict[str, Any] = {
            "app": None,
            "status": "pending",
            "started_at": None,
            "finished_at": None,
            "duration_seconds": None,
            "latest_version": None,
            "targets": [],
            "environments": [],
            "error": None,
        }

    def start_run(self, app: str, latest_version: str):
        self.report["app"] = app
        self.report["status"] = "running"
        self.report["started_at"] = self._now()
        self.report["latest_version"] = latest_version
        self.write()

    def set_targets(self, targets: List[str]):
        self.report["targets"] = list(targets)
        self.write()

    def environment_started(self, name: str):
        self.report["environments"].append(
            {
                "name": name,
                "status": "running",
                "deployed_version": None,
                "decision": None,
                "upgraded": False,
                "started_at": self._now(),
                "finished_at": None,
                "duration_seconds": None,
                "error": None,
            }
        )
        self.write()

    def environment_finished(
        self,
        name: str,
        status: str,
        deployed_version: Optional[str] = None,
        decision: Optional[str] = None,
        upgraded: bool = False,
        error: Optional[str] = None,
    ):
        for entry in reversed(self.report["environments"]):
            if entry["name"] == name and entry["status"] == "running":
                entry["status"] = status
                entry["deployed_version"] = deployed_version
                entry["decision"] = decision
                entry["upgraded"] = upgraded
                entry["error"] = error
                entry["finished_at"] = self._now()
                started_at = datetime.fromisoformat(entry["started_at"])
                finished_at = datetime.fromisoformat(entry["finished_at"])
                entry["duration_seconds"] = (finished_at - started_at).total_seconds()
                break
        self.write()

    def finalize(self, status: str, error: Optional[str] = None):
        self.report["status"] = status
        self.report["finished_at"] = self._now()
        if self.report.get("started_at"):
            started_at = datetime.fromisoformat(self.report["started_at"])
            finished_at = datetime.fromisoformat(self.report["finished_at"])
            self.report["duration_seconds"] = (finished_at - started_at).total_seconds()
        self.report["error"] = error
        self.write()

    def write(self):
        if not self.report_file:
            return

        os.makedirs(os.path.dirname(self.report_file) or ".", exist_ok=True)

        fd, temp_path = tempfile.mkstemp(
            prefix="upgrade-report-",
            suffix=".json",
            dir=os.path.dirname(self.report_file) or ".",
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as file_obj:
                json.dump(self.report, file_obj, indent=2, sort_keys=True)
                file_obj.write("\n")
            os.replace(temp_path, self.report_file)
        except OSError as exc:
            self.logger.warning("Could not write report file '%s': %s", self.report_file, exc)
            try:
                os.remove(temp_path)
            except OSError:
                pass

    @staticmethod
    def _now() -> str:
        return datetime.now(timezone.utc).isoformat()
