"""
envupgrader - Upgrade environment stack templates to the latest version
"""

__version__ = "0.1.0"

from .core import EnvUpgrader, UpgraderError, run_upgrade

__all__ = ["EnvUpgrader", "UpgraderError", "run_upgrade"]
