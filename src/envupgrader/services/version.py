"""Semantic version comparison for environment templates."""

import re
from typing import NamedTuple, Tuple, Union

from packaging.version import Version

from envupgrader.constants import LEGACY_ENV_TEMPLATE_VERSION
from envupgrader.errors import InvalidVersionFormat
from envupgrader.models import VersionOrder

_SEMVER_RE = re.compile(
    r"^v?(?P<major>0|[1-9]\d*)\.(?P<minor>0|[1-9]\d*)\.(?P<patch>0|[1-9]\d*)"
    r"(?:-(?P<prerelease>(?:0|[1-9]\d*|\d*[a-zA-Z-][0-9a-zA-Z-]*)"
    r"(?:\.(?:0|[1-9]\d*|\d*[a-zA-Z-][0-9a-zA-Z-]*))*))?"
    r"(?:\+(?P<build>[0-9a-zA-Z-]+(?:\.[0-9a-zA-Z-]+)*))?$"
)

PrereleaseKey = Tuple[Tuple[int, Union[int, str]], ...]


class SemVer(NamedTuple):
    release: Version
    prerelease: PrereleaseKey

    def sort_key(self):
        # A release sorts after any of its pre-releases.
        return (self.release, not self.prerelease, self.prerelease)


def parse_version(value: str) -> SemVer:
    match = _SEMVER_RE.match((value or "").strip())
    if not match:
        raise InvalidVersionFormat(value)

    release = Version(f"{match['major']}.{match['minor']}.{match['patch']}")
    prerelease: PrereleaseKey = ()
    if match["prerelease"]:
        prerelease = tuple(
            (0, int(part)) if part.isdigit() else (1, part)
            for part in match["prerelease"].split(".")
        )
    return SemVer(release=release, prerelease=prerelease)


def is_legacy_version(value: str) -> bool:
    """True for templates that predate versioned template metadata."""
    clean_value = (value or "").strip()
    return clean_value in ("", LEGACY_ENV_TEMPLATE_VERSION)


def compare_versions(deployed: str, latest: str) -> VersionOrder:
    deployed_key = parse_version(deployed).sort_key()
    latest_key = parse_version(latest).sort_key()

    if deployed_key < latest_key:
        return VersionOrder.OLDER
    if deployed_key > latest_key:
        return VersionOrder.NEWER
    return VersionOrder.EQUAL
