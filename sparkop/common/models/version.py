import re
from typing import NamedTuple

_VERSION_PATTERN = re.compile(r"^(\d+)\.(\d+)\.(\d+)(.+)?$")


class VersionInfo(NamedTuple):
    major: int
    minor: int
    micro: int
    releaselevel: str


class Version:
    _version: str

    info: VersionInfo

    def __init__(self, version: str, version_info: VersionInfo = None) -> None:
        self._version = version
        if version_info is None:
            version_info = Version.from_str(self._version).info
        self.info = version_info

    def __str__(self) -> str:
        return self._version

    @classmethod
    def from_str(cls, version: str) -> "Version":
        """Parse a version string such as `3.0.1` or `3.1.1-stackable0`."""
        _match = _VERSION_PATTERN.match(version or "")
        if _match is None:
            raise ValueError(f"Invalid version string: {version!r}")
        major, minor, micro, suffix = _match.groups()
        return cls(
            version, VersionInfo(int(major), int(minor), int(micro), suffix or "")
        )

    @property
    def worker_script(self) -> str:
        """Spark renamed the worker start script from `slave` to `worker` in 3.1."""
        if (self.info.major, self.info.minor) >= (3, 1):
            return "start-worker.sh"
        return "start-slave.sh"
