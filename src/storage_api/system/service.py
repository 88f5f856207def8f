"""Disk usage and platform lookups backed by psutil."""

from __future__ import annotations

import os
import platform
import sys
from pathlib import Path

import psutil

from .models import DiskInfo, OsInfo

_ARCH_ALIASES = {
    "x86_64": "x64",
    "amd64": "x64",
    "aarch64": "arm64",
    "arm64": "arm64",
    "i386": "ia32",
    "i686": "ia32",
    "x86": "ia32",
    "armv7l": "arm",
    "armv6l": "arm",
}


class SystemInfoError(RuntimeError):
    """Raised when disk information cannot be gathered."""


def normalise_arch(machine: str) -> str:
    machine = machine.strip().lower()
    return _ARCH_ALIASES.get(machine, machine)


class SystemInfoService:
    """Informational lookups; unrelated to path confinement."""

    def disk_info(self, root: Path) -> DiskInfo:
        try:
            usage = psutil.disk_usage(os.fspath(root))
            mount_point = self._mount_point(root)
        except OSError as exc:
            raise SystemInfoError(str(exc)) from exc
        return DiskInfo.from_bytes(mount_point, free=usage.free, size=usage.total)

    def os_info(self) -> OsInfo:
        return OsInfo(
            platform=sys.platform,
            release=platform.release(),
            arch=normalise_arch(platform.machine()),
        )

    def _mount_point(self, root: Path) -> str:
        target = os.path.realpath(root)
        best = ""
        for partition in psutil.disk_partitions(all=True):
            mount = partition.mountpoint
            prefix = mount if mount.endswith(os.sep) else mount + os.sep
            if target == mount or target.startswith(prefix):
                if len(mount) > len(best):
                    best = mount
        return best or os.fspath(root)
