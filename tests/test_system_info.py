from __future__ import annotations

import os
from pathlib import Path

import psutil
import pytest

from storage_api.system.models import DiskInfo
from storage_api.system.service import SystemInfoError, SystemInfoService, normalise_arch


@pytest.mark.parametrize(
    ("machine", "expected"),
    [("x86_64", "x64"), ("AMD64", "x64"), ("aarch64", "arm64"), ("i686", "ia32"), ("riscv64", "riscv64")],
)
def test_normalise_arch(machine: str, expected: str) -> None:
    assert normalise_arch(machine) == expected


def test_disk_info_rounds_to_gib() -> None:
    info = DiskInfo.from_bytes("/", free=5 * 1024**3 + 1024**3 // 3, size=100 * 1024**3)
    assert info.free_gb == 5.33
    assert info.size_gb == 100.0
    assert info.model_dump(by_alias=True) == {
        "path": "/",
        "freeBytes": 5 * 1024**3 + 1024**3 // 3,
        "sizeBytes": 100 * 1024**3,
        "freeGb": 5.33,
        "sizeGb": 100.0,
    }


def test_disk_info_reports_mount_point(tmp_path: Path) -> None:
    info = SystemInfoService().disk_info(tmp_path)
    real = os.path.realpath(tmp_path)
    assert real == info.path or real.startswith(info.path.rstrip(os.sep) + os.sep)
    assert 0 <= info.free_bytes <= info.size_bytes


def test_disk_info_failure_is_wrapped(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    def _fail(path: str):
        raise FileNotFoundError(path)

    monkeypatch.setattr(psutil, "disk_usage", _fail)
    with pytest.raises(SystemInfoError):
        SystemInfoService().disk_info(tmp_path / "missing")


def test_os_info_shape() -> None:
    info = SystemInfoService().os_info()
    assert info.platform
    assert info.arch == normalise_arch(info.arch)
