"""Disk and OS information models based on Pydantic."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

GIB = 1024**3


class DiskInfo(BaseModel):
    """Capacity of the volume holding the storage root."""

    model_config = ConfigDict(populate_by_name=True)

    path: str = Field(description="Mount point of the volume.")
    free_bytes: int = Field(alias="freeBytes")
    size_bytes: int = Field(alias="sizeBytes")
    free_gb: float = Field(alias="freeGb", description="Free space in GiB, two decimals.")
    size_gb: float = Field(alias="sizeGb", description="Total space in GiB, two decimals.")

    @classmethod
    def from_bytes(cls, path: str, free: int, size: int) -> "DiskInfo":
        return cls(
            path=path,
            free_bytes=free,
            size_bytes=size,
            free_gb=round(free / GIB, 2),
            size_gb=round(size / GIB, 2),
        )


class OsInfo(BaseModel):
    platform: str = Field(description="Platform identifier, e.g. linux, darwin, win32.")
    release: str
    arch: str = Field(description="CPU architecture, e.g. x64, arm64.")
