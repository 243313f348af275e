"""Host snapshot schema — CPU, memory, disks, network interfaces, processes.

Rates (``*_per_sec``) are instantaneous point samples taken over the
collector's short sampling window, not averages since the previous snapshot.
Error counters on network interfaces are cumulative since boot.
"""

from __future__ import annotations

from typing import Literal, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from .common import SnapshotKind, UtcDatetime, clamp_percent


class CpuSample(BaseModel):
    utilization_percent: float
    per_core_percent: list[float] = []
    logical_cores: int = Field(ge=0)
    temperature_celsius: Optional[float] = None
    frequency_mhz: Optional[float] = None

    @field_validator("utilization_percent")
    @classmethod
    def _clamp_overall(cls, v: float) -> float:
        return clamp_percent(v)

    @field_validator("per_core_percent")
    @classmethod
    def _clamp_cores(cls, v: list[float]) -> list[float]:
        return [clamp_percent(c) for c in v]

    @model_validator(mode="after")
    def _cores_match(self) -> "CpuSample":
        if len(self.per_core_percent) != self.logical_cores:
            raise ValueError(
                f"per_core_percent has {len(self.per_core_percent)} entries "
                f"but logical_cores is {self.logical_cores}"
            )
        return self


class MemorySample(BaseModel):
    total_physical_bytes: int = Field(ge=0)
    available_physical_bytes: int = Field(ge=0)
    total_virtual_bytes: int = Field(ge=0)
    available_virtual_bytes: int = Field(ge=0)
    page_file_bytes: int = Field(ge=0)

    @property
    def physical_utilization_percent(self) -> float:
        if self.total_physical_bytes == 0:
            return 0.0
        used = self.total_physical_bytes - self.available_physical_bytes
        return clamp_percent(used / self.total_physical_bytes * 100)


class DiskSample(BaseModel):
    drive: str
    label: str = ""
    total_bytes: int = Field(ge=0)
    free_bytes: int = Field(ge=0)
    read_ops_per_sec: float = Field(default=0.0, ge=0)
    write_ops_per_sec: float = Field(default=0.0, ge=0)

    @property
    def utilization_percent(self) -> float:
        if self.total_bytes == 0:
            return 0.0
        return clamp_percent((self.total_bytes - self.free_bytes) / self.total_bytes * 100)


class NetworkInterfaceSample(BaseModel):
    name: str
    bytes_recv_per_sec: float = Field(default=0.0, ge=0)
    bytes_sent_per_sec: float = Field(default=0.0, ge=0)
    errors_in: int = Field(default=0, ge=0)
    errors_out: int = Field(default=0, ge=0)


class ProcessInfo(BaseModel):
    pid: int
    name: str
    cpu_percent: float = Field(default=0.0, ge=0)
    memory_bytes: int = Field(default=0, ge=0)


class ProcessSample(BaseModel):
    total_processes: int = Field(ge=0)
    total_threads: int = Field(ge=0)
    top_cpu: list[ProcessInfo] = []
    top_memory: list[ProcessInfo] = []


class HostSnapshot(BaseModel):
    kind: Literal[SnapshotKind.HOST] = SnapshotKind.HOST
    timestamp: UtcDatetime
    hostname: str
    cpu: CpuSample
    memory: MemorySample
    disks: list[DiskSample] = []
    network_interfaces: list[NetworkInterfaceSample] = []
    processes: ProcessSample

    @property
    def instance(self) -> str:
        return self.hostname
