"""Host Collector — samples CPU, memory, disk, network and the process table via psutil.

Disk and NIC rates are deltas of the I/O counters taken around the CPU
sampling window, i.e. instantaneous point samples over roughly
``cpu_sample_seconds``, not averages since the previous snapshot.
"""

import os
import socket
import time
from datetime import datetime, timezone
from typing import Optional

import psutil

from ..errors import CollectionErrorKind
from ..schemas import (
    CpuSample,
    DiskSample,
    HostSnapshot,
    MemorySample,
    NetworkInterfaceSample,
    ProcessInfo,
    ProcessSample,
)
from .base_collector import BaseCollector

_PROCESS_ATTRS = ["pid", "name", "cpu_percent", "memory_info", "num_threads"]


def _is_loopback(name: str) -> bool:
    lowered = name.lower()
    return lowered == "lo" or lowered.startswith(("lo0", "loopback"))


def _rate(after: float, before: float, elapsed: float) -> float:
    if elapsed <= 0:
        return 0.0
    # Counters can wrap or reset; a negative delta is reported as zero
    return max(0.0, (after - before) / elapsed)


class HostCollector(BaseCollector):
    """Produces one HostSnapshot per call."""

    def __init__(
        self,
        hostname: Optional[str] = None,
        cpu_sample_seconds: float = 0.5,
        top_process_count: int = 5,
        timeout_seconds: float = 10.0,
    ):
        super().__init__(name="host", timeout_seconds=timeout_seconds)
        self.hostname = hostname or socket.gethostname()
        self._cpu_sample_seconds = cpu_sample_seconds
        self._top_n = top_process_count

    def classify_error(self, exc: Exception) -> CollectionErrorKind:
        if isinstance(exc, (psutil.Error, OSError)):
            return CollectionErrorKind.UNAVAILABLE
        return super().classify_error(exc)

    def collect(self) -> HostSnapshot:
        timestamp = datetime.now(timezone.utc)

        disk_before = psutil.disk_io_counters(perdisk=True) or {}
        net_before = psutil.net_io_counters(pernic=True) or {}
        started = time.monotonic()
        per_core = psutil.cpu_percent(interval=self._cpu_sample_seconds, percpu=True)
        elapsed = time.monotonic() - started
        disk_after = psutil.disk_io_counters(perdisk=True) or {}
        net_after = psutil.net_io_counters(pernic=True) or {}

        return HostSnapshot(
            timestamp=timestamp,
            hostname=self.hostname,
            cpu=self._cpu(per_core),
            memory=self._memory(),
            disks=self._disks(disk_before, disk_after, elapsed),
            network_interfaces=self._interfaces(net_before, net_after, elapsed),
            processes=self._processes(),
        )

    def _cpu(self, per_core: list[float]) -> CpuSample:
        if not per_core:
            raise ValueError("psutil returned no per-core CPU readings")
        return CpuSample(
            utilization_percent=sum(per_core) / len(per_core),
            per_core_percent=per_core,
            logical_cores=len(per_core),
            temperature_celsius=self._temperature(),
            frequency_mhz=self._frequency(),
        )

    @staticmethod
    def _temperature() -> Optional[float]:
        # Not available on every platform
        read = getattr(psutil, "sensors_temperatures", None)
        if read is None:
            return None
        try:
            sensors = read() or {}
        except (OSError, RuntimeError):
            return None
        for package in ("coretemp", "k10temp", "cpu_thermal", "acpitz"):
            if sensors.get(package):
                return float(sensors[package][0].current)
        for entries in sensors.values():
            if entries:
                return float(entries[0].current)
        return None

    @staticmethod
    def _frequency() -> Optional[float]:
        try:
            freq = psutil.cpu_freq()
        except (OSError, NotImplementedError):
            return None
        return float(freq.current) if freq else None

    @staticmethod
    def _memory() -> MemorySample:
        vm = psutil.virtual_memory()
        swap = psutil.swap_memory()
        return MemorySample(
            total_physical_bytes=vm.total,
            available_physical_bytes=vm.available,
            total_virtual_bytes=vm.total + swap.total,
            available_virtual_bytes=vm.available + swap.free,
            page_file_bytes=swap.total,
        )

    def _disks(self, before: dict, after: dict, elapsed: float) -> list[DiskSample]:
        disks = []
        seen = set()
        for part in psutil.disk_partitions(all=False):
            if part.mountpoint in seen:
                continue
            try:
                usage = psutil.disk_usage(part.mountpoint)
            except (PermissionError, OSError):
                # Empty optical drives and unmounted media
                self.logger.debug("disk_usage_skipped", mountpoint=part.mountpoint)
                continue
            seen.add(part.mountpoint)

            device = os.path.basename(part.device.rstrip("\\/")) or part.device
            read_ops = write_ops = 0.0
            if device in before and device in after:
                read_ops = _rate(after[device].read_count, before[device].read_count, elapsed)
                write_ops = _rate(after[device].write_count, before[device].write_count, elapsed)

            disks.append(DiskSample(
                drive=part.mountpoint,
                label=part.device,
                total_bytes=usage.total,
                free_bytes=usage.free,
                read_ops_per_sec=read_ops,
                write_ops_per_sec=write_ops,
            ))
        return disks

    @staticmethod
    def _interfaces(before: dict, after: dict, elapsed: float) -> list[NetworkInterfaceSample]:
        interfaces = []
        for name, counters in after.items():
            if _is_loopback(name):
                continue
            prior = before.get(name, counters)
            interfaces.append(NetworkInterfaceSample(
                name=name,
                bytes_recv_per_sec=_rate(counters.bytes_recv, prior.bytes_recv, elapsed),
                bytes_sent_per_sec=_rate(counters.bytes_sent, prior.bytes_sent, elapsed),
                errors_in=counters.errin,
                errors_out=counters.errout,
            ))
        return interfaces

    def _processes(self) -> ProcessSample:
        procs = []
        total_threads = 0
        for proc in psutil.process_iter(_PROCESS_ATTRS):
            info = proc.info
            total_threads += info.get("num_threads") or 0
            mem = info.get("memory_info")
            procs.append(ProcessInfo(
                pid=info["pid"],
                name=info.get("name") or "",
                cpu_percent=max(0.0, info.get("cpu_percent") or 0.0),
                memory_bytes=mem.rss if mem else 0,
            ))

        top_cpu = sorted(procs, key=lambda p: p.cpu_percent, reverse=True)[: self._top_n]
        top_memory = sorted(procs, key=lambda p: p.memory_bytes, reverse=True)[: self._top_n]
        return ProcessSample(
            total_processes=len(procs),
            total_threads=total_threads,
            top_cpu=top_cpu,
            top_memory=top_memory,
        )
