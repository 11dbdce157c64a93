"""
Host Metrics Sampler for compose-status
Reads load, memory, CPU and temperature once per pass with psutil
"""

import logging
from typing import Callable, Optional, TypeVar

import psutil

from docker_monitor.errors import MetricSampleUnavailable
from docker_monitor.stats_history import StatsHistoryBuffer
from models.status_models import HostStats, MetricsSample

logger = logging.getLogger(__name__)

T = TypeVar('T')

# Sensor chips checked in order before falling back to the first reading
PREFERRED_SENSORS = ('coretemp', 'k10temp', 'cpu_thermal', 'cpu-thermal', 'soc_thermal', 'acpitz')


def _read_load():
    return psutil.getloadavg()


def _read_memory():
    memory = psutil.virtual_memory()
    return memory.used, memory.total


def _read_cpu_percent() -> float:
    # interval=None compares against the previous call, so it never blocks
    return float(psutil.cpu_percent(interval=None))


def _read_temperature() -> float:
    sensors = getattr(psutil, 'sensors_temperatures', None)
    if sensors is None:
        raise MetricSampleUnavailable("temperature sensors not supported on this platform")

    temps = sensors() or {}
    ordered = [name for name in PREFERRED_SENSORS if name in temps]
    ordered += sorted(name for name in temps if name not in PREFERRED_SENSORS)
    for name in ordered:
        for entry in temps[name]:
            current = getattr(entry, 'current', None)
            if isinstance(current, (int, float)):
                return float(current)
    raise MetricSampleUnavailable("no temperature sensor reported a reading")


class HostMetricsSampler:
    """
    Samples host metrics and keeps the CPU/temperature history.

    Every metric is read independently: a missing temperature sensor leaves
    cpu_temp as None and skips the temperature history for that cycle, while
    load, memory and CPU are still reported.
    """

    def __init__(self, history_capacity: int):
        self.history = StatsHistoryBuffer(history_capacity)
        # Prime psutil's CPU counter so the first real sample is meaningful
        self._read(_read_cpu_percent, 'cpu')

    def _read(self, reader: Callable[[], T], metric: str) -> Optional[T]:
        try:
            return reader()
        except MetricSampleUnavailable as e:
            logger.debug(f"Metric {metric} unavailable: {e}")
        except (OSError, psutil.Error, AttributeError, ValueError) as e:
            logger.debug(f"Failed to read metric {metric}: {e}")
        return None

    def sample(self) -> MetricsSample:
        load = self._read(_read_load, 'load')
        memory = self._read(_read_memory, 'memory')
        cpu_percent = self._read(_read_cpu_percent, 'cpu')
        cpu_temp = self._read(_read_temperature, 'temperature')

        sample = MetricsSample(
            load1=load[0] if load else None,
            load5=load[1] if load else None,
            load15=load[2] if load else None,
            mem_used=memory[0] if memory else None,
            mem_total=memory[1] if memory else None,
            cpu_percent=cpu_percent,
            cpu_temp=cpu_temp,
        )
        self.history.record(cpu_percent, cpu_temp)
        return sample

    def stats(self, sample: MetricsSample) -> HostStats:
        return HostStats(
            sample=sample,
            cpu_history=self.history.cpu.values(),
            temp_history=self.history.temperature.values(),
        )
