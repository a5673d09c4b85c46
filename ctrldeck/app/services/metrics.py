from __future__ import annotations

import ipaddress
import logging
import socket
import time
from typing import Any, Callable, TypeVar

import psutil

from ctrldeck.app.controls.base import DEFAULT_MUTED, DEFAULT_VOLUME, ControlAdapter, clamp_percent
from ctrldeck.app.schemas import MetricsSnapshot

logger = logging.getLogger(__name__)

T = TypeVar("T")

_TEMPERATURE_SENSORS = ("coretemp", "k10temp", "cpu_thermal", "soc_thermal", "acpitz")


def _get_cpu_temperature() -> float | None:
    try:
        temps = psutil.sensors_temperatures()
    except (AttributeError, NotImplementedError):
        return None
    if not temps:
        return None
    for key in _TEMPERATURE_SENSORS:
        values = [entry.current for entry in temps.get(key) or [] if entry.current]
        if values:
            return round(float(sum(values) / len(values)), 1)
    # Fallback: first sensor group with readings
    for entries in temps.values():
        values = [entry.current for entry in entries if entry.current is not None]
        if values:
            return round(float(sum(values) / len(values)), 1)
    return None


def _get_battery() -> tuple[int | None, bool]:
    try:
        battery = psutil.sensors_battery()
    except (AttributeError, NotImplementedError):
        return None, False
    if battery is None:
        return None, False
    level = clamp_percent(round(battery.percent)) if battery.percent is not None else None
    return level, bool(battery.power_plugged)


def local_ipv4_addresses() -> list[str]:
    """Non-loopback IPv4 addresses of interfaces that are up, or 127.0.0.1 when none are."""
    try:
        interfaces = psutil.net_if_addrs()
        stats = psutil.net_if_stats()
    except (OSError, AttributeError) as exc:
        logger.debug("Cannot list network interfaces: %s", exc)
        interfaces, stats = {}, {}
    addresses: list[str] = []
    for name, entries in interfaces.items():
        if name in stats and not stats[name].isup:
            continue
        for entry in entries:
            if entry.family != socket.AF_INET:
                continue
            try:
                if ipaddress.ip_address(entry.address).is_loopback:
                    continue
            except ValueError:
                continue
            if entry.address not in addresses:
                addresses.append(entry.address)
    return addresses or ["127.0.0.1"]


class NetworkRateTracker:
    """Turns cumulative interface byte counters into bytes/second rates."""

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._previous: tuple[int, int, float] | None = None

    def reset(self) -> None:
        self._previous = None

    def sample(self, bytes_sent: int, bytes_recv: int) -> tuple[float, float]:
        now = self._clock()
        previous = self._previous
        self._previous = (bytes_sent, bytes_recv, now)
        if previous is None:
            return 0.0, 0.0
        prev_sent, prev_recv, prev_time = previous
        elapsed = now - prev_time
        # Counters go backwards when an interface resets; report no traffic then.
        if elapsed <= 0 or bytes_sent < prev_sent or bytes_recv < prev_recv:
            return 0.0, 0.0
        return (bytes_sent - prev_sent) / elapsed, (bytes_recv - prev_recv) / elapsed


class MetricsCollector:
    """Performs one full read pass over every telemetry source."""

    def __init__(self, adapter: ControlAdapter, rate_tracker: NetworkRateTracker | None = None) -> None:
        self._adapter = adapter
        self._rates = rate_tracker or NetworkRateTracker()

    def reset(self) -> None:
        self._rates.reset()

    def _read(self, label: str, func: Callable[[], T], default: T) -> T:
        try:
            return func()
        except Exception as exc:
            logger.debug("Metric source %s unavailable: %s", label, exc)
            return default

    def _network_rates(self) -> tuple[float, float]:
        counters = psutil.net_io_counters()
        if counters is None:
            return 0.0, 0.0
        return self._rates.sample(counters.bytes_sent, counters.bytes_recv)

    def _memory(self) -> dict[str, Any]:
        memory = psutil.virtual_memory()
        return {
            "ram_usage": round(float(memory.percent), 2),
            "ram_total": int(memory.total),
            "ram_used": int(memory.used),
        }

    def collect(self) -> MetricsSnapshot:
        cpu_usage = self._read("cpu", lambda: float(psutil.cpu_percent(interval=None)), 0.0)
        memory = self._read("memory", self._memory, {"ram_usage": 0.0, "ram_total": 0, "ram_used": 0})
        battery_level, is_charging = self._read("battery", _get_battery, (None, False))
        upload, download = self._read("network", self._network_rates, (0.0, 0.0))

        payload: dict[str, Any] = {
            "cpu_usage": min(max(cpu_usage, 0.0), 100.0),
            **memory,
            "battery_level": battery_level,
            "is_charging": is_charging,
            "cpu_temp": self._read("temperature", _get_cpu_temperature, None),
            "mic_muted": self._read("mic", self._adapter.is_mic_muted, DEFAULT_MUTED),
            "volume_level": self._read("volume", self._adapter.get_volume, DEFAULT_VOLUME),
            "volume_muted": self._read("mute", self._adapter.is_muted, DEFAULT_MUTED),
            "brightness_level": self._read("brightness", self._adapter.get_brightness, None),
            "network_upload": round(upload, 2),
            "network_download": round(download, 2),
            "timestamp": int(time.time()),
        }
        return MetricsSnapshot.model_validate(payload)
