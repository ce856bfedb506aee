"""
EtherCAT SOEM — Bus configuration
===================================

Reads the ``"network"`` section of the bus JSON file, the same file that
carries the per-slave PDO assignment (see :func:`~ethercat_soem.pdo.load_pdo_config`)::

    {
      "network": {
        "adapter": "eth0",
        "cycle_ms": 1,
        "sdo_timeout_ms": 3000,
        "recv_timeout_us": 2000,
        "strict_discovery": false,
        "strict_pdo_size": false,
        "configure_pdo": false
      },
      "default": {...},
      "slaves": {...}
    }
"""

from __future__ import annotations

import json
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Optional

from .exceptions import ConfigurationError


DEFAULT_CYCLE_MS = 1.0
DEFAULT_SDO_TIMEOUT_MS = 3000.0
DEFAULT_RECV_TIMEOUT_US = 2000.0


@dataclass(frozen=True)
class BusConfig:
    """Network and timing settings of one bus."""

    adapter: Optional[str] = None
    cycle_ms: float = DEFAULT_CYCLE_MS
    sdo_timeout_ms: float = DEFAULT_SDO_TIMEOUT_MS
    recv_timeout_us: float = DEFAULT_RECV_TIMEOUT_US
    strict_discovery: bool = False
    strict_pdo_size: bool = False
    configure_pdo: bool = False

    @property
    def cycle_time(self) -> float:
        return self.cycle_ms / 1000.0

    @property
    def sdo_timeout(self) -> float:
        return self.sdo_timeout_ms / 1000.0

    @property
    def recv_timeout(self) -> float:
        return self.recv_timeout_us / 1_000_000.0

    def with_overrides(self, **kwargs) -> "BusConfig":
        """Copy with every non-``None`` keyword applied."""
        return replace(self, **{k: v for k, v in kwargs.items() if v is not None})


def load_bus_config(path: str | Path) -> BusConfig:
    """Load the ``"network"`` section of *path* into a :class:`BusConfig`.

    A file without a ``"network"`` section yields the defaults.

    Raises:
        ConfigurationError: The file cannot be read or holds bad values.
    """
    try:
        raw = json.loads(Path(path).read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        raise ConfigurationError(f"Could not load bus config {path}: {exc}") from exc

    net = raw.get("network", {})
    if not isinstance(net, dict):
        raise ConfigurationError(f"'network' in {path} must be an object")

    try:
        config = BusConfig(
            adapter=net.get("adapter"),
            cycle_ms=float(net.get("cycle_ms", DEFAULT_CYCLE_MS)),
            sdo_timeout_ms=float(net.get("sdo_timeout_ms", DEFAULT_SDO_TIMEOUT_MS)),
            recv_timeout_us=float(net.get("recv_timeout_us", DEFAULT_RECV_TIMEOUT_US)),
            strict_discovery=bool(net.get("strict_discovery", False)),
            strict_pdo_size=bool(net.get("strict_pdo_size", False)),
            configure_pdo=bool(net.get("configure_pdo", False)),
        )
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"Invalid 'network' section in {path}: {exc}") from exc

    if config.cycle_ms <= 0:
        raise ConfigurationError("cycle_ms must be > 0")
    if config.sdo_timeout_ms <= 0 or config.recv_timeout_us <= 0:
        raise ConfigurationError("timeouts must be > 0")
    return config
