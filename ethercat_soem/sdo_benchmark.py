"""
EtherCAT SOEM — SDO read benchmark
====================================

Reads dictionary entries of one slave over and over and reports, per
entry, the last decoded value, the round-trip times and the failures.
Each target is either a single entry, read with
:meth:`EtherCATBus.read_sdo_entry`, or a whole object read with one
complete-access upload.  The targets are read in turn within every
round, so slow and fast entries see the same bus load.

Can be used standalone::

    python -m ethercat_soem.sdo_benchmark --adapter eth0 --slave 1 0x1018 0x10F1

Or programmatically via an open ``EtherCATBus``::

    bench = SdoReadBenchmark(bus, slave_index=1, targets=[0x1018], complete=True)
    for timing in bench.run().values():
        print(timing.summary())
"""

import logging
import statistics
import time
from dataclasses import dataclass, field

from .bus import EtherCATBus
from .exceptions import EtherCATError
from .types import Access, EntryIndex


logger = logging.getLogger(__name__)

_READABLE = (Access.READ_ONLY, Access.READ_WRITE)


def _readable(info):
    access = info.access
    return info.decodable and any(
        state in _READABLE for state in (access.pre_op, access.safe_op, access.op)
    )


@dataclass
class EntryTiming:
    """Results of one benchmark target.

    ``target`` is an :class:`EntryIndex`, or the object index for a
    complete-access target.
    """

    target: object
    name: str = ""
    value: object = None
    times_ms: list = field(default_factory=list)
    errors: int = 0
    last_error: str = ""

    @property
    def count(self):
        return len(self.times_ms)

    def stats(self):
        """``min``/``max``/``mean``/``median`` in ms, or ``None`` without samples."""
        if not self.times_ms:
            return None
        return {
            "min": min(self.times_ms),
            "max": max(self.times_ms),
            "mean": statistics.fmean(self.times_ms),
            "median": statistics.median(self.times_ms),
        }

    def summary(self):
        if isinstance(self.target, EntryIndex):
            label = str(self.target)
        else:
            label = f"0x{self.target:04X} (complete)"
        if self.name:
            label += f" {self.name}"
        stats = self.stats()
        if stats is None:
            return f"{label}: no successful read ({self.errors} failed: {self.last_error})"
        line = (
            f"{label} = {self.value}  "
            f"[{stats['min']:.3f} / {stats['mean']:.3f} / {stats['max']:.3f} ms"
        )
        if self.errors:
            line += f", {self.errors} failed"
        return line + "]"


class SdoReadBenchmark:
    """Time typed SDO reads of one slave against its object dictionary.

    Args:
        bus: An open :class:`EtherCATBus` that has discovered the slave.
        slave_index: Slave position (zero based).
        targets: Object indices or ``(index, subindex)`` pairs.  An
            object index expands to its readable sub-entries, unless
            *complete* is set.  Defaults to the identity object 0x1018.
        complete: Read each object with one complete-access upload.
        rounds: How often every target is read.
    """

    DEFAULT_TARGETS = (0x1018,)

    def __init__(self, bus, slave_index=0, targets=None, complete=False, rounds=100):
        self.bus = bus
        self.slave_index = slave_index
        self.complete = complete
        self.rounds = rounds
        self.abort_event = None
        self.timings = {}
        self._targets = list(targets) if targets is not None else list(self.DEFAULT_TARGETS)

    def targets(self):
        """Resolve the configured targets against the object dictionary.

        Raises:
            IndexNotFoundError / EntryNotFoundError: A target is not in
                the dictionary.
        """
        od = self.bus.object_dictionary
        resolved = []
        for target in self._targets:
            if isinstance(target, int):
                obj = od.object(self.slave_index, target)
                if self.complete:
                    resolved.append((target, obj.name))
                    continue
                resolved.extend(
                    (info.entry, info.name)
                    for info in od.entries(self.slave_index, target)
                    if _readable(info)
                )
            else:
                info = od.entry(self.slave_index, target)
                resolved.append((info.entry, info.name))
        return resolved

    def _read(self, target):
        if isinstance(target, EntryIndex):
            return self.bus.read_sdo_entry(self.slave_index, target)
        return self.bus.read_sdo_complete(self.slave_index, target)

    def run(self):
        """Read every target ``rounds`` times; returns ``{target: EntryTiming}``."""
        self.timings = {
            target: EntryTiming(target, name) for target, name in self.targets()
        }
        for _ in range(self.rounds):
            for target, timing in self.timings.items():
                if self.abort_event is not None and self.abort_event.is_set():
                    return self.timings
                t0 = time.perf_counter()
                try:
                    timing.value = self._read(target)
                except EtherCATError as exc:
                    timing.errors += 1
                    timing.last_error = str(exc)
                    continue
                timing.times_ms.append((time.perf_counter() - t0) * 1000.0)

        failed = [t for t in self.timings.values() if t.errors]
        for timing in failed:
            logger.warning(
                f"Slave {self.slave_index}: {timing.errors}/{self.rounds} reads of "
                f"{timing.target} failed, last: {timing.last_error}"
            )
        return self.timings

    def report(self):
        return "\n".join(t.summary() for t in self.timings.values())


def _target(text):
    if ":" in text:
        index, sub = text.split(":", 1)
        return EntryIndex(int(index, 16), int(sub, 16))
    return int(text, 0)


def main():
    """Standalone CLI: open the bus, run the benchmark, print the report."""
    import argparse

    parser = argparse.ArgumentParser(description="EtherCAT SDO read benchmark")
    parser.add_argument("targets", nargs="*", type=_target,
                        help="Object index (0x1018) or entry (1018:02); default 0x1018")
    parser.add_argument("--adapter", type=str, default=None,
                        help="Adapter name")
    parser.add_argument("--slave", type=int, default=0,
                        help="Slave position (default 0)")
    parser.add_argument("--rounds", type=int, default=100,
                        help="Reads per target (default 100)")
    parser.add_argument("--complete", action="store_true",
                        help="Read whole objects with complete access")
    parser.add_argument("--cycle", type=float, default=1.0,
                        help="PDO cycle time in ms (default 1.0)")
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO)

    with EtherCATBus(adapter=args.adapter, cycle_time_ms=args.cycle) as bus:
        bench = SdoReadBenchmark(bus, slave_index=args.slave, targets=args.targets or None,
                                 complete=args.complete, rounds=args.rounds)
        bench.run()
        print(f"Slave [{args.slave}] {bus.slaves()[args.slave].name}, "
              f"{args.rounds} rounds (min / mean / max)")
        print(bench.report())


if __name__ == "__main__":
    main()
