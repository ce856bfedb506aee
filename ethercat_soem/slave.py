"""
EtherCAT SOEM — Generic Slave Handle
======================================

Ready-to-use slave handle for any EtherCAT device.  Exposes the decoded
process values of the last cycle via :attr:`values` and queues output
writes that the ProcessData thread applies before the next exchange.

Usage::

    from ethercat_soem import EtherCATBus, GenericSlave, DataType, Value

    bus = EtherCATBus(adapter="eth0", cycle_time_ms=1)
    slave = GenericSlave(2)
    bus.register_slave(slave)
    bus.open()

    # read inputs
    print(slave.values)

    # write outputs
    slave.set((0x7000, 0x01), Value(DataType.BOOL, True))

    bus.close()
"""

import threading

from .exceptions import SlaveNotFoundError
from .types import EntryIndex


class GenericSlave:
    """Generic slave handle that works with any EtherCAT device.

    Implements the slave-handle interface expected by
    :class:`~ethercat_soem.EtherCATBus`.

    Args:
        slave_index: EtherCAT slave position on the bus (zero based).
        on_cycle: Optional callback ``fn(slave)`` invoked every PDO
            cycle after the values are refreshed.
    """

    def __init__(self, slave_index, on_cycle=None):
        self.slave_index = slave_index
        self.on_cycle = on_cycle
        self._values = {}
        self._pending = []
        self._pending_lock = threading.Lock()
        self._bus = None

    @property
    def values(self):
        """Decoded PDO values of the last cycle, keyed by :class:`EntryIndex`."""
        return dict(self._values)

    def value(self, entry):
        """Latest :class:`Value` of *entry*, or ``None`` if not mapped."""
        return self._values.get(EntryIndex(*entry))

    def attach(self, bus):
        """Called by :meth:`EtherCATBus.register_slave`."""
        self._bus = bus

    def set(self, entry, value):
        """Queue an output write; applied before the next exchange.

        Once the bus holds a PDO map for this slave the write is checked
        immediately, so a bad entry or value raises here and is not queued.

        Raises:
            EntryNotFoundError: *entry* is not mapped.
            WrongDirectionError: *entry* is an input.
            ValueMismatchError: *value* does not fit the entry.
        """
        entry = EntryIndex(*entry)
        bus = self._bus
        if bus is not None and bus.has_pdo_map(self.slave_index):
            bus.check_pdo_value(self.slave_index, entry, value)
        with self._pending_lock:
            self._pending.append((entry, value))

    def _apply_pending(self, bus):
        with self._pending_lock:
            pending, self._pending = self._pending, []
        for entry, value in pending:
            bus.set_pdo_value(self.slave_index, entry, value)

    def seed_tx(self, bus):
        """Called once before OP so the first frames carry queued outputs.

        Writes queued before discovery are checked here and raise.
        """
        self._apply_pending(bus)

    def pdo_update(self, bus):
        """Called by EtherCATBus every cycle, after the exchange."""
        self._apply_pending(bus)
        try:
            self._values = dict(bus.pdo_values(self.slave_index))
        except SlaveNotFoundError:
            self._values = {}
        if self.on_cycle:
            self.on_cycle(self)

    def safe_stop(self, bus):
        """Called during bus shutdown.  Drops queued writes and zeroes all
        outputs so the slave does not hold its last commanded state."""
        with self._pending_lock:
            self._pending = []
        bus.zero_outputs(self.slave_index)
