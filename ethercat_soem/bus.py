"""
EtherCAT SOEM — Bus Manager
=============================

Provides :class:`EtherCATBus`, the master façade.  It owns the engine
adapter, runs object dictionary and PDO discovery once per configuration
pass, caches the results and serves SDO access and per-cycle process-data
reads and writes.

Architecture
------------

::

    EtherCATBus
    ├── SoemEngine             (pysoem.Master + shared I/O image)
    ├── ObjectDictionary       (built by auto_config, read only)
    ├── PDO assignments        (built by auto_config, read only)
    └── ProcessData thread     (exchange + slave handle updates per cycle)

Discovery runs strictly before the ProcessData thread starts; a new
configuration pass stops the thread first.  Every exchange and every
process-data read/write takes the same lock, so an accessor call never
overlaps an exchange.

Slave handles register via ``register_slave()`` and must implement:
``slave_index``, ``attach(bus)``, ``seed_tx(bus)``, ``pdo_update(bus)``,
``safe_stop(bus)``.

Usage
-----

::

    bus = EtherCATBus(adapter="eth0", cycle_time_ms=1)
    bus.open()
    for entry, value in bus.pdo_values(0):
        print(entry, value)
    bus.close()

"""

import logging
import threading
import time

from . import codec
from .al_status import AlStatus, al_status_text, state_name
from .config import BusConfig, load_bus_config
from .engine import SoemEngine
from .exceptions import (
    AlStateError,
    CommunicationError,
    ConfigurationError,
    ConnectionError,
    EtherCATError,
    SlaveNotFoundError,
    UnsupportedDataTypeError,
)
from .od import ObjectDictionary, read_od_list
from .pdo import configure_pdo_mapping, get_slave_pdo, load_pdo_config, pdo_bit_sizes, resolve
from .process_data import check_pdo_write, read_pdo_values, write_pdo_value
from .types import AlState, DataType, EntryIndex


logger = logging.getLogger(__name__)

_STATE_TIMEOUT = 0.5
_OP_TIMEOUT = 5.0
_VARIABLE_SIZE_TYPES = (DataType.STRING, DataType.OCTET_STRING, DataType.DOMAIN)


class EtherCATBus:
    """Master façade for one EtherCAT bus.

    Args:
        adapter: Network adapter name.  ``None`` picks the first adapter.
        cycle_time_ms: Process-data cycle time in milliseconds.
        pdo_config_path: Optional path to the bus JSON file.  Its
            ``"network"`` section supplies defaults for the other
            arguments; its PDO sections are written to the slaves when
            ``configure_pdo`` is enabled.
        engine: Engine adapter; defaults to :class:`SoemEngine`.
        config: A :class:`BusConfig` used instead of the file's
            ``"network"`` section.
    """

    def __init__(self, adapter=None, cycle_time_ms=None, pdo_config_path=None,
                 engine=None, config=None):
        if config is None:
            config = load_bus_config(pdo_config_path) if pdo_config_path else BusConfig()
        self.config = config.with_overrides(adapter=adapter, cycle_ms=cycle_time_ms)

        self.pdo_config = None
        if pdo_config_path and self.config.configure_pdo:
            self.pdo_config = load_pdo_config(pdo_config_path)

        self.engine = engine if engine is not None else SoemEngine()

        self._dictionary = ObjectDictionary()
        self._pdos = {}
        self.discovery_errors = {}

        self._handles = []
        self._lock = threading.RLock()
        self._pd_thread = None
        self._pd_stop = None

        self._opened = False
        self._in_op = False
        self._comm_ok_count = 0
        self._comm_error_count = 0
        self._actual_wkc = 0

    # ------------------------------------------------------------------
    # Context manager
    # ------------------------------------------------------------------

    def __enter__(self):
        self.open()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False

    @staticmethod
    def list_adapters():
        """Return ``(name, description)`` pairs of the available adapters."""
        return SoemEngine.list_adapters()

    @staticmethod
    def discover(adapter=None, engine=None):
        """Enumerate the slaves on *adapter* without configuring the bus.

        Returns:
            list[SlaveInfo]: One item per slave in bus order.
        """
        engine = engine if engine is not None else SoemEngine()
        engine.open(adapter)
        try:
            count = engine.config_init()
            return [engine.slave_info(i) for i in range(count)]
        finally:
            engine.close()

    # ------------------------------------------------------------------
    # Slave registration
    # ------------------------------------------------------------------

    def register_slave(self, slave_handle):
        """Register a slave handle to be updated in every cycle.

        The handle must implement:

        - ``slave_index`` (int): bus position of the slave
        - ``attach(bus)``: called once, here
        - ``seed_tx(bus)``: before OP, to fill the first output frames
        - ``pdo_update(bus)``: every cycle, after the exchange
        - ``safe_stop(bus)``: during :meth:`close`
        """
        with self._lock:
            self._handles.append(slave_handle)
        slave_handle.attach(self)

    def unregister_slave(self, slave_handle):
        with self._lock:
            self._handles = [h for h in self._handles if h is not slave_handle]

    # ------------------------------------------------------------------
    # Open / configure / close
    # ------------------------------------------------------------------

    def open(self, operational=True):
        """Connect, run :meth:`auto_config` and optionally go to OP.

        Raises:
            ConnectionError: No adapter/slaves, or a state transition failed.
            ConfigurationError: PDO assignment or mapping failed.
        """
        self.engine.open(self.config.adapter)
        self._opened = True
        try:
            self.auto_config()
            if operational:
                self.go_operational()
        except EtherCATError:
            self.close()
            raise

    def auto_config(self):
        """Configure all slaves and fetch their dictionaries and PDO maps.

        Brings the bus to PRE-OP, writes configured PDO assignments, maps
        the process image, then reads every slave's object dictionary and
        resolves its PDO assignment.  A slave whose discovery fails is
        logged and recorded in :attr:`discovery_errors`, and the objects it
        listed before the failure stay in :attr:`object_dictionary`.  The
        other slaves are still configured.  All cached results of a
        previous pass are replaced.  A running ProcessData thread is
        stopped first.
        """
        self.stop()
        self._in_op = False

        logger.debug("Find and auto-config slaves")
        self.request_states(AlState.INIT)
        self.check_states(AlState.INIT, _STATE_TIMEOUT)

        count = self.engine.config_init()
        if count <= 0:
            raise ConnectionError("No EtherCAT slaves found")
        logger.info(f"Found {count} EtherCAT slave(s)")

        self.request_states(AlState.PRE_OP)
        self.check_states(AlState.PRE_OP, _STATE_TIMEOUT)

        if self.pdo_config is not None:
            for slave in range(count):
                if slave not in self.pdo_config and "default" not in self.pdo_config:
                    continue
                rx, tx = get_slave_pdo(self.pdo_config, slave)
                configure_pdo_mapping(self.engine, slave, rx, tx, self.config.sdo_timeout)

        with self._lock:
            self._dictionary = ObjectDictionary()
            self._pdos = {}
            self.engine.config_map()
        self.engine.config_dc()

        errors = {}
        objects = {}
        logger.debug("Fetch SDO info")
        for slave in range(count):
            try:
                objects[slave] = read_od_list(self.engine, slave)
            except CommunicationError as exc:
                logger.error(f"Slave {slave}: object dictionary discovery failed: {exc}")
                errors[slave] = exc
                completed = getattr(exc, "completed", ())
                if completed:
                    objects[slave] = completed
        dictionary = ObjectDictionary(objects)

        logger.debug("Fetch PDO info")
        pdos = {}
        for slave in dictionary:
            if slave in errors:
                continue
            try:
                pdos[slave] = resolve(self.engine, dictionary, slave, self.config.sdo_timeout)
            except CommunicationError as exc:
                logger.error(f"Slave {slave}: PDO assignment discovery failed: {exc}")
                errors[slave] = exc

        with self._lock:
            self._dictionary = dictionary
            self._pdos = pdos
            self.discovery_errors = errors

        for slave in pdos:
            self.validate_pdo_sizes(slave)

        if errors and self.config.strict_discovery:
            slave, exc = next(iter(errors.items()))
            raise ConfigurationError(f"Discovery failed for slave {slave}: {exc}") from exc

    def validate_pdo_sizes(self, slave):
        """Compare the resolved PDO map with the mapped process image size.

        Logs a warning on mismatch, or raises ``ConfigurationError`` when
        ``strict_pdo_size`` is set.
        """
        out_bits, in_bits = pdo_bit_sizes(self.pdo_assignments(slave))
        info = self.engine.slave_info(slave)
        expected = (codec.byte_count(out_bits), codec.byte_count(in_bits))
        actual = (info.output_bytes, info.input_bytes)
        if expected == actual:
            return True
        msg = (
            f"Slave {slave}: PDO map covers Out={expected[0]}B, In={expected[1]}B "
            f"but the process image holds Out={actual[0]}B, In={actual[1]}B"
        )
        if self.config.strict_pdo_size:
            raise ConfigurationError(msg)
        logger.warning(msg)
        return False

    def go_operational(self, timeout=_OP_TIMEOUT):
        """SAFE-OP, seed outputs, start the ProcessData thread, then OP."""
        self.request_states(AlState.SAFE_OP)
        self.check_states(AlState.SAFE_OP, _STATE_TIMEOUT)
        logger.info("Reached SAFE-OP state")

        with self._lock:
            for handle in self._handles:
                handle.seed_tx(self)

        self.start()
        self.request_states(AlState.OP)
        logger.debug("Requested OP state transition")

        deadline = time.monotonic() + timeout
        while time.monotonic() < deadline:
            if self.engine.state_check(AlState.OP, 0.05) == AlState.OP:
                self._in_op = True
                logger.info("Reached OP state, bus ready")
                return
        self.stop()
        raise ConnectionError(f"Failed to reach OP state.\n{self._slave_state_report()}")

    def close(self):
        """Stop all handles and the ProcessData thread, then disconnect."""
        with self._lock:
            for handle in self._handles:
                try:
                    handle.safe_stop(self)
                except EtherCATError as exc:
                    logger.warning(f"Slave {handle.slave_index}: safe stop failed: {exc}")

        was_running = self._pd_thread is not None
        self._in_op = False
        self.stop()

        if self._opened:
            try:
                if was_running and self._handles:
                    # push the zeroed outputs once more
                    self.exchange_process_data()
            except EtherCATError as exc:
                logger.warning(f"Final process data exchange failed: {exc}")
            finally:
                self.engine.close()
                self._opened = False
            logger.info("Disconnected")

    @property
    def connected(self):
        return self._opened and self._in_op

    # ------------------------------------------------------------------
    # AL states
    # ------------------------------------------------------------------

    def request_states(self, state):
        logger.debug(f"Request {state_name(state)} state for all slaves")
        self.engine.request_state(state)

    def check_states(self, state, timeout=_STATE_TIMEOUT):
        """Wait until all slaves reach *state* or raise ``CommunicationError``."""
        found = self.engine.state_check(state, timeout)
        if found != state:
            raise CommunicationError(
                f"Current state {state_name(found)} does not match expected state "
                f"{state_name(state)}"
            )

    def states(self):
        """Refresh and return the :class:`AlState` of every slave.

        Raises:
            AlStateError: A slave reports an error flag or unknown state.
        """
        self.engine.read_state()
        states = []
        for slave in range(self.engine.slave_count):
            state, al_status = self.engine.slave_state(slave)
            try:
                states.append(AlState(state))
            except ValueError:
                raise AlStateError(slave, state, AlStatus.from_code(al_status)) from None
        return states

    def slaves(self):
        return [self.engine.slave_info(i) for i in range(self.engine.slave_count)]

    def _slave_state_report(self):
        """Build a diagnostic string for each slave."""
        self.engine.read_state()
        lines = []
        for info in self.slaves():
            line = f"  [{info.position}] {info.name}: state={state_name(info.state)}"
            if info.al_status:
                line += f", AL=0x{info.al_status:04X} ({al_status_text(info.al_status)})"
            line += f", Out={info.output_bytes}B, In={info.input_bytes}B"
            lines.append(line)
        if lines:
            return "Slave details:\n" + "\n".join(lines)
        return "No slave state info available."

    # ------------------------------------------------------------------
    # Discovery results
    # ------------------------------------------------------------------

    @property
    def object_dictionary(self):
        """The :class:`ObjectDictionary` of the last configuration pass."""
        return self._dictionary

    def pdo_assignments(self, slave):
        try:
            return self._pdos[slave]
        except KeyError:
            raise SlaveNotFoundError(slave) from None

    def has_pdo_map(self, slave):
        return slave in self._pdos

    # ------------------------------------------------------------------
    # SDO access
    # ------------------------------------------------------------------

    def read_sdo(self, slave, entry, access_complete=False, size=0, timeout=None):
        """Upload raw bytes of one SDO."""
        entry = EntryIndex(*entry)
        return self.engine.sdo_read(
            slave, entry.index, entry.subindex, access_complete, size,
            timeout if timeout is not None else self.config.sdo_timeout,
        )

    def read_sdo_entry(self, slave, entry, timeout=None):
        """Read one entry and decode it with its dictionary data type.

        Raises:
            EntryNotFoundError: *entry* is not in the dictionary.
            UnsupportedDataTypeError: The entry is not decodable.
            SdoReadError: The upload failed.
        """
        info = self._dictionary.entry(slave, entry)
        if not info.decodable:
            raise UnsupportedDataTypeError(
                info.data_type if info.data_type is not None else info.data_type_code,
                f"entry {info.entry} of slave {slave}",
            )
        size = codec.byte_count(info.bit_length)
        raw = self.read_sdo(slave, info.entry, False, size, timeout)
        bit_length = len(raw) * 8 if info.data_type in _VARIABLE_SIZE_TYPES else info.bit_length
        return codec.decode(info.data_type, bit_length, raw)

    def read_sdo_complete(self, slave, index, include_subindex0=False, timeout=None):
        """Read all sub-entries of *index* with one complete-access upload.

        Returns:
            list[Value | None]: One item per sub-entry; ``None`` for entries
            that cannot be decoded.  Subindex 0 is left out unless
            *include_subindex0* is set or the object has no sub-entries.
        """
        obj = self._dictionary.object(slave, index)
        sizes = [
            (codec.byte_count(e.bit_length), e) if e.decodable else None
            for e in obj.entries
        ]
        max_size = max((s[0] for s in sizes if s is not None), default=0)
        raw = self.read_sdo(slave, (index, 0), True, max_size * len(sizes), timeout)

        values = []
        pos = 0
        for item in sizes:
            if item is None:
                values.append(None)
                continue
            size, info = item
            values.append(codec.decode(info.data_type, info.bit_length, raw[pos:pos + size]))
            pos += size

        if include_subindex0 or obj.max_subindex == 0:
            return values
        return values[1:]

    def write_sdo(self, slave, entry, data, access_complete=False, timeout=None):
        """Download raw bytes to one SDO."""
        entry = EntryIndex(*entry)
        self.engine.sdo_write(
            slave, entry.index, entry.subindex, access_complete, data,
            timeout if timeout is not None else self.config.sdo_timeout,
        )

    def write_sdo_entry(self, slave, entry, value, timeout=None):
        """Encode *value* and download it to one SDO."""
        self.write_sdo(slave, entry, codec.encode(value), False, timeout)

    # ------------------------------------------------------------------
    # Process data
    # ------------------------------------------------------------------

    @property
    def expected_wkc(self):
        return self.engine.expected_wkc

    @property
    def last_wkc(self):
        return self._actual_wkc

    @property
    def comm_stats(self):
        """Counts of good and bad cycles since the bus was created."""
        return {"ok": self._comm_ok_count, "errors": self._comm_error_count}

    def exchange_process_data(self):
        """Run one send/receive cycle and return the working counter."""
        with self._lock:
            wkc = self.engine.exchange_process_data(self.config.recv_timeout)
            self._actual_wkc = wkc
            if wkc != self.engine.expected_wkc:
                self._comm_error_count += 1
            else:
                self._comm_ok_count += 1
            return wkc

    def _slave_io(self, slave, direction_range):
        offset, length = direction_range(slave)
        return offset, offset + length

    def zero_outputs(self, slave):
        """Clear the whole output region of *slave* in the I/O image."""
        with self._lock:
            start, end = self._slave_io(slave, self.engine.output_range)
            self.engine.io_map[start:end] = bytes(end - start)

    def pdo_values(self, slave):
        """Decode all mapped process values of *slave* from the I/O image.

        Returns:
            list[tuple[EntryIndex, Value]]: Outputs first, then inputs.
        """
        assignments = self.pdo_assignments(slave)
        with self._lock:
            io_map = self.engine.io_map
            in_start, in_end = self._slave_io(slave, self.engine.input_range)
            out_start, out_end = self._slave_io(slave, self.engine.output_range)
            return read_pdo_values(
                slave, assignments,
                bytes(io_map[in_start:in_end]),
                bytes(io_map[out_start:out_end]),
            )

    def check_pdo_value(self, slave, entry, value):
        """Raise the error :meth:`set_pdo_value` would raise, without writing."""
        check_pdo_write(slave, self.pdo_assignments(slave), entry, value)

    def set_pdo_value(self, slave, entry, value):
        """Write one mapped output value into the I/O image.

        The value is sent with the next exchange.

        Raises:
            EntryNotFoundError, WrongDirectionError, ValueMismatchError
        """
        assignments = self.pdo_assignments(slave)
        with self._lock:
            start, end = self._slave_io(slave, self.engine.output_range)
            with memoryview(self.engine.io_map)[start:end] as outputs:
                write_pdo_value(slave, assignments, outputs, entry, value)

    # ------------------------------------------------------------------
    # ProcessData thread
    # ------------------------------------------------------------------

    def start(self):
        """Start the ProcessData thread."""
        if self._pd_thread is not None and self._pd_thread.is_alive():
            return
        self._pd_stop = threading.Event()
        self._pd_thread = threading.Thread(
            target=self._processdata_loop, name="EtherCAT-ProcessData", daemon=False
        )
        self._pd_thread.start()
        logger.info(f"ProcessData thread started ({self.config.cycle_ms:.1f} ms cycle)")

    def stop(self, timeout=2.0):
        if self._pd_stop is not None:
            self._pd_stop.set()
        if self._pd_thread is not None:
            self._pd_thread.join(timeout=timeout)
        self._pd_thread = None
        self._pd_stop = None

    def run_cycle(self):
        """One cycle: exchange, then update every registered handle."""
        with self._lock:
            wkc = self.exchange_process_data()
            for handle in self._handles:
                handle.pdo_update(self)
            return wkc

    def _processdata_loop(self):
        next_tick = time.monotonic()
        while not self._pd_stop.is_set():
            try:
                self.run_cycle()
            except Exception:
                self._comm_error_count += 1
                logger.exception("Process data cycle failed")
            next_tick += self.config.cycle_time
            sleep_s = next_tick - time.monotonic()
            if sleep_s > 0:
                self._pd_stop.wait(sleep_s)
            else:
                # missed deadline, restart the schedule
                next_tick = time.monotonic()
