"""
EtherCAT SOEM — Engine adapter
================================

Thin adapter around ``pysoem.Master``.  Frame handling, the slave state
machine, distributed clocks and the mailbox protocol stay in SOEM; this
module only translates calls and failures.

The adapter owns the shared I/O image as one ``bytearray``.  Each slave's
outputs and inputs are an (offset, length) range into it: outputs of all
slaves first, then inputs, in slave order.  :meth:`exchange_process_data`
pushes the output ranges to SOEM, runs one send/receive and pulls the
input ranges back.

All positions are zero based and all timeouts are in seconds.
"""

import logging
from typing import NamedTuple

import pysoem

from .exceptions import (
    CommunicationError,
    ConfigurationError,
    ConnectionError,
    OdDescriptionError,
    OdListError,
    OeListError,
    SdoReadError,
    SdoWriteError,
    SlaveNotFoundError,
)
from .od import EntryDescription, ObjectDescription
from .types import EntryIndex


logger = logging.getLogger(__name__)

_MAILBOX_ERRORS = (
    pysoem.SdoError,
    pysoem.WkcError,
    pysoem.MailboxError,
    pysoem.PacketError,
)


def _us(seconds):
    return max(1, int(seconds * 1_000_000))


def _text(value):
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return str(value)


class SlaveInfo(NamedTuple):
    position: int
    name: str
    vendor_id: int
    product_code: int
    revision: int
    state: int
    al_status: int
    output_bytes: int
    input_bytes: int


class SoemEngine:
    """Adapter between :class:`~ethercat_soem.bus.EtherCATBus` and PySOEM."""

    def __init__(self):
        self.master = None
        self.io_map = bytearray()
        self._outputs = []
        self._inputs = []
        self._od_cache = {}

    # ------------------------------------------------------------------
    # Adapter / lifecycle
    # ------------------------------------------------------------------

    @staticmethod
    def list_adapters():
        """Return ``(name, description)`` pairs of the available adapters."""
        return [(_text(a.name), _text(a.desc)) for a in pysoem.find_adapters()]

    def open(self, adapter=None):
        """Bind to *adapter*, or to the first adapter found if ``None``."""
        adapters = self.list_adapters()
        if not adapters:
            raise ConnectionError("No network adapters found")
        if adapter is None:
            adapter = adapters[0][0]
        elif adapter not in (name for name, _ in adapters):
            available = ", ".join(name for name, _ in adapters)
            raise ConnectionError(f"Adapter '{adapter}' not found. Available: {available}")

        logger.debug(f"Initialise SOEM stack: bind socket to {adapter}")
        self.master = pysoem.Master()
        try:
            self.master.open(adapter)
        except (OSError, RuntimeError) as exc:
            self.master = None
            raise ConnectionError(f"Could not open adapter '{adapter}': {exc}") from exc
        self._od_cache = {}

    def close(self):
        if self.master is not None:
            self.master.close()
            self.master = None
        self.io_map = bytearray()
        self._outputs = []
        self._inputs = []
        self._od_cache = {}

    def config_init(self):
        """Enumerate slaves; returns the slave count."""
        count = self.master.config_init()
        if count == -1:
            raise CommunicationError("No frame received")
        if count < -1:
            raise CommunicationError("Unknown frame received")
        self._od_cache = {}
        return max(count, 0)

    def config_map(self):
        """Map the process image and lay out the shared I/O arena."""
        try:
            size = self.master.config_map()
        except pysoem.ConfigMapError as exc:
            raise ConfigurationError(f"Could not configure map group: {exc}") from exc

        self._outputs = []
        self._inputs = []
        offset = 0
        for slave in self.master.slaves:
            length = len(slave.output) if slave.output else 0
            self._outputs.append((offset, length))
            offset += length
        for slave in self.master.slaves:
            length = len(slave.input) if slave.input else 0
            self._inputs.append((offset, length))
            offset += length
        self.io_map = bytearray(offset)
        return size

    def config_dc(self):
        if not self.master.config_dc():
            logger.debug("No slave with distributed clocks found")

    @property
    def slave_count(self):
        return len(self.master.slaves) if self.master is not None else 0

    def slave_info(self, slave):
        s = self.master.slaves[slave]
        out_bytes = len(s.output) if s.output else 0
        in_bytes = len(s.input) if s.input else 0
        return SlaveInfo(
            position=slave,
            name=_text(s.name),
            vendor_id=int(s.man),
            product_code=int(s.id),
            revision=int(s.rev),
            state=int(s.state),
            al_status=int(getattr(s, "al_status", 0) or 0),
            output_bytes=out_bytes,
            input_bytes=in_bytes,
        )

    # ------------------------------------------------------------------
    # AL states
    # ------------------------------------------------------------------

    def request_state(self, state, slave=None):
        """Write the requested AL state to one slave or to all."""
        target = self.master if slave is None else self.master.slaves[slave]
        target.state = int(state)
        wkc = target.write_state()
        if wkc == -1:
            raise CommunicationError("No frame received")
        if wkc == 0:
            raise CommunicationError(f"Could not set state 0x{int(state):02X}")

    def state_check(self, state, timeout):
        """Block until all slaves reach *state*; returns the state found."""
        return int(self.master.state_check(int(state), _us(timeout)))

    def read_state(self):
        """Refresh all slave states; returns the lowest state."""
        return int(self.master.read_state())

    def slave_state(self, slave):
        s = self.master.slaves[slave]
        return int(s.state), int(getattr(s, "al_status", 0) or 0)

    # ------------------------------------------------------------------
    # Mailbox
    # ------------------------------------------------------------------

    def sdo_read(self, slave, index, subindex, access_complete, size, timeout):
        """Upload one SDO; returns the received bytes."""
        self.master.sdo_read_timeout = _us(timeout)
        try:
            return bytes(self.master.slaves[slave].sdo_read(
                index, subindex, size, access_complete))
        except _MAILBOX_ERRORS as exc:
            abort = getattr(exc, "abort_code", None)
            if abort is not None:
                reason = f"abort code 0x{abort:08X} {getattr(exc, 'desc', '')}".strip()
            else:
                reason = str(exc)
            raise SdoReadError(slave, EntryIndex(index, subindex), reason) from exc

    def sdo_write(self, slave, index, subindex, access_complete, data, timeout):
        self.master.sdo_write_timeout = _us(timeout)
        try:
            self.master.slaves[slave].sdo_write(index, subindex, bytes(data), access_complete)
        except _MAILBOX_ERRORS as exc:
            raise SdoWriteError(slave, EntryIndex(index, subindex), str(exc)) from exc

    def _objects(self, slave):
        try:
            return self._od_cache[slave]
        except KeyError:
            raise OdListError(slave, "object list not read") from None

    def read_od_list(self, slave):
        """Read the object list of *slave*; returns the object indices."""
        try:
            objects = list(self.master.slaves[slave].od)
        except (pysoem.SdoInfoError, *_MAILBOX_ERRORS) as exc:
            raise OdListError(slave, str(exc)) from exc
        self._od_cache[slave] = objects
        return [obj.index for obj in objects]

    def read_od_description(self, slave, item):
        objects = self._objects(slave)
        if item >= len(objects):
            raise OdDescriptionError(slave, item, reason="no such item")
        obj = objects[item]
        # pysoem keeps MaxSub private; the entry list length gives it
        return ObjectDescription(
            index=obj.index,
            data_type=obj.data_type,
            object_code=obj.object_code,
            max_subindex=None,
            name=_text(obj.name),
        )

    def read_oe_list(self, slave, item):
        objects = self._objects(slave)
        if item >= len(objects):
            raise OeListError(slave, item, reason="no such item")
        obj = objects[item]
        try:
            entries = obj.entries
            if not entries:
                return [EntryDescription(obj.data_type, obj.bit_length,
                                         obj.obj_access, _text(obj.name))]
        except (pysoem.SdoInfoError, *_MAILBOX_ERRORS) as exc:
            raise OeListError(slave, item, reason=str(exc)) from exc
        return [
            EntryDescription(e.data_type, e.bit_length, e.obj_access, _text(e.name))
            for e in entries
        ]

    # ------------------------------------------------------------------
    # Process data
    # ------------------------------------------------------------------

    @property
    def expected_wkc(self):
        return int(self.master.expected_wkc)

    def output_range(self, slave):
        return self._range(self._outputs, slave)

    def input_range(self, slave):
        return self._range(self._inputs, slave)

    @staticmethod
    def _range(ranges, slave):
        if not 0 <= slave < len(ranges):
            raise SlaveNotFoundError(slave)
        return ranges[slave]

    def exchange_process_data(self, timeout):
        """Run one send/receive cycle; returns the working counter."""
        slaves = self.master.slaves
        for pos, (offset, length) in enumerate(self._outputs):
            if length:
                slaves[pos].output = bytes(self.io_map[offset:offset + length])

        self.master.send_processdata()
        wkc = int(self.master.receive_processdata(_us(timeout)))

        for pos, (offset, length) in enumerate(self._inputs):
            if length:
                data = bytes(slaves[pos].input)[:length]
                self.io_map[offset:offset + len(data)] = data
        return wkc
