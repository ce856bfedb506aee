"""Shared fixtures: an in-memory engine that stands in for SOEM."""

import struct

import pytest

from ethercat_soem.exceptions import (
    CommunicationError,
    OdDescriptionError,
    OdListError,
    OeListError,
    SdoReadError,
    SdoWriteError,
    SlaveNotFoundError,
)
from ethercat_soem.engine import SlaveInfo
from ethercat_soem.od import EntryDescription, ObjectDescription
from ethercat_soem.types import AlState, DataType, EntryIndex


# ObjAccess words
RO = 0x0007
RW = 0x003F
RW_RX = 0x007F
RO_TX = 0x0087

VAR = 0x07
RECORD = 0x09


def u8(value):
    return struct.pack("<B", value)


def u16(value):
    return struct.pack("<H", value)


def u32(value):
    return struct.pack("<I", value)


def mapping(index, subindex, bit_length):
    return u32((index << 16) | (subindex << 8) | bit_length)


def record(index, name, entries):
    """Build an OD object from ``[(data_type, bit_length, access, name), ...]``.

    The "number of entries" slot 0 is added automatically.
    """
    desc = ObjectDescription(index, int(DataType.U8), RECORD, len(entries), name)
    sub0 = EntryDescription(int(DataType.U8), 8, RO, "SubIndex 000")
    return desc, [sub0] + [EntryDescription(int(t), b, a, n) for t, b, a, n in entries]


def var(index, name, data_type, bit_length, access=RO):
    desc = ObjectDescription(index, int(data_type), VAR, 0, name)
    return desc, [EntryDescription(int(data_type), bit_length, access, name)]


class FakeSlave:
    def __init__(self, name="Slave", objects=(), sdo=None, output_bytes=0, input_bytes=0):
        self.name = name
        self.objects = list(objects)
        self.sdo = dict(sdo or {})
        self.output_bytes = output_bytes
        self.input_bytes = input_bytes
        self.state = int(AlState.INIT)
        self.al_status = 0
        self.inputs = bytes(input_bytes)
        self.sent_outputs = []
        self.fail_od_list = False
        self.fail_description_at = None
        self.fail_oe_list_at = None


class FakeEngine:
    """Implements the engine interface used by EtherCATBus in memory."""

    def __init__(self, slaves=()):
        self.slaves = list(slaves)
        self.io_map = bytearray()
        self._outputs = []
        self._inputs = []
        self.opened_adapter = None
        self.closed = False
        self.requested_states = []
        self.sdo_reads = []
        self.sdo_writes = []
        self.reached_state = None
        self.wkc = 3
        self.expected_wkc = 3
        self.exchanges = 0

    # lifecycle

    @staticmethod
    def list_adapters():
        return [("eth0", "Fake adapter")]

    def open(self, adapter=None):
        self.opened_adapter = adapter or "eth0"

    def close(self):
        self.closed = True

    def config_init(self):
        return len(self.slaves)

    def config_map(self):
        self._outputs, self._inputs = [], []
        offset = 0
        for s in self.slaves:
            self._outputs.append((offset, s.output_bytes))
            offset += s.output_bytes
        for s in self.slaves:
            self._inputs.append((offset, s.input_bytes))
            offset += s.input_bytes
        self.io_map = bytearray(offset)
        return offset

    def config_dc(self):
        pass

    @property
    def slave_count(self):
        return len(self.slaves)

    def slave_info(self, slave):
        s = self.slaves[slave]
        return SlaveInfo(
            position=slave, name=s.name, vendor_id=2, product_code=0x1234, revision=1,
            state=s.state, al_status=s.al_status,
            output_bytes=s.output_bytes, input_bytes=s.input_bytes,
        )

    # states

    def request_state(self, state, slave=None):
        self.requested_states.append(AlState(state))
        if self.reached_state is None:
            for s in self.slaves:
                s.state = int(state)

    def state_check(self, state, timeout):
        if self.reached_state is not None:
            return int(self.reached_state)
        return min((s.state for s in self.slaves), default=int(state))

    def read_state(self):
        return min((s.state for s in self.slaves), default=0)

    def slave_state(self, slave):
        s = self.slaves[slave]
        return s.state, s.al_status

    # mailbox

    def sdo_read(self, slave, index, subindex, access_complete, size, timeout):
        self.sdo_reads.append((slave, index, subindex, access_complete))
        table = self.slaves[slave].sdo
        if access_complete:
            subs = sorted(sub for idx, sub in table if idx == index)
            if not subs:
                raise SdoReadError(slave, EntryIndex(index, subindex), "abort code 0x06020000")
            return b"".join(table[(index, sub)] for sub in subs)
        try:
            return table[(index, subindex)]
        except KeyError:
            raise SdoReadError(
                slave, EntryIndex(index, subindex), "abort code 0x06020000"
            ) from None

    def sdo_write(self, slave, index, subindex, access_complete, data, timeout):
        s = self.slaves[slave]
        if s.sdo.get((index, subindex)) == b"read-only":
            raise SdoWriteError(slave, EntryIndex(index, subindex), "abort code 0x06010002")
        self.sdo_writes.append((slave, index, subindex, bytes(data)))
        s.sdo[(index, subindex)] = bytes(data)

    def read_od_list(self, slave):
        s = self.slaves[slave]
        if s.fail_od_list:
            raise OdListError(slave, "no SDO info support")
        return [desc.index for desc, _ in s.objects]

    def read_od_description(self, slave, item):
        s = self.slaves[slave]
        if s.fail_description_at == item:
            raise OdDescriptionError(slave, item, reason="timeout")
        return s.objects[item][0]

    def read_oe_list(self, slave, item):
        s = self.slaves[slave]
        if s.fail_oe_list_at == item:
            raise OeListError(slave, item, reason="timeout")
        return s.objects[item][1]

    # process data

    def output_range(self, slave):
        if not 0 <= slave < len(self._outputs):
            raise SlaveNotFoundError(slave)
        return self._outputs[slave]

    def input_range(self, slave):
        if not 0 <= slave < len(self._inputs):
            raise SlaveNotFoundError(slave)
        return self._inputs[slave]

    def exchange_process_data(self, timeout):
        if self.wkc is None:
            raise CommunicationError("No frame received")
        self.exchanges += 1
        for s, (offset, length) in zip(self.slaves, self._outputs):
            s.sent_outputs.append(bytes(self.io_map[offset:offset + length]))
        for s, (offset, length) in zip(self.slaves, self._inputs):
            self.io_map[offset:offset + length] = s.inputs[:length]
        return self.wkc


def io_slave():
    """An I/O device with two RxPDOs and one TxPDO.

    * 0x1600 maps 0x7001:03 (F32)
    * 0x1601 maps 0x8010:02 and 0x8010:06 (BOOL)
    * 0x1A00 maps 0x6000:01 (I16) and 8 bits of padding
    """
    objects = [
        var(0x1000, "Device type", DataType.U32, 32),
        var(0x1008, "Device name", DataType.STRING, 48),
        record(0x1018, "Identity", [
            (DataType.U32, 32, RO, "Vendor ID"),
            (DataType.U32, 32, RO, "Product code"),
            (DataType.U32, 32, RO, "Revision"),
            (DataType.U32, 32, RO, "Serial number"),
        ]),
        record(0x1600, "Outputs Ch.1", [(DataType.U32, 32, RW, "Mapping 1")]),
        record(0x1601, "Outputs Ch.2", [
            (DataType.U32, 32, RW, "Mapping 1"),
            (DataType.U32, 32, RW, "Mapping 2"),
        ]),
        record(0x1A00, "Inputs Ch.1", [
            (DataType.U32, 32, RW, "Mapping 1"),
            (DataType.U32, 32, RW, "Mapping 2"),
        ]),
        record(0x6000, "Inputs", [(DataType.I16, 16, RO_TX, "Position")]),
        record(0x7001, "Outputs", [
            (DataType.U16, 16, RW, "Control"),
            (DataType.U16, 16, RW, "Mode"),
            (DataType.F32, 32, RW_RX, "Setpoint"),
        ]),
        record(0x8010, "Flags", [
            (DataType.BOOL, 1, RW, "Flag 1"),
            (DataType.BOOL, 1, RW_RX, "Enable"),
            (DataType.BOOL, 1, RW, "Flag 3"),
            (DataType.BOOL, 1, RW, "Flag 4"),
            (DataType.BOOL, 1, RW, "Flag 5"),
            (DataType.BOOL, 1, RW_RX, "Reset"),
        ]),
    ]
    sdo = {
        (0x1000, 0): u32(0x00001389),
        (0x1008, 0): b"EL9999",
        (0x1018, 0): u8(4),
        (0x1018, 1): u32(0x00000002),
        (0x1018, 2): u32(0x1234),
        (0x1018, 3): u32(0x00100000),
        (0x1018, 4): u32(42),
        (0x1C00, 0): u8(4),
        (0x1C00, 1): u8(1),
        (0x1C00, 2): u8(2),
        (0x1C00, 3): u8(3),
        (0x1C00, 4): u8(4),
        (0x1C12, 0): u8(2),
        (0x1C12, 1): u16(0x1600),
        (0x1C12, 2): u16(0x1601),
        (0x1C13, 0): u8(1),
        (0x1C13, 1): u16(0x1A00),
        (0x1600, 0): u8(1),
        (0x1600, 1): mapping(0x7001, 0x03, 32),
        (0x1601, 0): u8(2),
        (0x1601, 1): mapping(0x8010, 0x02, 1),
        (0x1601, 2): mapping(0x8010, 0x06, 1),
        (0x1A00, 0): u8(2),
        (0x1A00, 1): mapping(0x6000, 0x01, 16),
        (0x1A00, 2): mapping(0x0000, 0x00, 8),
    }
    return FakeSlave("EL9999", objects, sdo, output_bytes=5, input_bytes=3)


def coupler_slave():
    """A coupler without mailbox or process data."""
    slave = FakeSlave("EK1100")
    slave.fail_od_list = True
    return slave


@pytest.fixture
def engine():
    return FakeEngine([io_slave()])


@pytest.fixture
def mixed_engine():
    return FakeEngine([coupler_slave(), io_slave()])
